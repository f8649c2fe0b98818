from dataclasses import dataclass

from leaddesk.core.errors import Unauthorized
from leaddesk.models.user import UserRole

MANAGER_ROLES = (UserRole.owner, UserRole.manager)


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation. Passed explicitly into every service call."""

    id: int
    role: UserRole
    organization_id: int
    client_id: int | None = None

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES


def require_manager(actor: Actor, message: str = "Unauthorized: owner or manager role required") -> None:
    if not actor.is_manager:
        raise Unauthorized(message)


def require_same_organization(actor: Actor, organization_id: int, message: str = "Unauthorized: resource belongs to another organization") -> None:
    if actor.organization_id != organization_id:
        raise Unauthorized(message)
