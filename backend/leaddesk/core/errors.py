"""Domain errors raised by services and mapped to HTTP responses in ``leaddesk.main``."""


class LeadDeskError(Exception):
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(LeadDeskError):
    status_code = 401
    default_message = "Not authenticated"


class Unauthorized(LeadDeskError):
    status_code = 403
    default_message = "Unauthorized"


class NotFound(LeadDeskError):
    status_code = 404
    default_message = "Not found"


class ValidationError(LeadDeskError):
    status_code = 400
    default_message = "Invalid input"


class MissingColumns(ValidationError):
    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required columns: {', '.join(self.missing)}")


class UpstreamFailure(LeadDeskError):
    status_code = 500
    default_message = "Upstream service failed"


class ReportGenerationFailed(UpstreamFailure):
    default_message = "Failed to generate report"


class TelephonyFailure(UpstreamFailure):
    status_code = 502
    default_message = "Telephony provider error"


def cap_errors(errors: list[str], limit: int) -> list[str]:
    """Bound an error list for display, noting how many were left out."""
    if len(errors) <= limit:
        return list(errors)
    return errors[:limit] + [f"... and {len(errors) - limit} more"]
