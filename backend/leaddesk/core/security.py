from jose import jwt
from twilio.request_validator import RequestValidator

from leaddesk.core.config import get_settings


def decode_token(token: str) -> dict:
    """Verify an access token issued by the identity provider and return its claims."""
    settings = get_settings()
    options = {"verify_iss": bool(settings.JWT_ISSUER)}
    kwargs = {"issuer": settings.JWT_ISSUER} if settings.JWT_ISSUER else {}
    return jwt.decode(
        token,
        settings.AUTH_JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE,
        options=options,
        **kwargs,
    )


def verify_twilio_signature(auth_token: str, url: str, params: dict[str, str], signature: str) -> bool:
    if not auth_token or not signature:
        return False
    return RequestValidator(auth_token).validate(url, params, signature)
