"""Service-to-service token helpers built on JWT."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from webchat_guard.core.settings import settings


class InvalidServiceTokenError(ValueError):
    """Raised when a service token cannot be validated."""


def create_service_token(service: str, expires_minutes: int | None = None) -> str:
    """Create a JWT identifying an internal calling service.

    Args:
        service: Name of the calling service, stored in the ``sub`` claim.
        expires_minutes: Lifetime override; defaults to the configured value.

    Returns:
        The encoded token.
    """
    minutes = settings.service_token_expire_minutes if expires_minutes is None else expires_minutes
    expire = datetime.now(UTC) + timedelta(minutes=minutes)
    encoded: str = jwt.encode(
        {"sub": service, "exp": expire},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded


def decode_service_token(token: str) -> str:
    """Return the calling service name carried by a valid token.

    Raises:
        InvalidServiceTokenError: If the token is malformed, expired or has no subject.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise InvalidServiceTokenError("Could not validate service token") from err
    subject = payload.get("sub")
    if not subject:
        raise InvalidServiceTokenError("Service token has no subject")
    return str(subject)
