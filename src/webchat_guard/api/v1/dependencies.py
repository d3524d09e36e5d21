"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from webchat_guard.core.security import InvalidServiceTokenError, decode_service_token
from webchat_guard.db.session import get_db
from webchat_guard.services.challenge import ChallengeVerifier, get_challenge_verifier

# HTTP Bearer scheme for service JWT authentication
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_calling_service(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Return the name of the internal service presenting the bearer token.

    Raises:
        HTTPException: If the token is missing or invalid.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_service_token(credentials.credentials)
    except InvalidServiceTokenError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from err


def get_challenge_verifier_dep() -> ChallengeVerifier:
    """Return the challenge verifier for dependency injection."""
    return get_challenge_verifier()


# Type aliases for common dependencies
CallingServiceDep = Annotated[str, Depends(get_calling_service)]
ChallengeVerifierDep = Annotated[ChallengeVerifier, Depends(get_challenge_verifier_dep)]
