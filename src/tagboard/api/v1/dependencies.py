"""Shared API dependencies for identity and database access."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from tagboard.core.settings import settings
from tagboard.db.session import get_db
from tagboard.models import Perms
from tagboard.services.access import Requester

# Tokens are optional: anonymous callers browse as guests.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def get_requester(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Requester:
    """Build the requester from the identity token issued by the auth service.

    Expected claims: ``sub`` (user id), ``perms`` (permission tier) and the
    optional ``show_explicit`` content preference.

    Raises:
        HTTPException: If a token is present but invalid.
    """
    if credentials is None:
        return Requester.guest()
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise _unauthorized() from err

    subject = payload.get("sub")
    if subject is None:
        raise _unauthorized()
    try:
        user_id = int(subject)
        perms = Perms(payload.get("perms", Perms.User.value))
    except (TypeError, ValueError) as err:
        raise _unauthorized() from err
    return Requester(
        user_id=user_id,
        perms=perms,
        show_explicit=bool(payload.get("show_explicit", False)),
    )


# Type alias for requester dependency
RequesterDep = Annotated[Requester, Depends(get_requester)]
