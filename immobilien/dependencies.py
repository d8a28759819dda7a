from typing import Annotated, Callable, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from immobilien.config import settings
from immobilien.database import Database, get_database, get_db
from immobilien.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    InactiveAccountError,
    TokenMissingError,
)
from immobilien.models.user import User, UserRole, UserStatus
from immobilien.policy import Permission, has_permission
from immobilien.services.auth_service import decode_access_token

logger = logging.getLogger(__name__)

oauth2_bearer = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_PREFIX}/auth/login", auto_error=False
)

db_dependency = Annotated[Session, Depends(get_db)]
database_dependency = Annotated[Database, Depends(get_database)]


def get_current_user(
    db: db_dependency,
    token: Annotated[Optional[str], Depends(oauth2_bearer)],
) -> User:
    if not token:
        raise TokenMissingError()
    payload = decode_access_token(token)
    user = db.get(User, payload["id"])
    if user is None:
        raise AuthenticationError("Benutzer nicht gefunden")
    if user.status != UserStatus.ACTIVE:
        raise InactiveAccountError()
    return user


def get_optional_user(
    db: db_dependency,
    token: Annotated[Optional[str], Depends(oauth2_bearer)],
) -> Optional[User]:
    """Resolve the caller if possible; any auth failure means anonymous."""
    if not token:
        return None
    try:
        return get_current_user(db, token)
    except (APIError, SQLAlchemyError) as exc:
        logger.debug("Optional auth ignored: %s", exc)
        return None


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]


def require_permission(required: Permission) -> Callable[..., User]:
    def dependency(current_user: CurrentUser) -> User:
        if not has_permission(current_user, required):
            raise AuthorizationError()
        return current_user

    return dependency


def require_roles(*roles: UserRole) -> Callable[..., User]:
    def dependency(current_user: CurrentUser) -> User:
        if current_user.role not in roles:
            raise AuthorizationError()
        return current_user

    return dependency


AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
