from fastapi import APIRouter, Request
from starlette import status
import logging

from immobilien.config import settings
from immobilien.dependencies import AdminUser, CurrentUser, db_dependency
from immobilien.exceptions import InactiveAccountError, InvalidCredentialsError
from immobilien.limits import limiter
from immobilien.models.user import UserRole, UserStatus
from immobilien.schemas.user import (
    ChangePasswordRequest,
    LoginRequest,
    UserCreate,
    UserRegister,
    UserResponse,
)
from immobilien.services.auth_service import (
    authenticate_user,
    token_for,
    verify_password,
)
from immobilien.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_payload(user) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(db: db_dependency, admin: AdminUser, user_request: UserRegister):
    """Create a regular user account. Only administrators may register users."""
    user = UserService(db).create(
        UserCreate(**user_request.model_dump(), role=UserRole.USER)
    )
    return {
        "message": "Benutzer erfolgreich registriert",
        "token": token_for(user),
        "user": _user_payload(user),
    }


@router.post("/login", status_code=status.HTTP_200_OK)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(request: Request, db: db_dependency, credentials: LoginRequest):
    user = authenticate_user(credentials.username, credentials.password, db)
    if user is None:
        logger.info("Failed login for %s", credentials.username)
        raise InvalidCredentialsError()
    if user.status != UserStatus.ACTIVE:
        raise InactiveAccountError()

    UserService(db).record_login(user)
    return {
        "message": "Anmeldung erfolgreich",
        "token": token_for(user),
        "token_type": "bearer",
        "user": _user_payload(user),
    }


@router.get("/me", status_code=status.HTTP_200_OK)
def me(current_user: CurrentUser):
    return {"user": _user_payload(current_user)}


@router.put("/change-password", status_code=status.HTTP_200_OK)
def change_password(
    db: db_dependency, current_user: CurrentUser, body: ChangePasswordRequest
):
    if not verify_password(body.current_password, current_user.password_hash):
        raise InvalidCredentialsError("Aktuelles Passwort ist falsch")
    UserService(db).change_password(current_user, body.new_password)
    return {"message": "Passwort erfolgreich geändert"}


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout(current_user: CurrentUser):
    # Tokens are stateless; the client discards its copy
    return {"message": "Erfolgreich abgemeldet"}
