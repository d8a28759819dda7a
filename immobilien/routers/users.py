from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Query
from starlette import status

from immobilien.dependencies import AdminUser, CurrentUser, db_dependency
from immobilien.exceptions import AuthorizationError
from immobilien.models.user import UserRole, UserStatus
from immobilien.schemas.user import UserCreate, UserResponse, UserUpdate
from immobilien.services import notifications
from immobilien.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


def _user_payload(user) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


@router.get("", status_code=status.HTTP_200_OK)
def list_users(
    db: db_dependency,
    admin: AdminUser,
    role: Optional[UserRole] = None,
    status_filter: Optional[UserStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    users, total = UserService(db).list_users(role, status_filter, page, limit)
    return {
        "users": [_user_payload(user) for user in users],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": (total + limit - 1) // limit,
        },
    }


@router.get("/stats/overview", status_code=status.HTTP_200_OK)
def user_stats(db: db_dependency, admin: AdminUser):
    return {"stats": UserService(db).stats()}


@router.get("/{user_id}", status_code=status.HTTP_200_OK)
def get_user(user_id: int, db: db_dependency, current_user: CurrentUser):
    if current_user.role != UserRole.ADMIN and current_user.id != user_id:
        raise AuthorizationError()
    service = UserService(db)
    user = service.get_or_404(user_id)
    return {"user": {**_user_payload(user), "property_count": service.property_count(user.id)}}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    db: db_dependency,
    admin: AdminUser,
    body: UserCreate,
    background_tasks: BackgroundTasks,
):
    user = UserService(db).create(body)
    snapshot = UserResponse.model_validate(user)
    background_tasks.add_task(notifications.send_welcome_email, snapshot)
    return {
        "message": "Benutzer erfolgreich erstellt",
        "user": snapshot.model_dump(mode="json"),
    }


@router.put("/{user_id}", status_code=status.HTTP_200_OK)
def update_user(
    user_id: int, db: db_dependency, current_user: CurrentUser, body: UserUpdate
):
    user = UserService(db).update(user_id, body, current_user)
    return {"message": "Benutzer erfolgreich aktualisiert", "user": _user_payload(user)}


@router.delete("/{user_id}", status_code=status.HTTP_200_OK)
def delete_user(user_id: int, db: db_dependency, admin: AdminUser):
    UserService(db).delete(user_id, admin)
    return {"message": "Benutzer erfolgreich gelöscht"}
