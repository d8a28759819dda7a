"""Role and ownership rules for every protected action.

Roles grant permissions; some permissions are additionally scoped to the
resource owner. Admins pass ownership checks unconditionally.
"""

from enum import Enum
from typing import Optional

from immobilien.exceptions import AuthorizationError
from immobilien.models.property import Property
from immobilien.models.property_images import PropertyImage
from immobilien.models.user import User, UserRole


class Permission(str, Enum):
    CREATE_PROPERTIES = "create:properties"
    UPDATE_PROPERTIES = "update:properties"
    DELETE_PROPERTIES = "delete:properties"
    UPLOAD_IMAGES = "upload:images"
    MANAGE_INQUIRIES = "manage:inquiries"
    MANAGE_USERS = "manage:users"
    EDIT_PROFILE = "edit:profile"


_STAFF_PERMISSIONS = [
    Permission.CREATE_PROPERTIES,
    Permission.UPDATE_PROPERTIES,
    Permission.DELETE_PROPERTIES,
    Permission.UPLOAD_IMAGES,
    Permission.MANAGE_INQUIRIES,
    Permission.EDIT_PROFILE,
]

ROLE_PERMISSIONS: dict[UserRole, list[Permission]] = {
    UserRole.ADMIN: list(Permission),
    UserRole.MANAGER: _STAFF_PERMISSIONS,
    UserRole.AGENT: _STAFF_PERMISSIONS,
    UserRole.USER: [Permission.EDIT_PROFILE],
}

# Permissions that only apply to resources the actor owns
OWNERSHIP_SCOPED = {
    Permission.UPDATE_PROPERTIES,
    Permission.DELETE_PROPERTIES,
    Permission.UPLOAD_IMAGES,
    Permission.EDIT_PROFILE,
}


def owner_id_of(resource) -> Optional[int]:
    if isinstance(resource, Property):
        return resource.user_id
    if isinstance(resource, PropertyImage):
        return resource.property.user_id if resource.property else None
    if isinstance(resource, User):
        return resource.id
    raise TypeError(f"No ownership rule for {type(resource).__name__}")


def has_permission(actor: User, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(actor.role, [])


def authorize(actor: User, permission: Permission, resource=None) -> User:
    """Raise AuthorizationError unless ``actor`` may perform ``permission``."""
    if not has_permission(actor, permission):
        raise AuthorizationError()
    if resource is None or permission not in OWNERSHIP_SCOPED:
        return actor
    if actor.role == UserRole.ADMIN:
        return actor
    if owner_id_of(resource) != actor.id:
        raise AuthorizationError()
    return actor
