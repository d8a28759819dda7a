from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from immobilien.exceptions import ConflictError, NotFoundError, ValidationError
from immobilien.models.property import Property
from immobilien.models.user import User, UserRole, UserStatus
from immobilien.policy import Permission, authorize
from immobilien.schemas.user import UserCreate, UserUpdate
from immobilien.services.auth_service import get_password_hash

logger = logging.getLogger(__name__)

DUPLICATE_USER = "Benutzername oder E-Mail bereits vergeben"


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_or_404(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("Benutzer nicht gefunden")
        return user

    def _ensure_unique(self, username: Optional[str], email: Optional[str], exclude_id=None):
        conditions = []
        if username is not None:
            conditions.append(User.username == username)
        if email is not None:
            conditions.append(func.lower(User.email) == email.lower())
        for condition in conditions:
            statement = select(User.id).where(condition)
            if exclude_id is not None:
                statement = statement.where(User.id != exclude_id)
            if self.db.execute(statement).first() is not None:
                raise ConflictError(DUPLICATE_USER)

    def _commit(self) -> None:
        # The unique constraints catch whatever the pre-check raced past
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(DUPLICATE_USER)

    def create(self, data: UserCreate) -> User:
        self._ensure_unique(data.username, data.email)
        user = User(
            username=data.username,
            email=data.email,
            password_hash=get_password_hash(data.password),
            full_name=data.full_name,
            phone=data.phone,
            role=data.role,
            status=UserStatus.ACTIVE,
        )
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        logger.info("User %s created with role %s", user.username, user.role.value)
        return user

    def list_users(
        self,
        role: Optional[UserRole],
        status: Optional[UserStatus],
        page: int,
        limit: int,
    ) -> Tuple[List[User], int]:
        conditions = []
        if role is not None:
            conditions.append(User.role == role)
        if status is not None:
            conditions.append(User.status == status)
        total = self.db.execute(
            select(func.count(User.id)).where(*conditions)
        ).scalar_one()
        users = (
            self.db.execute(
                select(User)
                .where(*conditions)
                .order_by(User.created_at.desc(), User.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return users, total

    def property_count(self, user_id: int) -> int:
        return self.db.execute(
            select(func.count(Property.id)).where(Property.user_id == user_id)
        ).scalar_one()

    def update(self, user_id: int, data: UserUpdate, actor: User) -> User:
        user = self.get_or_404(user_id)
        authorize(actor, Permission.EDIT_PROFILE, user)

        changes = data.model_dump(exclude_unset=True)
        if actor.role != UserRole.ADMIN:
            changes.pop("role", None)
            changes.pop("status", None)
        if not changes:
            raise ValidationError("Keine gültigen Felder zum Aktualisieren")
        if changes.get("email") and changes["email"].lower() != user.email.lower():
            self._ensure_unique(None, changes["email"], exclude_id=user.id)
        for key, value in changes.items():
            setattr(user, key, value)
        self._commit()
        self.db.refresh(user)
        return user

    def delete(self, user_id: int, actor: User) -> None:
        if user_id == actor.id:
            raise ValidationError("Sie können Ihr eigenes Konto nicht löschen")
        user = self.get_or_404(user_id)
        self.db.delete(user)
        self.db.commit()
        logger.info("User %s deleted by %s", user_id, actor.id)

    def change_password(self, user: User, new_password: str) -> None:
        user.password_hash = get_password_hash(new_password)
        self.db.commit()

    def record_login(self, user: User) -> None:
        user.last_login = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(user)

    def stats(self, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        by_status = dict(
            self.db.execute(select(User.status, func.count(User.id)).group_by(User.status)).all()
        )
        by_role = dict(
            self.db.execute(select(User.role, func.count(User.id)).group_by(User.role)).all()
        )
        recent = self.db.execute(
            select(func.count(User.id)).where(User.created_at >= now - timedelta(days=7))
        ).scalar_one()
        return {
            "total": sum(by_status.values()),
            "by_status": {s.value: by_status.get(s, 0) for s in UserStatus},
            "by_role": {r.value: by_role.get(r, 0) for r in UserRole},
            "recent_registrations": recent,
        }
