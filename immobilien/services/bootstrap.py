import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from immobilien.config import Settings
from immobilien.models.user import User, UserRole, UserStatus
from immobilien.services.auth_service import get_password_hash, verify_password

logger = logging.getLogger(__name__)


def ensure_admin_user(db: Session, settings: Settings):
    """Create the configured admin account, or refresh its password and status."""
    if not settings.ADMIN_PASSWORD:
        logger.warning("ADMIN_PASSWORD not set, skipping admin account setup")
        return None

    admin = db.execute(
        select(User).where(User.username == settings.ADMIN_USERNAME)
    ).scalar_one_or_none()
    if admin is None:
        admin = User(
            username=settings.ADMIN_USERNAME,
            email=settings.ADMIN_EMAIL,
            password_hash=get_password_hash(settings.ADMIN_PASSWORD),
            full_name="Administrator",
            role=UserRole.ADMIN,
            status=UserStatus.ACTIVE,
        )
        db.add(admin)
        logger.info("Admin account %s created", settings.ADMIN_USERNAME)
    else:
        if not verify_password(settings.ADMIN_PASSWORD, admin.password_hash):
            admin.password_hash = get_password_hash(settings.ADMIN_PASSWORD)
        admin.role = UserRole.ADMIN
        admin.status = UserStatus.ACTIVE
        logger.info("Admin account %s refreshed", settings.ADMIN_USERNAME)
    db.commit()
    db.refresh(admin)
    return admin
