from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from immobilien.config import settings
from immobilien.exceptions import InvalidTokenError, TokenExpiredError
from immobilien.models.user import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(
    username: str,
    user_id: int,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    encode = {"sub": username, "id": user_id, "role": role}
    expires = datetime.now(timezone.utc) + expires_delta
    encode.update({"exp": expires})
    return jwt.encode(encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def token_for(user: User) -> str:
    return create_access_token(user.username, user.id, user.role.value)


def decode_access_token(token: str) -> dict:
    """Return the token claims or raise the matching authentication error."""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise InvalidTokenError()
    if not isinstance(payload.get("id"), int):
        raise InvalidTokenError()
    return payload


def authenticate_user(identifier: str, password: str, db: Session):
    """Look the user up by username, then by email, and check the password."""
    user = db.execute(
        select(User).where(User.username == identifier)
    ).scalar_one_or_none()
    if user is None:
        user = db.execute(
            select(User).where(func.lower(User.email) == identifier.lower())
        ).scalar_one_or_none()
    if not user:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user
