from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator
import json


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./immobilien.db"

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Server
    API_PREFIX: str = "/api"
    ENVIRONMENT: str = "development"
    TESTING: bool = False
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: str = "http://localhost:3000"
    RATE_LIMIT: str = "100 per 15 minutes"
    LOGIN_RATE_LIMIT: str = "5/minute"

    # Cloudinary
    CLOUDINARY_CLOUD_NAME: str
    CLOUDINARY_API_KEY: str
    CLOUDINARY_API_SECRET: str
    CLOUDINARY_FOLDER: str = "immobilien-ghumman"

    # Uploads
    MAX_FILE_SIZE: int = 5 * 1024 * 1024
    MAX_FILES_PER_UPLOAD: int = 10
    ALLOWED_FILE_TYPES: list[str] = [
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
    ]

    @field_validator("ALLOWED_FILE_TYPES", mode="before")
    @classmethod
    def parse_allowed_file_types(cls, v):
        """Parse ALLOWED_FILE_TYPES from JSON string if it's a string, otherwise return as-is."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                raise ValueError(f"Invalid JSON in ALLOWED_FILE_TYPES: {v}")
        return v

    # Email
    EMAIL_HOST: str
    EMAIL_PORT: int = 587
    EMAIL_USERNAME: str
    EMAIL_PASSWORD: str
    EMAIL_FROM: str
    ADMIN_EMAIL: str

    # Admin account ensured at startup
    ADMIN_USERNAME: str = "NG-admin"
    ADMIN_PASSWORD: Optional[str] = None

    # Listings younger than this count as "recent"
    RECENT_LISTING_DAYS: int = 14

    model_config = ConfigDict(env_file=".env", extra="ignore")


settings = Settings()
