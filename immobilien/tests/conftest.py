import os
import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

# CRITICAL: configure the environment BEFORE importing any app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["CLOUDINARY_CLOUD_NAME"] = "test-cloud"
os.environ["CLOUDINARY_API_KEY"] = "test-key"
os.environ["CLOUDINARY_API_SECRET"] = "test-secret"
os.environ["EMAIL_HOST"] = "localhost"
os.environ["EMAIL_PORT"] = "2525"
os.environ["EMAIL_USERNAME"] = "mailer"
os.environ["EMAIL_PASSWORD"] = "mailer-password"
os.environ["EMAIL_FROM"] = "noreply@immobilien-ghumman.de"
os.environ["ADMIN_EMAIL"] = "office@immobilien-ghumman.de"
os.environ.pop("ADMIN_PASSWORD", None)

from immobilien.main import app
from immobilien.database import Database
from immobilien.models.property import (
    OfferType,
    Property,
    PropertyStatus,
    PropertyType,
)
from immobilien.models.property_images import PropertyImage
from immobilien.models.user import User, UserRole, UserStatus
from immobilien.services.auth_service import get_password_hash, token_for
from immobilien.utils import email_utils

# Hashing the same password once keeps the suite fast
DEFAULT_PASSWORD = "geheim123"
_DEFAULT_HASH = get_password_hash(DEFAULT_PASSWORD)


@pytest.fixture()
def database():
    # StaticPool shares the same in-memory DB across connections
    db = Database(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture()
def db_session(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(database):
    app.state.database = database
    # Disable rate limiter globally for tests
    app.state.limiter.enabled = False
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Record outgoing mail instead of talking to an SMTP server."""
    outbox = []

    async def _send_email(to_email, subject, text, html=None):
        outbox.append({"to": to_email, "subject": subject, "text": text})

    monkeypatch.setattr(email_utils, "send_email", _send_email, raising=True)
    return outbox


@pytest.fixture()
def make_user(db_session):
    def _make(
        username="agent",
        role=UserRole.AGENT,
        status=UserStatus.ACTIVE,
        email=None,
        password=None,
    ):
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=(
                get_password_hash(password) if password else _DEFAULT_HASH
            ),
            full_name=username.title(),
            role=role,
            status=status,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_property(db_session):
    def _make(owner=None, images=(), features=("Balkon",), **overrides):
        values = {
            "title": "Helle Wohnung im Zentrum",
            "type": PropertyType.APARTMENT,
            "offer_type": OfferType.RENT,
            "price": 1000.0,
            "size": 75.0,
            "rooms": 3,
            "bathrooms": 1,
            "location": "Karben",
            "city": "Karben",
            "zip_code": "61184",
            "description": "Schöne helle Wohnung mit Balkon und Einbauküche.",
            "status": PropertyStatus.AVAILABLE,
            "featured": False,
            "created_at": datetime.now(timezone.utc),
        }
        values.update(overrides)
        if "features_raw" in values:
            raw = values.pop("features_raw")
        else:
            raw = json.dumps(list(features))
        listing = Property(
            **values,
            features=raw,
            user_id=owner.id if owner is not None else None,
        )
        db_session.add(listing)
        db_session.commit()
        for index, image in enumerate(images):
            db_session.add(
                PropertyImage(
                    property_id=listing.id,
                    image_url=image.get("image_url", f"https://cdn.test/{listing.id}/{index}.jpg"),
                    cloudinary_id=image.get("cloudinary_id"),
                    is_primary=image.get("is_primary", False),
                    display_order=image.get("display_order", index),
                )
            )
        db_session.commit()
        db_session.refresh(listing)
        return listing

    return _make


@pytest.fixture()
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {token_for(user)}"}

    return _headers
