from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Float,
    Boolean,
    DateTime,
    ForeignKey,
    Enum,
)
from sqlalchemy.orm import relationship
from immobilien.database import Base
from immobilien.models.base import utc_now
import enum


class OfferType(str, enum.Enum):
    RENT = "rent"
    SALE = "sale"


class PropertyType(str, enum.Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    COMMERCIAL = "commercial"
    LAND = "land"


class PropertyStatus(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    SOLD = "sold"
    RENTED = "rented"


def _enum_values(obj):
    return [e.value for e in obj]


class Property(Base):
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    type = Column(
        Enum(PropertyType, values_callable=_enum_values, native_enum=False),
        nullable=False,
        index=True,
    )
    offer_type = Column(
        Enum(OfferType, values_callable=_enum_values, native_enum=False),
        nullable=False,
        index=True,
    )
    price = Column(Float, nullable=False, index=True)
    size = Column(Float, nullable=False)
    rooms = Column(Integer, nullable=False)
    bathrooms = Column(Integer, default=1)
    year_built = Column(Integer, nullable=True)

    # Location
    location = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)
    zip_code = Column(String(10), nullable=True)
    city = Column(String(100), nullable=True, index=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), default="Deutschland")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    description = Column(Text, nullable=False)
    features = Column(Text, nullable=True)  # JSON encoded list of strings

    status = Column(
        Enum(PropertyStatus, values_callable=_enum_values, native_enum=False),
        default=PropertyStatus.AVAILABLE,
        nullable=False,
        index=True,
    )
    featured = Column(Boolean, default=False, nullable=False)
    views = Column(Integer, default=0, nullable=False)

    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    owner = relationship("User", back_populates="properties")
    images = relationship(
        "PropertyImage",
        back_populates="property",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    favorites = relationship(
        "Favorite",
        back_populates="property",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    inquiries = relationship(
        "Inquiry", back_populates="property", passive_deletes=True
    )
