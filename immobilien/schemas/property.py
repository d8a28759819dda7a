from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from immobilien.models.property import OfferType, PropertyStatus, PropertyType


class ListingSort(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    SIZE_ASC = "size_asc"
    SIZE_DESC = "size_desc"
    NEWEST = "newest"
    OLDEST = "oldest"


class PropertyFilterParams(BaseModel):
    """Query string of GET /properties. Every filter is optional."""

    model_config = ConfigDict(extra="ignore")

    type: Optional[PropertyType] = None
    offer_type: Optional[OfferType] = None
    status: Optional[PropertyStatus] = None
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    min_price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    max_price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    min_size: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    max_size: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    rooms: Optional[int] = Field(None, ge=1)
    featured: Optional[bool] = None
    sort: ListingSort = ListingSort.NEWEST
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)

    @model_validator(mode="after")
    def check_ranges(self):
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price darf nicht größer als max_price sein")
        if (
            self.min_size is not None
            and self.max_size is not None
            and self.min_size > self.max_size
        ):
            raise ValueError("min_size darf nicht größer als max_size sein")
        return self


class PropertyImageIn(BaseModel):
    image_url: str = Field(..., min_length=1, max_length=500)
    thumbnail_url: Optional[str] = Field(None, max_length=500)
    cloudinary_id: Optional[str] = Field(None, max_length=255)
    title: Optional[str] = Field(None, max_length=255)
    is_primary: bool = False


class PropertyBase(BaseModel):
    title: str = Field(..., min_length=5, max_length=255)
    type: PropertyType
    offer_type: OfferType
    price: float = Field(..., ge=0, allow_inf_nan=False)
    size: float = Field(..., gt=0, allow_inf_nan=False)
    rooms: int = Field(..., ge=1)
    bathrooms: int = Field(1, ge=0)
    year_built: Optional[int] = Field(None, ge=1800, le=2100)
    location: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = Field(None, max_length=255)
    zip_code: Optional[str] = Field(None, max_length=10)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    country: str = Field("Deutschland", max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    description: str = Field(..., min_length=20)
    features: List[str] = []
    status: PropertyStatus = PropertyStatus.AVAILABLE
    featured: bool = False


class PropertyCreate(PropertyBase):
    images: List[PropertyImageIn] = Field(default_factory=list, max_length=20)


class PropertyUpdate(BaseModel):
    """Fields an owner may change; anything else in the body is ignored."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(None, min_length=5, max_length=255)
    type: Optional[PropertyType] = None
    offer_type: Optional[OfferType] = None
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    size: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    rooms: Optional[int] = Field(None, ge=1)
    bathrooms: Optional[int] = Field(None, ge=0)
    year_built: Optional[int] = Field(None, ge=1800, le=2100)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = Field(None, max_length=255)
    zip_code: Optional[str] = Field(None, max_length=10)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, min_length=20)
    features: Optional[List[str]] = None
    status: Optional[PropertyStatus] = None
    featured: Optional[bool] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator(
        "title",
        "type",
        "offer_type",
        "price",
        "size",
        "rooms",
        "location",
        "description",
        "status",
        "featured",
    )
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("darf nicht leer sein")
        return v


class PropertyImageResponse(BaseModel):
    id: int
    property_id: int
    image_url: str
    thumbnail_url: Optional[str] = None
    cloudinary_id: Optional[str] = None
    title: Optional[str] = None
    is_primary: bool
    display_order: int

    model_config = ConfigDict(from_attributes=True)


class PropertyResponse(BaseModel):
    """Listing columns; ``features`` is decoded separately from its JSON text."""

    id: int
    title: str
    type: PropertyType
    offer_type: OfferType
    price: float
    size: float
    rooms: int
    bathrooms: Optional[int] = None
    year_built: Optional[int] = None
    location: str
    address: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: str
    status: PropertyStatus
    featured: bool
    views: int
    user_id: Optional[int] = None
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
