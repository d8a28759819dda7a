from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from immobilien.models.inquiry import InquiryStatus


class InquiryCreate(BaseModel):
    property_id: Optional[int] = Field(None, ge=1)
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, min_length=5, max_length=30)
    message: str = Field(..., min_length=10, max_length=5000)


class InquiryUpdate(BaseModel):
    status: InquiryStatus
    notes: Optional[str] = None


class GeneralContact(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=30)
    subject: str = Field(..., min_length=3, max_length=200)
    message: str = Field(..., min_length=10, max_length=5000)


class InquiryFilterParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: Optional[InquiryStatus] = None
    property_id: Optional[int] = Field(None, ge=1)
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


class InquiryResponse(BaseModel):
    id: int
    property_id: Optional[int] = None
    name: str
    email: str
    phone: Optional[str] = None
    message: str
    status: InquiryStatus
    notes: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
