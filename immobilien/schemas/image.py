from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ImageUpdate(BaseModel):
    display_order: Optional[int] = Field(None, ge=0)
    is_primary: Optional[bool] = None
    title: Optional[str] = Field(None, max_length=255)

    @field_validator("display_order", "is_primary")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("darf nicht leer sein")
        return v
