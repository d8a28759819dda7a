from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class FavoriteResponse(BaseModel):
    id: int
    user_id: int
    property_id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
