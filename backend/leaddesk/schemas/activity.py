from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from leaddesk.models.activity import ActivityType


class ActivityResponse(BaseModel):
    id: int
    lead_id: int | None
    user_id: int | None
    type: ActivityType
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    created_at: datetime

    class Config:
        from_attributes = True
