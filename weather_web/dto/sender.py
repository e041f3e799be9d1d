import datetime
from pydantic import BaseModel, ConfigDict, field_validator

from .common import ensure_utc


class SenderDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sender_id: str
    name: str
    location: str | None = None
    description: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    is_active: bool = True
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def timestamps_utc(
        cls, value: datetime.datetime | None
    ) -> datetime.datetime | None:
        return ensure_utc(value)
