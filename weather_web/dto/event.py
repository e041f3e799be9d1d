import datetime
from pydantic import BaseModel, ConfigDict, field_validator

from .common import ensure_utc


class EventLogDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: str | None = None
    log_level: str
    event_type: str
    message: str
    metadata_json: str | None = None
    created_at: datetime.datetime | None = None

    @field_validator("created_at", mode="before")
    @classmethod
    def created_at_utc(
        cls, value: datetime.datetime | None
    ) -> datetime.datetime | None:
        return ensure_utc(value)
