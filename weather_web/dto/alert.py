import datetime
from pydantic import BaseModel, ConfigDict, field_validator

from .common import ensure_utc


class AlertRuleDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: str
    alert_type: str
    condition: str
    threshold_value: float
    is_active: bool = True
    last_triggered: datetime.datetime | None = None
    notification_sent: bool = False
    created_at: datetime.datetime | None = None

    @field_validator("last_triggered", "created_at", mode="before")
    @classmethod
    def timestamps_utc(
        cls, value: datetime.datetime | None
    ) -> datetime.datetime | None:
        return ensure_utc(value)
