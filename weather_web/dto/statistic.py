import datetime
from pydantic import BaseModel, ConfigDict, field_validator

from .common import ensure_utc


class StatisticDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: str
    stat_type: str
    period_start: datetime.datetime
    period_end: datetime.datetime
    avg_temperature: float | None = None
    min_temperature: float | None = None
    max_temperature: float | None = None
    avg_humidity: float | None = None
    min_humidity: float | None = None
    max_humidity: float | None = None
    avg_pressure: float | None = None
    data_points: int
    created_at: datetime.datetime | None = None

    @field_validator("period_start", "period_end", "created_at", mode="before")
    @classmethod
    def timestamps_utc(
        cls, value: datetime.datetime | None
    ) -> datetime.datetime | None:
        return ensure_utc(value)
