import datetime
from pydantic import BaseModel, ConfigDict, field_validator

from .common import ensure_utc


class ReadingCreate(BaseModel):
    """A reading after legacy field names have been folded together."""

    temperature: float | None = None
    humidity: float | None = None
    pressure: float | None = None
    light_level: float | None = None
    battery_level: float | None = None
    signal_strength: int | None = None
    unix_timestamp: int
    raw_data_json: str | None = None


class ReadingDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: str
    temperature: float | None = None
    humidity: float | None = None
    pressure: float | None = None
    light_level: float | None = None
    battery_level: float | None = None
    signal_strength: int | None = None
    unix_timestamp: int
    received_at: datetime.datetime | None = None
    raw_data_json: str | None = None

    @field_validator("received_at", mode="before")
    @classmethod
    def received_at_utc(
        cls, value: datetime.datetime | None
    ) -> datetime.datetime | None:
        return ensure_utc(value)


class HourlyAverageDTO(BaseModel):
    hour: datetime.datetime
    avg_temp: float | None = None
    min_temp: float | None = None
    max_temp: float | None = None
    avg_humidity: float | None = None
    avg_pressure: float | None = None
    measurement_count: int
