from pydantic import BaseModel, Field

from .alert import AlertRuleDTO
from .reading import ReadingDTO


class IngestResult(BaseModel):
    row_id: int
    reading: ReadingDTO
    triggered_alerts: list[AlertRuleDTO] = Field(default_factory=list)


class BatchEntryError(BaseModel):
    index: int
    sender_id: str | None = None
    error: str


class BatchEntryAlerts(BaseModel):
    index: int
    sender_id: str
    alerts: list[AlertRuleDTO]


class BatchResult(BaseModel):
    processed: int = 0
    total: int = 0
    errors: list[BatchEntryError] = Field(default_factory=list)
    alerts: list[BatchEntryAlerts] = Field(default_factory=list)
