from pydantic import BaseModel

from .reading import ReadingDTO
from .sender import SenderDTO


class SeriesSummary(BaseModel):
    count: int
    avg_temperature: float | None = None
    avg_humidity: float | None = None
    avg_pressure: float | None = None


class SenderSeriesDTO(BaseModel):
    sender: SenderDTO
    data_points: list[ReadingDTO]
    statistics: SeriesSummary
