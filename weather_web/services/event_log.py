import json
import logging
from enum import Enum
from typing import Any, List

from sqlalchemy import select

from weather_web.db.models import EventLog
from weather_web.db.session import DatabaseSessionManager
from weather_web.dto.event import EventLogDTO

log = logging.getLogger("weather_web.events")


class LogLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


_PY_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL,
}


async def log_event(
    db: DatabaseSessionManager,
    level: LogLevel | str,
    event_type: str,
    message: str,
    sender_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """
    Append an entry to the event log.

    The entry is mirrored to the `weather_web.events` logger. A failure to
    persist it is logged and never raised to the caller.
    """
    try:
        level = LogLevel(level)
    except ValueError:
        level = LogLevel.INFO

    log.log(
        _PY_LEVELS[level],
        f"[{event_type}] {message}"
        + (f" (sender {sender_id})" if sender_id else ""),
    )

    try:
        async with db.session() as session:
            session.add(
                EventLog(
                    sender_id=sender_id,
                    log_level=level.value,
                    event_type=event_type,
                    message=message,
                    metadata_json=(
                        json.dumps(metadata, default=str)
                        if metadata is not None
                        else None
                    ),
                )
            )
            await session.commit()
    except Exception:
        log.exception(f"Failed to write event {event_type!r} to the log")


async def list_events(
    db: DatabaseSessionManager,
    limit: int = 100,
    sender_id: str | None = None,
    level: LogLevel | str | None = None,
) -> List[EventLogDTO]:
    async with db.session() as session:
        stmt = select(EventLog)
        if sender_id is not None:
            stmt = stmt.where(EventLog.sender_id == sender_id)
        if level is not None:
            stmt = stmt.where(EventLog.log_level == LogLevel(level).value)
        stmt = stmt.order_by(EventLog.id.desc()).limit(limit)
        result = await session.execute(stmt)
        return [EventLogDTO.model_validate(e) for e in result.scalars().all()]
