from typing import List, Optional, Tuple

from sqlalchemy import select

from weather_web.db.models import Reading
from weather_web.db.session import DatabaseSessionManager
from weather_web.dto.reading import ReadingCreate, ReadingDTO
from weather_web.services.sender import ensure_sender_in_session


async def insert_reading(
    db: DatabaseSessionManager,
    sender_id: str,
    reading: ReadingCreate,
    sender_name: str | None = None,
) -> Tuple[ReadingDTO, bool]:
    """
    Store one normalised reading, registering the sender first if needed.

    Returns the stored reading and whether the sender was newly created.
    """
    async with db.session() as session:
        created = await ensure_sender_in_session(
            session, sender_id, sender_name
        )
        row = Reading(sender_id=sender_id, **reading.model_dump())
        session.add(row)
        await session.commit()
        return ReadingDTO.model_validate(row), created


async def query_readings(
    db: DatabaseSessionManager,
    sender_id: str,
    since: Optional[int] = None,
    until: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[ReadingDTO]:
    """
    Readings of a sender ordered by timestamp, oldest first.

    `since` is inclusive and `until` exclusive, both in unix seconds.
    """
    async with db.session() as session:
        stmt = select(Reading).where(Reading.sender_id == sender_id)
        if since is not None:
            stmt = stmt.where(Reading.unix_timestamp >= since)
        if until is not None:
            stmt = stmt.where(Reading.unix_timestamp < until)
        stmt = stmt.order_by(Reading.unix_timestamp, Reading.id)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        return [ReadingDTO.model_validate(r) for r in result.scalars().all()]
