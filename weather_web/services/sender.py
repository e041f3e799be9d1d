from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from weather_web.exceptions import NotFoundError, SenderAlreadyExists
from weather_web.db.models import Sender
from weather_web.db.session import DatabaseSessionManager
from weather_web.dto.sender import SenderDTO

UPDATABLE_FIELDS = ("name", "location", "description", "is_active")


def default_sender_name(sender_id: str) -> str:
    return f"Sender {sender_id}"


async def ensure_sender_in_session(
    session: AsyncSession, sender_id: str, name: str | None = None
) -> bool:
    """
    Insert the sender if it is not registered yet.

    Runs inside the caller's session so the insert commits together with
    whatever references it. The conflict is resolved by the database, so
    concurrent first readings of one sender all succeed. Returns True when
    a new sender was created.
    """
    stmt = (
        sqlite_insert(Sender)
        .values(
            sender_id=sender_id,
            name=name or default_sender_name(sender_id),
        )
        .on_conflict_do_nothing(index_elements=["sender_id"])
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def ensure_sender(
    db: DatabaseSessionManager, sender_id: str, name: str | None = None
) -> bool:
    async with db.session() as session:
        created = await ensure_sender_in_session(session, sender_id, name)
        await session.commit()
        return created


async def register_sender(
    db: DatabaseSessionManager,
    sender_id: str,
    name: str | None = None,
    location: str | None = None,
    description: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
) -> SenderDTO:
    async with db.session() as session:
        stmt = select(Sender).where(Sender.sender_id == sender_id)
        existing = (await session.execute(stmt)).scalars().first()
        if existing is not None:
            raise SenderAlreadyExists(
                f"Sender with ID {sender_id} already exists."
            )
        sender = Sender(
            sender_id=sender_id,
            name=name or default_sender_name(sender_id),
            location=location,
            description=description,
            latitude=latitude,
            longitude=longitude,
        )
        session.add(sender)
        await session.commit()
        return SenderDTO.model_validate(sender)


async def get_sender(
    db: DatabaseSessionManager, sender_id: str
) -> Optional[SenderDTO]:
    async with db.session() as session:
        stmt = select(Sender).where(Sender.sender_id == sender_id)
        result = (await session.execute(stmt)).scalars().one_or_none()
        if result is None:
            return None
        return SenderDTO.model_validate(result)


async def list_active_senders(db: DatabaseSessionManager) -> List[SenderDTO]:
    async with db.session() as session:
        stmt = (
            select(Sender)
            .where(Sender.is_active.is_(True))
            .order_by(Sender.name, Sender.sender_id)
        )
        result = await session.execute(stmt)
        return [SenderDTO.model_validate(s) for s in result.scalars().all()]


async def update_sender(
    db: DatabaseSessionManager, sender_id: str, changes: dict[str, Any]
) -> SenderDTO:
    """
    Apply a partial update to a sender.

    Only keys in `UPDATABLE_FIELDS` whose value is not None are applied;
    with nothing to apply the sender is returned unchanged.
    """
    fields = {
        k: v
        for k, v in changes.items()
        if k in UPDATABLE_FIELDS and v is not None
    }

    async with db.session() as session:
        stmt = select(Sender).where(Sender.sender_id == sender_id)
        sender = (await session.execute(stmt)).scalars().one_or_none()
        if sender is None:
            raise NotFoundError(f"Sender not found: {sender_id}")

        if fields:
            for key, value in fields.items():
                setattr(sender, key, value)
            await session.commit()

        return SenderDTO.model_validate(sender)
