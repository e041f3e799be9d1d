from fastapi import HTTPException, Request

from weather_web.exceptions import ValidationError
from weather_web.db.session import DatabaseSessionManager
from weather_web.dto.sender import SenderDTO
from weather_web.services.normalize import canonical_sender_id
from weather_web.services.sender import get_sender


def get_db(request: Request) -> DatabaseSessionManager:
    return request.app.state.db


def sender_key(sender_id: str) -> str:
    try:
        return canonical_sender_id(sender_id)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid sender ID")


async def require_sender(
    db: DatabaseSessionManager, sender_id: str
) -> SenderDTO:
    sender = await get_sender(db, sender_id)
    if sender is None:
        raise HTTPException(
            status_code=404, detail=f"Sender not found: {sender_id}"
        )
    return sender
