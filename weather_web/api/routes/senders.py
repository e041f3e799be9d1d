from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from typing import Any, Dict

from weather_web.exceptions import (
    NotFoundError,
    SenderAlreadyExists,
    ValidationError,
)
from weather_web.api.deps import get_db, sender_key
from weather_web.db.session import DatabaseSessionManager
from weather_web.services.event_log import LogLevel, log_event
from weather_web.services.normalize import canonical_sender_id
from weather_web.services.sender import (
    list_active_senders,
    register_sender,
    update_sender,
)

router = APIRouter()
legacy_router = APIRouter()


class SenderRegistrationRequest(BaseModel):
    sender_id: str | int
    name: str | None = None
    location: str | None = None
    description: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class SenderUpdateRequest(BaseModel):
    name: str | None = None
    location: str | None = None
    description: str | None = None
    is_active: bool | None = None


async def sender_names(db: DatabaseSessionManager) -> Dict[str, str]:
    senders = await list_active_senders(db)
    return {f"sender_{s.sender_id}": s.name for s in senders}


@legacy_router.get("/names")
async def names_legacy(
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, str]:
    return await sender_names(db)


@router.get("/senders/list")
async def senders_list(
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, str]:
    return await sender_names(db)


@router.get("/senders/all")
async def senders_all(
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    senders = await list_active_senders(db)
    return {"senders": senders, "count": len(senders)}


@router.post("/senders", status_code=status.HTTP_201_CREATED)
async def senders_register(
    request: SenderRegistrationRequest,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    try:
        key = canonical_sender_id(request.sender_id)
        sender = await register_sender(
            db,
            key,
            name=request.name,
            location=request.location,
            description=request.description,
            latitude=request.latitude,
            longitude=request.longitude,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SenderAlreadyExists as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )

    await log_event(
        db, LogLevel.INFO, "sender_created", f"Sender {key} registered", key
    )
    return {"status": "success", "sender": sender}


@router.put("/senders/{sender_id}")
async def senders_update(
    sender_id: str,
    request: SenderUpdateRequest,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    changes = request.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(
            status_code=400,
            detail=(
                "At least one field (name, location, description, "
                "is_active) must be provided"
            ),
        )

    key = sender_key(sender_id)
    try:
        sender = await update_sender(db, key, changes)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    await log_event(
        db, LogLevel.INFO, "sender_updated", f"Sender {key} updated", key
    )
    return {"status": "success", "sender": sender}
