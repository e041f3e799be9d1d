from fastapi import APIRouter, Depends, HTTPException
from typing import Any, Dict

from weather_web.api.deps import get_db
from weather_web.db.session import DatabaseSessionManager
from weather_web.services.event_log import LogLevel, list_events

router = APIRouter()


@router.get("/logs")
async def logs_list(
    limit: int = 100,
    sender_id: str | None = None,
    level: str | None = None,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    if level is not None and level not in {lv.value for lv in LogLevel}:
        raise HTTPException(status_code=400, detail=f"Invalid level: {level}")

    logs = await list_events(
        db, limit=max(1, min(limit, 1000)), sender_id=sender_id, level=level
    )
    return {"logs": logs, "count": len(logs)}
