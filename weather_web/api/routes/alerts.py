from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from typing import Any, Dict

from weather_web.exceptions import NotFoundError, ValidationError
from weather_web.api.deps import get_db, sender_key
from weather_web.db.session import DatabaseSessionManager
from weather_web.services.alert import (
    create_alert,
    deactivate_alert,
    list_alerts,
)
from weather_web.services.event_log import LogLevel, log_event
from weather_web.services.normalize import canonical_sender_id

router = APIRouter()


class AlertCreateRequest(BaseModel):
    # Loosely typed so that bad values are reported as 400, not 422
    sender_id: Any = None
    alert_type: Any = None
    condition: Any = None
    threshold_value: Any = None


@router.post("/alerts", status_code=status.HTTP_201_CREATED)
async def alerts_create(
    request: AlertCreateRequest,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    if (
        request.sender_id in (None, "")
        or not request.alert_type
        or not request.condition
        or request.threshold_value is None
    ):
        raise HTTPException(
            status_code=400,
            detail=(
                "Missing required fields: sender_id, alert_type, "
                "condition, threshold_value"
            ),
        )

    try:
        key = canonical_sender_id(request.sender_id)
        alert = await create_alert(
            db,
            key,
            request.alert_type,
            request.condition,
            request.threshold_value,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    await log_event(
        db,
        LogLevel.INFO,
        "alert_created",
        f"Alert created: {alert.alert_type} {alert.condition} "
        f"{alert.threshold_value}",
        key,
    )
    return {"status": "success", "alert_id": alert.id}


@router.get("/alerts/{sender_id}")
async def alerts_list(
    sender_id: str,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    key = sender_key(sender_id)
    alerts = await list_alerts(db, key)
    return {"sender_id": key, "alerts": alerts, "count": len(alerts)}


@router.delete("/alerts/{alert_id}")
async def alerts_deactivate(
    alert_id: int,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    try:
        alert = await deactivate_alert(db, alert_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    await log_event(
        db,
        LogLevel.INFO,
        "alert_deactivated",
        f"Alert {alert_id} deactivated",
        alert.sender_id,
    )
    return {"status": "success", "alert_id": alert.id}
