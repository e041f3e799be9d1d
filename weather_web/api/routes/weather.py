import logging
from datetime import datetime
from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel
from typing import Any, Dict

from weather_web import config
from weather_web.exceptions import NotFoundError, StorageError, ValidationError
from weather_web.api.deps import get_db, require_sender, sender_key
from weather_web.db.session import DatabaseSessionManager
from weather_web.dto.reading import ReadingDTO
from weather_web.services.aggregation import (
    DEFAULT_RANGE_HOURS,
    DEFAULT_SAMPLE_HOURS,
    clamp_hours,
    compute_statistic,
    get_hourly_averages,
    get_hourly_samples,
    get_latest,
    get_range,
    get_statistics,
    parse_stat_type,
    visualization_data,
)
from weather_web.services.conditions import StatType
from weather_web.services.ingest import ingest, ingest_batch

log = logging.getLogger("weather_web.api")

router = APIRouter()


class StatisticRequest(BaseModel):
    type: str = StatType.HOURLY.value
    at: datetime | None = None


@router.post("")
async def reading_post(
    payload: Any = Body(...),
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=400, detail="Request body must be an object"
        )

    try:
        result = await ingest(db, payload.get("id"), payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        # Already recorded in the event log by the ingest pipeline
        raise HTTPException(status_code=500, detail=str(e))

    response: Dict[str, Any] = {
        "status": "success",
        "sender": result.reading.sender_id,
        "id": result.row_id,
    }
    if result.triggered_alerts:
        log.warning(
            f"{len(result.triggered_alerts)} alert(s) triggered for sender "
            f"{result.reading.sender_id}"
        )
        response["alerts"] = result.triggered_alerts
    return response


@router.post("/batch")
async def reading_batch_post(
    entries: Any = Body(...),
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    try:
        result = await ingest_batch(db, entries)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response: Dict[str, Any] = {
        "status": "success",
        "processed": result.processed,
        "total": result.total,
    }
    if result.errors:
        response["errors"] = result.errors
    if result.alerts:
        response["alerts"] = result.alerts
    return response


@router.get("/visualization/data")
async def visualization_get(
    hours: str | None = None,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    hours_used = clamp_hours(
        hours, DEFAULT_RANGE_HOURS, config.MAX_HOURS_VISUALIZATION
    )
    series = await visualization_data(db, hours_used)
    return {
        "senders": series,
        "hours": hours_used,
        "totalSenders": len(series),
        "totalDataPoints": sum(len(s.data_points) for s in series),
    }


@router.get("/current/{sender_id}", response_model=ReadingDTO)
async def current_get(
    sender_id: str,
    db: DatabaseSessionManager = Depends(get_db),
) -> ReadingDTO:
    key = sender_key(sender_id)
    await require_sender(db, key)

    reading = await get_latest(db, key)
    if reading is None:
        raise HTTPException(status_code=404, detail="No current data found")
    return reading


@router.get("/{sender_id}")
async def samples_get(
    sender_id: str,
    hours: str | None = None,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    key = sender_key(sender_id)
    await require_sender(db, key)

    hours_used = clamp_hours(
        hours, DEFAULT_SAMPLE_HOURS, config.MAX_HOURS_STANDARD
    )
    data = await get_hourly_samples(db, key, hours_used)
    log.info(f"Found {len(data)} hourly samples for {key} ({hours_used}h)")
    return {"data": data}


@router.get("/{sender_id}/range")
async def range_get(
    sender_id: str,
    hours: str | None = None,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    key = sender_key(sender_id)
    sender = await require_sender(db, key)

    hours_used = clamp_hours(
        hours, DEFAULT_RANGE_HOURS, config.MAX_HOURS_STANDARD
    )
    data = await get_range(db, key, hours_used)
    return {
        "sender": sender,
        "data": data,
        "hours": hours_used,
        "count": len(data),
    }


@router.get("/{sender_id}/averages")
async def averages_get(
    sender_id: str,
    hours: str | None = None,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    key = sender_key(sender_id)
    sender = await require_sender(db, key)

    hours_used = clamp_hours(
        hours, DEFAULT_RANGE_HOURS, config.MAX_HOURS_STANDARD
    )
    data = await get_hourly_averages(db, key, hours_used)
    return {"sender": sender, "data": data, "hours": hours_used}


@router.get("/{sender_id}/statistics")
async def statistics_get(
    sender_id: str,
    type: str = StatType.HOURLY.value,
    limit: str | None = None,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    key = sender_key(sender_id)
    sender = await require_sender(db, key)

    try:
        stat_type = parse_stat_type(type)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    stats = await get_statistics(db, key, stat_type, limit)
    return {"sender": sender, "statistics": stats, "type": stat_type.value}


@router.post("/{sender_id}/statistics", status_code=status.HTTP_201_CREATED)
async def statistics_post(
    sender_id: str,
    request: StatisticRequest,
    db: DatabaseSessionManager = Depends(get_db),
) -> Dict[str, Any]:
    key = sender_key(sender_id)

    try:
        stat = await compute_statistic(db, key, request.type, request.at)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if stat is None:
        raise HTTPException(
            status_code=404, detail="No readings in the requested period"
        )
    return {"status": "success", "statistic": stat}
