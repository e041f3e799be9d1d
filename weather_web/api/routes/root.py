from datetime import datetime, timezone
from fastapi import APIRouter
from typing import Any, Dict

router = APIRouter()

API_VERSION = "2.0.0"


@router.get("/health")
async def health() -> Dict[str, str]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/api")
async def api_index() -> Dict[str, Any]:
    return {
        "version": API_VERSION,
        "endpoints": {
            "weather_data": {
                "POST /api/weather": "Submit a single reading",
                "POST /api/weather/batch": "Submit a batch of readings",
                "GET /api/weather/current/{sender_id}": "Latest reading",
                "GET /api/weather/{sender_id}": "Hourly samples",
                "GET /api/weather/{sender_id}/range": "Readings in a window",
                "GET /api/weather/{sender_id}/averages": "Hourly averages",
                "GET /api/weather/{sender_id}/statistics": "Stored rollups",
                "POST /api/weather/{sender_id}/statistics": "Compute a rollup",
                "GET /api/weather/visualization/data": "All senders",
            },
            "senders": {
                "GET /api/weather/senders/list": "Sender names",
                "GET /api/weather/senders/all": "Senders with details",
                "POST /api/weather/senders": "Register a sender",
                "PUT /api/weather/senders/{sender_id}": "Update a sender",
            },
            "alerts": {
                "POST /api/weather/alerts": "Create an alert rule",
                "GET /api/weather/alerts/{sender_id}": "Active alert rules",
                "DELETE /api/weather/alerts/{alert_id}": "Deactivate a rule",
            },
            "system": {
                "GET /api/weather/logs": "Event log",
                "GET /names": "Sender names (legacy)",
                "GET /health": "Health check",
                "GET /api": "This index",
            },
        },
    }
