import sys
import subprocess
from typing import IO, Dict, AsyncIterator, Any
from contextlib import asynccontextmanager
from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from .routes import root, senders, alerts, events, weather

from weather_web import config
from weather_web.exceptions import StorageError
from weather_web.db.session import DatabaseSessionManager
from weather_web.services.event_log import LogLevel, log_event

api_router = APIRouter()
api_router.include_router(root.router)
api_router.include_router(senders.legacy_router)
api_router.include_router(senders.router, prefix="/api/weather")
api_router.include_router(alerts.router, prefix="/api/weather")
api_router.include_router(events.router, prefix="/api/weather")
# Registered last: its /{sender_id} routes would shadow the fixed paths
api_router.include_router(weather.router, prefix="/api/weather")


async def storage_error_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    endpoint = request.scope.get("endpoint")
    event_type = (
        f"{endpoint.__name__}_failed" if endpoint is not None else "request_failed"
    )
    await log_event(
        request.app.state.db,
        LogLevel.ERROR,
        event_type,
        str(exc),
        request.path_params.get("sender_id"),
    )
    return JSONResponse(
        status_code=500, content={"status": "error", "detail": str(exc)}
    )


def init_api(
    db: DatabaseSessionManager | None = None, db_uri: str = config.DB_URI
) -> FastAPI:
    """
    Build the FastAPI application around a database session manager.

    Without `db` the app gets a manager of its own. When the manager is
    not initialised yet, the lifespan opens it on `db_uri`, creates any
    missing tables and closes it again on shutdown.
    """
    manager = db if db is not None else DatabaseSessionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not manager.initialised:
            await manager.init(db_uri)
        async with manager.connect() as conn:
            await manager.create_all(conn)
        yield
        if manager.initialised:
            await manager.close()

    api = FastAPI(title="Weather Web - Weather Station API", lifespan=lifespan)
    api.state.db = manager
    api.add_exception_handler(StorageError, storage_error_handler)
    api.include_router(api_router)

    return api


server = init_api()


def start_api(
    host: str,
    port: int,
    env: Dict[str, str],
    stdout: IO[Any] | int,
    stderr: IO[Any] | int,
) -> subprocess.Popen[bytes]:
    proc = subprocess.Popen(
        [
            sys.executable,
            "-m",
            "uvicorn",
            "weather_web.api.server:server",
            "--host",
            host,
            "--port",
            str(port),
        ],
        env=env,
        stdout=stdout,
        stderr=stderr,
    )

    return proc
