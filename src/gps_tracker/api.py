from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .config import TrackerSettings
from .hub import SubscriberClosed
from .pipeline import TelemetryService

logger = logging.getLogger(__name__)

# Event name the browser client listens for on the live-update channel.
NEW_DATA_EVENT = "newData"


class HealthOut(BaseModel):
    status: str
    time_utc: datetime
    observers: int

    model_config = {
        "json_schema_extra": {"examples": [{"status": "ok", "time_utc": "2026-02-18T12:00:00Z", "observers": 1}]}
    }


class AckOut(BaseModel):
    status: str
    message: str


class MovementOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    history: List[bool]
    # number of True entries, under the name the browser client reads
    consecutive_count: int = Field(..., alias="consecutiveCount")
    capacity: int


class ClientConfigOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    google_api_key: Optional[str] = Field(default=None, alias="googleApiKey")


async def _read_report(request: Request) -> Dict[str, Any]:
    """
    Decode the device's report body.

    Accepts JSON objects and urlencoded forms. Anything else is logged and
    treated as an empty report; the device always gets its acknowledgment.
    """
    body = await request.body()
    content_type = request.headers.get("content-type", "")

    if "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True))

    if not body:
        return {}

    try:
        data = json.loads(body)
    except ValueError as e:
        logger.warning("Ignoring undecodable report body: %s", e)
        return {}

    if not isinstance(data, dict):
        logger.warning("Ignoring report that is not a JSON object (got %s)", type(data).__name__)
        return {}
    return data


def create_app(cfg: TrackerSettings, service: Optional[TelemetryService] = None) -> FastAPI:
    """
    Create the tracker HTTP/WebSocket app.

    Pass `service` to share an existing pipeline (tests do this to inject a notifier).
    """
    service = service or TelemetryService.from_settings(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Tracker relay ready: window=%d cooldown=%ss",
            service.detector.capacity, int(service.limiter.cooldown.total_seconds())
        )
        yield
        logger.info("Shutting down tracker relay")
        service.close()

    app = FastAPI(
        title="GPS Tracker Relay",
        version="0.1.0",
        description="Receives tracker reports, raises movement alerts and streams live positions.",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {"status": "ok", "service": "GPS Tracker Relay"}

    @app.get("/health", response_model=HealthOut, tags=["health"])
    def health() -> HealthOut:
        """Liveness check: returns OK if the relay process is running."""
        return HealthOut(status="ok", time_utc=datetime.now(timezone.utc), observers=service.hub.subscriber_count)

    @app.post("/api/data", response_model=AckOut, tags=["tracker"])
    async def receive_report(request: Request) -> AckOut:
        """
        Endpoint the tracker posts its reports to.

        Runs the whole pipeline before acknowledging; alert emails are sent in the background.
        """
        report = await _read_report(request)
        logger.info("Received data: %s", report)
        service.ingest(report)
        return AckOut(status="success", message="Data received")

    @app.get("/api/data", tags=["tracker"])
    def latest_report():
        """The latest snapshot, exactly as broadcast to observers."""
        return service.snapshot().to_wire()

    @app.get("/api/movement", response_model=MovementOut, tags=["tracker"])
    def movement() -> MovementOut:
        """Movement window diagnostics."""
        return MovementOut(**service.movement())

    @app.get("/api/config", response_model=ClientConfigOut, tags=["client"])
    def client_config() -> ClientConfigOut:
        """Settings the browser map client needs."""
        return ClientConfigOut(google_api_key=cfg.maps_api_key)

    @app.websocket("/ws")
    async def live_updates(websocket: WebSocket) -> None:
        """
        Live-update channel. The first message is the current snapshot, then
        one message per new report. Slow clients skip straight to the latest.
        """
        await websocket.accept()
        subscriber = service.hub.subscribe()

        async def watch_disconnect() -> None:
            # Observers never send anything useful; we only wait for them to leave.
            try:
                while True:
                    message = await websocket.receive()
                    if message["type"] == "websocket.disconnect":
                        break
            except WebSocketDisconnect:
                logger.debug("Observer %s disconnected while idle", subscriber.id)
            finally:
                subscriber.close()

        watcher = asyncio.create_task(watch_disconnect())
        try:
            while True:
                snapshot = await subscriber.get()
                await websocket.send_json({"event": NEW_DATA_EVENT, "data": snapshot.to_wire()})
        except (SubscriberClosed, WebSocketDisconnect):
            logger.debug("Observer %s went away", subscriber.id)
        finally:
            watcher.cancel()
            service.hub.unsubscribe(subscriber)

    return app
