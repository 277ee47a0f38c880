from __future__ import annotations

from typing import Any, Dict

import socketio
from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pymongo.errors import PyMongoError

from .database import settings
from .engine.errors import ErrorCategory, ErrorCode, RequestError
from .ledger import get_event_log, publisher, request_store
from .memory.event_log import RequestEventLog
from .models.events import RequestEvent
from .routers import admin, requests
from .utils.logging import log_db_error, log_request_error


class LiveUpdateHub:
    def __init__(self, sio_server: socketio.AsyncServer) -> None:
        self.sio = sio_server
        self.websockets: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.websockets.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self.websockets.discard(websocket)

    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        message = {"event": event, "payload": payload}
        stale = []
        for connection in self.websockets:
            try:
                await connection.send_json(message)
            except Exception:
                stale.append(connection)
        for connection in stale:
            self.disconnect(connection)
        await self.sio.emit(event, payload)

    async def request_event(self, event: RequestEvent) -> None:
        await self.notify(event.event, event.model_dump(mode="json"))


STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_AUTHORIZED_HOSPITAL: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_AUTHORIZED_BLOOD_BANK: status.HTTP_403_FORBIDDEN,
}
STATUS_BY_CATEGORY = {
    ErrorCategory.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def http_status_for(exc: RequestError) -> int:
    if exc.code in STATUS_BY_CODE:
        return STATUS_BY_CODE[exc.code]
    return STATUS_BY_CATEGORY.get(exc.category, status.HTTP_409_CONFLICT)


sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")
app = FastAPI(title="LifeBank Requests API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

hub = LiveUpdateHub(sio)
publisher.subscribe(hub.request_event)

app.include_router(admin.router)
app.include_router(requests.router)


@app.exception_handler(RequestError)
async def request_error_handler(request: Request, exc: RequestError) -> JSONResponse:
    log_request_error(f"{request.method} {request.url.path}", exc)
    return JSONResponse(
        {"detail": exc.detail, "code": int(exc.code), "error": exc.code.name},
        status_code=http_status_for(exc),
    )


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    log_db_error(f"{request.method} {request.url.path}", exc)
    return JSONResponse(
        {"detail": "Request ledger unavailable. Try again when the database is reachable."},
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


@app.get("/health")
async def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/events/history")
async def event_history(
    limit: int = settings.event_history_limit,
    request_id: int | None = None,
    event_log: RequestEventLog = Depends(get_event_log),
) -> Dict[str, Any]:
    entries = await event_log.history(limit, request_id)
    for entry in entries:
        entry["_id"] = str(entry["_id"])
    return {"history": entries}


@app.websocket("/ws/events")
async def events_websocket(websocket: WebSocket) -> None:
    await hub.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.disconnect(websocket)


@sio.event
async def connect(sid, environ):  # pragma: no cover - socket handshake
    await hub.notify("socket_connected", {"sid": sid})


@sio.event
async def disconnect(sid):  # pragma: no cover - socket handshake
    await hub.notify("socket_disconnected", {"sid": sid})


socket_app = socketio.ASGIApp(sio, other_asgi_app=app)


@app.on_event("startup")
async def ensure_request_indexes() -> None:
    try:
        await request_store.ensure_indexes()
    except PyMongoError as exc:  # pragma: no cover - external service
        logger.warning("MongoDB unavailable; skipping index creation: {}", exc)
