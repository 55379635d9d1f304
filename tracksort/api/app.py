"""FastAPI transport for tracksort.

Routes:
    GET  /api/github/repos/{org}/{repo}/issues        ordered issues
    POST /api/github/repos/{org}/{repo}/issues        create issue
    PUT  /api/github/repos/{org}/{repo}/issues/{id}   reposition issue
    POST /api/webhook                                 GitHub notifications
    WS   /api/events                                  change events
    GET  /health

Events produced by a handler are emitted from a background task, i.e.
after the response has been sent. Handlers that write the positions file
run in a worker thread so the event loop never blocks on disk.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Protocol

import structlog
from fastapi import (
    BackgroundTasks,
    Depends,
    FastAPI,
    Request,
    Response,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from tracksort import __version__
from tracksort.exceptions import ExternalAPIError, FormatError
from tracksort.schemas.issue import IssueCollection
from tracksort.services.broadcaster import Subscription
from tracksort.services.issue_service import IssueService

logger = structlog.get_logger()

ISSUES_PATH = "/api/github/repos/{org}/{repo}/issues"
WEBHOOK_PATH = "/api/webhook"
EVENTS_PATH = "/api/events"


class TunnelProvider(Protocol):
    """Makes a local port reachable from the internet."""

    async def expose(self, port: int) -> str: ...

    async def close(self) -> None: ...


def get_service(request: Request) -> IssueService:
    return request.app.state.service


def _collection(org: str, repo: str) -> IssueCollection:
    return IssueCollection(org=org, repo=repo)


async def _format_error_handler(request: Request, exc: FormatError) -> JSONResponse:
    logger.error("Malformed JSON", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


async def _external_api_error_handler(request: Request, exc: ExternalAPIError) -> JSONResponse:
    logger.error(
        "Upstream call failed",
        path=request.url.path,
        service=exc.service,
        status_code=exc.status_code,
        error=str(exc),
    )
    code = exc.status_code if exc.status_code and 400 <= exc.status_code < 600 else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(status_code=code, content={"detail": str(exc)})


async def _publish(service: IssueService, event: Any) -> None:
    # Async so BackgroundTasks runs it on the event loop, where the queues live.
    service.publish(event)


async def _forward_events(websocket: WebSocket, sub: Subscription) -> None:
    while True:
        event = await sub.get()
        await websocket.send_json(event.to_message())


async def _drain_websocket(websocket: WebSocket) -> None:
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
    except WebSocketDisconnect:
        return


def create_app(
    service: IssueService,
    *,
    public_port: int | None = None,
    tunnel: TunnelProvider | None = None,
    static_dir: Path | None = None,
    on_shutdown: list[Any] | None = None,
) -> FastAPI:
    """Build the application around an already wired IssueService.

    Args:
        service: Handler logic with its store, gateway and broadcaster.
        public_port: Port handed to ``tunnel.expose`` on startup.
        tunnel: Optional TunnelProvider; its URL is only logged.
        static_dir: Optional directory served at ``/``.
        on_shutdown: Objects whose async ``close()`` runs on shutdown.
    """
    closers = list(on_shutdown or [])

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if tunnel is not None and public_port is not None:
            try:
                url = await tunnel.expose(public_port)
                logger.info("Tunnel started", webhook_url=f"{url}{WEBHOOK_PATH}")
            except ExternalAPIError as exc:
                logger.error("Failed to start tunnel", error=str(exc))
        try:
            yield
        finally:
            if tunnel is not None:
                await tunnel.close()
            for closer in closers:
                await closer.close()

    app = FastAPI(title="tracksort", version=__version__, lifespan=lifespan)
    app.state.service = service
    app.add_exception_handler(FormatError, _format_error_handler)
    app.add_exception_handler(ExternalAPIError, _external_api_error_handler)

    @app.get("/health")
    async def health(service: IssueService = Depends(get_service)) -> dict[str, Any]:
        return {
            "status": "ok",
            "positions": len(service.store),
            "subscribers": service.broadcaster.subscriber_count,
        }

    @app.get(ISSUES_PATH)
    async def list_issues(
        org: str,
        repo: str,
        request: Request,
        service: IssueService = Depends(get_service),
    ) -> list[dict[str, Any]]:
        result = await service.list_issues(
            _collection(org, repo),
            user_agent=request.headers.get("user-agent"),
        )
        return result.body

    @app.post(ISSUES_PATH)
    async def create_issue(
        org: str,
        repo: str,
        request: Request,
        service: IssueService = Depends(get_service),
    ) -> dict[str, Any]:
        body = await request.body()
        result = await service.create_issue(
            _collection(org, repo),
            body,
            user_agent=request.headers.get("user-agent"),
        )
        return result.body

    @app.put(ISSUES_PATH + "/{issue_id}")
    async def reposition_issue(
        org: str,
        repo: str,
        issue_id: str,
        request: Request,
        background_tasks: BackgroundTasks,
        service: IssueService = Depends(get_service),
    ) -> dict[str, Any]:
        body = await request.body()
        result = await asyncio.to_thread(service.reposition, issue_id, body)
        background_tasks.add_task(_publish, service, result.event)
        return result.body

    @app.post(WEBHOOK_PATH)
    async def webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        service: IssueService = Depends(get_service),
    ) -> Response:
        body = await request.body()
        result = await asyncio.to_thread(
            service.handle_webhook,
            body,
            delivery_id=request.headers.get("x-github-delivery"),
        )
        background_tasks.add_task(_publish, service, result.event)
        return Response(status_code=status.HTTP_200_OK)

    @app.websocket(EVENTS_PATH)
    async def events(websocket: WebSocket) -> None:
        broadcaster = websocket.app.state.service.broadcaster
        # Attach before accepting so no event is missed once the client is in.
        sub = broadcaster.subscribe()
        tasks: set[asyncio.Task] = set()
        try:
            await websocket.accept()
            forward_task = asyncio.create_task(_forward_events(websocket, sub))
            listener_task = asyncio.create_task(_drain_websocket(websocket))
            tasks = {forward_task, listener_task}
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            if forward_task in done:
                exc = forward_task.exception()
                if exc and not isinstance(exc, (WebSocketDisconnect, asyncio.CancelledError)):
                    logger.error("Event stream failed", subscriber_id=sub.subscriber_id, error=str(exc))
        finally:
            broadcaster.unsubscribe(sub)
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    if static_dir is not None:
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app
