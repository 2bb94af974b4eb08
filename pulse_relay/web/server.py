"""FastAPI app exposing the WebSocket fan-out and a few REST helpers."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from ..broadcast import QueueSink
from ..logging_conf import configure_logging
from ..poller import PollLoop


def create_app(poll_loop: PollLoop, manage_lifecycle: bool = True) -> FastAPI:
    """Build the app around an existing poll loop.

    With ``manage_lifecycle`` the loop is started and stopped with the server.
    """

    logger = configure_logging().bind(component="web")

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            poll_loop.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                await run_in_threadpool(poll_loop.stop)
            poll_loop.broadcaster.close()

    app = FastAPI(title="Pulse Relay", docs_url=None, redoc_url=None, lifespan=lifespan)

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "healthy",
            "topics": poll_loop.status(),
            "subscribers": poll_loop.broadcaster.subscriber_count,
        }

    @app.get("/api/topics")
    async def topics() -> list[dict[str, Any]]:
        return [topic.model_dump(mode="json") for topic in poll_loop.config.topics]

    @app.get("/api/tweets")
    async def tweets(type: str | None = None) -> dict[str, Any]:  # noqa: A002 - public query name
        if not type:
            raise HTTPException(status_code=400, detail="Missing type parameter")
        if type not in poll_loop.stats:
            raise HTTPException(status_code=404, detail=f"Unknown topic: {type}")
        items = poll_loop.cache.get(type)
        return {"topic": type, "tweets": [item.to_dict() for item in items]}

    @app.websocket("/ws")
    async def stream(websocket: WebSocket) -> None:
        await websocket.accept()
        sink = QueueSink(asyncio.get_running_loop(), maxsize=poll_loop.config.subscriber_queue_size)
        subscription = poll_loop.broadcaster.subscribe(sink)
        logger.info("websocket_connected", subscriber=subscription.id)

        async def forward() -> None:
            while True:
                message = await sink.get()
                if message is None:
                    return
                await websocket.send_json(message)

        async def watch_client() -> None:
            while True:
                await websocket.receive_text()

        sender = asyncio.create_task(forward())
        receiver = asyncio.create_task(watch_client())
        client_gone = True
        try:
            done, _ = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
            client_gone = receiver in done
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    logger.warning("websocket_error", subscriber=subscription.id, error=str(exc))
        finally:
            # must run before any await: the handler itself may be cancelled here
            poll_loop.broadcaster.unsubscribe(subscription)
            sender.cancel()
            receiver.cancel()
            logger.info("websocket_closed", subscriber=subscription.id)
        await asyncio.gather(sender, receiver, return_exceptions=True)
        if not client_gone:
            # dropped by the broadcaster (overflow or send failure)
            with suppress(RuntimeError, WebSocketDisconnect):
                await websocket.close(code=1011)

    return app


__all__ = ["create_app"]
