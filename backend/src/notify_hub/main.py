import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sse_starlette.sse import EventSourceResponse

from notify_hub.models import Broadcaster, EventStream, LagPolicy, PublishFailure
from notify_hub.schemas import HealthResponse, PublishResponse, StatsResponse
from notify_hub.utilities import (
    CORS_ORIGINS,
    DIST_DIR,
    HEARTBEAT_INTERVAL,
    HOST,
    LAG_POLICY,
    LOG_LEVEL,
    PORT,
    RING_CAPACITY,
    make_ack,
    make_error,
    make_sse,
)

logging.basicConfig(
    level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def create_app(
    capacity: int = RING_CAPACITY,
    lag_policy: str = LAG_POLICY,
    dist_dir: Optional[str] = DIST_DIR,
) -> FastAPI:
    policy = LagPolicy(lag_policy)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.broadcaster = Broadcaster(capacity)
        app.state.shutdown = asyncio.Event()
        app.state.started = datetime.now(timezone.utc)
        logger.info(f"[BUS] ready (capacity={capacity}, lag_policy={policy.value})")
        try:
            yield
        finally:
            # ends every open stream before the server stops
            app.state.shutdown.set()
            app.state.broadcaster.close()

    app = FastAPI(title="notify-hub", lifespan=lifespan)

    # publish/subscribe are called from a separately served frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------- Ingress --------------
    @app.post("/msg", response_model=PublishResponse)
    async def publish(request: Request):
        body = await request.body()
        try:
            payload = body.decode("utf-8")
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="message must be UTF-8 text")
        try:
            delivered = request.app.state.broadcaster.publish(payload)
        except PublishFailure as exc:
            logger.warning(f"[BUS] publish rejected: {exc}")
            return JSONResponse(status_code=503, content=make_error("UNAVAILABLE", str(exc)))
        return make_ack(delivered)

    # -------------- Egress --------------
    @app.get("/events")
    async def events(request: Request):
        state = request.app.state

        async def event_generator() -> AsyncGenerator[Dict[str, str], None]:
            # subscribing here, not in the handler, ties the subscription to
            # the generator's lifetime
            stream = EventStream(state.broadcaster, cancel=state.shutdown, lag_policy=policy)
            logger.info(f"[SSE] client connected, stream {stream.subscription.id}")
            async for event in stream:
                yield make_sse(event)

        return EventSourceResponse(event_generator(), ping=HEARTBEAT_INTERVAL)

    # -------------- REST endpoints --------------
    @app.get("/health", response_model=HealthResponse)
    async def rest_health(request: Request):
        state = request.app.state
        uptime_sec = int((datetime.now(timezone.utc) - state.started).total_seconds())
        return {"uptime_sec": uptime_sec, "subscribers": state.broadcaster.subscriber_count}

    @app.get("/stats", response_model=StatsResponse)
    async def rest_stats(request: Request):
        broadcaster = request.app.state.broadcaster
        return {
            "messages": broadcaster.published_count,
            "subscribers": broadcaster.subscriber_count,
            "capacity": broadcaster.capacity,
            "lag_policy": policy.value,
        }

    # mounted last so the API routes take precedence
    if dist_dir:
        app.mount("/", StaticFiles(directory=dist_dir, html=True), name="dist")

    return app


app = create_app()


def run():
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
