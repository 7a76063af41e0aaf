from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from direct_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from direct_chat.api.middleware.metrics import RequestTimingMiddleware
from direct_chat.api.v1.routers import chats, health, messages, participants, ws
from direct_chat.application.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PayloadTooLargeError,
    UnavailableError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from direct_chat.application.ports.clock import Clock, SystemClock
from direct_chat.config import settings
from direct_chat.infrastructure.bus.redis_pubsub import (
    RedisFanoutPublisher,
    RedisPubSubSubscriber,
)
from direct_chat.infrastructure.bus.serializer import FanoutEnvelope
from direct_chat.infrastructure.db.session import dispose_engine
from direct_chat.infrastructure.ws.manager import ConnectionManager
from direct_chat.services.message_commands import MessageCommandHandler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    manager: ConnectionManager = app.state.manager
    subscriber: RedisPubSubSubscriber | None = None
    app.state.fanout_subscriber = None

    if settings.FANOUT_BACKEND == "redis":
        app.state.redis = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT_SECONDS,
        )
        logger.info("Redis connection pool created")

        async def _relay(envelope: FanoutEnvelope) -> None:
            await manager.broadcast(
                envelope.chat_id,
                envelope.event_type,
                envelope.data,
                exclude=envelope.exclude,
            )

        subscriber = RedisPubSubSubscriber(
            app.state.redis,
            settings.REDIS_PUBSUB_CHANNEL,
            _relay,
        )
        await subscriber.start()
        app.state.fanout_subscriber = subscriber
        app.state.commands.broadcaster = RedisFanoutPublisher(
            app.state.redis, settings.REDIS_PUBSUB_CHANNEL,
        )

    yield

    if subscriber is not None:
        await subscriber.stop()
        app.state.commands.broadcaster = manager
        await app.state.redis.aclose()
        logger.info("Redis connection pool closed")
    await dispose_engine()


def create_app(clock: Clock | None = None) -> FastAPI:
    app = FastAPI(
        title="Direct Chat Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    clock = clock or SystemClock()
    manager = ConnectionManager(
        queue_size=settings.WS_SEND_QUEUE_SIZE,
        send_timeout=settings.WS_SEND_TIMEOUT_SECONDS,
    )
    app.state.clock = clock
    app.state.manager = manager
    app.state.commands = MessageCommandHandler(
        manager,
        clock,
        edit_window=timedelta(minutes=settings.EDIT_WINDOW_MINUTES),
        call_timeout=settings.DB_CALL_TIMEOUT_SECONDS,
        broadcast_timeout=settings.FANOUT_PUBLISH_TIMEOUT_SECONDS,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(chats.router)
    app.include_router(participants.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ConflictError)
    async def _conflict(_req: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(PayloadTooLargeError)
    async def _too_large(_req: Request, exc: PayloadTooLargeError) -> JSONResponse:
        return JSONResponse(status_code=413, content={"detail": exc.detail})

    @app.exception_handler(UnsupportedMediaTypeError)
    async def _media_type(_req: Request, exc: UnsupportedMediaTypeError) -> JSONResponse:
        return JSONResponse(status_code=415, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def _request_validation(_req: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": _jsonable_errors(exc)})

    @app.exception_handler(UnavailableError)
    async def _unavailable(_req: Request, exc: UnavailableError) -> JSONResponse:
        logger.warning("Unavailable: %s", exc.detail)
        return JSONResponse(status_code=503, content={"detail": exc.detail})

    @app.exception_handler(OperationalError)
    async def _db_unavailable(_req: Request, exc: OperationalError) -> JSONResponse:
        logger.error("Database unavailable: %s", exc)
        return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


def _jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
