"""
Birdhouse agent server: FastAPI entrypoint.
"""
from __future__ import annotations

import argparse
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load .env before anything else
load_dotenv()

from birdhouse.config import AppSettings, get_settings
from birdhouse.errors import BirdhouseError
from birdhouse.logging_config import setup_logging
from birdhouse.middleware.auth import api_key_middleware
from birdhouse.providers.registry import ProviderRegistry, create_default_registry
from birdhouse.providers.wrapped import WrappedCommandAdapter, WrappedCommandConfig
from birdhouse.push import ExpoPushSender, InMemoryPushTokenStore, PushSender, PushTokenStore
from birdhouse.routers.async_jobs import router as async_router
from birdhouse.routers.chat import router as chat_router
from birdhouse.routers.providers import router as providers_router
from birdhouse.routers.push import router as push_router
from birdhouse.server import AgentServer

logger = logging.getLogger(__name__)

SERVICE_NAME = "birdhouse-agent-server"


def create_app(
    settings: Optional[AppSettings] = None,
    registry: Optional[ProviderRegistry] = None,
    wrapped: Optional[WrappedCommandConfig] = None,
    push_store: Optional[PushTokenStore] = None,
    push_sender: Optional[PushSender] = None,
) -> FastAPI:
    settings = settings or get_settings()
    server = AgentServer(
        settings=settings,
        registry=registry or create_default_registry(settings),
        push_store=push_store or InMemoryPushTokenStore(),
        push_sender=push_sender or ExpoPushSender(settings.expo_push_url),
        wrapped=WrappedCommandAdapter(wrapped) if wrapped else None,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Agent server starting in %s mode", server.mode)
        yield
        await server.shutdown()

    app = FastAPI(
        title="Birdhouse",
        description="Chat with interchangeable agent providers over SSE",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.server = server

    origins = settings.resolve_cors_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(api_key_middleware)

    app.include_router(chat_router, prefix="/v1")
    app.include_router(providers_router, prefix="/v1")
    app.include_router(push_router, prefix="/v1")
    app.include_router(async_router, prefix="/v1")

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {"error": "validation_error", "message": "Invalid request body", "details": _jsonable_errors(exc)},
            status_code=400,
        )

    @app.exception_handler(BirdhouseError)
    async def birdhouse_error(request: Request, exc: BirdhouseError):
        logger.error("Request %s failed: %s", request.url.path, exc)
        return JSONResponse({"error": "server_error", "message": str(exc)}, status_code=500)

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse({"error": "server_error", "message": str(exc) or "Unknown error"}, status_code=500)

    @app.get("/v1/health")
    async def health():
        default = server.default_kind()
        return {
            "ok": True,
            "service": SERVICE_NAME,
            "mode": server.mode,
            "defaultProvider": default.value if default else None,
            "wrappedCommand": (
                {"command": server.wrapped.config.command, "args": server.wrapped.config.base_args}
                if server.wrapped else None
            ),
            "now": datetime.now(timezone.utc).isoformat(),
        }

    return app


def _jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


def split_argv(argv: list[str]) -> tuple[list[str], list[str]]:
    """Split `[options] -- command args...` into server options and the wrapped command."""
    if "--" in argv:
        idx = argv.index("--")
        return argv[:idx], argv[idx + 1:]
    return argv, []


def _port(value: str) -> int:
    port = int(value)
    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"Expected an integer between 1 and 65535, got {value}")
    return port


def start(argv: Optional[list[str]] = None):
    import uvicorn

    own_args, command = split_argv(sys.argv[1:] if argv is None else argv)
    parser = argparse.ArgumentParser(
        prog="birdhouse-server",
        description="Serve agent providers over SSE. Pass `-- <command> [args...]` to wrap one local CLI.",
    )
    parser.add_argument("--port", "-p", type=_port, default=None, help="Explicit server port (overrides env)")
    args = parser.parse_args(own_args)

    settings = get_settings()
    setup_logging(settings.log_level)

    wrapped = WrappedCommandConfig.from_argv(command, settings) if command else None
    if wrapped:
        logger.info("Wrapping: %s %s", wrapped.command, " ".join(wrapped.base_args))
        port = args.port or settings.server_port
    else:
        port = args.port or settings.port

    uvicorn.run(create_app(settings, wrapped=wrapped), host=settings.host, port=port)


if __name__ == "__main__":
    start()
