"""FastAPI application setup."""

from contextlib import asynccontextmanager

import aiosqlite
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..app import Application
from ..errors import TaskflowError, TransportError, ValidationError
from ..logging_config import get_logger
from .routes import chat, claims, members, realtime

logger = get_logger(__name__)

# Global application instance
_app: Application | None = None


def get_app() -> Application:
    """Get the global application instance."""
    global _app
    if not _app:
        _app = Application()
    return _app


def _error_response(error: TaskflowError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def register_exception_handlers(fastapi_app: FastAPI) -> None:
    """Render every failure as {"error": code, "message": text}."""

    @fastapi_app.exception_handler(TaskflowError)
    async def handle_taskflow_error(request: Request, exc: TaskflowError):
        if exc.status_code >= 500:
            logger.error(
                "Request failed: %s",
                exc.message,
                exc_info=exc,
                extra={"context": {"path": request.url.path}},
            )
        return _error_response(exc)

    @fastapi_app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return _error_response(ValidationError(details or "Invalid request"))

    @fastapi_app.exception_handler(aiosqlite.Error)
    async def handle_storage_error(request: Request, exc: aiosqlite.Error):
        logger.error(
            "Storage error: %s",
            exc,
            exc_info=exc,
            extra={"context": {"path": request.url.path}},
        )
        return _error_response(TransportError("Storage operation failed"))

    @fastapi_app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(
            "Unhandled error: %s",
            exc,
            exc_info=exc,
            extra={"context": {"path": request.url.path}},
        )
        return _error_response(TransportError("Internal error"))


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    application = application or get_app()

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        """Manage application lifespan."""
        await application.start()
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="TaskFlow API",
        description="Team chat, presence and claim queue",
        version="0.1.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=application.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(fastapi_app)

    @fastapi_app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    # Include routers
    fastapi_app.include_router(chat.create_chat_router(application))
    fastapi_app.include_router(claims.create_claims_router(application))
    fastapi_app.include_router(members.create_members_router(application))
    fastapi_app.include_router(realtime.create_realtime_router(application))

    return fastapi_app
