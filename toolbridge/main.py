"""FastAPI application exposing synthesized entity tools over HTTP."""

import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from toolbridge.adapters.metadata_provider import MetadataProvider, StaticMetadataProvider
from toolbridge.adapters.operation_executor import OperationExecutor, load_executor
from toolbridge.api.routers import health, tools
from toolbridge.infra.config import config
from toolbridge.infra.logging import app_logger
from toolbridge.infra.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from toolbridge.models.context import HostContext


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    app_logger.info(
        "Application starting up",
        extra={
            "app_env": config.APP_ENV,
            "tool_namespace": config.TOOL_NAMESPACE,
            "metadata_configured": app.state.metadata_provider is not None,
            "executor_configured": app.state.executor is not None,
        },
    )
    yield
    app_logger.info("Application shutting down")


def _resolve_metadata_provider() -> Optional[MetadataProvider]:
    if not config.METADATA_FILE:
        return None
    return StaticMetadataProvider.from_file(config.METADATA_FILE)


def _resolve_executor() -> Optional[OperationExecutor]:
    if not config.EXECUTOR_FACTORY:
        return None
    return load_executor(config.EXECUTOR_FACTORY)


def create_app(
    metadata_provider: Optional[MetadataProvider] = None,
    executor: Optional[OperationExecutor] = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators not passed in are resolved from METADATA_FILE and
    EXECUTOR_FACTORY; when still missing, the tool endpoints answer 503.

    Args:
        metadata_provider: Field metadata source
        executor: Generic operation executor

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Entity Tool Bridge API",
        description=(
            "Exposes entity REST API resources as self-describing agent tools. "
            "Tool schemas and descriptions are synthesized from field metadata; "
            "tool calls are validated and executed through a generic operation executor."
        ),
        version=health.SERVICE_VERSION,
        lifespan=lifespan,
        tags_metadata=[
            {"name": "Tools", "description": "List and invoke synthesized resource tools"},
            {"name": "Health", "description": "Health check endpoint"},
        ],
    )

    app.state.metadata_provider = metadata_provider or _resolve_metadata_provider()
    app.state.executor = executor or _resolve_executor()
    app.state.host_context = HostContext()

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health.router)
    app.include_router(tools.router)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        error_id = str(uuid.uuid4())
        app_logger.error(f"Unhandled exception: {exc}", exc_info=True, extra={"error_id": error_id})
        return JSONResponse(
            status_code=500,
            content={"detail": f"Internal server error. Error ID: {error_id}"},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )
