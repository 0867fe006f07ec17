"""API dependencies resolving the app's collaborators."""

from typing import List

from fastapi import HTTPException, Request, status

from toolbridge.adapters.metadata_provider import MetadataProvider
from toolbridge.adapters.operation_executor import OperationExecutor
from toolbridge.models.context import HostContext


def get_metadata_provider(request: Request) -> MetadataProvider:
    """Metadata provider configured on the app, or 503."""
    provider = getattr(request.app.state, "metadata_provider", None)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Metadata provider is not configured. Set METADATA_FILE.",
        )
    return provider


def get_executor(request: Request) -> OperationExecutor:
    """Operation executor configured on the app, or 503."""
    executor = getattr(request.app.state, "executor", None)
    if executor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Operation executor is not configured. Set EXECUTOR_FACTORY.",
        )
    return executor


def get_host_context(request: Request) -> HostContext:
    return request.app.state.host_context


def split_operations(operations: str) -> List[str]:
    """'get, getMany' -> ['get', 'getMany']."""
    return [op.strip() for op in operations.split(",") if op.strip()]
