"""Agent tools API router."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response

from toolbridge.adapters.metadata_provider import MetadataProvider
from toolbridge.adapters.operation_executor import OperationExecutor
from toolbridge.api.models import ToolListResponse, ToolResponse
from toolbridge.api.utils import get_executor, get_host_context, get_metadata_provider, split_operations
from toolbridge.infra.config import config
from toolbridge.models.context import HostContext
from toolbridge.services.helper_tools import HELPER_OPERATIONS
from toolbridge.services.tool_registry import (
    SUPPORTED_TOOL_OPERATIONS,
    UnknownToolError,
    build_helper_tools,
    build_resource_tools,
    dispatch_tool_call,
    parse_operation_from_tool_name,
    resolve_operation_case_insensitive,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_OPERATIONS = "get,getMany,count"


@router.get("/resources/{resource}/tools", tags=["Tools"], response_model=ToolListResponse)
async def list_resource_tools(
    resource: str,
    request: Request,
    operations: str = Query(DEFAULT_OPERATIONS, description="Comma-separated operation names"),
    allow_write: bool = Query(False, description="Expose create/update/delete when requested"),
    metadata_provider: MetadataProvider = Depends(get_metadata_provider),
    context: HostContext = Depends(get_host_context),
):
    """
    List the synthesized tools for a resource.

    The two helper tools (describeFields, listPicklistValues) are always included.
    Write operations are silently dropped unless `allow_write=true`.
    """
    try:
        tools = await build_resource_tools(
            resource,
            split_operations(operations),
            allow_write,
            metadata_provider,
            getattr(request.app.state, "executor", None),
            context,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    items = [
        ToolResponse(
            name=tool.name,
            description=tool.definition.description,
            input_schema=tool.definition.input_schema,
            operation=tool.operation,
        )
        for tool in tools
    ]
    return ToolListResponse(resource=resource, tools=items, count=len(items))


@router.post("/resources/{resource}/tools/{tool_name}", tags=["Tools"])
async def invoke_resource_tool(
    resource: str,
    tool_name: str,
    params: Optional[Dict[str, Any]] = Body(default=None),
    allow_write: bool = Query(False, description="Allow create/update/delete tools"),
    metadata_provider: MetadataProvider = Depends(get_metadata_provider),
    executor: OperationExecutor = Depends(get_executor),
    context: HostContext = Depends(get_host_context),
):
    """
    Invoke one tool with a flat parameter bag.

    Agent-level failures (validation, classified API errors) are returned with
    HTTP 200 as structured error payloads, so the caller can always parse them.

    **Example Request:**
    ```json
    {"filter_field": "status", "filter_op": "eq", "filter_value": 1, "limit": 5}
    ```
    """
    raw_operation = parse_operation_from_tool_name(tool_name, resource)
    if raw_operation is None:
        raise HTTPException(status_code=404, detail=f"Unknown tool '{tool_name}' for resource '{resource}'")

    if resolve_operation_case_insensitive(raw_operation, HELPER_OPERATIONS):
        tools = build_helper_tools(resource, metadata_provider, config.TOOL_NAMESPACE)
    else:
        operation = resolve_operation_case_insensitive(raw_operation, SUPPORTED_TOOL_OPERATIONS)
        if operation is None:
            raise HTTPException(status_code=404, detail=f"Unknown tool '{tool_name}' for resource '{resource}'")
        try:
            tools = await build_resource_tools(
                resource,
                [operation],
                allow_write,
                metadata_provider,
                executor,
                context,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    try:
        payload = await dispatch_tool_call(tools, tool_name, params or {})
    except UnknownToolError as e:
        raise HTTPException(status_code=404, detail=str(e))

    # Tool payloads are already JSON text
    return Response(content=payload, media_type="application/json")
