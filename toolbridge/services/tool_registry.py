"""Tool registry - builds the agent tool set for one resource."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from toolbridge.adapters.metadata_provider import MetadataProvider
from toolbridge.adapters.operation_executor import OperationExecutor
from toolbridge.infra.config import config
from toolbridge.models.context import HostContext
from toolbridge.models.field import FieldDescriptor
from toolbridge.models.tool import WRITE_OPERATIONS, OperationKind, ToolDefinition, build_tool_name, scoped_resource
from toolbridge.services.description_builders import DescriptionBuilder
from toolbridge.services.helper_tools import (
    DESCRIBE_FIELDS,
    LIST_PICKLIST_VALUES,
    describe_fields,
    list_picklist_values,
)
from toolbridge.services.schema_normalizer import normalise_tool_input_schema
from toolbridge.services.schema_synthesizer import (
    describe_fields_schema,
    list_picklist_values_schema,
    synthesize_schema,
)
from toolbridge.services.tool_executor import execute_agent_tool

logger = logging.getLogger(__name__)

SUPPORTED_TOOL_OPERATIONS = tuple(kind.value for kind in OperationKind)

_WRITE_OPERATION_NAMES = frozenset(kind.value for kind in WRITE_OPERATIONS)
# Write operations whose schemas are synthesized from write-mode fields
_FIELD_WRITE_OPERATIONS = frozenset({OperationKind.CREATE.value, OperationKind.UPDATE.value})

ToolHandler = Callable[[Dict[str, Any]], Awaitable[str]]


class UnknownToolError(LookupError):
    """Raised when a tool name does not match any tool in the set."""


@dataclass(frozen=True)
class AgentTool:
    """A synthesized tool definition paired with its async handler."""
    definition: ToolDefinition
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def operation(self) -> str:
        return self.definition.operation

    async def invoke(self, params: Optional[Dict[str, Any]] = None) -> str:
        return await self.handler(params or {})


def resolve_operation_case_insensitive(operation: str, supported: Iterable[str]) -> Optional[str]:
    """Return the supported spelling of an operation name, ignoring case."""
    wanted = (operation or "").strip().lower()
    for candidate in supported:
        if candidate.lower() == wanted:
            return candidate
    return None


def parse_operation_from_tool_name(tool_name: str, resource: str, namespace: Optional[str] = None) -> Optional[str]:
    """
    Extract the operation part of '<namespace>_<resource>_<operation>'.

    Args:
        tool_name: Tool name as called by the agent
        resource: Resource the tool set was built for
        namespace: Tool namespace (defaults to config.TOOL_NAMESPACE)

    Returns:
        The raw operation segment, or None when the name does not belong to the resource
    """
    prefix = f"{namespace or config.TOOL_NAMESPACE}_{resource}_".lower()
    if not tool_name or not tool_name.lower().startswith(prefix):
        return None
    return tool_name[len(prefix):] or None


def _operation_handler(
    context: HostContext,
    executor: OperationExecutor,
    resource: str,
    operation: str,
    read_fields: List[FieldDescriptor],
    write_fields: List[FieldDescriptor],
    namespace: str,
) -> ToolHandler:
    async def handler(params: Dict[str, Any]) -> str:
        return await execute_agent_tool(
            context,
            executor,
            resource,
            operation,
            params,
            read_fields=read_fields,
            write_fields=write_fields,
            namespace=namespace,
        )
    return handler


def build_helper_tools(
    resource: str,
    metadata_provider: MetadataProvider,
    namespace: str,
) -> List[AgentTool]:
    descriptions = DescriptionBuilder(resource, namespace)

    async def describe(params: Dict[str, Any]) -> str:
        return await describe_fields(metadata_provider, resource, params, namespace=namespace)

    async def picklist(params: Dict[str, Any]) -> str:
        return await list_picklist_values(metadata_provider, resource, params, namespace=namespace)

    return [
        AgentTool(
            definition=ToolDefinition(
                name=build_tool_name(namespace, resource, DESCRIBE_FIELDS),
                description=descriptions.describe_fields(),
                input_schema=normalise_tool_input_schema(describe_fields_schema()),
                resource=resource,
                operation=DESCRIBE_FIELDS,
            ),
            handler=describe,
        ),
        AgentTool(
            definition=ToolDefinition(
                name=build_tool_name(namespace, resource, LIST_PICKLIST_VALUES),
                description=descriptions.list_picklist_values(),
                input_schema=normalise_tool_input_schema(list_picklist_values_schema()),
                resource=resource,
                operation=LIST_PICKLIST_VALUES,
            ),
            handler=picklist,
        ),
    ]


async def build_resource_tools(
    resource: str,
    operations: Iterable[str],
    allow_write_operations: bool,
    metadata_provider: MetadataProvider,
    executor: OperationExecutor,
    context: HostContext,
    namespace: Optional[str] = None,
) -> List[AgentTool]:
    """
    Build one tool per enabled operation plus the two helper tools.

    Write operations are skipped when writes are disabled. Field metadata is
    fetched once per build and shared by every tool in the set.

    Args:
        resource: Resource to expose (e.g. "ticket")
        operations: Operation names, any case
        allow_write_operations: Whether create/update/delete and the migration workflows may be exposed
        metadata_provider: Source of field metadata
        executor: Generic operation executor the tools call
        context: Host context the executor reads parameters from
        namespace: Tool namespace (defaults to config.TOOL_NAMESPACE)

    Returns:
        List of AgentTool

    Raises:
        ValueError: If an operation is unsupported, belongs to another resource,
            or no operation remains to expose
    """
    namespace = namespace or config.TOOL_NAMESPACE

    resolved: List[str] = []
    unsupported: List[str] = []
    for operation in operations:
        canonical = resolve_operation_case_insensitive(operation, SUPPORTED_TOOL_OPERATIONS)
        if canonical is None:
            unsupported.append(operation)
        elif canonical not in resolved:
            resolved.append(canonical)
    if unsupported:
        raise ValueError(
            f"Unsupported operation(s) for {resource}: {', '.join(unsupported)}. "
            f"Supported operations: {', '.join(SUPPORTED_TOOL_OPERATIONS)}"
        )
    misplaced = [
        f"{op} ({scoped_resource(op)} only)"
        for op in resolved
        if scoped_resource(op) and scoped_resource(op).lower() != resource.lower()
    ]
    if misplaced:
        raise ValueError(f"Operation(s) not available for {resource}: {', '.join(misplaced)}")

    enabled = [op for op in resolved if allow_write_operations or op not in _WRITE_OPERATION_NAMES]
    skipped = [op for op in resolved if op not in enabled]
    if skipped:
        logger.info(f"Skipping write operation(s) for {resource} because writes are disabled: {skipped}")
    if not enabled:
        raise ValueError(
            f"No tools to expose for {resource}. Enable at least one read operation or allow write operations."
        )

    read_fields = await metadata_provider.get_fields(resource, "read")
    write_fields: List[FieldDescriptor] = []
    if any(op in _FIELD_WRITE_OPERATIONS for op in enabled):
        write_fields = await metadata_provider.get_fields(resource, "write")

    descriptions = DescriptionBuilder(resource, namespace)
    tools: List[AgentTool] = []
    for operation in enabled:
        definition = ToolDefinition(
            name=build_tool_name(namespace, resource, operation),
            description=descriptions.for_operation(operation, read_fields, write_fields),
            input_schema=normalise_tool_input_schema(synthesize_schema(operation, read_fields, write_fields)),
            resource=resource,
            operation=operation,
        )
        handler = _operation_handler(context, executor, resource, operation, read_fields, write_fields, namespace)
        tools.append(AgentTool(definition=definition, handler=handler))

    tools.extend(build_helper_tools(resource, metadata_provider, namespace))
    logger.info(f"Built {len(tools)} tool(s) for {resource}: {[t.name for t in tools]}")
    return tools


def find_tool(tools: List[AgentTool], tool_name: str, namespace: Optional[str] = None) -> Optional[AgentTool]:
    """Find a tool by exact name, then by case-insensitive operation segment."""
    for tool in tools:
        if tool.name == tool_name:
            return tool
    for tool in tools:
        raw_operation = parse_operation_from_tool_name(tool_name, tool.definition.resource, namespace)
        if raw_operation and raw_operation.lower() == tool.operation.lower():
            return tool
    return None


async def dispatch_tool_call(
    tools: List[AgentTool],
    tool_name: str,
    params: Optional[Dict[str, Any]] = None,
    namespace: Optional[str] = None,
) -> str:
    """
    Invoke the tool named tool_name with the flat parameter bag.

    Raises:
        UnknownToolError: If no tool in the set matches the name
    """
    tool = find_tool(tools, tool_name, namespace)
    if tool is None:
        raise UnknownToolError(f"Unknown tool '{tool_name}'")
    return await tool.invoke(params)
