from .context import HostContext
from .field import FieldDescriptor, PicklistValue, KNOWN_FIELD_TYPES
from .request import ExecutionRequest, FilterTriplet, CONTROL_PARAMETERS, MAX_FILTERS
from .tool import (
    ToolDefinition,
    OperationKind,
    build_tool_name,
    scoped_resource,
    WRITE_OPERATIONS,
    MIGRATION_OPERATIONS,
    LIST_OPERATIONS,
    READ_OPERATIONS,
)

__all__ = [
    "HostContext",
    "FieldDescriptor",
    "PicklistValue",
    "KNOWN_FIELD_TYPES",
    "ExecutionRequest",
    "FilterTriplet",
    "CONTROL_PARAMETERS",
    "MAX_FILTERS",
    "ToolDefinition",
    "OperationKind",
    "build_tool_name",
    "scoped_resource",
    "WRITE_OPERATIONS",
    "MIGRATION_OPERATIONS",
    "LIST_OPERATIONS",
    "READ_OPERATIONS",
]
