"""Synthesized agent tool definition model."""

from enum import Enum
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional


class OperationKind(str, Enum):
    """Operation kinds an entity tool can expose."""
    GET = "get"
    GET_MANY = "getMany"
    COUNT = "count"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SEARCH_BY_DOMAIN = "searchByDomain"
    WHO_AM_I = "whoAmI"
    GET_POSTED = "getPosted"
    GET_UNPOSTED = "getUnposted"
    SLA_HEALTH_CHECK = "slaHealthCheck"
    MOVE_TO_COMPANY = "moveToCompany"
    MOVE_CONFIGURATION_ITEM = "moveConfigurationItem"
    TRANSFER_OWNERSHIP = "transferOwnership"


# Multi-step workflows that clone or reassign records
MIGRATION_OPERATIONS = frozenset({
    OperationKind.MOVE_TO_COMPANY,
    OperationKind.MOVE_CONFIGURATION_ITEM,
    OperationKind.TRANSFER_OWNERSHIP,
})

WRITE_OPERATIONS = frozenset({OperationKind.CREATE, OperationKind.UPDATE, OperationKind.DELETE}) | MIGRATION_OPERATIONS

# getMany-shaped operations: filters, limit, truncated list envelope
LIST_OPERATIONS = frozenset({OperationKind.GET_MANY, OperationKind.GET_POSTED, OperationKind.GET_UNPOSTED})

READ_OPERATIONS = frozenset({
    OperationKind.GET,
    OperationKind.GET_MANY,
    OperationKind.GET_POSTED,
    OperationKind.GET_UNPOSTED,
    OperationKind.COUNT,
    OperationKind.WHO_AM_I,
})

# Operations that only exist on one resource
RESOURCE_SCOPED_OPERATIONS = {
    OperationKind.SLA_HEALTH_CHECK: "ticket",
    OperationKind.MOVE_TO_COMPANY: "contact",
    OperationKind.MOVE_CONFIGURATION_ITEM: "configurationItem",
    OperationKind.TRANSFER_OWNERSHIP: "resource",
}


def scoped_resource(operation: str) -> Optional[str]:
    """Resource an operation is limited to, or None when any resource may expose it."""
    for kind, resource in RESOURCE_SCOPED_OPERATIONS.items():
        if kind.value == operation:
            return resource
    return None


def build_tool_name(namespace: str, resource: str, operation: str) -> str:
    """Deterministic tool name for a (resource, operation) pair."""
    return f"{namespace}_{resource}_{operation}"


class ToolDefinition(BaseModel):
    """Tool advertised to the calling agent for one (resource, operation) pair."""
    name: str = Field(..., description="Deterministic tool name: <namespace>_<resource>_<operation>")
    description: str = Field(..., description="Natural-language operation description")
    input_schema: Dict[str, Any] = Field(..., description="Object-typed JSON Schema for the flat parameter bag")
    resource: str = Field(..., description="Entity resource the tool operates on")
    operation: str = Field(
        ...,
        description="Operation kind, or 'describeFields' / 'listPicklistValues' for helper tools",
    )

    model_config = {"frozen": True}
