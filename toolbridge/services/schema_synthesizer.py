"""Schema synthesizer - builds agent tool input schemas from field metadata."""

import logging
from typing import Any, Dict, List, Optional

from toolbridge.models.field import FieldDescriptor
from toolbridge.models.tool import OperationKind

logger = logging.getLogger(__name__)

FILTER_OPERATORS = ["eq", "noteq", "gt", "gte", "lt", "lte", "contains", "beginsWith", "endsWith"]
FILTER_OPERATOR_ALIASES = {"like": "contains"}
DOMAIN_SEARCH_OPERATORS = ["eq", "beginsWith", "endsWith", "contains", "like"]

RECENCY_PRESETS = [
    "last_15m",
    "last_1h",
    "last_4h",
    "last_12h",
    "last_24h",
    "last_3d",
    "last_7d",
    "last_14d",
    "last_30d",
    "last_90d",
]

# Maximum number of picklist values to inline in a field description
MAX_INLINE_PICKLIST_VALUES = 8

# Above this size the description points at listPicklistValues instead
LARGE_PICKLIST_THRESHOLD = 15

FIELDS_PARAMETER = {
    "type": "string",
    "description": (
        "Comma-separated field names to return. Omit for all fields. Only use verified field names; "
        "call the describeFields tool with mode 'read' if unsure."
    ),
}

FILTER_VALUE_PARAMETER = {
    "anyOf": [
        {"type": "string"},
        {"type": "number"},
        {"type": "boolean"},
        {"type": "array", "items": {"anyOf": [{"type": "string"}, {"type": "number"}, {"type": "boolean"}]}},
    ],
    "description": "Filter value. Use a number for numeric fields and true/false for booleans.",
}

LIMIT_PARAMETER = {
    "type": "integer",
    "minimum": 1,
    "maximum": 100,
    "description": "Max results to return (1-100, default 10)",
}


def map_filter_op(op: Optional[str]) -> str:
    """
    Map an agent-supplied operator to the API operator.

    Matching is case-insensitive; 'like' is accepted as an alias of 'contains'.

    Raises:
        ValueError: If the operator is not a string or is not supported
    """
    if op is not None and not isinstance(op, str):
        raise ValueError(
            f"Filter operator must be a string, got {type(op).__name__}. "
            f"Valid operators are: {', '.join(FILTER_OPERATORS)}"
        )
    lowered = (op or "eq").strip().lower()
    if lowered in FILTER_OPERATOR_ALIASES:
        return FILTER_OPERATOR_ALIASES[lowered]
    for candidate in FILTER_OPERATORS:
        if candidate.lower() == lowered:
            return candidate
    raise ValueError(
        f"Unsupported filter operator: '{op}'. Valid operators are: {', '.join(FILTER_OPERATORS)}"
    )


def build_field_description(field: FieldDescriptor, prefix: Optional[str] = None) -> str:
    """
    Describe a field for the agent: name, required marker, picklist hints, reference target.

    Args:
        field: Field to describe
        prefix: Replaces the display name (e.g. "New status" for update)

    Returns:
        Single-line description
    """
    parts = [prefix or field.name or field.id]
    if field.required:
        parts.append("(required)")

    if field.is_picklist:
        values = field.allowed_values or []
        if values and len(values) <= LARGE_PICKLIST_THRESHOLD:
            inlined = ", ".join(f"{v.id}={v.label}" for v in values[:MAX_INLINE_PICKLIST_VALUES])
            suffix = ", ..." if len(values) > MAX_INLINE_PICKLIST_VALUES else ""
            parts.append(f"[values: {inlined}{suffix}]")
        else:
            parts.append("[large picklist -- use listPicklistValues for options]")

    if field.is_reference and field.referenced_entity:
        parts.append(f"(references {field.referenced_entity})")
    return " ".join(parts)


def queryable_field_names(fields: List[FieldDescriptor]) -> List[str]:
    """Standard (non user-defined) field ids usable as filter fields."""
    return [f.id for f in fields if not f.is_user_defined]


def _json_type(field: FieldDescriptor) -> str:
    if field.type == "number":
        return "number"
    if field.type == "boolean":
        return "boolean"
    # datetime, email, url, phone and extension types are passed as strings
    return "string"


def _object_schema(properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {
        "type": "object",
        "properties": properties,
        "additionalProperties": False,
    }
    if required:
        schema["required"] = required
    return schema


def _filter_field_parameter(field_names: List[str], description: str) -> Dict[str, Any]:
    if field_names:
        return {"type": "string", "enum": field_names, "description": description}
    return {
        "type": "string",
        "description": f"{description}. If unsure, call the describeFields tool with mode 'read' first.",
    }


def _filter_properties(read_fields: List[FieldDescriptor]) -> Dict[str, Any]:
    field_names = queryable_field_names(read_fields)
    return {
        "filter_field": _filter_field_parameter(field_names, "Field to filter on"),
        "filter_op": {"type": "string", "enum": list(FILTER_OPERATORS), "description": "Filter operator (default: eq)"},
        "filter_value": dict(FILTER_VALUE_PARAMETER),
        "filter_field_2": _filter_field_parameter(
            field_names, "Second field to filter on (optional, for compound queries)"
        ),
        "filter_op_2": {"type": "string", "enum": list(FILTER_OPERATORS), "description": "Second filter operator"},
        "filter_value_2": {**FILTER_VALUE_PARAMETER, "description": "Second filter value"},
    }


def get_schema() -> Dict[str, Any]:
    return _object_schema(
        {
            "id": {"type": "number", "description": "Entity ID to retrieve"},
            "fields": dict(FIELDS_PARAMETER),
        },
        required=["id"],
    )


def who_am_i_schema() -> Dict[str, Any]:
    return _object_schema({"fields": dict(FIELDS_PARAMETER)})


def get_many_schema(read_fields: List[FieldDescriptor]) -> Dict[str, Any]:
    properties = _filter_properties(read_fields)
    properties.update({
        "limit": dict(LIMIT_PARAMETER),
        "fields": dict(FIELDS_PARAMETER),
        "recency": {
            "type": "string",
            "pattern": r"^last_(15m|1h|4h|12h|24h|\d{1,3}d)$",
            "description": (
                f"Preset time window ({', '.join(RECENCY_PRESETS)}) or custom days as last_Nd with N from 1 to 365. "
                "Use EITHER recency OR since/until. When since is set, recency is ignored."
            ),
        },
        "since": {
            "type": "string",
            "description": (
                "Range start in ISO-8601 UTC format (e.g. 2026-01-01T00:00:00Z). Takes precedence over recency."
            ),
        },
        "until": {
            "type": "string",
            "description": (
                "Range end in ISO-8601 UTC format (e.g. 2026-01-31T23:59:59Z). Requires either since or recency."
            ),
        },
    })
    return _object_schema(properties)


def count_schema(read_fields: List[FieldDescriptor]) -> Dict[str, Any]:
    return _object_schema(_filter_properties(read_fields))


def search_by_domain_schema() -> Dict[str, Any]:
    return _object_schema(
        {
            "domain": {
                "type": "string",
                "minLength": 1,
                "description": "Domain to search, for example autotask.net or https://www.autotask.net/",
            },
            "domain_operator": {
                "type": "string",
                "enum": list(DOMAIN_SEARCH_OPERATORS),
                "description": "Domain comparison operator. Default 'contains'; 'like' is an alias for contains.",
            },
            "search_contact_emails": {
                "type": "boolean",
                "description": (
                    "When true (default), if no company website matches are found, "
                    "search contacts by email domain."
                ),
            },
            "limit": {**LIMIT_PARAMETER, "description": "Maximum company matches to return (1-100, default 25)."},
        },
        required=["domain"],
    )


def delete_schema() -> Dict[str, Any]:
    return _object_schema({"id": {"type": "number", "description": "Entity ID to delete"}}, required=["id"])


def create_schema(write_fields: List[FieldDescriptor]) -> Dict[str, Any]:
    """One parameter per write field; required iff the field is required."""
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for field in write_fields:
        properties[field.id] = {"type": _json_type(field), "description": build_field_description(field)}
        if field.required:
            required.append(field.id)
    return _object_schema(properties, required=required)


def update_schema(write_fields: List[FieldDescriptor]) -> Dict[str, Any]:
    """Like create, but every field is optional and a numeric id is mandatory."""
    properties: Dict[str, Any] = {"id": {"type": "number", "description": "Entity ID to update"}}
    for field in write_fields:
        if field.id == "id":
            continue
        optional = field.model_copy(update={"required": False})
        properties[field.id] = {
            "type": _json_type(field),
            "description": build_field_description(optional, prefix=f"New {field.name or field.id}"),
        }
    return _object_schema(properties, required=["id"])


def _positive_id(description: str) -> Dict[str, Any]:
    return {"type": "integer", "minimum": 1, "description": description}


def _flag(description: str) -> Dict[str, Any]:
    return {"type": "boolean", "description": description}


IMPERSONATION_PROPERTIES = {
    "impersonationResourceId": _positive_id(
        "Optional resource ID to impersonate for write calls. Omit to write as the API credential user."
    ),
    "proceedWithoutImpersonationIfDenied": _flag(
        "Only applies when impersonationResourceId is set. When true, a denied impersonated write "
        "is retried once without impersonation (default true)."
    ),
}

DUE_WINDOW_PRESETS = [
    "today",
    "tomorrow",
    "plus2Days",
    "plus3Days",
    "plus4Days",
    "plus5Days",
    "plus7Days",
    "plus14Days",
    "plus30Days",
    "custom",
]


def sla_health_check_schema() -> Dict[str, Any]:
    return _object_schema({
        "id": _positive_id("Ticket ID to check. Provide this or ticketNumber."),
        "ticketNumber": {
            "type": "string",
            "description": "Ticket number to check (for example T20240615.0674). Provide this or ticket id.",
        },
        "ticketFields": {
            "type": "string",
            "description": (
                "Optional comma-separated ticket fields to return in the ticket section, "
                "for example id,ticketNumber,title,status,companyID."
            ),
        },
    })


def move_configuration_item_schema() -> Dict[str, Any]:
    properties: Dict[str, Any] = {
        "sourceConfigurationItemId": _positive_id("Source configuration item ID to clone."),
        "destinationCompanyId": _positive_id("Destination company ID for the new configuration item."),
        "destinationCompanyLocationId": _positive_id(
            "Optional destination company location ID. Omit to clear destination location."
        ),
        "destinationContactId": _positive_id("Optional destination contact ID. Omit to clear contact linkage."),
        "copyUdfs": _flag("Whether to copy user-defined fields (default true)."),
        "copyAttachments": _flag("Whether to copy configuration item attachments (default true)."),
        "copyNotes": _flag("Whether to copy notes (default true)."),
        "copyNoteAttachments": _flag("Whether to copy note attachments (default true)."),
        "deactivateSource": _flag("Whether to deactivate the source CI after safety checks (default true)."),
        "dryRun": _flag("When true, return a migration plan without mutations (default false)."),
        "idempotencyKey": {
            "type": "string",
            "description": "Optional run key for traceability and workflow-managed idempotency.",
        },
        "includeMaskedUdfsPolicy": {
            "type": "string",
            "enum": ["omit", "fail"],
            "description": "How to handle masked UDFs: 'omit' (default) or 'fail'.",
        },
        "attachmentOversizePolicy": {
            "type": "string",
            "enum": ["skip+note", "fail"],
            "description": "How to handle oversize attachments: 'skip+note' (default) or 'fail'.",
        },
        "partialFailureStrategy": {
            "type": "string",
            "enum": ["deactivateDestination", "leaveActiveWithNote"],
            "description": (
                "How to handle partial failure after destination create: "
                "'deactivateDestination' (default) or 'leaveActiveWithNote'."
            ),
        },
        "retryMaxRetries": {
            "type": "integer",
            "minimum": 0,
            "maximum": 10,
            "description": "Retry max attempts for transient copy errors (default 3).",
        },
        "retryBaseDelayMs": {
            "type": "integer",
            "minimum": 50,
            "maximum": 60000,
            "description": "Retry base delay in milliseconds (default 500).",
        },
        "retryJitter": _flag("Whether retry delays use jitter (default true)."),
        "throttleMaxBytesPer5Min": {
            "type": "integer",
            "minimum": 1,
            "description": "Maximum attachment bytes uploaded per 5-minute window.",
        },
        "throttleMaxSingleFileBytes": {
            "type": "integer",
            "minimum": 1,
            "description": "Maximum size in bytes of a single copied attachment.",
        },
    }
    properties.update(IMPERSONATION_PROPERTIES)
    return _object_schema(properties, required=["sourceConfigurationItemId", "destinationCompanyId"])


def move_to_company_schema() -> Dict[str, Any]:
    properties: Dict[str, Any] = {
        "sourceContactId": _positive_id("Source contact ID to move."),
        "destinationCompanyId": _positive_id("Destination company ID for the cloned contact."),
        "dryRun": _flag("When true, returns a migration plan without executing any writes (default false)."),
        "destinationCompanyLocationId": _positive_id(
            "Optional destination company location ID. Omit for auto-mapping behaviour."
        ),
        "skipIfDuplicateEmailFound": _flag(
            "Whether to skip the move when a duplicate email exists on the destination company (default true)."
        ),
        "copyContactGroups": _flag("Whether to copy contact group memberships (default true)."),
        "copyCompanyNotes": _flag("Whether to copy company notes linked to the contact (default true)."),
        "copyNoteAttachments": _flag("Whether to copy attachments for copied notes (default true)."),
        "sourceAuditNote": {
            "type": "string",
            "description": "Optional audit note template written to the source company context.",
        },
        "destinationAuditNote": {
            "type": "string",
            "description": "Optional audit note template written to the destination company context.",
        },
    }
    properties.update(IMPERSONATION_PROPERTIES)
    return _object_schema(properties, required=["sourceContactId", "destinationCompanyId"])


def transfer_ownership_schema() -> Dict[str, Any]:
    properties: Dict[str, Any] = {
        "sourceResourceId": _positive_id("Source resource ID currently assigned to work. Source can be inactive."),
        "destinationResourceId": _positive_id(
            "Receiving resource ID to assign work to. Receiving resource must be active."
        ),
        "dryRun": _flag("When true, returns a plan without writing updates (default false)."),
        "includeTickets": _flag("Whether to include tickets (default false)."),
        "includeProjects": _flag("Whether to include projects (default false)."),
        "includeServiceCallAssignments": _flag(
            "Whether to reassign service call task/ticket resources (default false)."
        ),
        "includeAppointments": _flag("Whether to reassign appointments (default false)."),
        "includeCompanies": _flag("Whether to transfer companies owned by the source resource (default false)."),
        "companyIdAllowlist": {
            "type": "string",
            "description": "Optional comma-separated company IDs to scope company transfer.",
        },
        "includeOpportunities": _flag(
            "Whether to transfer opportunities owned by the source resource (default false)."
        ),
        "dueWindowPreset": {
            "type": "string",
            "enum": list(DUE_WINDOW_PRESETS),
            "description": "Optional due window preset. Use 'custom' with dueBeforeCustom.",
        },
        "dueBeforeCustom": {
            "type": "string",
            "description": "Required when dueWindowPreset is custom. Accepts YYYY-MM-DD or ISO-8601 datetime.",
        },
        "onlyOpenActive": _flag("When true, excludes terminal statuses (default true)."),
        "includeItemsWithNoDueDate": _flag("Whether items without a due date are included (default true)."),
        "statusAllowlistByLabel": {
            "type": "string",
            "description": "Optional comma-separated status labels to target instead of the open-status default.",
        },
        "statusAllowlistByValue": {
            "type": "string",
            "description": "Optional comma-separated status values to target instead of the open-status default.",
        },
        "ticketAssignmentMode": {
            "type": "string",
            "enum": ["primaryOnly", "primaryAndSecondary"],
            "description": "Ticket assignment scope (default primaryOnly).",
        },
        "projectReassignMode": {
            "type": "string",
            "enum": ["leadOnly", "leadAndTasks", "leadTasksAndSecondary", "tasksOnly", "tasksAndSecondary"],
            "description": "Project reassignment scope (default leadAndTasks).",
        },
        "maxItemsPerEntity": {
            "type": "integer",
            "minimum": 1,
            "maximum": 10000,
            "description": "Hard safety cap per entity type (default 500).",
        },
        "addAuditNotes": _flag("Whether to create per-entity audit notes (default false)."),
        "auditNoteTemplate": {
            "type": "string",
            "description": "Optional audit note template used when addAuditNotes is true.",
        },
        "maxCompanies": {
            "type": "integer",
            "minimum": 1,
            "maximum": 10000,
            "description": "Hard safety cap on transferred companies (default 500).",
        },
    }
    properties.update(IMPERSONATION_PROPERTIES)
    return _object_schema(properties, required=["sourceResourceId", "destinationResourceId"])


def describe_fields_schema() -> Dict[str, Any]:
    return _object_schema({
        "mode": {
            "type": "string",
            "enum": ["read", "write"],
            "description": (
                "Field mode to describe. Use 'read' for get/getMany/count fields "
                "and 'write' for create/update fields."
            ),
        },
    })


def list_picklist_values_schema() -> Dict[str, Any]:
    return _object_schema(
        {
            "fieldId": {
                "type": "string",
                "description": "Field ID to list picklist values for. Use describeFields first to confirm the field ID.",
            },
            "query": {"type": "string", "description": "Optional search term to filter picklist values."},
            "limit": {"type": "number", "description": "Maximum values to return (default 50)."},
            "page": {"type": "number", "description": "Page number for pagination (default 1)."},
        },
        required=["fieldId"],
    )


def synthesize_schema(
    operation: str,
    read_fields: Optional[List[FieldDescriptor]] = None,
    write_fields: Optional[List[FieldDescriptor]] = None,
) -> Dict[str, Any]:
    """
    Build the input schema for an operation kind.

    Never raises: unknown operations get an empty object schema, which the
    schema normalizer turns into a valid permissive schema.

    Args:
        operation: Operation kind value (e.g. "getMany")
        read_fields: Read-mode fields of the resource
        write_fields: Write-mode fields of the resource

    Returns:
        JSON Schema dict
    """
    read_fields = read_fields or []
    write_fields = write_fields or []
    try:
        kind = OperationKind(operation)
    except ValueError:
        logger.warning(f"No schema template for operation '{operation}', using an empty object schema")
        return _object_schema({})

    if kind == OperationKind.GET:
        return get_schema()
    if kind == OperationKind.WHO_AM_I:
        return who_am_i_schema()
    if kind in (OperationKind.GET_MANY, OperationKind.GET_POSTED, OperationKind.GET_UNPOSTED):
        return get_many_schema(read_fields)
    if kind == OperationKind.COUNT:
        return count_schema(read_fields)
    if kind == OperationKind.SEARCH_BY_DOMAIN:
        return search_by_domain_schema()
    if kind == OperationKind.CREATE:
        return create_schema(write_fields)
    if kind == OperationKind.UPDATE:
        return update_schema(write_fields)
    if kind == OperationKind.SLA_HEALTH_CHECK:
        return sla_health_check_schema()
    if kind == OperationKind.MOVE_CONFIGURATION_ITEM:
        return move_configuration_item_schema()
    if kind == OperationKind.MOVE_TO_COMPANY:
        return move_to_company_schema()
    if kind == OperationKind.TRANSFER_OWNERSHIP:
        return transfer_ownership_schema()
    return delete_schema()
