"""Execution bridge - runs one agent tool call through the generic operation executor."""

import json
import logging
import math
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from toolbridge.adapters.operation_executor import OperationExecutor
from toolbridge.infra.config import config
from toolbridge.infra.error_handler import StructuredError, classify_error, format_filter_constraint_error
from toolbridge.infra.metrics import record_tool_call
from toolbridge.models.context import HostContext
from toolbridge.models.field import FieldDescriptor
from toolbridge.models.request import CONTROL_PARAMETERS, MAX_FILTERS, ExecutionRequest, FilterTriplet
from toolbridge.models.tool import LIST_OPERATIONS, READ_OPERATIONS, OperationKind, build_tool_name
from toolbridge.services.field_validator import (
    validate_entity_id,
    validate_picklist_values,
    validate_read_fields,
    validate_ticket_identifier,
    validate_write_fields,
)
from toolbridge.services.parameter_override import overridden_parameters
from toolbridge.services.response_formatter import RECENCY_OVER_REQUEST_LIMIT, format_tool_response
from toolbridge.services.schema_synthesizer import FILTER_OPERATORS, map_filter_op

logger = logging.getLogger(__name__)

SEARCH_BY_DOMAIN_DEFAULT_LIMIT = 25

# tool_calls_total status label values
STATUS_SUCCESS = "success"
STATUS_REJECTED = "rejected"
STATUS_ERROR = "error"

RECENCY_FIELD_PRIORITY = (
    "createDateTime",
    "createDate",
    "lastModifiedDateTime",
    "lastActivityDateTime",
    "lastActivityDate",
    "dateWorked",
)

RECENCY_WINDOWS = {
    "last_15m": timedelta(minutes=15),
    "last_1h": timedelta(hours=1),
    "last_4h": timedelta(hours=4),
    "last_12h": timedelta(hours=12),
    "last_24h": timedelta(hours=24),
    "last_3d": timedelta(days=3),
    "last_7d": timedelta(days=7),
    "last_14d": timedelta(days=14),
    "last_30d": timedelta(days=30),
    "last_90d": timedelta(days=90),
}

MAX_CUSTOM_RECENCY_DAYS = 365
_CUSTOM_RECENCY = re.compile(r"^last_([0-9]{1,3})d$")

RECENCY_NEXT_ACTION = "Use recency windows (for example 'last_7d') or ISO-8601 UTC values for since/until."
NO_DATE_FIELD_NOTE = "Recency filters were ignored because no datetime field was detected for this resource."

_CANONICAL_OPERATIONS = {kind.value.lower(): kind.value for kind in OperationKind}
_LIST_OPERATION_NAMES = frozenset(kind.value for kind in LIST_OPERATIONS)
_READ_OPERATION_NAMES = frozenset(kind.value for kind in READ_OPERATIONS)
_RECENCY_OPERATIONS = _LIST_OPERATION_NAMES | {OperationKind.GET.value}


@dataclass
class RecencyWindow:
    """Date filters derived from recency/since/until."""
    filters: List[FilterTriplet] = field(default_factory=list)
    is_active: bool = False
    note: Optional[str] = None


def normalise_operation(operation: str) -> str:
    """Map a case-insensitive operation name to its canonical form ('getmany' -> 'getMany')."""
    key = (operation or "").strip().lower()
    return _CANONICAL_OPERATIONS.get(key, key)


def get_effective_limit(limit: Any, default: Optional[int] = None) -> int:
    """
    Truncate and clamp a requested limit to [1, MAX_QUERY_LIMIT].

    Missing or non-numeric values give the default (config.DEFAULT_QUERY_LIMIT).
    """
    fallback = default if default is not None else config.DEFAULT_QUERY_LIMIT
    if isinstance(limit, bool) or limit is None:
        return fallback
    try:
        value = float(limit)
    except (TypeError, ValueError, OverflowError):
        return fallback
    if math.isnan(value) or math.isinf(value):
        return fallback
    return min(max(int(value), 1), config.MAX_QUERY_LIMIT)


def parse_fields_param(fields: Any) -> List[str]:
    """Split a comma-separated 'fields' value into column names."""
    if not fields or not isinstance(fields, str):
        return []
    return [part.strip() for part in fields.split(",") if part.strip()]


def _field_lookup(fields: List[FieldDescriptor]) -> Dict[str, FieldDescriptor]:
    return {f.id.lower(): f for f in fields}


def _typed_scalar(value: Any, field_type: str) -> Any:
    if not isinstance(value, str):
        return value
    if field_type == "number":
        try:
            number = float(value)
        except ValueError:
            return value
        if not math.isfinite(number):
            return value
        return int(number) if number.is_integer() else number
    if field_type == "boolean":
        if value.lower() == "true":
            return True
        if value.lower() == "false":
            return False
    return value


def coerce_filter_value(value: Any, field_type: Optional[str]) -> Any:
    """Coerce a filter value to the field's declared type; arrays collapse to their first element."""
    normalised_type = (field_type or "").lower()
    if isinstance(value, (list, tuple)):
        return _typed_scalar(value[0], normalised_type) if value else ""
    return _typed_scalar(value, normalised_type)


def _has_filter_value(value: Any) -> bool:
    return value is not None and value != ""


def build_filter_from_params(params: Dict[str, Any], read_fields: List[FieldDescriptor]) -> List[FilterTriplet]:
    """
    Build at most two filter triplets from the flat filter_* parameters.

    Field names are canonicalised case-insensitively against the read fields;
    user-defined fields are flagged with udf=True.

    Raises:
        ValueError: If a filter operator is not supported
    """
    lookup = _field_lookup(read_fields)
    filters: List[FilterTriplet] = []
    for suffix in ("", "_2"):
        field_name = params.get(f"filter_field{suffix}")
        value = params.get(f"filter_value{suffix}")
        if not field_name or not isinstance(field_name, str) or not _has_filter_value(value):
            continue
        descriptor = lookup.get(field_name.lower())
        filters.append(FilterTriplet(
            field=descriptor.id if descriptor else field_name,
            op=map_filter_op(params.get(f"filter_op{suffix}")),
            value=coerce_filter_value(value, descriptor.type if descriptor else None),
            udf=bool(descriptor and descriptor.is_user_defined),
        ))
    return filters[:MAX_FILTERS]


def build_field_values(params: Dict[str, Any], write_fields: List[FieldDescriptor]) -> Dict[str, Any]:
    """Entity field values from the flat bag: control keys dropped, names canonicalised."""
    lookup = _field_lookup(write_fields)
    values: Dict[str, Any] = {}
    for key, value in params.items():
        if not isinstance(key, str) or key in CONTROL_PARAMETERS or value is None or value == "":
            continue
        descriptor = lookup.get(key.lower())
        name = descriptor.id if descriptor else key
        if name not in CONTROL_PARAMETERS:
            values[name] = value
    return values


def resolve_recency_field(read_fields: List[FieldDescriptor]) -> Optional[str]:
    """Pick the date field recency filters apply to, or None when the resource has none."""
    lookup = _field_lookup(read_fields)
    for candidate in RECENCY_FIELD_PRIORITY:
        descriptor = lookup.get(candidate.lower())
        if descriptor and not descriptor.is_user_defined:
            return descriptor.id
    for descriptor in read_fields:
        if not descriptor.is_user_defined and "date" in descriptor.type.lower():
            return descriptor.id
    return None


def _format_utc(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def to_utc_iso(value: str, parameter_name: str) -> str:
    """
    Parse an ISO-8601 value and render it as UTC with second precision.

    Naive values are taken as UTC.

    Raises:
        ValueError: If the value is not ISO-8601
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(
            f"Invalid {parameter_name} value '{value}'. Use ISO-8601 UTC format, for example 2026-01-01T00:00:00Z."
        )
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return _format_utc(parsed)


def recency_window(recency: str) -> timedelta:
    """
    Resolve a recency preset or custom last_Nd value.

    Raises:
        ValueError: If the value is not a preset and not last_Nd with 1 <= N <= 365
    """
    if recency in RECENCY_WINDOWS:
        return RECENCY_WINDOWS[recency]
    match = _CUSTOM_RECENCY.match(recency)
    if match and 1 <= int(match.group(1)) <= MAX_CUSTOM_RECENCY_DAYS:
        return timedelta(days=int(match.group(1)))
    raise ValueError(
        f"Unsupported recency value '{recency}'. Use one of: {', '.join(RECENCY_WINDOWS)}, "
        f"or last_Nd with N from 1 to {MAX_CUSTOM_RECENCY_DAYS}."
    )


def _text_param(params: Dict[str, Any], name: str) -> str:
    value = params.get(name)
    return value.strip() if isinstance(value, str) else ""


def build_recency_filters(
    params: Dict[str, Any],
    read_fields: List[FieldDescriptor],
    now: Optional[datetime] = None,
) -> RecencyWindow:
    """
    Translate recency/since/until into gte/lte filters on the resource's date field.

    since takes precedence over recency. until alone, or until before since,
    is rejected.

    Args:
        params: Flat parameter bag
        read_fields: Read-mode fields of the resource
        now: Reference time for presets (defaults to the current UTC time)

    Returns:
        RecencyWindow; inactive with a note when the resource has no date field

    Raises:
        ValueError: On an unsupported recency value or malformed/inconsistent since/until
    """
    recency = _text_param(params, "recency")
    since = _text_param(params, "since")
    until = _text_param(params, "until")
    if not (recency or since or until):
        return RecencyWindow()

    date_field = resolve_recency_field(read_fields)
    if date_field is None:
        return RecencyWindow(note=NO_DATE_FIELD_NOTE)

    if since:
        start = to_utc_iso(since, "since")
    elif recency:
        reference = now or datetime.now(timezone.utc)
        start = _format_utc(reference - recency_window(recency))
    else:
        raise ValueError("The 'until' parameter requires either 'since' or 'recency'.")

    filters = [FilterTriplet(field=date_field, op="gte", value=start)]
    if until:
        end = to_utc_iso(until, "until")
        # Both values share one fixed-width UTC format, so string order is time order
        if end < start:
            raise ValueError(f"'until' ({end}) must be greater than or equal to 'since' ({start}).")
        filters.append(FilterTriplet(field=date_field, op="lte", value=end))
    return RecencyWindow(filters=filters, is_active=True)


def _entity_id_string(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _reject(error: StructuredError) -> str:
    logger.warning(f"Rejected {error.operation} before execution: {error.kind.value} - {error.message}")
    return error.to_json()


def _check_request(
    resource: str,
    operation: str,
    entity_id: str,
    ticket_number: str,
    filters: List[FilterTriplet],
    field_values: Dict[str, Any],
    selected_columns: List[str],
    read_fields: List[FieldDescriptor],
    write_fields: List[FieldDescriptor],
    namespace: str,
) -> Optional[StructuredError]:
    """Run every applicable pre-flight check; return the first failure."""
    error = validate_entity_id(entity_id, resource, operation, namespace=namespace)
    if error:
        return error

    if operation == OperationKind.SLA_HEALTH_CHECK.value:
        return validate_ticket_identifier(entity_id, ticket_number, resource, operation, namespace=namespace)

    if operation in _READ_OPERATION_NAMES:
        if sum(1 for f in filters if f.udf) > 1:
            return format_filter_constraint_error(
                resource,
                operation,
                f"Only one UDF filter is supported per query for {resource}.{operation}.",
                "Retry with a single UDF filter, or call "
                f"{build_tool_name(namespace, resource, 'describeFields')} to use standard fields where possible.",
            )
        return validate_read_fields(selected_columns, read_fields, resource, operation, namespace=namespace)

    if operation in (OperationKind.CREATE.value, OperationKind.UPDATE.value):
        return (
            validate_write_fields(field_values, write_fields, resource, operation, namespace=namespace)
            or validate_picklist_values(field_values, write_fields, resource, operation, namespace=namespace)
        )
    return None


async def execute_agent_tool(
    context: HostContext,
    executor: OperationExecutor,
    resource: str,
    operation: str,
    params: Optional[Dict[str, Any]] = None,
    read_fields: Optional[List[FieldDescriptor]] = None,
    write_fields: Optional[List[FieldDescriptor]] = None,
    namespace: Optional[str] = None,
) -> str:
    """
    Execute one agent tool call and return its JSON payload.

    Partitions the flat parameter bag, validates it, then runs the executor
    exactly once with context.get_parameter answering from the partitioned
    values. Validation and executor failures are returned as structured
    error payloads; nothing is raised to the agent. Every call is counted in
    tool_calls_total with status success, rejected or error.

    Args:
        context: Host context shared with the executor
        executor: Generic operation executor
        resource: Resource name (e.g. "ticket")
        operation: Operation name, any case
        params: Flat parameter bag supplied by the agent
        read_fields: Read-mode fields of the resource
        write_fields: Write-mode fields of the resource
        namespace: Tool namespace for recovery hints (defaults to config.TOOL_NAMESPACE)

    Returns:
        JSON string (success envelope or structured error)
    """
    namespace = namespace or config.TOOL_NAMESPACE
    normalised = normalise_operation(operation)
    start_time = time.time()
    status, payload = await _run_tool_call(
        context,
        executor,
        resource,
        normalised,
        dict(params or {}),
        read_fields or [],
        write_fields or [],
        namespace,
    )
    record_tool_call(build_tool_name(namespace, resource, normalised), status, time.time() - start_time)
    return payload


async def _run_tool_call(
    context: HostContext,
    executor: OperationExecutor,
    resource: str,
    normalised: str,
    params: Dict[str, Any],
    read_fields: List[FieldDescriptor],
    write_fields: List[FieldDescriptor],
    namespace: str,
) -> Tuple[str, str]:
    """Validate and run one call; returns (metrics status, JSON payload)."""
    try:
        filters = build_filter_from_params(params, read_fields)
    except ValueError as e:
        return STATUS_REJECTED, _reject(format_filter_constraint_error(
            resource,
            normalised,
            str(e),
            f"Retry with one of the supported operators: {', '.join(FILTER_OPERATORS)}.",
        ))

    recency = RecencyWindow()
    if normalised in _RECENCY_OPERATIONS:
        try:
            recency = build_recency_filters(params, read_fields)
        except ValueError as e:
            return STATUS_REJECTED, _reject(
                format_filter_constraint_error(resource, normalised, str(e), RECENCY_NEXT_ACTION)
            )

    entity_id = _entity_id_string(params.get("id"))
    filters = filters + recency.filters
    # Recency-only queries also upgrade a bare get
    effective_operation = (
        OperationKind.GET_MANY.value
        if normalised == OperationKind.GET.value and not entity_id and filters
        else normalised
    )

    if len(filters) > MAX_FILTERS:
        return STATUS_REJECTED, _reject(format_filter_constraint_error(
            resource,
            effective_operation,
            f"At most {MAX_FILTERS} filters are supported per query for {resource}.{effective_operation}; "
            f"{len(filters)} were supplied (recency/since/until add a date filter).",
            "Drop a filter_field/filter_value pair or the recency window, then retry.",
        ))

    field_values = build_field_values(params, write_fields)
    selected_columns = parse_fields_param(params.get("fields"))
    ticket_number = ""
    sla_ticket_fields: List[str] = []
    if effective_operation == OperationKind.SLA_HEALTH_CHECK.value:
        ticket_number = _text_param(params, "ticketNumber")
        sla_ticket_fields = parse_fields_param(params.get("ticketFields"))

    error = _check_request(
        resource,
        effective_operation,
        entity_id,
        ticket_number,
        filters,
        field_values,
        selected_columns,
        read_fields,
        write_fields,
        namespace,
    )
    if error:
        return STATUS_REJECTED, _reject(error)

    if effective_operation == OperationKind.SEARCH_BY_DOMAIN.value:
        effective_limit = get_effective_limit(params.get("limit"), default=SEARCH_BY_DOMAIN_DEFAULT_LIMIT)
    else:
        effective_limit = get_effective_limit(params.get("limit"))
    query_limit = RECENCY_OVER_REQUEST_LIMIT if recency.is_active else effective_limit

    request = ExecutionRequest(
        resource=resource,
        operation=effective_operation,
        filters=filters,
        field_values=field_values,
        entity_id=entity_id or None,
        limit=query_limit,
        selected_columns=selected_columns,
        ticket_number=ticket_number or None,
        sla_ticket_fields=sla_ticket_fields,
    )

    logger.info(f"Executing tool call {resource}.{effective_operation} with {len(filters)} filter(s)")
    start_time = time.time()
    try:
        async with overridden_parameters(context, request, params):
            fetched = await executor.execute(context)
    except Exception as e:
        latency_ms = int((time.time() - start_time) * 1000)
        structured = classify_error(e, resource, effective_operation, namespace=namespace)
        logger.error(
            f"Tool call {resource}.{effective_operation} failed after {latency_ms}ms: "
            f"{structured.kind.value} - {structured.message}"
        )
        return STATUS_ERROR, structured.to_json()

    fetched = list(fetched or [])
    records = fetched
    is_list = effective_operation in _LIST_OPERATION_NAMES
    if recency.is_active and is_list:
        # Ascending-id results: newest first, trimmed to what the agent asked for
        records = list(reversed(fetched))[:effective_limit]

    response = format_tool_response(
        effective_operation,
        records,
        entity_id=entity_id or None,
        recency_note=recency.note,
        recency_window_limited=recency.is_active and is_list and len(fetched) >= RECENCY_OVER_REQUEST_LIMIT,
    )
    latency_ms = int((time.time() - start_time) * 1000)
    logger.info(f"Tool call {resource}.{effective_operation} returned {len(fetched)} record(s) in {latency_ms}ms")
    return STATUS_SUCCESS, json.dumps(response, default=str)
