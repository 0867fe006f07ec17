"""Recovery-oriented error taxonomy and classification for agent tool calls."""

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from toolbridge.infra.config import config
from toolbridge.models.tool import build_tool_name

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Closed set of structured error kinds returned to the calling agent."""
    INVALID_FIELDS = "INVALID_FIELDS"  # Unknown read column requested
    INVALID_WRITE_FIELDS = "INVALID_WRITE_FIELDS"  # Unknown field supplied on create/update
    MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
    MISSING_ENTITY_ID = "MISSING_ENTITY_ID"
    INVALID_FILTER_CONSTRAINT = "INVALID_FILTER_CONSTRAINT"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"  # Table locks, deadlocks
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_PICKLIST_VALUE = "INVALID_PICKLIST_VALUE"
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    API_ERROR = "API_ERROR"  # Anything else


class StructuredError(BaseModel):
    """Failure payload an agent can act on without human help."""
    kind: ErrorKind
    message: str
    operation: str = Field(..., description="'<resource>.<operation>'")
    next_action: str = Field(..., alias="nextAction")
    context: Optional[Dict[str, Any]] = None

    model_config = {"populate_by_name": True}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": True,
            "kind": self.kind.value,
            "message": self.message,
            "operation": self.operation,
            "nextAction": self.next_action,
        }
        if self.context is not None:
            payload["context"] = self.context
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), default=str)


class UpstreamAPIError(Exception):
    """
    Typed failure an executor can raise instead of an opaque message.

    When kind or status_code is set, classification trusts them and skips
    keyword matching.
    """
    def __init__(self, message: str, status_code: Optional[int] = None, kind: Optional[ErrorKind] = None):
        self.message = message
        self.status_code = status_code
        self.kind = kind
        super().__init__(message)


# Checked in order; first match wins.
KEYWORD_RULES = [
    (ErrorKind.CONCURRENCY_CONFLICT, ("lock", "concurrent", "deadlock")),
    (ErrorKind.PERMISSION_DENIED, ("forbidden", "unauthor", "permission", "access denied")),
    (ErrorKind.INVALID_PICKLIST_VALUE, ("picklist", "invalid value")),
    (ErrorKind.MISSING_REQUIRED_FIELDS, ("required", "missing")),
    (ErrorKind.ENTITY_NOT_FOUND, ("not found", "does not exist")),
]

STATUS_CODE_KINDS = {
    401: ErrorKind.PERMISSION_DENIED,
    403: ErrorKind.PERMISSION_DENIED,
    404: ErrorKind.ENTITY_NOT_FOUND,
    409: ErrorKind.CONCURRENCY_CONFLICT,
    423: ErrorKind.CONCURRENCY_CONFLICT,
}


def _operation_label(resource: str, operation: str) -> str:
    return f"{resource}.{operation}"


def _tool(resource: str, operation: str, namespace: Optional[str]) -> str:
    return build_tool_name(namespace or config.TOOL_NAMESPACE, resource, operation)


def next_action_for(kind: ErrorKind, resource: str, namespace: Optional[str] = None) -> str:
    """
    Return the recovery instruction for an error kind.

    Args:
        kind: Classified error kind
        resource: Resource the failing tool operates on
        namespace: Tool namespace (defaults to config.TOOL_NAMESPACE)

    Returns:
        A sentence naming the companion tool or adjustment the agent should try next
    """
    describe = _tool(resource, "describeFields", namespace)
    if kind == ErrorKind.INVALID_FIELDS:
        return f"Call {describe} with mode 'read', then retry with valid field names."
    if kind == ErrorKind.INVALID_WRITE_FIELDS:
        return f"Call {describe} with mode 'write', then retry with valid field names."
    if kind == ErrorKind.MISSING_REQUIRED_FIELDS:
        return f"Call {describe} with mode 'write' to review required fields, then retry with all required fields."
    if kind == ErrorKind.MISSING_ENTITY_ID:
        return (
            "Provide a numeric ID. If unknown, call "
            f"{_tool(resource, 'getMany', namespace)} to locate the correct record first."
        )
    if kind == ErrorKind.INVALID_FILTER_CONSTRAINT:
        return f"Adjust the filter parameters. Call {describe} with mode 'read' to confirm filterable fields."
    if kind == ErrorKind.CONCURRENCY_CONFLICT:
        return "Retry with a short backoff and serialise requests for this resource to reduce table lock contention."
    if kind == ErrorKind.PERMISSION_DENIED:
        return (
            "Verify API user security level and line-of-business permissions. "
            "Data can exist but still be inaccessible."
        )
    if kind == ErrorKind.INVALID_PICKLIST_VALUE:
        return (
            f"Call {_tool(resource, 'listPicklistValues', namespace)} with the relevant fieldId, "
            "then retry with a valid picklist value."
        )
    if kind == ErrorKind.ENTITY_NOT_FOUND:
        return (
            f"Use {_tool(resource, 'getMany', namespace)} with a filter to locate a valid record ID, then retry."
        )
    return f"Verify parameter names and values. If unsure, call {describe} first and retry."


def format_field_error(
    kind: ErrorKind,
    resource: str,
    operation: str,
    invalid_fields: List[str],
    valid_fields_sample: List[str],
    namespace: Optional[str] = None,
) -> StructuredError:
    """Build an INVALID_FIELDS / INVALID_WRITE_FIELDS error."""
    label = _operation_label(resource, operation)
    return StructuredError(
        kind=kind,
        message=f"Invalid field name(s) for {label}: {', '.join(invalid_fields)}",
        operation=label,
        next_action=next_action_for(kind, resource, namespace),
        context={
            "invalidFields": invalid_fields,
            "validFieldsSample": valid_fields_sample,
        },
    )


def format_required_fields_error(
    resource: str,
    operation: str,
    missing_fields: List[str],
    namespace: Optional[str] = None,
) -> StructuredError:
    label = _operation_label(resource, operation)
    return StructuredError(
        kind=ErrorKind.MISSING_REQUIRED_FIELDS,
        message=f"Missing required field(s) for {label}: {', '.join(missing_fields)}",
        operation=label,
        next_action=next_action_for(ErrorKind.MISSING_REQUIRED_FIELDS, resource, namespace),
        context={"missingFields": missing_fields},
    )


def format_id_error(resource: str, operation: str, namespace: Optional[str] = None) -> StructuredError:
    label = _operation_label(resource, operation)
    return StructuredError(
        kind=ErrorKind.MISSING_ENTITY_ID,
        message=f"A numeric entity ID is required for {label}.",
        operation=label,
        next_action=next_action_for(ErrorKind.MISSING_ENTITY_ID, resource, namespace),
    )


def format_ticket_identifier_error(resource: str, operation: str, namespace: Optional[str] = None) -> StructuredError:
    label = _operation_label(resource, operation)
    return StructuredError(
        kind=ErrorKind.MISSING_ENTITY_ID,
        message=f"A numeric ticket id or a ticketNumber is required for {label}.",
        operation=label,
        next_action=(
            "Provide id or ticketNumber (for example T20240615.0674). If neither is known, call "
            f"{_tool(resource, 'getMany', namespace)} to locate the ticket first."
        ),
    )


def format_picklist_field_error(
    resource: str,
    operation: str,
    field_id: Optional[str] = None,
    namespace: Optional[str] = None,
) -> StructuredError:
    """Build the INVALID_FIELDS error for a missing or unknown picklist fieldId."""
    label = _operation_label(resource, operation)
    if field_id:
        message = f"Field '{field_id}' does not exist on {resource}."
        context: Optional[Dict[str, Any]] = {"invalidFields": [field_id]}
    else:
        message = f"A fieldId is required for {label}."
        context = None
    return StructuredError(
        kind=ErrorKind.INVALID_FIELDS,
        message=message,
        operation=label,
        next_action=(
            f"Call {_tool(resource, 'describeFields', namespace)} with mode 'read' to find fields "
            "with isPickList true, then retry with one of their ids."
        ),
        context=context,
    )


def format_filter_constraint_error(
    resource: str,
    operation: str,
    message: str,
    next_action: str,
) -> StructuredError:
    return StructuredError(
        kind=ErrorKind.INVALID_FILTER_CONSTRAINT,
        message=message,
        operation=_operation_label(resource, operation),
        next_action=next_action,
    )


def format_picklist_error(
    resource: str,
    operation: str,
    field_id: str,
    value: Any,
    allowed_ids: List[Any],
    namespace: Optional[str] = None,
) -> StructuredError:
    label = _operation_label(resource, operation)
    return StructuredError(
        kind=ErrorKind.INVALID_PICKLIST_VALUE,
        message=f"Invalid picklist value {value!r} for field '{field_id}' in {label}.",
        operation=label,
        next_action=next_action_for(ErrorKind.INVALID_PICKLIST_VALUE, resource, namespace),
        context={"field": field_id, "allowedValues": allowed_ids},
    )


def classify_message(message: str) -> ErrorKind:
    """Keyword classification over a lower-cased failure message."""
    lowered = (message or "").lower()
    for kind, keywords in KEYWORD_RULES:
        if any(keyword in lowered for keyword in keywords):
            return kind
    return ErrorKind.API_ERROR


def classify_error(
    error: Union[Exception, str],
    resource: str,
    operation: str,
    namespace: Optional[str] = None,
) -> StructuredError:
    """
    Classify a failure into a StructuredError.

    Typed UpstreamAPIError information (explicit kind, then HTTP status code)
    takes precedence; opaque messages fall back to keyword matching.

    Args:
        error: Exception raised by the executor, or a plain message
        resource: Resource of the failing call
        operation: Operation of the failing call
        namespace: Tool namespace used in the nextAction hint

    Returns:
        StructuredError (never raises)
    """
    message = error if isinstance(error, str) else (str(error) or type(error).__name__)

    kind = None
    if isinstance(error, UpstreamAPIError):
        if error.kind is not None:
            try:
                kind = ErrorKind(error.kind)
            except ValueError:
                logger.warning(f"Ignoring unknown error kind {error.kind!r} raised for {resource}.{operation}")
        if kind is None and isinstance(error.status_code, int):
            kind = STATUS_CODE_KINDS.get(error.status_code)
    if kind is None:
        kind = classify_message(message)

    return StructuredError(
        kind=kind,
        message=message,
        operation=_operation_label(resource, operation),
        next_action=next_action_for(kind, resource, namespace),
    )
