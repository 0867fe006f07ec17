"""Pre-flight validation run before any executor call.

Every check is a pure function returning None when the input is acceptable,
or the StructuredError the agent should receive otherwise.
"""

import re
from typing import Any, Dict, List, Optional

from toolbridge.infra.error_handler import (
    ErrorKind,
    StructuredError,
    format_field_error,
    format_id_error,
    format_picklist_error,
    format_required_fields_error,
    format_ticket_identifier_error,
)
from toolbridge.models.field import FieldDescriptor
from toolbridge.models.tool import OperationKind

VALID_FIELDS_SAMPLE_SIZE = 20

# Operations that never address an existing record by id
NO_ID_OPERATIONS = frozenset({
    OperationKind.GET_MANY.value,
    OperationKind.COUNT.value,
    OperationKind.CREATE.value,
    OperationKind.SEARCH_BY_DOMAIN.value,
    OperationKind.WHO_AM_I.value,
    OperationKind.GET_POSTED.value,
    OperationKind.GET_UNPOSTED.value,
    OperationKind.SLA_HEALTH_CHECK.value,
    OperationKind.MOVE_TO_COMPANY.value,
    OperationKind.MOVE_CONFIGURATION_ITEM.value,
    OperationKind.TRANSFER_OWNERSHIP.value,
})

_DIGITS = re.compile(r"^[0-9]+$")


def _sample_valid_fields(fields: List[FieldDescriptor], limit: int = VALID_FIELDS_SAMPLE_SIZE) -> List[str]:
    return [f.id for f in fields[:limit]]


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _as_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _value_case_insensitive(field_values: Dict[str, Any], field_id: str) -> Any:
    wanted = field_id.lower()
    for key, value in field_values.items():
        if key.lower() == wanted:
            return value
    return None


def validate_read_fields(
    selected_columns: List[str],
    read_fields: List[FieldDescriptor],
    resource: str,
    operation: str,
    namespace: Optional[str] = None,
) -> Optional[StructuredError]:
    """Reject requested columns that are not read fields (case-insensitive)."""
    if not selected_columns or not read_fields:
        return None

    known = {f.id.lower() for f in read_fields}
    invalid = [column for column in selected_columns if column.lower() not in known]
    if not invalid:
        return None
    return format_field_error(
        ErrorKind.INVALID_FIELDS,
        resource,
        operation,
        invalid,
        _sample_valid_fields(read_fields),
        namespace=namespace,
    )


def validate_write_fields(
    field_values: Dict[str, Any],
    write_fields: List[FieldDescriptor],
    resource: str,
    operation: str,
    namespace: Optional[str] = None,
) -> Optional[StructuredError]:
    """
    Check supplied field values against the write field set.

    Unknown fields are reported before missing required fields, so a call
    with both problems yields INVALID_WRITE_FIELDS. Required fields are only
    enforced for create; None and "" count as missing.

    Args:
        field_values: Entity field values from the flat parameter bag
        write_fields: Write-mode fields of the resource
        resource: Resource name
        operation: Effective operation

    Returns:
        StructuredError or None
    """
    if not write_fields:
        return None

    known = {f.id.lower() for f in write_fields}
    invalid = [key for key in field_values if key.lower() not in known]
    if invalid:
        return format_field_error(
            ErrorKind.INVALID_WRITE_FIELDS,
            resource,
            operation,
            invalid,
            _sample_valid_fields(write_fields),
            namespace=namespace,
        )

    if operation == OperationKind.CREATE.value:
        missing = [
            f.id for f in write_fields
            if f.required and _is_empty(_value_case_insensitive(field_values, f.id))
        ]
        if missing:
            return format_required_fields_error(resource, operation, missing, namespace=namespace)

    return None


def validate_entity_id(
    id_value: Any,
    resource: str,
    operation: str,
    namespace: Optional[str] = None,
) -> Optional[StructuredError]:
    """Require a digits-only id for operations that address a single record."""
    if operation in NO_ID_OPERATIONS:
        return None
    if id_value is None or isinstance(id_value, bool):
        return format_id_error(resource, operation, namespace=namespace)

    # JSON numbers may arrive as 1234.0
    id_string = _as_text(id_value).strip()
    if not _DIGITS.match(id_string):
        return format_id_error(resource, operation, namespace=namespace)
    return None


def validate_ticket_identifier(
    id_value: Any,
    ticket_number: Optional[str],
    resource: str,
    operation: str,
    namespace: Optional[str] = None,
) -> Optional[StructuredError]:
    """Require a digits-only id, or a ticketNumber when no id is given."""
    id_string = "" if id_value is None or isinstance(id_value, bool) else _as_text(id_value).strip()
    if id_string:
        if _DIGITS.match(id_string):
            return None
    elif ticket_number:
        return None
    return format_ticket_identifier_error(resource, operation, namespace=namespace)


def validate_picklist_values(
    field_values: Dict[str, Any],
    write_fields: List[FieldDescriptor],
    resource: str,
    operation: str,
    namespace: Optional[str] = None,
) -> Optional[StructuredError]:
    """
    Membership check for picklist fields whose allowed values are inlined.

    Large picklists (no inlined values) are left to the API. Values are
    compared as strings, so 1 and "1" both match an id of 1.
    """
    by_id = {f.id.lower(): f for f in write_fields}
    for key, value in field_values.items():
        field = by_id.get(key.lower())
        if field is None or not field.is_picklist or not field.allowed_values or _is_empty(value):
            continue
        allowed = [v.id for v in field.allowed_values]
        if _as_text(value) not in {_as_text(a) for a in allowed}:
            return format_picklist_error(resource, operation, field.id, value, allowed, namespace=namespace)
    return None
