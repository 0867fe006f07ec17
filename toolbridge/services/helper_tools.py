"""Resource-scoped introspection tools: describeFields and listPicklistValues."""

import json
import logging
from typing import Any, Dict, List, Optional

from toolbridge.adapters.metadata_provider import FieldNotFoundError, MetadataProvider
from toolbridge.infra.error_handler import classify_error, format_picklist_field_error
from toolbridge.models.field import FieldDescriptor

logger = logging.getLogger(__name__)

DESCRIBE_FIELDS = "describeFields"
LIST_PICKLIST_VALUES = "listPicklistValues"
HELPER_OPERATIONS = (DESCRIBE_FIELDS, LIST_PICKLIST_VALUES)

DEFAULT_PICKLIST_PAGE_SIZE = 50


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return number if number >= 1 else default


def build_field_notes(resource: str, mode: str, fields: List[FieldDescriptor]) -> List[str]:
    """Human-readable hints that accompany a describeFields response."""
    notes: List[str] = []

    large_picklists = [f.id for f in fields if f.is_picklist and not f.allowed_values]
    if large_picklists:
        notes.append(f"Fields with large picklists (use listPicklistValues): {', '.join(large_picklists)}")

    required = [f.id for f in fields if f.required]
    if required:
        notes.append(f"Required fields for {mode}: {', '.join(required)}")

    references = [f"{f.id} -> {f.referenced_entity}" for f in fields if f.is_reference and f.referenced_entity]
    if references:
        notes.append(f"Reference fields (must reference existing entities): {', '.join(references)}")

    dependencies = [f"{f.id} requires: {', '.join(f.dependencies)}" for f in fields if f.dependencies]
    if dependencies:
        notes.append(f"Field dependencies: {'; '.join(dependencies)}")

    if mode == "write":
        company_required = any(f.id == "companyID" and f.required for f in fields)
        has_contact = any(f.id == "contactID" for f in fields)
        if company_required and has_contact:
            notes.append(
                f"Workflow tip: Ensure company exists before creating {resource}. "
                "If using contactID, verify contact belongs to the specified company."
            )
        elif company_required:
            notes.append(f"Workflow tip: Ensure referenced company exists before creating {resource}.")
    return notes


def compact_field(field: FieldDescriptor) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": field.id,
        "type": field.type,
        "required": field.required,
        "isPickList": field.is_picklist,
        "isReference": field.is_reference,
    }
    if field.referenced_entity:
        data["referencesEntity"] = field.referenced_entity
    return data


async def describe_fields(
    metadata_provider: MetadataProvider,
    resource: str,
    params: Optional[Dict[str, Any]] = None,
    namespace: Optional[str] = None,
) -> str:
    """
    Describe a resource's fields for one mode.

    Args:
        metadata_provider: Source of field metadata
        resource: Resource name
        params: {"mode": "read" | "write"}; read when omitted
        namespace: Tool namespace for recovery hints

    Returns:
        JSON string {resource, mode, fields, notes} or a structured error
    """
    mode = (params or {}).get("mode") or "read"
    try:
        fields = await metadata_provider.get_fields(resource, mode)
    except Exception as e:
        logger.error(f"describeFields failed for {resource} ({mode}): {e}")
        return classify_error(e, resource, DESCRIBE_FIELDS, namespace=namespace).to_json()

    return json.dumps({
        "resource": resource,
        "mode": mode,
        "fields": [compact_field(f) for f in fields],
        "notes": build_field_notes(resource, mode, fields),
    }, default=str)


async def list_picklist_values(
    metadata_provider: MetadataProvider,
    resource: str,
    params: Optional[Dict[str, Any]] = None,
    namespace: Optional[str] = None,
) -> str:
    """
    Page through a picklist field's values, optionally filtered by a search term.

    The query matches a case-insensitive substring of either the label or the id.
    A missing or unknown fieldId gives an INVALID_FIELDS error pointing at describeFields.
    """
    params = params or {}
    field_id = params.get("fieldId")
    if not isinstance(field_id, str) or not field_id.strip():
        logger.warning(f"listPicklistValues called for {resource} without a fieldId")
        return format_picklist_field_error(resource, LIST_PICKLIST_VALUES, namespace=namespace).to_json()
    field_id = field_id.strip()
    query = str(params.get("query") or "").strip().lower()
    limit = _positive_int(params.get("limit"), DEFAULT_PICKLIST_PAGE_SIZE)
    page = _positive_int(params.get("page"), 1)

    try:
        values = await metadata_provider.get_picklist_values(resource, field_id)
    except FieldNotFoundError as e:
        logger.warning(f"listPicklistValues failed for {resource}.{field_id}: {e}")
        return format_picklist_field_error(resource, LIST_PICKLIST_VALUES, field_id, namespace=namespace).to_json()
    except Exception as e:
        logger.error(f"listPicklistValues failed for {resource}.{field_id}: {e}")
        return classify_error(e, resource, LIST_PICKLIST_VALUES, namespace=namespace).to_json()

    if query:
        values = [v for v in values if query in v.label.lower() or query in str(v.id).lower()]

    start = (page - 1) * limit
    return json.dumps({
        "fieldId": field_id,
        "page": page,
        "limit": limit,
        "total": len(values),
        "values": [v.model_dump() for v in values[start:start + limit]],
    }, default=str)
