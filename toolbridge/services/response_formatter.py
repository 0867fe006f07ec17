"""Response formatter - shapes raw executor records into per-operation envelopes."""

from typing import Any, Dict, List, Optional, Union

from toolbridge.infra.config import config
from toolbridge.models.tool import LIST_OPERATIONS, OperationKind

# Upper bound on records the executor is asked for when a recency window is active
RECENCY_OVER_REQUEST_LIMIT = 500

# Operations answered with the first returned record
SINGLE_RESULT_OPERATIONS = frozenset({
    OperationKind.GET.value,
    OperationKind.WHO_AM_I.value,
    OperationKind.SEARCH_BY_DOMAIN.value,
    OperationKind.SLA_HEALTH_CHECK.value,
    OperationKind.MOVE_TO_COMPANY.value,
    OperationKind.MOVE_CONFIGURATION_ITEM.value,
    OperationKind.TRANSFER_OWNERSHIP.value,
})

RECENCY_WINDOW_LIMITED_NOTE = (
    f"{RECENCY_OVER_REQUEST_LIMIT} records were returned for the current recency window. "
    "Narrow recency, or provide since/until, to ensure the newest records are included."
)


def _extract_item_id(record: Optional[Dict[str, Any]]) -> Optional[Union[int, str]]:
    if not record:
        return None
    candidate = record.get("itemId", record.get("id"))
    if isinstance(candidate, (int, str)) and not isinstance(candidate, bool):
        return candidate
    return None


def _record_id(entity_id: Optional[str]) -> Optional[Union[int, str]]:
    if entity_id and entity_id.isascii() and entity_id.isdigit():
        return int(entity_id)
    return entity_id or None


def format_list_response(
    records: List[Dict[str, Any]],
    recency_note: Optional[str] = None,
    recency_window_limited: bool = False,
    max_records: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Build the list envelope, truncating above the response cap.

    Args:
        records: Raw records (already trimmed to the effective limit)
        recency_note: Note produced while building recency filters
        recency_window_limited: True when the over-request ceiling was hit
        max_records: Truncation cap (defaults to config.MAX_RESPONSE_RECORDS)

    Returns:
        {results, count} plus truncated/totalAvailable and note(s) when relevant
    """
    cap = max_records if max_records is not None else config.MAX_RESPONSE_RECORDS
    total = len(records)
    truncated = total > cap
    results = records[:cap] if truncated else records

    response: Dict[str, Any] = {"results": results, "count": len(results)}
    notes: List[str] = []
    if truncated:
        response["truncated"] = True
        response["totalAvailable"] = total
        notes.append(
            f"Showing first {cap} of {total} records. "
            "Use a narrower filter or lower limit to see specific records."
        )
    if recency_window_limited:
        notes.append(RECENCY_WINDOW_LIMITED_NOTE)
    if recency_note:
        notes.append(recency_note)

    if len(notes) == 1:
        response["note"] = notes[0]
    elif notes:
        response["notes"] = notes
        response["note"] = " ".join(notes)
    return response


def format_tool_response(
    operation: str,
    records: List[Dict[str, Any]],
    entity_id: Optional[str] = None,
    recency_note: Optional[str] = None,
    recency_window_limited: bool = False,
) -> Dict[str, Any]:
    """
    Shape executor output for the calling agent.

    Args:
        operation: Effective operation kind
        records: Raw records returned by the executor
        entity_id: Normalised id of the addressed record (delete echoes it)
        recency_note: Optional recency note for list operations
        recency_window_limited: Whether the recency over-request ceiling was hit

    Returns:
        JSON-serialisable response envelope
    """
    first = records[0] if records else None

    if operation in {kind.value for kind in LIST_OPERATIONS}:
        return format_list_response(records, recency_note, recency_window_limited)

    if operation in SINGLE_RESULT_OPERATIONS:
        return {"result": first}

    if operation == OperationKind.COUNT.value:
        count = first.get("count") if isinstance(first, dict) and "count" in first else len(records)
        return {"count": count}

    if operation in (OperationKind.CREATE.value, OperationKind.UPDATE.value):
        return {
            "success": True,
            "operation": operation,
            "itemId": _extract_item_id(first),
            "result": first,
        }

    if operation == OperationKind.DELETE.value:
        # The API's delete response body is not relied on
        return {
            "success": True,
            "operation": operation,
            "result": {"id": _record_id(entity_id), "deleted": True},
        }

    return {"results": records, "count": len(records)}
