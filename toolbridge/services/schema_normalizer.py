"""Schema normalizer - guarantees an object-typed root for every tool input schema."""

import copy
import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

WRAPPED_PROPERTY = "input"


def _empty_object_schema() -> Dict[str, Any]:
    return {"type": "object", "properties": {}, "additionalProperties": False}


def _merge_object_branches(branches: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Collapse anyOf/oneOf object branches into one object schema."""
    properties: Dict[str, Any] = {}
    required_sets = []
    for branch in branches:
        properties.update(branch.get("properties") or {})
        required_sets.append(set(branch.get("required") or []))
    # Only what every branch requires stays required
    required = set.intersection(*required_sets) if required_sets else set()
    schema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = sorted(required)
    return schema


def _is_object_branch(branch: Any) -> bool:
    return isinstance(branch, dict) and (branch.get("type") == "object" or "properties" in branch)


def normalise_tool_input_schema(schema: Any) -> Dict[str, Any]:
    """
    Repair a schema into a well-formed object schema.

    Never raises. Rules:
    - pydantic model classes are converted with model_json_schema()
    - non-dict input becomes an empty object schema
    - a root anyOf/oneOf of object branches is merged into one object
    - a missing root type next to properties becomes "object"
    - any other non-object root is wrapped under a single required property
    - properties is always a dict; required only names existing properties

    Args:
        schema: Candidate schema (dict, pydantic model class, or anything else)

    Returns:
        A new dict; the input is never mutated
    """
    if hasattr(schema, "model_json_schema"):
        schema = schema.model_json_schema()

    if not isinstance(schema, dict) or not schema:
        if schema not in (None, {}):
            logger.warning(f"Replacing non-dict tool schema of type {type(schema).__name__} with an empty object")
        return _empty_object_schema()

    result = copy.deepcopy(schema)

    for combinator in ("anyOf", "oneOf"):
        branches = result.get(combinator)
        if "type" not in result and isinstance(branches, list) and branches:
            if all(_is_object_branch(b) for b in branches):
                merged = _merge_object_branches(branches)
                result.pop(combinator)
                result.update(merged)
            break

    root_type = result.get("type")
    if root_type is None and ("properties" in result or "required" in result):
        result["type"] = "object"
        root_type = "object"
    if isinstance(root_type, list) and "object" in root_type:
        result["type"] = "object"
        root_type = "object"

    if root_type != "object":
        logger.warning(f"Wrapping non-object tool schema (type={root_type!r}) under '{WRAPPED_PROPERTY}'")
        wrapped = _empty_object_schema()
        wrapped["properties"] = {WRAPPED_PROPERTY: result}
        wrapped["required"] = [WRAPPED_PROPERTY]
        return wrapped

    properties = result.get("properties")
    if not isinstance(properties, dict):
        properties = {}
    result["properties"] = properties

    required = result.get("required")
    if required is not None:
        if isinstance(required, list):
            cleaned = [name for name in required if isinstance(name, str) and name in properties]
        else:
            cleaned = []
        if cleaned:
            result["required"] = list(dict.fromkeys(cleaned))
        else:
            result.pop("required")

    return result
