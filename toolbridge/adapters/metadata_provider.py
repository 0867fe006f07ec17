"""Entity metadata provider interface and a static, in-memory implementation."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Protocol, Union

from toolbridge.models.field import FieldDescriptor, PicklistValue
from toolbridge.services.field_normalizer import normalize_fields, picklist_values_from_raw

logger = logging.getLogger(__name__)

FIELD_MODES = ("read", "write")


class FieldNotFoundError(ValueError):
    """Raised when a resource has no field with the requested id."""


class MetadataProvider(Protocol):
    """Supplies normalized field metadata per (resource, mode)."""

    async def get_fields(self, resource: str, mode: str) -> List[FieldDescriptor]:
        ...

    async def get_picklist_values(self, resource: str, field_id: str) -> List[PicklistValue]:
        """Raises FieldNotFoundError when the resource has no such field."""
        ...


class StaticMetadataProvider:
    """
    Metadata provider backed by raw field records held in memory.

    Expected shape::

        {
            "ticket": {
                "read": {"standard": [...], "udf": [...]},
                "write": {"standard": [...], "udf": [...]}
            }
        }

    Each raw field is a dict with id, type, required, options
    ([{value, label}]), is_reference.
    """

    def __init__(self, raw_metadata: Dict[str, Dict[str, Dict[str, List[Dict[str, Any]]]]]):
        self._raw = raw_metadata

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticMetadataProvider":
        """Load raw metadata from a JSON file."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Metadata file {path} must contain a JSON object keyed by resource")
        logger.info(f"Loaded field metadata for {len(data)} resource(s) from {path}")
        return cls(data)

    def resources(self) -> List[str]:
        return sorted(self._raw)

    def _mode_block(self, resource: str, mode: str) -> Dict[str, List[Dict[str, Any]]]:
        if mode not in FIELD_MODES:
            raise ValueError(f"Invalid field mode '{mode}'. Use 'read' or 'write'.")
        resource_block = self._raw.get(resource)
        if resource_block is None:
            raise ValueError(f"Resource '{resource}' not found in metadata")
        return resource_block.get(mode) or {}

    async def get_fields(self, resource: str, mode: str) -> List[FieldDescriptor]:
        block = self._mode_block(resource, mode)
        return normalize_fields(resource, block.get("standard", []), block.get("udf", []))

    async def get_picklist_values(self, resource: str, field_id: str) -> List[PicklistValue]:
        wanted = field_id.lower()
        for mode in FIELD_MODES:
            block = self._mode_block(resource, mode)
            for raw_field in [*block.get("standard", []), *block.get("udf", [])]:
                raw_id = raw_field.get("id") or raw_field.get("name") or ""
                if raw_id.lower() == wanted:
                    return picklist_values_from_raw(raw_field)
        raise FieldNotFoundError(f"Field '{field_id}' not found in resource '{resource}'")
