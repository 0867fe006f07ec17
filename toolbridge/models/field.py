"""Entity field metadata models."""

from pydantic import BaseModel, Field
from typing import List, Optional, Union


# Declared field types understood by schema synthesis. Anything else is an
# opaque extension type and degrades to a string parameter.
KNOWN_FIELD_TYPES = (
    "string",
    "number",
    "boolean",
    "datetime",
    "array",
    "object",
    "email",
    "url",
    "phone",
)


class PicklistValue(BaseModel):
    """One legal value of a picklist field."""
    id: Union[int, str] = Field(..., description="Value sent to the API")
    label: str = Field(..., description="Human-readable label")


class FieldDescriptor(BaseModel):
    """Uniform description of one entity field for one (resource, mode)."""
    id: str = Field(..., description="Canonical field name, unique within a resource and mode")
    name: str = Field(default="", description="Display name; defaults to the field id")
    type: str = Field(default="string", description="One of KNOWN_FIELD_TYPES or an extension type")
    required: bool = False
    is_user_defined: bool = False
    is_picklist: bool = False
    allowed_values: Optional[List[PicklistValue]] = Field(
        default=None,
        description="Inlined picklist values; omitted for large picklists",
    )
    is_reference: bool = False
    referenced_entity: Optional[str] = None
    dependencies: Optional[List[str]] = None

    def model_post_init(self, __context) -> None:
        if not self.name:
            self.name = self.id
