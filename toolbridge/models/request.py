"""Structured request handed to the generic operation executor."""

from pydantic import BaseModel, Field, model_validator
from typing import Any, Dict, List, Optional


# Upstream API compound-query ceiling
MAX_FILTERS = 2

# Keys of the flat parameter bag that steer the call instead of carrying
# entity field values.
CONTROL_PARAMETERS = frozenset({
    "id",
    "resource",
    "operation",
    "filter_field",
    "filter_op",
    "filter_value",
    "filter_field_2",
    "filter_op_2",
    "filter_value_2",
    "limit",
    "fields",
    "recency",
    "since",
    "until",
    "domain",
    "domain_operator",
    "search_contact_emails",
    "ticketNumber",
    "ticketFields",
})


class FilterTriplet(BaseModel):
    """A single (field, op, value) query condition."""
    field: str
    op: str
    value: Any
    udf: bool = Field(default=False, description="True when the field is user-defined")

    def to_api(self) -> Dict[str, Any]:
        data = {"field": self.field, "op": self.op, "value": self.value}
        if self.udf:
            data["udf"] = True
        return data


class ExecutionRequest(BaseModel):
    """Per-call request built by the execution bridge."""
    resource: str
    operation: str
    filters: List[FilterTriplet] = Field(default_factory=list, max_length=MAX_FILTERS)
    field_values: Dict[str, Any] = Field(default_factory=dict)
    entity_id: Optional[str] = None
    limit: Optional[int] = None
    selected_columns: List[str] = Field(default_factory=list)
    ticket_number: Optional[str] = Field(default=None, description="SLA health check by ticket number")
    sla_ticket_fields: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _no_control_parameters(self) -> "ExecutionRequest":
        leaked = sorted(key for key in self.field_values if key in CONTROL_PARAMETERS)
        if leaked:
            raise ValueError(f"fieldValues must not contain control parameters: {leaked}")
        return self
