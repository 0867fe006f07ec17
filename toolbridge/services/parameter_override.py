"""Scoped replacement of a host context's parameter accessor."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional

from toolbridge.models.context import HostContext
from toolbridge.models.request import ExecutionRequest
from toolbridge.models.tool import LIST_OPERATIONS, OperationKind

logger = logging.getLogger(__name__)

ParameterAccessor = Callable[..., Any]

_FILTERED_OPERATIONS = frozenset({kind.value for kind in LIST_OPERATIONS} | {OperationKind.COUNT.value})
_MUTATING_OPERATIONS = frozenset({OperationKind.CREATE.value, OperationKind.UPDATE.value})


class RequestParameterResolver:
    """
    Answers the executor's parameter lookups from one ExecutionRequest.

    Well-known names are derived from the request; any other name is looked up
    in the agent's flat parameter bag, then in the original accessor.
    """

    def __init__(
        self,
        request: ExecutionRequest,
        params: Dict[str, Any],
        original: ParameterAccessor,
    ):
        self.request = request
        self.params = params
        self.original = original
        self._handlers: Dict[str, Callable[[int, Any], Any]] = {
            "resource": lambda index, fallback: request.resource,
            "operation": lambda index, fallback: request.operation,
            "id": lambda index, fallback: request.entity_id or "",
            "entity_id": lambda index, fallback: request.entity_id or "",
            "target_operation": lambda index, fallback: f"{request.resource}.{request.operation}",
            "request_data": lambda index, fallback: self._request_data(),
            "fields_to_map": self._fields_to_map,
            "filters": lambda index, fallback: self._filter_list(),
            "return_all": lambda index, fallback: False,
            "max_records": lambda index, fallback: request.limit,
            "body_json": self._body_json,
            # Label enrichment and UDF flattening are always on for agents
            "output_mode": lambda index, fallback: "ids_and_labels",
            "add_picklist_labels": lambda index, fallback: True,
            "add_reference_labels": lambda index, fallback: True,
            "flatten_udfs": lambda index, fallback: True,
            "select_columns": lambda index, fallback: list(request.selected_columns),
            "select_columns_json": lambda index, fallback: json.dumps(request.selected_columns),
            "allow_write_operations": lambda index, fallback: self.original("allow_write_operations", index, False),
            "dry_run": lambda index, fallback: False,
            "allowed_resources": lambda index, fallback: "[]",
            "allow_dry_run_for_writes": lambda index, fallback: True,
        }
        if request.operation == OperationKind.SLA_HEALTH_CHECK.value:
            self._handlers.update({
                "ticket_identifier_type": lambda index, fallback: "ticketNumber" if request.ticket_number else "id",
                "ticket_number": lambda index, fallback: request.ticket_number or "",
                "sla_ticket_fields": lambda index, fallback: list(request.sla_ticket_fields),
            })

    @property
    def _has_filters(self) -> bool:
        return self.request.operation in _FILTERED_OPERATIONS and bool(self.request.filters)

    @property
    def _has_field_values(self) -> bool:
        return self.request.operation in _MUTATING_OPERATIONS and bool(self.request.field_values)

    def _filter_list(self) -> Optional[list]:
        if not self._has_filters:
            return None
        return [f.to_api() for f in self.request.filters]

    def _request_data(self) -> str:
        if self._has_filters:
            data: Dict[str, Any] = {"filter": self._filter_list()}
        elif self.request.field_values:
            data = dict(self.request.field_values)
        else:
            data = {}
        if self.request.operation in _FILTERED_OPERATIONS or self.request.operation == OperationKind.SEARCH_BY_DOMAIN.value:
            data["limit"] = self.request.limit
        if self.request.operation == OperationKind.SLA_HEALTH_CHECK.value:
            if self.request.entity_id:
                data["id"] = int(self.request.entity_id)
            if self.request.ticket_number:
                data["ticketNumber"] = self.request.ticket_number
            data["slaTicketFields"] = list(self.request.sla_ticket_fields)
        return json.dumps(data, default=str)

    def _fields_to_map(self, index: int, fallback: Any) -> Any:
        if self._has_field_values:
            return {"mapping_mode": "define_below", "value": dict(self.request.field_values)}
        if self._has_filters:
            return {"value": {f.field: f.value for f in self.request.filters}}
        return fallback if fallback is not None else {"value": {}}

    def _body_json(self, index: int, fallback: Any) -> Any:
        if self._has_field_values:
            return json.dumps(self.request.field_values, default=str)
        return fallback if fallback is not None else "{}"

    def __call__(self, name: str, index: int = 0, fallback: Any = None) -> Any:
        handler = self._handlers.get(name)
        if handler is not None:
            return handler(index, fallback)
        if name in self.params:
            return self.params[name]
        return self.original(name, index, fallback)


@asynccontextmanager
async def overridden_parameters(
    context: HostContext,
    request: ExecutionRequest,
    params: Dict[str, Any],
) -> AsyncIterator[RequestParameterResolver]:
    """
    Install a RequestParameterResolver as context.get_parameter for one call.

    Holds the context's override lock for the whole block, so concurrent calls
    on the same context run their override/restore sequences one at a time.
    The original accessor is restored on every exit path, including
    exceptions and cancellation.

    Args:
        context: Host context whose accessor is replaced
        request: Request the resolver answers from
        params: Agent's flat parameter bag

    Yields:
        The installed resolver
    """
    async with context.override_lock:
        # A class-level method is restored by removing the instance attribute,
        # so the accessor compares equal to the one seen before the call.
        shadowed = "get_parameter" in vars(context)
        original = context.get_parameter
        resolver = RequestParameterResolver(request, params, original)
        context.get_parameter = resolver
        logger.debug(f"Parameter override installed for {request.resource}.{request.operation}")
        try:
            yield resolver
        finally:
            if shadowed:
                context.get_parameter = original
            else:
                del context.get_parameter
            logger.debug(f"Parameter override released for {request.resource}.{request.operation}")
