"""Tests for the execution bridge."""

import asyncio
import json
from datetime import datetime, timezone

import pytest
from prometheus_client import REGISTRY

from toolbridge.infra.error_handler import UpstreamAPIError
from toolbridge.models.field import FieldDescriptor
from toolbridge.models.request import MAX_FILTERS
from toolbridge.services.tool_executor import (
    NO_DATE_FIELD_NOTE,
    build_field_values,
    build_filter_from_params,
    build_recency_filters,
    coerce_filter_value,
    execute_agent_tool,
    get_effective_limit,
    normalise_operation,
    parse_fields_param,
    resolve_recency_field,
)


def _tickets(n):
    return [{"id": i, "title": f"Ticket {i}"} for i in range(1, n + 1)]


class TestParameterPartitioning:
    """Pure helpers that split the flat parameter bag."""

    def test_normalise_operation(self):
        assert normalise_operation("getmany") == "getMany"
        assert normalise_operation(" WHOAMI ") == "whoAmI"
        assert normalise_operation("searchbydomain") == "searchByDomain"
        assert normalise_operation("Create") == "create"
        assert normalise_operation("slahealthcheck") == "slaHealthCheck"
        assert normalise_operation("MOVETOCOMPANY") == "moveToCompany"
        assert normalise_operation("archive") == "archive"

    @pytest.mark.parametrize("limit,expected", [
        (None, 10), (5, 5), (0, 1), (-3, 1), (250, 100), (7.9, 7), ("12", 12), ("abc", 10), (True, 10),
        (float("nan"), 10), (10 ** 400, 10),
    ])
    def test_effective_limit(self, limit, expected):
        assert get_effective_limit(limit) == expected

    def test_parse_fields_param(self):
        assert parse_fields_param(" id, title ,,status ") == ["id", "title", "status"]
        assert parse_fields_param(None) == []
        assert parse_fields_param(["id"]) == []

    def test_filter_ceiling(self, ticket_read_fields):
        params = {
            "filter_field": "status", "filter_value": 1,
            "filter_field_2": "priority", "filter_value_2": 2,
            "filter_field_3": "title", "filter_value_3": "x",
            "filter_field_4": "companyID", "filter_value_4": 4,
        }
        filters = build_filter_from_params(params, ticket_read_fields)
        assert len(filters) <= MAX_FILTERS
        assert [f.field for f in filters] == ["status", "priority"]

    def test_filter_canonicalisation_and_coercion(self, ticket_read_fields):
        params = {
            "filter_field": "STATUS", "filter_op": "NotEq", "filter_value": "5",
            "filter_field_2": "isbillable", "filter_value_2": "true",
        }
        first, second = build_filter_from_params(params, ticket_read_fields)
        assert (first.field, first.op, first.value) == ("status", "noteq", 5)
        assert (second.field, second.op, second.value) == ("isBillable", "eq", True)

    def test_empty_filter_values_are_skipped(self, ticket_read_fields):
        assert build_filter_from_params({"filter_field": "title", "filter_value": ""}, ticket_read_fields) == []
        assert build_filter_from_params({"filter_value": 3}, ticket_read_fields) == []

    def test_udf_filters_are_flagged(self, ticket_read_fields):
        [udf] = build_filter_from_params({"filter_field": "region", "filter_value": "EMEA"}, ticket_read_fields)
        assert udf.field == "Region"
        assert udf.udf is True
        assert udf.to_api() == {"field": "Region", "op": "eq", "value": "EMEA", "udf": True}

    def test_array_values_collapse(self):
        assert coerce_filter_value(["7", "8"], "number") == 7
        assert coerce_filter_value([], "string") == ""
        assert coerce_filter_value("1.5", "number") == 1.5
        assert coerce_filter_value("n/a", "number") == "n/a"

    def test_field_values_exclude_control_keys(self, ticket_write_fields):
        params = {
            "id": 5, "fields": "title", "limit": 3, "filter_field": "status", "recency": "last_7d",
            "TITLE": "Printer down", "description": "", "priority": None, "custom": 1,
        }
        assert build_field_values(params, ticket_write_fields) == {"title": "Printer down", "custom": 1}

    @pytest.mark.parametrize("op", [5, 0, True, False, ["eq"], {"op": "eq"}])
    def test_non_string_operator_is_rejected(self, op, ticket_read_fields):
        params = {"filter_field": "status", "filter_op": op, "filter_value": 1}
        with pytest.raises(ValueError, match="must be a string"):
            build_filter_from_params(params, ticket_read_fields)

    def test_missing_operator_defaults_to_eq(self, ticket_read_fields):
        for op in (None, ""):
            [triplet] = build_filter_from_params(
                {"filter_field": "status", "filter_op": op, "filter_value": 1}, ticket_read_fields,
            )
            assert triplet.op == "eq"

    def test_non_string_keys_are_ignored(self, ticket_write_fields):
        assert build_field_values({1: "x", "title": "Printer down"}, ticket_write_fields) == {"title": "Printer down"}


class TestRecencyFilters:

    NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)

    def test_date_field_priority(self, ticket_read_fields, contact_read_fields):
        assert resolve_recency_field(ticket_read_fields) == "createDate"
        assert resolve_recency_field(contact_read_fields) is None

    def test_date_type_fallback(self):
        fields = [FieldDescriptor(id="title"), FieldDescriptor(id="closedOn", type="datetime")]
        assert resolve_recency_field(fields) == "closedOn"

    def test_preset_window(self, ticket_read_fields):
        window = build_recency_filters({"recency": "last_7d"}, ticket_read_fields, now=self.NOW)
        assert window.is_active
        assert [f.to_api() for f in window.filters] == [
            {"field": "createDate", "op": "gte", "value": "2026-03-03T12:00:00Z"},
        ]

    def test_custom_days(self, ticket_read_fields):
        window = build_recency_filters({"recency": "last_2d"}, ticket_read_fields, now=self.NOW)
        assert window.filters[0].value == "2026-03-08T12:00:00Z"

    @pytest.mark.parametrize("value", ["last_0d", "last_400d", "yesterday"])
    def test_unsupported_recency(self, value, ticket_read_fields):
        with pytest.raises(ValueError, match="Unsupported recency value"):
            build_recency_filters({"recency": value}, ticket_read_fields, now=self.NOW)

    def test_since_wins_over_recency_and_until_adds_lte(self, ticket_read_fields):
        window = build_recency_filters(
            {"recency": "last_1h", "since": "2026-01-01T00:00:00Z", "until": "2026-01-31T23:59:59+00:00"},
            ticket_read_fields,
            now=self.NOW,
        )
        assert [(f.op, f.value) for f in window.filters] == [
            ("gte", "2026-01-01T00:00:00Z"),
            ("lte", "2026-01-31T23:59:59Z"),
        ]

    def test_until_alone_is_rejected(self, ticket_read_fields):
        with pytest.raises(ValueError, match="requires either 'since' or 'recency'"):
            build_recency_filters({"until": "2026-01-31T00:00:00Z"}, ticket_read_fields)

    def test_until_before_since_is_rejected(self, ticket_read_fields):
        with pytest.raises(ValueError, match="must be greater than or equal"):
            build_recency_filters({"since": "2026-02-01", "until": "2026-01-01"}, ticket_read_fields)

    def test_malformed_since(self, ticket_read_fields):
        with pytest.raises(ValueError, match="Invalid since value"):
            build_recency_filters({"since": "last tuesday"}, ticket_read_fields)

    def test_no_date_field_gives_note(self, contact_read_fields):
        window = build_recency_filters({"recency": "last_7d"}, contact_read_fields)
        assert not window.is_active
        assert window.note == NO_DATE_FIELD_NOTE


class TestExecuteAgentTool:
    """End-to-end behaviour of one bridged call."""

    @pytest.mark.asyncio
    async def test_get_scenario(self, host_context, make_executor, ticket_read_fields):
        executor = make_executor(records=[{"id": 1234, "title": "Printer down"}])

        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "get", {"id": 1234}, read_fields=ticket_read_fields,
        ))

        assert payload == {"result": {"id": 1234, "title": "Printer down"}}
        [call] = executor.calls
        assert call["resource"] == "ticket"
        assert call["operation"] == "get"
        assert call["id"] == "1234"
        assert call["entity_id"] == "1234"
        assert call["target_operation"] == "ticket.get"

    @pytest.mark.asyncio
    async def test_agent_path_enables_label_enrichment(self, host_context, make_executor):
        executor = make_executor(records=[{"id": 1}])
        await execute_agent_tool(host_context, executor, "ticket", "get", {"id": 1})

        [call] = executor.calls
        assert call["output_mode"] == "ids_and_labels"
        assert call["add_picklist_labels"] is True
        assert call["add_reference_labels"] is True
        assert call["flatten_udfs"] is True
        assert call["return_all"] is False
        assert call["dry_run"] is False
        assert call["allowed_resources"] == "[]"
        assert call["allow_dry_run_for_writes"] is True
        # Read through to the human configuration
        assert call["allow_write_operations"] is True

    @pytest.mark.asyncio
    async def test_get_many_truncation_scenario(self, host_context, make_executor, ticket_read_fields):
        executor = make_executor(records=_tickets(30))

        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "getMany",
            {"filter_field": "status", "filter_value": 1}, read_fields=ticket_read_fields,
        ))

        assert len(payload["results"]) == 25
        assert payload["count"] == 25
        assert payload["truncated"] is True
        assert payload["totalAvailable"] == 30
        assert payload["note"]

    @pytest.mark.asyncio
    async def test_get_many_request_shape(self, host_context, make_executor, ticket_read_fields):
        executor = make_executor(records=[])

        await execute_agent_tool(
            host_context, executor, "ticket", "getmany",
            {"filter_field": "status", "filter_value": "1", "filter_field_2": "title",
             "filter_op_2": "contains", "filter_value_2": "printer", "limit": 5, "fields": "id,title"},
            read_fields=ticket_read_fields,
        )

        [call] = executor.calls
        assert call["operation"] == "getMany"
        assert call["max_records"] == 5
        assert call["filters"] == [
            {"field": "status", "op": "eq", "value": 1},
            {"field": "title", "op": "contains", "value": "printer"},
        ]
        assert json.loads(call["request_data"]) == {"filter": call["filters"], "limit": 5}
        assert call["fields_to_map"] == {"value": {"status": 1, "title": "printer"}}
        assert call["select_columns"] == ["id", "title"]
        assert call["select_columns_json"] == '["id", "title"]'

    @pytest.mark.asyncio
    async def test_create_missing_required_scenario(self, host_context, make_executor):
        executor = make_executor(records=[{"itemId": 1}])
        write_fields = [FieldDescriptor(id="companyID", required=True), FieldDescriptor(id="title")]

        payload = json.loads(await execute_agent_tool(
            host_context, executor, "company", "create", {}, write_fields=write_fields,
        ))

        assert payload["error"] is True
        assert payload["kind"] == "MISSING_REQUIRED_FIELDS"
        assert payload["context"]["missingFields"] == ["companyID"]
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_create_request_shape(self, host_context, make_executor, ticket_write_fields):
        executor = make_executor(records=[{"itemId": 9001, "title": "Printer down"}])
        params = {"title": "Printer down", "companyid": 42, "status": 1}

        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "create", params, write_fields=ticket_write_fields,
        ))

        assert payload["success"] is True
        assert payload["itemId"] == 9001
        [call] = executor.calls
        expected_values = {"title": "Printer down", "companyID": 42, "status": 1}
        assert call["fields_to_map"] == {"mapping_mode": "define_below", "value": expected_values}
        assert json.loads(call["body_json"]) == expected_values
        assert json.loads(call["request_data"]) == expected_values
        assert call["filters"] is None

    @pytest.mark.asyncio
    async def test_invalid_picklist_value_blocks_call(self, host_context, make_executor, ticket_write_fields):
        executor = make_executor()
        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "update", {"id": 3, "status": 42}, write_fields=ticket_write_fields,
        ))
        assert payload["kind"] == "INVALID_PICKLIST_VALUE"
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_delete_requires_digit_id(self, host_context, make_executor):
        executor = make_executor()
        payload = json.loads(await execute_agent_tool(host_context, executor, "ticket", "delete", {"id": "abc"}))
        assert payload["kind"] == "MISSING_ENTITY_ID"
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_delete_envelope(self, host_context, make_executor):
        executor = make_executor(records=[])
        payload = json.loads(await execute_agent_tool(host_context, executor, "ticket", "delete", {"id": 77}))
        assert payload == {"success": True, "operation": "delete", "result": {"id": 77, "deleted": True}}

    @pytest.mark.asyncio
    async def test_unknown_select_column(self, host_context, make_executor, ticket_read_fields):
        executor = make_executor()
        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "get", {"id": 1, "fields": "title,colour"},
            read_fields=ticket_read_fields,
        ))
        assert payload["kind"] == "INVALID_FIELDS"
        assert payload["context"]["invalidFields"] == ["colour"]
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_unknown_operator(self, host_context, make_executor, ticket_read_fields):
        executor = make_executor()
        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "getMany",
            {"filter_field": "title", "filter_op": "between", "filter_value": "a"},
            read_fields=ticket_read_fields,
        ))
        assert payload["kind"] == "INVALID_FILTER_CONSTRAINT"
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_two_udf_filters_rejected(self, host_context, make_executor, ticket_read_fields):
        executor = make_executor()
        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "getMany",
            {"filter_field": "Region", "filter_value": "EMEA", "filter_field_2": "Tier", "filter_value_2": "Gold"},
            read_fields=ticket_read_fields,
        ))
        assert payload["kind"] == "INVALID_FILTER_CONSTRAINT"
        assert "Only one UDF filter" in payload["message"]

    @pytest.mark.asyncio
    async def test_recency_counts_towards_filter_ceiling(self, host_context, make_executor, ticket_read_fields):
        executor = make_executor()
        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "getMany",
            {"filter_field": "status", "filter_value": 1, "filter_field_2": "priority", "filter_value_2": 2,
             "recency": "last_7d"},
            read_fields=ticket_read_fields,
        ))
        assert payload["kind"] == "INVALID_FILTER_CONSTRAINT"
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_recency_over_requests_and_returns_newest_first(
        self, host_context, make_executor, ticket_read_fields,
    ):
        executor = make_executor(records=_tickets(12))

        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "getMany", {"recency": "last_7d", "limit": 3},
            read_fields=ticket_read_fields,
        ))

        assert [r["id"] for r in payload["results"]] == [12, 11, 10]
        [call] = executor.calls
        assert call["max_records"] == 500
        assert call["filters"][0]["field"] == "createDate"
        assert call["filters"][0]["op"] == "gte"

    @pytest.mark.asyncio
    async def test_recency_window_limited_note(self, host_context, make_executor, ticket_read_fields):
        executor = make_executor(records=_tickets(500))
        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "getMany", {"recency": "last_90d"}, read_fields=ticket_read_fields,
        ))
        assert payload["count"] == 10
        assert "500 records were returned" in payload["note"]

    @pytest.mark.asyncio
    async def test_invalid_recency_input(self, host_context, make_executor, ticket_read_fields):
        executor = make_executor()
        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "getMany", {"until": "2026-01-01T00:00:00Z"},
            read_fields=ticket_read_fields,
        ))
        assert payload["kind"] == "INVALID_FILTER_CONSTRAINT"
        assert "since/until" in payload["nextAction"]

    @pytest.mark.asyncio
    async def test_recency_ignored_without_date_field(self, host_context, make_executor, contact_read_fields):
        executor = make_executor(records=[{"id": 1}])
        payload = json.loads(await execute_agent_tool(
            host_context, executor, "contact", "getMany", {"recency": "last_7d"}, read_fields=contact_read_fields,
        ))
        assert payload["note"] == NO_DATE_FIELD_NOTE
        assert executor.calls[0]["max_records"] == 10

    @pytest.mark.asyncio
    async def test_get_without_id_upgrades_to_get_many(self, host_context, make_executor, ticket_read_fields):
        executor = make_executor(records=_tickets(2))
        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "get", {"filter_field": "title", "filter_value": "Ticket 1"},
            read_fields=ticket_read_fields,
        ))
        assert executor.calls[0]["operation"] == "getMany"
        assert payload["count"] == 2

    @pytest.mark.asyncio
    async def test_search_by_domain_reads_bag_parameters(self, host_context, make_executor):
        executor = make_executor(records=[{"id": 3, "companyName": "Autotask"}])

        class DomainExecutor:
            async def execute(self, context):
                executor.calls.append({
                    "domain": context.get_parameter("domain", 0),
                    "request_data": context.get_parameter("request_data", 0),
                    "timezone": context.get_parameter("timezone", 0),
                    "unset": context.get_parameter("unset", 0, "fallback"),
                })
                return executor.records

        payload = json.loads(await execute_agent_tool(
            host_context, DomainExecutor(), "company", "searchByDomain", {"domain": "autotask.net"},
        ))

        assert payload == {"result": {"id": 3, "companyName": "Autotask"}}
        [call] = executor.calls
        assert call["domain"] == "autotask.net"
        assert json.loads(call["request_data"]) == {"limit": 25}
        assert call["timezone"] == "UTC"
        assert call["unset"] == "fallback"

    @pytest.mark.asyncio
    async def test_error_classification_scenario(self, host_context, make_executor):
        executor = make_executor(error=RuntimeError("403 Forbidden: access denied"))
        payload = json.loads(await execute_agent_tool(host_context, executor, "ticket", "get", {"id": 5}))
        assert payload["error"] is True
        assert payload["kind"] == "PERMISSION_DENIED"
        assert payload["operation"] == "ticket.get"
        assert payload["nextAction"]

    @pytest.mark.asyncio
    async def test_typed_upstream_error(self, host_context, make_executor):
        executor = make_executor(error=UpstreamAPIError("Request failed", status_code=409))
        payload = json.loads(await execute_agent_tool(host_context, executor, "ticket", "update", {"id": 5}))
        assert payload["kind"] == "CONCURRENCY_CONFLICT"

    @pytest.mark.asyncio
    async def test_unknown_upstream_error_kind(self, host_context, make_executor):
        executor = make_executor(error=UpstreamAPIError("locked", kind="permission_denied"))
        payload = json.loads(await execute_agent_tool(host_context, executor, "ticket", "update", {"id": 5}))
        assert payload["error"] is True
        assert payload["kind"] == "CONCURRENCY_CONFLICT"
        assert len(executor.calls) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [
        {"filter_field": "status", "filter_op": 5, "filter_value": 1},
        {"filter_field": "status", "filter_op": True, "filter_value": 1},
        {"filter_field": "status", "filter_value": 1,
         "filter_field_2": "title", "filter_op_2": ["contains"], "filter_value_2": "printer"},
    ])
    async def test_non_string_operator_is_structured_error(self, host_context, make_executor, params):
        executor = make_executor()
        payload = json.loads(await execute_agent_tool(host_context, executor, "ticket", "getMany", params))
        assert payload["kind"] == "INVALID_FILTER_CONSTRAINT"
        assert "must be a string" in payload["message"]
        assert executor.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("entity_id", ["\u0661\u0662\u0663", "\uff11\uff12\uff13"])
    async def test_non_ascii_digit_ids_are_rejected(self, host_context, make_executor, entity_id):
        executor = make_executor()
        payload = json.loads(await execute_agent_tool(host_context, executor, "ticket", "delete", {"id": entity_id}))
        assert payload["kind"] == "MISSING_ENTITY_ID"
        assert executor.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("entity_id", [" 77", "77 ", 77.0])
    async def test_delete_envelope_echoes_normalised_id(self, host_context, make_executor, entity_id):
        executor = make_executor(records=[])
        payload = json.loads(await execute_agent_tool(host_context, executor, "ticket", "delete", {"id": entity_id}))
        assert payload == {"success": True, "operation": "delete", "result": {"id": 77, "deleted": True}}
        assert executor.calls[0]["entity_id"] == "77"


class TestOverrideSafety:
    """The host accessor is restored on every exit path."""

    @pytest.mark.asyncio
    async def test_restored_after_success(self, host_context, make_executor):
        before = host_context.get_parameter
        await execute_agent_tool(host_context, make_executor(records=[{"id": 1}]), "ticket", "get", {"id": 1})
        assert host_context.get_parameter == before
        assert "get_parameter" not in vars(host_context)

    @pytest.mark.asyncio
    async def test_restored_after_executor_error(self, host_context, make_executor):
        before = host_context.get_parameter
        executor = make_executor(error=ValueError("deadlock"))
        await execute_agent_tool(host_context, executor, "ticket", "get", {"id": 1})
        assert host_context.get_parameter == before
        assert host_context.get_parameter("allow_write_operations") is True

    @pytest.mark.asyncio
    async def test_instance_accessor_identity_preserved(self, host_context, make_executor):
        def accessor(name, index=0, fallback=None):
            return "custom"

        host_context.get_parameter = accessor
        executor = make_executor(records=[{"id": 1}])
        await execute_agent_tool(host_context, executor, "ticket", "get", {"id": 1})
        assert host_context.get_parameter is accessor
        assert executor.calls[0]["allow_write_operations"] == "custom"

    @pytest.mark.asyncio
    async def test_restored_on_cancellation(self, host_context, make_executor):
        before = host_context.get_parameter
        executor = make_executor(error=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await execute_agent_tool(host_context, executor, "ticket", "get", {"id": 1})
        assert host_context.get_parameter == before
        assert not host_context.override_lock.locked()

    @pytest.mark.asyncio
    async def test_concurrent_calls_do_not_cross_talk(self, host_context):
        seen = []

        class SlowExecutor:
            async def execute(self, context):
                first = context.get_parameter("operation", 0)
                await asyncio.sleep(0.01)
                second = context.get_parameter("operation", 0)
                seen.append((first, second))
                return [{"id": 1}]

        await asyncio.gather(
            execute_agent_tool(host_context, SlowExecutor(), "ticket", "get", {"id": 1}),
            execute_agent_tool(host_context, SlowExecutor(), "ticket", "count", {}),
        )

        assert sorted(seen) == [("count", "count"), ("get", "get")]
        assert "get_parameter" not in vars(host_context)


class TestSlaHealthCheck:
    """Ticket SLA checks are addressed by id or by ticket number."""

    @pytest.mark.asyncio
    async def test_by_id(self, host_context, make_executor):
        executor = make_executor(records=[{"ticket": {"id": 1234}, "firstResponse": {"status": "met"}}])

        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "slahealthcheck", {"id": 1234, "ticketFields": "id, title"},
        ))

        assert payload == {"result": {"ticket": {"id": 1234}, "firstResponse": {"status": "met"}}}
        [call] = executor.calls
        assert call["operation"] == "slaHealthCheck"
        assert call["ticket_identifier_type"] == "id"
        assert call["ticket_number"] == ""
        assert call["sla_ticket_fields"] == ["id", "title"]
        assert json.loads(call["request_data"]) == {"id": 1234, "slaTicketFields": ["id", "title"]}

    @pytest.mark.asyncio
    async def test_by_ticket_number(self, host_context, make_executor):
        executor = make_executor(records=[])

        payload = json.loads(await execute_agent_tool(
            host_context, executor, "ticket", "slaHealthCheck", {"ticketNumber": " T20240615.0674 "},
        ))

        assert payload == {"result": None}
        [call] = executor.calls
        assert call["id"] == ""
        assert call["ticket_identifier_type"] == "ticketNumber"
        assert call["ticket_number"] == "T20240615.0674"
        assert call["sla_ticket_fields"] == []
        assert json.loads(call["request_data"]) == {"ticketNumber": "T20240615.0674", "slaTicketFields": []}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{}, {"ticketNumber": "  "}, {"ticketNumber": 42}, {"id": "abc", "ticketNumber": "T1"}])
    async def test_identifier_required(self, host_context, make_executor, params):
        executor = make_executor()
        payload = json.loads(await execute_agent_tool(host_context, executor, "ticket", "slaHealthCheck", params))
        assert payload["kind"] == "MISSING_ENTITY_ID"
        assert payload["message"] == "A numeric ticket id or a ticketNumber is required for ticket.slaHealthCheck."
        assert "ticketNumber" in payload["nextAction"]
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_sla_parameters_only_answer_for_sla_checks(self, host_context, make_executor):
        executor = make_executor(records=[{"id": 1}])
        await execute_agent_tool(host_context, executor, "ticket", "get", {"id": 1, "ticketNumber": "T1"})
        [call] = executor.calls
        assert call["ticket_identifier_type"] is None
        assert call["ticket_number"] is None
        assert call["sla_ticket_fields"] is None


class TestMigrationOperations:
    """Workflow operations pass their arguments through request_data."""

    @pytest.mark.asyncio
    async def test_move_to_company(self, host_context, make_executor):
        executor = make_executor(records=[{"newContactId": 901, "dryRun": True}])
        params = {"sourceContactId": 11, "destinationCompanyId": 22, "dryRun": True, "sourceAuditNote": ""}

        payload = json.loads(await execute_agent_tool(host_context, executor, "contact", "moveToCompany", params))

        assert payload == {"result": {"newContactId": 901, "dryRun": True}}
        [call] = executor.calls
        assert call["operation"] == "moveToCompany"
        assert call["id"] == ""
        assert json.loads(call["request_data"]) == {"sourceContactId": 11, "destinationCompanyId": 22, "dryRun": True}
        assert call["body_json"] == "{}"

    @pytest.mark.asyncio
    async def test_transfer_ownership_needs_no_id(self, host_context, make_executor):
        executor = make_executor(records=[{"planned": {"tickets": 3}}])
        params = {"sourceResourceId": 5, "destinationResourceId": 6, "includeTickets": False}

        payload = json.loads(await execute_agent_tool(
            host_context, executor, "resource", "transferOwnership", params,
        ))

        assert payload == {"result": {"planned": {"tickets": 3}}}
        assert json.loads(executor.calls[0]["request_data"]) == params

    @pytest.mark.asyncio
    async def test_move_configuration_item_error(self, host_context, make_executor):
        executor = make_executor(error=UpstreamAPIError("Destination company not found", status_code=404))
        payload = json.loads(await execute_agent_tool(
            host_context, executor, "configurationItem", "moveConfigurationItem",
            {"sourceConfigurationItemId": 7, "destinationCompanyId": 8},
        ))
        assert payload["kind"] == "ENTITY_NOT_FOUND"
        assert payload["operation"] == "configurationItem.moveConfigurationItem"


def _tool_calls(tool_name, status):
    return REGISTRY.get_sample_value("tool_calls_total", {"tool_name": tool_name, "status": status}) or 0.0


def _duration_count(tool_name):
    return REGISTRY.get_sample_value("tool_call_duration_seconds_count", {"tool_name": tool_name}) or 0.0


class TestToolCallMetrics:
    """Every call is counted once with its outcome."""

    @pytest.mark.asyncio
    async def test_success_is_counted(self, host_context, make_executor):
        before = _tool_calls("autotask_ticket_get", "success")
        observed = _duration_count("autotask_ticket_get")

        await execute_agent_tool(
            host_context, make_executor(records=[{"id": 1}]), "ticket", "get", {"id": 1}, namespace="autotask",
        )

        assert _tool_calls("autotask_ticket_get", "success") == before + 1
        assert _duration_count("autotask_ticket_get") == observed + 1

    @pytest.mark.asyncio
    async def test_rejection_is_counted(self, host_context, make_executor):
        before = _tool_calls("autotask_ticket_delete", "rejected")
        await execute_agent_tool(
            host_context, make_executor(), "ticket", "delete", {"id": "abc"}, namespace="autotask",
        )
        assert _tool_calls("autotask_ticket_delete", "rejected") == before + 1

    @pytest.mark.asyncio
    async def test_executor_error_is_counted(self, host_context, make_executor):
        before = _tool_calls("autotask_ticket_count", "error")
        succeeded = _tool_calls("autotask_ticket_count", "success")
        await execute_agent_tool(
            host_context, make_executor(error=RuntimeError("boom")), "ticket", "count", {}, namespace="autotask",
        )
        assert _tool_calls("autotask_ticket_count", "error") == before + 1
        assert _tool_calls("autotask_ticket_count", "success") == succeeded

    @pytest.mark.asyncio
    async def test_operation_name_is_normalised_in_label(self, host_context, make_executor):
        before = _tool_calls("autotask_ticket_getMany", "success")
        await execute_agent_tool(
            host_context, make_executor(records=[]), "ticket", "GETMANY", {}, namespace="autotask",
        )
        assert _tool_calls("autotask_ticket_getMany", "success") == before + 1
