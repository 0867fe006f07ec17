"""Natural-language descriptions for synthesized tools."""

import re
from typing import List, Optional

from toolbridge.models.field import FieldDescriptor
from toolbridge.models.tool import OperationKind, build_tool_name

# Child resources that need their parent's id on create
PARENT_ID_FIELDS = {
    "companynote": "companyID",
    "contact": "companyID",
    "companylocation": "companyID",
    "holiday": "holidaySetID",
    "project": "companyID",
    "projectnote": "projectID",
    "projectcharge": "projectID",
    "phase": "projectID",
    "task": "projectID",
    "ticketnote": "ticketID",
}

ASCENDING_ORDER_WARNING = (
    "IMPORTANT: The API always returns records in ascending ID order (oldest first). "
    "Without recency or since, limit=1 returns the OLDEST record, not the newest. "
    "To get the most recent records, you MUST use recency (for example 'last_7d') or provide since/until "
    "in ISO-8601 UTC format (for example 2026-01-01T00:00:00Z). "
)

DATETIME_HINT = "Date-time values must be ISO-8601 and UTC-safe (for example 2026-02-14T03:15:00Z). "


def format_resource_label(resource: str) -> str:
    """'ticketNote' -> 'Ticket Note'."""
    if not resource:
        return resource
    spaced = re.sub(r"([A-Z])", r" \1", resource[1:])
    return (resource[0].upper() + spaced).strip()


def list_filterable_fields(read_fields: List[FieldDescriptor], max_fields: int = 12) -> str:
    return ", ".join([f.id for f in read_fields if not f.is_user_defined][:max_fields])


def get_parent_id_field(resource: str) -> Optional[str]:
    return PARENT_ID_FIELDS.get(resource.lower())


class DescriptionBuilder:
    """Builds operation descriptions for one resource."""

    def __init__(self, resource: str, namespace: str):
        self.resource = resource
        self.namespace = namespace
        self.label = format_resource_label(resource)

    def _tool(self, operation: str) -> str:
        return build_tool_name(self.namespace, self.resource, operation)

    def get(self) -> str:
        return (
            f"Retrieve a single {self.label} record by numeric ID. "
            "Optionally use 'fields' to return only selected columns. "
            "If a record should exist but the response is empty, verify API user permissions "
            "(including line-of-business access). "
            f"Do not guess field names. Call {self._tool('describeFields')} (mode 'read') first when unsure."
        )

    def get_many(self, read_fields: List[FieldDescriptor]) -> str:
        return (
            f"Search {self.label} records with up to two AND filters. "
            "Example: filter_field='companyName', filter_op='contains', filter_value='Acme'. "
            "Use filter_value as true/false for boolean fields. "
            "Only one user-defined field filter is supported per query. "
            f"Filterable fields include: {list_filterable_fields(read_fields)}. "
            f"{ASCENDING_ORDER_WARNING}"
            "When recency or since is used, the tool filters by date and returns the newest records first, "
            "trimmed to limit. "
            "If results are unexpectedly empty, check API user security permissions before retrying. "
            "Always provide at least one filter when possible. "
            f"If you are unsure about field names, call {self._tool('describeFields')} first."
        )

    def _time_entries(self, kind: str, matching: str) -> str:
        return (
            f"Get {kind} time entries (entries {matching} matching Billing Items). "
            "Supports the same optional filters as getMany (up to two AND filters), plus 'limit' and 'fields'. "
            f"{ASCENDING_ORDER_WARNING}"
            f"If field names are uncertain, call {self._tool('describeFields')} first."
        )

    def get_posted(self) -> str:
        return self._time_entries("posted", "with")

    def get_unposted(self) -> str:
        return self._time_entries("unposted", "without")

    def count(self) -> str:
        return (
            f"Count {self.label} records matching optional filters. "
            "Use the same filter parameters as getMany; only the count is returned. "
            "For efficient polling-style checks, prefer LastModifiedDate or LastActivityDate filters where available."
        )

    def create(self, write_fields: List[FieldDescriptor]) -> str:
        required = [f.id for f in write_fields if f.required]
        picklists = [f.id for f in write_fields if f.is_picklist][:6]
        picklist_note = f" Picklist fields (use valid IDs): {', '.join(picklists)}." if picklists else ""
        parent_field = get_parent_id_field(self.resource)
        parent_hint = f" Parent relation required: include {parent_field}." if parent_field else ""
        return (
            f"Create a new {self.label} record. "
            f"Required fields: {', '.join(required) if required else 'none'}.{picklist_note}{parent_hint} "
            f"{DATETIME_HINT}"
            "Successful creates return an itemId to use in follow-up operations. "
            f"Call {self._tool('describeFields')} (mode 'write') before create if field requirements are unclear. "
            f"If picklist values fail validation, call {self._tool('listPicklistValues')}."
        )

    def update(self) -> str:
        return (
            f"Update an existing {self.label} record by numeric ID. "
            "Only provide fields to change (PATCH-style behaviour): omitted fields are left untouched, "
            "they are NOT set to null. "
            f"{DATETIME_HINT}"
            f"Call {self._tool('describeFields')} (mode 'write') to verify valid field names and value types. "
            f"Use {self._tool('listPicklistValues')} for picklist fields."
        )

    def delete(self) -> str:
        return (
            f"Delete a {self.label} record by numeric ID. "
            "Delete responses may be minimal, so treat any error as a failure. "
            "Use getMany or get first to confirm the correct ID before deletion."
        )

    def who_am_i(self) -> str:
        return (
            f"Resolve the current authenticated {self.label} record from the API credentials. "
            "Use this to discover the active user context before running user-scoped actions. "
            "Optionally use 'fields' to limit returned columns."
        )

    def search_by_domain(self) -> str:
        return (
            "Search companies by domain using website-style fields. "
            "Input can be a bare domain or a full URL; the tool normalises it to a domain fragment "
            "(for example autotask.net). "
            "Company websites are usually stored as full URLs (for example https://www.autotask.net/), "
            "so exact matches on a bare domain can fail; eq/like are handled safely for website matching. "
            "When search_contact_emails is true (default) and no company website matches, the tool searches "
            "contact email addresses by domain and resolves the most common company from their references. "
            f"If field names are uncertain, call {self._tool('describeFields')} first."
        )

    def sla_health_check(self) -> str:
        return (
            "Run an SLA health check for a ticket using either its numeric id or its ticketNumber. "
            "Returns first-response, resolution-plan and resolution milestone timing and status in hours "
            "(2 decimal places). "
            "Use 'ticketFields' to limit which ticket fields are returned in the ticket section. "
            "Negative wallClockRemainingHours values mean the milestone is overdue. "
            f"If field names are uncertain, call {self._tool('describeFields')} first."
        )

    def move_configuration_item(self) -> str:
        return (
            "Clone a configuration item to a different company, since companyID cannot be updated in place. "
            "Copies core fields and, optionally, UDFs, attachments, notes and note attachments. "
            "Always writes audit notes and can deactivate the source item after safety checks. "
            "Set dryRun=true to get the migration plan without writing anything. "
            "Tickets, projects, contracts and related items are not migrated. "
            f"If field names or expected behaviour are uncertain, call {self._tool('describeFields')} first."
        )

    def move_to_company(self) -> str:
        return (
            "Move a contact to another company by cloning the contact record and optional related data. "
            "Duplicate email addresses on the destination company are skipped by default. "
            "Set dryRun=true to get the source contact, the destination payload, the duplicate check result "
            "and planned counts without writing anything. "
            f"If field names or expected behaviour are uncertain, call {self._tool('describeFields')} first."
        )

    def transfer_ownership(self) -> str:
        return (
            "Transfer ownership and assignments from a source resource to a receiving resource. "
            "Covers companies, opportunities, tickets, tasks, projects, service call assignments and appointments; "
            "each entity type must be switched on with its include flag. "
            "Use dueWindowPreset for date ranges, or dueWindowPreset='custom' with dueBeforeCustom for an exact "
            "cut-off. By default only open work is targeted. "
            "Set dryRun=true to list the affected items per entity type without writing anything. "
            f"If field names or expected behaviour are uncertain, call {self._tool('describeFields')} first."
        )

    def describe_fields(self) -> str:
        return (
            f"Describe available {self.label} fields. "
            "Use mode 'read' for query fields and mode 'write' for create/update fields."
        )

    def list_picklist_values(self) -> str:
        return (
            f"List picklist values for a specific {self.label} field. "
            "Use this when create or update fails due to invalid picklist values."
        )

    def for_operation(
        self,
        operation: str,
        read_fields: Optional[List[FieldDescriptor]] = None,
        write_fields: Optional[List[FieldDescriptor]] = None,
    ) -> str:
        """Description for an operation kind; unknown kinds get a generic sentence."""
        read_fields = read_fields or []
        write_fields = write_fields or []
        builders = {
            OperationKind.GET.value: self.get,
            OperationKind.GET_MANY.value: lambda: self.get_many(read_fields),
            OperationKind.GET_POSTED.value: self.get_posted,
            OperationKind.GET_UNPOSTED.value: self.get_unposted,
            OperationKind.COUNT.value: self.count,
            OperationKind.CREATE.value: lambda: self.create(write_fields),
            OperationKind.UPDATE.value: self.update,
            OperationKind.DELETE.value: self.delete,
            OperationKind.WHO_AM_I.value: self.who_am_i,
            OperationKind.SEARCH_BY_DOMAIN.value: self.search_by_domain,
            OperationKind.SLA_HEALTH_CHECK.value: self.sla_health_check,
            OperationKind.MOVE_CONFIGURATION_ITEM.value: self.move_configuration_item,
            OperationKind.MOVE_TO_COMPANY.value: self.move_to_company,
            OperationKind.TRANSFER_OWNERSHIP.value: self.transfer_ownership,
        }
        builder = builders.get(operation)
        if builder is None:
            return f"Run {operation} on {self.label} records."
        return builder()
