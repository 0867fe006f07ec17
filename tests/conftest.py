"""Pytest configuration and fixtures."""

import pytest
import os
from dotenv import load_dotenv

# Load test environment variables
load_dotenv()

# Set test environment
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")

from toolbridge.adapters.metadata_provider import StaticMetadataProvider  # noqa: E402
from toolbridge.models.context import HostContext  # noqa: E402
from toolbridge.services.field_normalizer import normalize_fields  # noqa: E402

# Parameter names an executor typically pulls from the host context
OBSERVED_PARAMETERS = (
    "resource",
    "operation",
    "id",
    "entity_id",
    "target_operation",
    "request_data",
    "fields_to_map",
    "filters",
    "return_all",
    "max_records",
    "body_json",
    "output_mode",
    "add_picklist_labels",
    "add_reference_labels",
    "flatten_udfs",
    "select_columns",
    "select_columns_json",
    "allow_write_operations",
    "dry_run",
    "allowed_resources",
    "allow_dry_run_for_writes",
    "ticket_identifier_type",
    "ticket_number",
    "sla_ticket_fields",
)

STATUS_OPTIONS = [
    {"value": 1, "label": "New"},
    {"value": 5, "label": "Complete"},
    {"value": 8, "label": "Waiting Customer"},
]

PRIORITY_OPTIONS = [{"value": i, "label": f"P{i}"} for i in range(1, 21)]

TICKET_READ_STANDARD = [
    {"id": "id", "type": "number"},
    {"id": "ticketNumber", "type": "string"},
    {"id": "title", "type": "string"},
    {"id": "status", "type": "number", "options": STATUS_OPTIONS},
    {"id": "priority", "type": "number", "options": PRIORITY_OPTIONS},
    {"id": "companyID", "type": "number", "is_reference": True},
    {"id": "contactID", "type": "number", "is_reference": True},
    {"id": "isBillable", "type": "boolean"},
    {"id": "lastActivityDate", "type": "datetime"},
    {"id": "createDate", "type": "datetime"},
]

TICKET_UDFS = [
    {"id": "Region", "type": "string"},
    {"id": "Tier", "type": "string"},
]

TICKET_WRITE_STANDARD = [
    {"id": "title", "type": "string", "required": True},
    {"id": "companyID", "type": "number", "required": True, "is_reference": True},
    {"id": "status", "type": "number", "required": True, "options": STATUS_OPTIONS},
    {"id": "priority", "type": "number", "options": PRIORITY_OPTIONS},
    {"id": "description", "type": "string"},
    {"id": "contactID", "type": "number", "is_reference": True},
    {"id": "dueDateTime", "type": "datetime"},
]

CONTACT_READ_STANDARD = [
    {"id": "id", "type": "number"},
    {"id": "firstName", "type": "string"},
    {"id": "companyID", "type": "number", "is_reference": True},
]


class RecordingExecutor:
    """Executor double that snapshots every parameter it can pull from the context."""

    def __init__(self, records=None, error=None):
        self.records = records if records is not None else []
        self.error = error
        self.calls = []

    async def execute(self, context):
        self.calls.append({name: context.get_parameter(name, 0, None) for name in OBSERVED_PARAMETERS})
        if self.error is not None:
            raise self.error
        return self.records


@pytest.fixture
def raw_metadata():
    """Raw field metadata for a ticket and a contact resource."""
    return {
        "ticket": {
            "read": {"standard": TICKET_READ_STANDARD, "udf": TICKET_UDFS},
            "write": {"standard": TICKET_WRITE_STANDARD, "udf": []},
        },
        "contact": {
            "read": {"standard": CONTACT_READ_STANDARD, "udf": []},
            "write": {"standard": [{"id": "firstName", "type": "string", "required": True}], "udf": []},
        },
    }


@pytest.fixture
def metadata_provider(raw_metadata):
    return StaticMetadataProvider(raw_metadata)


@pytest.fixture
def ticket_read_fields():
    return normalize_fields("ticket", TICKET_READ_STANDARD, TICKET_UDFS)


@pytest.fixture
def ticket_write_fields():
    return normalize_fields("ticket", TICKET_WRITE_STANDARD)


@pytest.fixture
def contact_read_fields():
    return normalize_fields("contact", CONTACT_READ_STANDARD)


@pytest.fixture
def host_context():
    """Host context with writes enabled by the human configuration."""
    return HostContext(parameters={"allow_write_operations": True, "timezone": "UTC"})


@pytest.fixture
def make_executor():
    """Factory for RecordingExecutor instances."""
    return RecordingExecutor
