"""Field descriptor normalizer - merges raw field metadata into FieldDescriptors."""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from toolbridge.models.field import FieldDescriptor, PicklistValue

logger = logging.getLogger(__name__)

# Picklists with more options than this are not inlined; agents fetch them
# through the listPicklistValues helper tool instead.
PICKLIST_INLINE_LIMIT = 50


# Direct field name -> referenced entity mapping
REFERENCE_FIELD_MAPPINGS = {
    "companyID": "company",
    "accountID": "company",
    "contactID": "contact",
    "resourceID": "resource",
    "assignedResourceID": "resource",
    "projectID": "project",
    "ticketID": "ticket",
    "contractID": "contract",
    "opportunityID": "salesOrder",
    "quoteID": "quote",
    "invoiceID": "invoice",
    "taskID": "task",
    "changeRequestID": "changeRequest",
    "problemID": "problem",
    "serviceCallID": "serviceCall",
    "timeEntryID": "timeEntry",
    "expenseItemID": "expenseItem",
    "productID": "product",
    "serviceID": "service",
    "billingCodeID": "billingCode",
    "departmentID": "department",
    "roleID": "role",
    "queueID": "ticketCategory",
    "subIssueTypeID": "ticketSubIssueType",
    "sourceID": "ticketSource",
    "priorityID": "priority",
    "statusID": "status",
    "typeID": "type",
    "categoryID": "category",
    "subcategoryID": "subcategory",
}

# Known typos and collapsed compound names seen in field ids
ALIAS_CORRECTIONS = {
    "resrouce": "resource",
    "accountmanager": "resource",
    "assignedresource": "resource",
}

ENTITY_NAME_MAPPINGS = {
    "account": "company",
    "assignee": "resource",
    "creator": "resource",
    "modifier": "resource",
    "owner": "resource",
    "salesperson": "resource",
    "resource": "resource",
}

# Names that reference the same entity type (hierarchies)
SELF_REFERENCE_NAMES = frozenset({"parent"})

# resource -> field -> prerequisite fields
FIELD_DEPENDENCIES = {
    "contact": {
        "contactID": ["companyID"],
    },
    "ticket": {
        "contactID": ["companyID"],
        "projectID": ["companyID"],
        "contractID": ["companyID"],
    },
    "project": {
        "contractID": ["companyID"],
    },
}


def get_referenced_entity(field_id: str, resource: str) -> Optional[str]:
    """
    Resolve the entity a reference field points to.

    Args:
        field_id: Canonical field id (e.g. "companyID", "parentID")
        resource: Resource owning the field, used for hierarchical references

    Returns:
        Entity name, or None when the field id gives no hint
    """
    if field_id in REFERENCE_FIELD_MAPPINGS:
        return REFERENCE_FIELD_MAPPINGS[field_id]

    if field_id in SELF_REFERENCE_NAMES:
        return resource

    if not field_id.endswith("ID"):
        return None

    normalised = re.sub(r"[_\s]", "", field_id[:-2].lower())
    if not normalised:
        return None
    corrected = ALIAS_CORRECTIONS.get(normalised, normalised)
    if corrected in SELF_REFERENCE_NAMES:
        return resource
    return ENTITY_NAME_MAPPINGS.get(corrected, corrected)


def get_field_dependencies(field_id: str, resource: str) -> Optional[List[str]]:
    """Return static business-rule prerequisites for a field, or None."""
    dependencies = FIELD_DEPENDENCIES.get(resource, {}).get(field_id)
    return list(dependencies) if dependencies else None


def picklist_values_from_raw(raw_field: Dict[str, Any]) -> List[PicklistValue]:
    """Convert raw picklist options ({value, label|name}) to PicklistValues."""
    values = []
    for option in raw_field.get("options") or []:
        if not isinstance(option, dict) or "value" not in option:
            continue
        value = option["value"]
        label = option.get("label") or option.get("name") or str(value)
        values.append(PicklistValue(id=value, label=str(label)))
    return values


def normalize_field(raw_field: Dict[str, Any], resource: str, user_defined: bool = False) -> Optional[FieldDescriptor]:
    """
    Convert one raw field record into a FieldDescriptor.

    Returns None for records without a usable id.
    """
    field_id = raw_field.get("id") or raw_field.get("name")
    if not field_id or not isinstance(field_id, str):
        return None

    options = picklist_values_from_raw(raw_field)
    is_picklist = bool(options) or bool(raw_field.get("is_picklist"))
    is_reference = bool(raw_field.get("is_reference"))

    descriptor = FieldDescriptor(
        id=field_id,
        name=raw_field.get("label") or field_id,
        type=raw_field.get("type") or "string",
        required=bool(raw_field.get("required", False)),
        is_user_defined=user_defined or bool(raw_field.get("is_udf")),
        is_picklist=is_picklist,
        allowed_values=options if options and len(options) <= PICKLIST_INLINE_LIMIT else None,
        is_reference=is_reference,
        referenced_entity=get_referenced_entity(field_id, resource) if is_reference else None,
        dependencies=get_field_dependencies(field_id, resource),
    )
    return descriptor


def normalize_fields(
    resource: str,
    standard_fields: Iterable[Dict[str, Any]],
    udf_fields: Iterable[Dict[str, Any]] = (),
) -> List[FieldDescriptor]:
    """
    Merge standard and user-defined raw fields into one descriptor list.

    Field ids stay unique: the first occurrence wins, so a user-defined field
    can never shadow a standard field with the same id.

    Args:
        resource: Resource the fields belong to
        standard_fields: Raw standard field records
        udf_fields: Raw user-defined field records

    Returns:
        Ordered list of FieldDescriptor (standard fields first)
    """
    descriptors: List[FieldDescriptor] = []
    seen = set()

    for raw_fields, user_defined in ((standard_fields, False), (udf_fields, True)):
        for raw_field in raw_fields or ():
            descriptor = normalize_field(raw_field, resource, user_defined=user_defined)
            if descriptor is None:
                logger.debug(f"Skipping field without id for {resource}: {raw_field!r}")
                continue
            if descriptor.id in seen:
                logger.debug(f"Skipping duplicate field {descriptor.id} for {resource}")
                continue
            seen.add(descriptor.id)
            descriptors.append(descriptor)

    return descriptors
