"""Group and sort normalized items the way a project view is configured to."""

import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from ghdash.fields import lookup_custom_field
from ghdash.models import FieldOption, GroupedItems, NormalizedItem, ProjectField, SortDirection, SortSpec

ALL_ITEMS = "All Items"
UNASSIGNED = "Unassigned"
UNKNOWN = "Unknown"

BUILTIN_GROUP_FIELDS = ["Assignees", "Labels", "Milestone", "Priority", "Repository", "State", "Status", "Type"]


def display_name(field_name: str) -> str:
    """sprintName / parent_issue / parent-issue -> "Sprint Name" / "Parent Issue"."""
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", field_name)
    words = re.split(r"[\s_\-]+", spaced.strip())
    return " ".join(w[:1].upper() + w[1:] for w in words if w)


def is_sentinel(group_name: str) -> bool:
    """Synthesized buckets for items with nothing to group on."""
    return group_name.startswith("No ") or group_name in (UNASSIGNED, UNKNOWN)


def group_value(item: NormalizedItem, field_name: str) -> str:
    """Resolve the value an item is grouped (and sorted) by.

    Custom fields win, exact name first and then case-insensitively; then the
    built-in item attributes; anything else lands in "No <Field Name>".
    """
    custom = lookup_custom_field(item.custom_fields, field_name)
    if custom:
        return custom

    match field_name.strip().lower().replace("-", "_").replace(" ", "_"):
        case "status":
            return item.status or "No Status"
        case "state":
            return item.state or "No State"
        case "type":
            return item.type.value
        case "repository" | "repo":
            return item.repository or "No Repository"
        case "repository_owner" | "owner":
            return item.repository_owner or "No Owner"
        case "assignee" | "assignees":
            return item.assignees[0].login if item.assignees and item.assignees[0].login else UNASSIGNED
        case "priority":
            return item.priority or "No Priority"
        case "labels" | "label":
            return item.labels[0].name if item.labels and item.labels[0].name else "No Labels"
        case "milestone":
            # normalize_item stores the milestone title under custom_fields["Milestone"]
            return "No Milestone"
        case "title":
            return item.title
        case "number":
            return str(item.number) if item.number is not None else "No Number"
        case _:
            return f"No {display_name(field_name)}"


def _field_options(fields: Iterable[ProjectField] | None, field_name: str) -> list[FieldOption]:
    folded = field_name.casefold()
    for field in fields or []:
        if field.name.casefold() == folded:
            return list(field.options)
    return []


def group_items(
    items: Sequence[NormalizedItem],
    field_name: str | None = None,
    fields: Iterable[ProjectField] | None = None,
) -> list[GroupedItems]:
    """Bucket items by a field value.

    Groups that match one of the field's declared options come first, in option
    order and carrying the option color. Other groups follow by name. Sentinel
    groups ("No X", "Unassigned", "Unknown") always come last.
    """
    if not field_name:
        return [GroupedItems(name=ALL_ITEMS, items=list(items), count=len(items))]

    buckets: dict[str, list[NormalizedItem]] = {}
    for item in items:
        buckets.setdefault(group_value(item, field_name), []).append(item)

    options = _field_options(fields, field_name)
    option_index = {option.name.casefold(): (i, option) for i, option in enumerate(options)}

    groups = []
    for name, members in buckets.items():
        index, option = option_index.get(name.casefold(), (None, None))
        groups.append(
            GroupedItems(
                name=name,
                items=members,
                count=len(members),
                color=option.color if option else None,
                order=index,
            )
        )

    def rank(group: GroupedItems) -> tuple:
        if group.order is not None:
            return (0, group.order, "")
        if is_sentinel(group.name):
            return (2, 0, group.name.casefold())
        return (1, 0, group.name.casefold())

    return sorted(groups, key=rank)


def _timestamp(value: str | None) -> float:
    """Seconds since the epoch for an ISO 8601 string; unparseable values sort as oldest."""
    if not value:
        return float("-inf")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return float("-inf")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def sort_items(items: Iterable[NormalizedItem], sort_specs: Sequence[SortSpec] | None = None) -> list[NormalizedItem]:
    """Return a new list ordered by the sort specs, most recently updated first on ties."""
    ordered = sorted(items, key=lambda item: _timestamp(item.updated_at), reverse=True)
    # stable sorts applied from the lowest-priority key up
    for spec in reversed(sort_specs or []):
        ordered.sort(
            key=lambda item, name=spec.field_name: (group_value(item, name).casefold(), group_value(item, name)),
            reverse=spec.direction == SortDirection.DESC,
        )
    return ordered


def sort_items_in_groups(
    groups: Sequence[GroupedItems],
    sort_specs: Sequence[SortSpec] | None = None,
) -> list[GroupedItems]:
    """Sort the items inside each group; the groups themselves keep their order."""
    return [group.model_copy(update={"items": sort_items(group.items, sort_specs)}) for group in groups]


def available_group_fields(items: Iterable[NormalizedItem]) -> list[str]:
    """Built-in group fields plus every custom field name seen on the items, sorted."""
    fields = set(BUILTIN_GROUP_FIELDS)
    for item in items:
        fields.update(item.custom_fields)
    return sorted(fields)
