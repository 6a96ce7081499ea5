"""Filter -> group -> sort pipeline for rendering one project view."""

import logging
from collections.abc import Iterable, Sequence

from ghdash.filters import filter_items
from ghdash.grouping import group_items, sort_items_in_groups
from ghdash.models import GroupedItems, NormalizedItem, ProjectField, ProjectView, SortDirection, SortSpec

logger = logging.getLogger(__name__)


def find_view(views: Iterable[ProjectView], key: str) -> ProjectView | None:
    """Look a view up by node id, view number or (case-insensitive) name."""
    views = list(views)
    for view in views:
        if view.id == key or (view.number is not None and str(view.number) == key):
            return view
    folded = key.casefold()
    return next((view for view in views if view.name.casefold() == folded), None)


def parse_sort_option(value: str) -> SortSpec:
    """Parse a --sort option: Status ascends, -Status or Status:desc descends."""
    value = value.strip()
    if value.startswith("-"):
        return SortSpec(field_name=value[1:], direction=SortDirection.DESC)
    name, sep, direction = value.rpartition(":")
    if sep and direction.upper() in ("ASC", "DESC"):
        return SortSpec(field_name=name, direction=SortDirection(direction.upper()))
    return SortSpec(field_name=value)


def apply_view(
    items: Sequence[NormalizedItem],
    view: ProjectView | None = None,
    fields: Iterable[ProjectField] | None = None,
    *,
    filter_string: str | None = None,
    search: str | None = None,
    group_by: str | None = None,
    sort_by: Sequence[SortSpec] | None = None,
) -> list[GroupedItems]:
    """Render items through a view's filter, grouping and sort configuration.

    Explicit keyword arguments override the matching part of the view.
    """
    if filter_string is None and view is not None:
        filter_string = view.filter
    if group_by is None and view is not None and view.group_by_fields:
        group_by = view.group_by_fields[0]
    if sort_by is None and view is not None:
        sort_by = view.sort_by_fields

    matched = filter_items(items, filter_string, search)
    logger.info(
        "View %s: %d of %d items match filter %r",
        view.name if view else "(none)",
        len(matched),
        len(items),
        filter_string or "",
    )
    groups = group_items(matched, group_by, fields)
    return sort_items_in_groups(groups, sort_by)
