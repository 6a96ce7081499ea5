"""GitHub-style view filter strings: parsing, matching and free-text search.

Supports the subset of GitHub's filter syntax that project views use:

    status:Done              single value
    -label:bug               negation
    state:open,closed        OR within a field
    iteration:"Sprint 12"    quoted value with spaces
    parent-issue:org/repo#4  hyphenated field names

Values are lower-cased while parsing, so matching is case-insensitive.
"""

import logging
import re
from collections.abc import Iterable

from ghdash.fields import PARENT_ISSUE_KEY, lookup_custom_field
from ghdash.models import FilterClause, FilterOptions, FilterSet, ItemType, NormalizedItem

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r'(?:^|(?<=\s))(-)?(\w+(?:-\w+)*):(?:"([^"]*)"|(\S+))')
_ISSUE_NUMBER = re.compile(r"#(\d+)")

# is:<value> predicates
_IS_PREDICATES = {
    "open": lambda item: item.state.lower() == "open",
    "closed": lambda item: item.state.lower() == "closed",
    "merged": lambda item: item.state.lower() == "merged",
    "issue": lambda item: item.type == ItemType.ISSUE,
    "pr": lambda item: item.type == ItemType.PULL_REQUEST,
    "draft": lambda item: item.type == ItemType.DRAFT_ISSUE,
}


def parse_filter_string(filter_string: str | None) -> FilterSet:
    """Parse a view filter string into {key: [values]}; negated keys carry a leading "-".

    Never raises. Tokens without a `field:` prefix are ignored, so garbage in
    yields an empty FilterSet, which matches every item.
    """
    filters: FilterSet = {}
    if not filter_string:
        return filters

    for match in _TOKEN.finditer(filter_string):
        negated, field, quoted, bare = match.groups()
        raw = quoted if quoted is not None else bare
        values = [quoted.strip().lower()] if quoted is not None else [v.strip().lower() for v in raw.split(",")]
        values = [v for v in values if v]
        if not values:
            continue
        key = f"-{field.lower()}" if negated else field.lower()
        accepted = filters.setdefault(key, [])
        for value in values:
            if value not in accepted:
                accepted.append(value)

    logger.debug("Parsed filter %r into %s", filter_string, filters)
    return filters


def iter_clauses(filters: FilterSet) -> list[FilterClause]:
    clauses = []
    for key, values in filters.items():
        negated = key.startswith("-")
        clauses.append(FilterClause(field=key[1:] if negated else key, values=values, negated=negated))
    return clauses


def _parent_issue_matches(item: NormalizedItem, accepted: list[str]) -> bool:
    parent = lookup_custom_field(item.custom_fields, PARENT_ISSUE_KEY)
    if not parent:
        return False
    parent = parent.lower()
    for value in accepted:
        number = _ISSUE_NUMBER.search(value)
        if number:
            if re.search(rf"#{number.group(1)}(?!\d)", parent):
                return True
        elif value in parent:
            return True
    return False


def item_filter_value(item: NormalizedItem, field: str) -> str | list[str] | None:
    """Resolve what an item holds for a filter field, lower-cased; None when it holds nothing."""
    match field:
        case "assignee" | "assignees":
            return [a.login.lower() for a in item.assignees]
        case "label" | "labels":
            return [label.name.lower() for label in item.labels]
        case "repo" | "repository":
            return [item.repository.lower(), item.full_repository.lower()]
        case "state":
            return item.state.lower()
        case _:
            value = lookup_custom_field(item.custom_fields, field)
            return value.lower() if value is not None else None


def clause_matches(item: NormalizedItem, clause: FilterClause) -> bool:
    """True when the item holds any of the clause's values (negation is applied by the caller)."""
    if clause.field == "is":
        return any(_IS_PREDICATES.get(value, lambda _: False)(item) for value in clause.values)
    if clause.field == "parent-issue":
        return _parent_issue_matches(item, clause.values)

    value = item_filter_value(item, clause.field)
    if value is None:
        return False
    if isinstance(value, list):
        return any(v in clause.values for v in value)
    return value in clause.values


def matches_filters(item: NormalizedItem, filters: FilterSet) -> bool:
    """AND across fields, OR within a field's values; negated fields reject on a match."""
    for clause in iter_clauses(filters):
        hit = clause_matches(item, clause)
        if hit == clause.negated:
            return False
    return True


def matches_search(item: NormalizedItem, search: str | None) -> bool:
    """Free-text search over title, repository, owner, number, people, labels and custom fields."""
    if not search:
        return True

    needle = search.lower()
    haystack = [item.title, item.repository, item.repository_owner]
    haystack += [a.login for a in item.assignees]
    haystack += [label.name for label in item.labels]
    haystack += list(item.custom_fields.values())
    if any(needle in text.lower() for text in haystack):
        return True
    # numbers match against the raw term, e.g. "42" or "4"
    return item.number is not None and search in str(item.number)


def filter_items(
    items: Iterable[NormalizedItem],
    filter_string: str | None = None,
    search: str | None = None,
) -> list[NormalizedItem]:
    """Return the items matching both the view filter string and the search term, in order."""
    filters = parse_filter_string(filter_string)
    return [item for item in items if matches_filters(item, filters) and matches_search(item, search)]


def filter_options(items: Iterable[NormalizedItem]) -> FilterOptions:
    """Collect distinct states, statuses, repositories and assignees in first-seen order."""
    states: dict[str, None] = {}
    statuses: dict[str, None] = {}
    repositories: dict[str, None] = {}
    assignees: dict[str, None] = {}
    for item in items:
        states[item.state] = None
        if item.status:
            statuses[item.status] = None
        repositories[item.full_repository] = None
        for assignee in item.assignees:
            assignees[assignee.login] = None
    return FilterOptions(
        states=list(states),
        statuses=list(statuses),
        repositories=list(repositories),
        assignees=list(assignees),
    )
