"""Flatten raw Projects V2 items (REST or GraphQL shape) into NormalizedItem records."""

import logging
from collections.abc import Iterable
from typing import Any

from ghdash.fields import PARENT_ISSUE_KEY, extract_field_value, repository_from_url, resolve_field
from ghdash.models import Assignee, ItemType, Label, NormalizedItem

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

_ITEM_TYPES = {
    "issue": ItemType.ISSUE,
    "pullrequest": ItemType.PULL_REQUEST,
    "pull_request": ItemType.PULL_REQUEST,
    "draftissue": ItemType.DRAFT_ISSUE,
    "draft_issue": ItemType.DRAFT_ISSUE,
}


def _nodes(value: Any) -> list:
    """Accept both a REST array and a GraphQL `{nodes: [...]}` connection."""
    if isinstance(value, dict):
        value = value.get("nodes")
    return [v for v in value or [] if v]


def item_type(raw: dict[str, Any]) -> ItemType:
    content = raw.get("content") or {}
    # content.type is also GitHub's issue-type object on REST issues, so it goes last
    for tag in (
        raw.get("content_type"),
        raw.get("contentType"),
        content.get("__typename"),
        raw.get("type"),
        content.get("type"),
    ):
        if isinstance(tag, str) and tag.lower() in _ITEM_TYPES:
            return _ITEM_TYPES[tag.lower()]
    return ItemType.ISSUE


def resolve_repository(content: dict[str, Any]) -> tuple[str, str]:
    """Return (owner, name) for the content's repository, or ("Unknown", "Unknown")."""
    repo = content.get("repository")
    if isinstance(repo, dict):
        owner = repo.get("owner")
        login = owner.get("login") if isinstance(owner, dict) else owner
        name = repo.get("name")
        full_name = repo.get("full_name") or repo.get("nameWithOwner")
        if full_name and "/" in full_name:
            full_owner, full_repo = full_name.split("/", 1)
            login, name = login or full_owner, name or full_repo
        if name:
            return login or UNKNOWN, name
        parsed = repository_from_url(repo.get("url"))
        if parsed:
            return parsed
    elif isinstance(repo, str) and "/" in repo:
        owner, name = repo.split("/", 1)
        return owner, name

    parsed = repository_from_url(content.get("repository_url"))
    if parsed:
        return parsed
    return UNKNOWN, UNKNOWN


def extract_custom_fields(records: Iterable[dict[str, Any]]) -> dict[str, str]:
    """Run every field-value record through the extractor, keyed by display name.

    Later records with the same name overwrite earlier ones. A record that fails
    to extract is dropped.
    """
    custom_fields: dict[str, str] = {}
    for record in records:
        if not isinstance(record, dict):
            continue
        try:
            name, tag, value = resolve_field(record)
            if tag == "parent_issue":
                name = PARENT_ISSUE_KEY
            if not name:
                continue
            extracted = extract_field_value(tag, value)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Skipping field %r: %s", record.get("name"), exc)
            continue
        if extracted is not None:
            custom_fields[name] = extracted
    return custom_fields


def _content_fields(content: dict[str, Any], custom_fields: dict[str, str]) -> dict[str, str]:
    """Fields GitHub keeps on the issue itself rather than on the board."""
    derived: dict[str, str] = {}
    milestone = content.get("milestone")
    if isinstance(milestone, dict) and milestone.get("title") and "Milestone" not in custom_fields:
        derived["Milestone"] = milestone["title"]

    parents = _nodes(content.get("trackedInIssues"))
    if parents and PARENT_ISSUE_KEY not in custom_fields:
        parent = parents[0]
        derived[PARENT_ISSUE_KEY] = extract_field_value("parent_issue", parent) or ""

    children = _nodes(content.get("trackedIssues"))
    if children:
        count = len(children)
        derived["Child issues"] = f"{count} child issue{'s' if count > 1 else ''}"
    return derived


def _item_number(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def normalize_item(raw: dict[str, Any]) -> NormalizedItem:
    """Convert one raw project item into a NormalizedItem. Pure; never raises on well-formed input."""
    content = raw.get("content") or {}
    records = raw.get("fields")
    if records is None:
        records = _nodes(raw.get("fieldValues"))

    custom_fields = extract_custom_fields(records or [])
    custom_fields.update(_content_fields(content, custom_fields))

    owner, repository = resolve_repository(content)

    return NormalizedItem(
        id=str(raw.get("node_id") or raw.get("id") or content.get("id") or ""),
        type=item_type(raw),
        number=_item_number(content.get("number")),
        title=content.get("title") or "",
        url=content.get("url") or content.get("html_url") or "#",
        state=content.get("state") or "open",
        repository=repository,
        repository_owner=owner,
        assignees=[
            Assignee(login=a.get("login") or "", avatar_url=a.get("avatar_url") or a.get("avatarUrl") or "")
            for a in _nodes(content.get("assignees"))
        ],
        labels=[Label(name=lb.get("name") or "", color=lb.get("color") or "") for lb in _nodes(content.get("labels"))],
        created_at=content.get("created_at") or content.get("createdAt") or raw.get("created_at") or "",
        updated_at=content.get("updated_at") or content.get("updatedAt") or raw.get("updated_at") or "",
        status=custom_fields.get("Status"),
        priority=custom_fields.get("Priority"),
        custom_fields=custom_fields,
    )


def normalize_items(raws: Iterable[dict[str, Any]]) -> list[NormalizedItem]:
    """Normalize a page of raw items, skipping entries that carry no content."""
    items = [normalize_item(raw) for raw in raws if raw and raw.get("content")]
    logger.debug("Normalized %d project items", len(items))
    return items
