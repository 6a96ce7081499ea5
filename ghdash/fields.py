"""Turn one polymorphic Projects V2 field value into a single display string."""

import json
import re
from typing import Any

PARENT_ISSUE_KEY = "Parent issue"

_REPOS_URL = re.compile(r"/repos/([^/]+)/([^/?#]+)")
_HTML_URL = re.compile(r"github\.com/([^/]+)/([^/?#]+)")

# GraphQL __typename -> REST field type tag
_TYPENAME_TAGS = {
    "ProjectV2ItemFieldTextValue": "text",
    "ProjectV2ItemFieldNumberValue": "number",
    "ProjectV2ItemFieldDateValue": "date",
    "ProjectV2ItemFieldSingleSelectValue": "single_select",
    "ProjectV2ItemFieldIterationValue": "iteration",
    "ProjectV2ItemFieldMilestoneValue": "milestone",
    "ProjectV2ItemFieldRepositoryValue": "repository",
    "ProjectV2ItemFieldPullRequestValue": "pull_request",
    "ProjectV2ItemFieldLabelValue": "labels",
    "ProjectV2ItemFieldUserValue": "assignees",
    "ProjectV2ItemFieldReviewerValue": "reviewers",
}

# GraphQL __typename -> key holding the payload on the node
_TYPENAME_PAYLOAD = {
    "text": "text",
    "number": "number",
    "date": "date",
    "single_select": "name",
    "iteration": "title",
    "milestone": "milestone",
    "repository": "repository",
    "pull_request": "pullRequests",
    "labels": "labels",
    "assignees": "users",
    "reviewers": "reviewers",
}

_TAG_ALIASES = {
    "title": "text",
    "parent": "parent_issue",
    "issue": "issue_reference",
    "tracked_by": "issue_reference",
    "pull_requests": "pull_request",
    "linked_pull_requests": "pull_request",
    "users": "assignees",
}


def normalize_tag(tag: str | None) -> str:
    """Map a REST `type`/`data_type` or a GraphQL `__typename` onto one lowercase tag."""
    if not tag:
        return ""
    if tag in _TYPENAME_TAGS:
        return _TYPENAME_TAGS[tag]
    # camelCase / PascalCase -> snake_case; SCREAMING_CASE just lowers
    lowered = tag.lower() if tag.isupper() else re.sub(r"(?<!^)(?<!_)(?=[A-Z])", "_", tag).lower()
    return _TAG_ALIASES.get(lowered, lowered)


def resolve_field(record: dict[str, Any]) -> tuple[str | None, str, Any]:
    """Return (field name, type tag, raw value) for a REST or GraphQL field-value record."""
    typename = record.get("__typename")
    if typename or "field" in record:
        field = record.get("field") or {}
        name = field.get("name") if isinstance(field, dict) else None
        tag = normalize_tag(typename)
        key = _TYPENAME_PAYLOAD.get(tag)
        if key is not None:
            return name, tag, record.get(key)
        # unknown node type: first payload-looking key wins
        for key in ("text", "name", "date", "number", "title"):
            if record.get(key) is not None:
                return name, tag, record[key]
        return name, tag, None

    tag = normalize_tag(record.get("data_type") or record.get("dataType") or record.get("type"))
    return record.get("name"), tag, record.get("value")


def repository_from_url(url: str | None) -> tuple[str, str] | None:
    """Parse (owner, repo) out of an API `.../repos/{owner}/{repo}` or a github.com URL."""
    if not url:
        return None
    match = _REPOS_URL.search(url) or _HTML_URL.search(url)
    if not match:
        return None
    return match.group(1), match.group(2)


def repository_label(repo: Any) -> str | None:
    """Render a repository reference as owner/name (or just name when the owner is unknown)."""
    if not repo:
        return None
    if isinstance(repo, str):
        return repo
    if not isinstance(repo, dict):
        return str(repo)
    for key in ("full_name", "nameWithOwner"):
        if repo.get(key):
            return repo[key]
    name = repo.get("name")
    owner = repo.get("owner")
    login = owner.get("login") if isinstance(owner, dict) else owner
    if name and login:
        return f"{login}/{name}"
    if name:
        return name
    parsed = repository_from_url(repo.get("url") or repo.get("html_url"))
    return "/".join(parsed) if parsed else None


def _text(value: Any) -> Any:
    # REST wraps rich text as {"raw": ..., "html": ...}
    if isinstance(value, dict) and "raw" in value:
        return value["raw"]
    return value


def _first(value: Any) -> Any:
    if isinstance(value, dict) and "nodes" in value:
        value = value["nodes"]
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _format_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _format_reference(value: Any) -> str | None:
    ref = _first(value)
    if ref is None:
        return None
    if not isinstance(ref, dict):
        return str(ref)
    number = ref.get("number")
    if number is None:
        return _generic(ref)
    title = _text(ref.get("title")) or ""
    repo = repository_label(ref.get("repository"))
    if repo is None:
        parsed = repository_from_url(ref.get("repository_url") or ref.get("url") or ref.get("html_url"))
        repo = "/".join(parsed) if parsed else None
    prefix = f"{repo}#{number}" if repo else f"#{number}"
    return f"{prefix} {title}".rstrip()


def _format_names(value: Any) -> str:
    if isinstance(value, dict) and "nodes" in value:
        value = value["nodes"]
    if not isinstance(value, list):
        return _generic(value)
    names = []
    for entry in value:
        if isinstance(entry, dict):
            names.append(str(_text(entry.get("login") or entry.get("name") or entry.get("title") or "")))
        else:
            names.append(str(entry))
    return ", ".join(n for n in names if n)


def _generic(value: Any) -> str:
    if isinstance(value, dict):
        for key in ("name", "title", "raw"):
            if value.get(key) is not None:
                return str(_text(value[key]))
        return json.dumps(value, default=str)
    if isinstance(value, list):
        return json.dumps(value, default=str)
    return str(value)


def extract_field_value(field_type: str | None, value: Any) -> str | None:
    """Return the display string for a field value, or None when the value is absent.

    An explicit empty string is a value and comes back as "". Unknown type tags
    fall through to a generic rendering so no field is silently dropped.
    """
    if value is None:
        return None

    match normalize_tag(field_type):
        case "text":
            return str(_text(value))
        case "number":
            return _format_number(_text(value))
        case "single_select":
            if isinstance(value, dict):
                return str(_text(value.get("name")) if value.get("name") is not None else _generic(value))
            return str(value)
        case "date":
            return str(value)
        case "iteration" | "milestone":
            if isinstance(value, dict):
                return str(_text(value.get("title")) if value.get("title") is not None else _generic(value))
            return str(value)
        case "parent_issue" | "issue_reference" | "pull_request":
            return _format_reference(value)
        case "repository":
            return repository_label(_first(value)) or _generic(value)
        case "labels" | "assignees" | "reviewers":
            return _format_names(value)
        case _:
            return _generic(value)


def lookup_custom_field(custom_fields: dict[str, str], name: str) -> str | None:
    """Exact key first, then a case-insensitive match; None when the item has no such field."""
    if name in custom_fields:
        return custom_fields[name]
    folded = name.casefold()
    for key, value in custom_fields.items():
        if key.casefold() == folded:
            return value
    return None
