"""
Run normalization.

Forgejo and Gitea expose workflow runs with different field names depending on
the server version (``prettyref`` vs ``head_branch``, ``created`` vs
``created_at``, ``index_in_repo`` vs ``run_number`` ...). Every logical field
has an explicit fallback chain below; the first non-empty value wins.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .models import CANONICAL_FIELDS, NormalizedRun

logger = logging.getLogger(__name__)

# Dotted names walk into nested objects (head_commit.author.name)
FIELD_FALLBACKS: Dict[str, Tuple[str, ...]] = {
    "id": ("id",),
    "status": ("status",),
    "conclusion": ("conclusion",),
    "head_branch": ("head_branch", "prettyref"),
    "head_sha": ("head_sha", "commit_sha", "head_commit.id"),
    "created_at": ("created_at", "created"),
    "started_at": ("started_at", "run_started_at", "started"),
    "completed_at": ("completed_at", "stopped"),
    "run_number": ("run_number", "index_in_repo"),
    "commit_message": (
        "commit_message",
        "head_commit.message",
        "display_title",
        "title",
    ),
    "author": (
        "author",
        "head_commit.author.name",
        "head_commit.author.login",
        "actor.login",
        "trigger_actor.login",
        "trigger_user.login",
    ),
}

TIMESTAMP_FIELDS = ("created_at", "started_at", "completed_at")
TEXT_FIELDS = ("status", "conclusion", "head_branch", "head_sha", "commit_message", "author")

WORKFLOW_REF_RE = re.compile(r"workflows/([^@]+)")
WORKFLOW_SUFFIX_RE = re.compile(r"\.(yml|yaml)$")

RunLike = Union[Mapping[str, Any], NormalizedRun]


def _lookup(raw: Mapping[str, Any], dotted: str) -> Any:
    value: Any = raw
    for part in dotted.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def first_present(raw: Mapping[str, Any], names: Tuple[str, ...], text_only: bool = False) -> Any:
    """Return the first non-empty value among ``names``."""
    for name in names:
        value = _lookup(raw, name)
        if _is_empty(value):
            continue
        if text_only and not isinstance(value, str):
            continue
        return value
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an API timestamp; naive values are taken as UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Ignoring unparseable timestamp: {value!r}")
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_run(raw: Mapping[str, Any]) -> NormalizedRun:
    """
    Map a raw API run record onto NormalizedRun.

    The embedded ``repository`` object is dropped: the caller knows which
    repository it asked for and does not trust the payload's copy.
    Normalizing the ``to_raw()`` form of a normalized run is a no-op.
    """
    values: Dict[str, Any] = {}
    for field, names in FIELD_FALLBACKS.items():
        values[field] = first_present(raw, names, text_only=field in TEXT_FIELDS)

    for field in TIMESTAMP_FIELDS:
        values[field] = parse_timestamp(values[field])
    values["run_number"] = _parse_int(values["run_number"])

    extra = {
        key: value
        for key, value in raw.items()
        if key != "repository" and key not in CANONICAL_FIELDS
    }
    return NormalizedRun(**values, extra=extra)


def workflow_name(run: RunLike) -> str:
    """
    Name of the workflow a run belongs to.

    Prefers the file name from ``workflow_ref`` (``.github/workflows/ci.yml@refs/...``
    gives ``ci``), then the display name, then the raw workflow id.
    """
    get = run.get
    workflow_ref = get("workflow_ref")
    if workflow_ref:
        match = WORKFLOW_REF_RE.search(str(workflow_ref))
        if match:
            return WORKFLOW_SUFFIX_RE.sub("", match.group(1))
    name = get("name")
    if name:
        return str(name)
    workflow_id = get("workflow_id")
    if workflow_id:
        return str(workflow_id)
    return "unknown"
