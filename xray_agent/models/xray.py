import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel


class ExternalIssueRef(BaseModel):
    issue_id: Optional[str] = None
    key: Optional[str] = None
    summary: Optional[str] = None
    status: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class ParsedIssueRef:
    ref: ExternalIssueRef


@dataclass(frozen=True)
class UnparseableIssueRef:
    raw: Any
    reason: str


IssueRefResult = Union[ParsedIssueRef, UnparseableIssueRef]


def browse_url(base_url: Optional[str], key: Optional[str]) -> Optional[str]:
    if not base_url or not key:
        return None
    return f"{base_url.rstrip('/')}/browse/{key}"


def parse_jira_field(
    raw: Any, issue_id: Optional[str] = None, base_url: Optional[str] = None
) -> Optional[IssueRefResult]:
    """Decode the ``jira`` field Xray returns as a JSON-encoded blob.

    Returns ``None`` when there is no value at all, so callers can tell
    "nothing linked" apart from "malformed payload".
    """
    if raw is None:
        return None
    value = raw
    if isinstance(raw, (str, bytes)):
        try:
            value = json.loads(raw)
        except ValueError as e:
            return UnparseableIssueRef(raw=raw, reason=str(e))
    if not isinstance(value, dict):
        return UnparseableIssueRef(raw=raw, reason=f"expected an object, got {type(value).__name__}")

    status = value.get("status")
    if isinstance(status, dict):
        status = status.get("name")
    key = value.get("key")
    return ParsedIssueRef(
        ref=ExternalIssueRef(
            issue_id=issue_id or value.get("id"),
            key=key,
            summary=value.get("summary"),
            status=status,
            url=browse_url(base_url, key),
        )
    )


def issue_ref_or_empty(result: Optional[IssueRefResult], issue_id: Optional[str] = None) -> ExternalIssueRef:
    """Projection used by display code: anything but a parsed ref degrades to null fields"""
    if isinstance(result, ParsedIssueRef):
        return result.ref
    return ExternalIssueRef(issue_id=issue_id)
