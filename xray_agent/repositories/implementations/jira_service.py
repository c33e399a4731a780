import httpx
from typing import Optional, Dict, Any, List, Tuple
import structlog
from xray_agent.repositories.interfaces.jira_service import IJiraService
from xray_agent.models.schemas import IssueDetails, ResolvedIssue
from xray_agent.core.exceptions import (
    ConfigurationError,
    LookupFailure,
    UpstreamRejection,
    UpstreamTimeout,
    UpstreamUnreachable,
    ValidationError,
)
from xray_agent.core.http import DEADLINE_ERRORS, request_within
from xray_agent.config.settings import settings

logger = structlog.get_logger()


def split_issue_reference(issue_key_or_url: str) -> Tuple[str, Optional[str]]:
    """Split ``https://x.atlassian.net/browse/PROJ-1`` into ``("PROJ-1", "https://x.atlassian.net")``.

    A bare key comes back with no base URL.
    """
    value = (issue_key_or_url or "").strip()
    if not value:
        raise ValidationError("Issue ID is required")
    if "/browse/" not in value:
        return value, None
    base_url, _, key = value.rpartition("/browse/")
    # drop query string, fragment and trailing slashes after the key
    key = key.split("?", 1)[0].split("#", 1)[0].strip("/")
    if not key:
        raise ValidationError(f"No issue key found in {issue_key_or_url}")
    return key, base_url.rstrip("/")


def extract_plain_text(desc: Any) -> str:
    """Flatten an Atlassian Document Format value to plain text"""
    if isinstance(desc, dict) and "content" in desc:
        blocks: List[str] = []

        def extract(node: Any, parts: List[str]) -> None:
            if isinstance(node, dict):
                if node.get("type") == "text":
                    parts.append(node.get("text", ""))
                elif node.get("type") == "hardBreak":
                    parts.append("\n")
                elif "content" in node:
                    for child in node["content"]:
                        extract(child, parts)
            elif isinstance(node, list):
                for item in node:
                    extract(item, parts)

        # one line per top-level block so the first line stays the first paragraph
        for block in desc["content"]:
            parts: List[str] = []
            extract(block, parts)
            text = "".join(parts).strip()
            if text:
                blocks.append(text)
        return "\n".join(blocks)
    elif isinstance(desc, str):
        return desc
    return ""


class AtlassianJiraService(IJiraService):
    """Atlassian JIRA Cloud implementation of JIRA service"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        username: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.jira_base_url or "").rstrip("/")
        self.username = username or settings.jira_username
        self.api_token = api_token or settings.jira_api_token
        self.auth = (self.username, self.api_token) if self.username and self.api_token else None
        self.timeout_seconds = timeout_seconds or settings.jira_timeout_seconds
        self._transport = transport

    async def resolve_issue(self, issue_key_or_url: str) -> ResolvedIssue:
        """Resolve an issue key or browse URL to the numeric ID Xray expects"""
        issue_key, url_base = split_issue_reference(issue_key_or_url)
        response = await self._get(
            f"/rest/api/3/issue/{issue_key}", params={"fields": "id"}, issue_key=issue_key
        )
        numeric_id = str(response.json().get("id") or "")
        if not numeric_id:
            raise LookupFailure(issue_key, "response did not contain an issue id")

        base_url = url_base or self.base_url
        logger.info("Resolved JIRA issue", issue_key=issue_key, issue_id=numeric_id, jira_base_url=base_url)
        return ResolvedIssue(key=issue_key, numeric_id=numeric_id, base_url=base_url)

    async def get_issue(self, issue_key_or_url: str) -> IssueDetails:
        """Get JIRA issue details with the description flattened to plain text"""
        issue_key, _ = split_issue_reference(issue_key_or_url)
        response = await self._get(
            f"/rest/api/3/issue/{issue_key}",
            params={"fields": "summary,description,status"},
            issue_key=issue_key,
        )
        issue_data = response.json()
        fields = issue_data.get("fields") or {}
        status = (fields.get("status") or {}).get("name")
        return IssueDetails(
            key=issue_data.get("key") or issue_key,
            summary=fields.get("summary") or "",
            description_text=extract_plain_text(fields.get("description")),
            status=status,
        )

    async def get_issue_link_types(self) -> List[Dict[str, Any]]:
        """List the issue link types configured in JIRA"""
        response = await self._get("/rest/api/3/issueLinkType")
        link_types = response.json().get("issueLinkTypes", [])
        logger.info("Fetched JIRA issue link types", count=len(link_types))
        return link_types

    async def create_issue_link(self, link_type_id: str, inward_issue_id: str, outward_issue_id: str) -> None:
        """Create a directed link; JIRA answers 201 with an empty body"""
        self._require_configured()
        payload = {
            "type": {"id": link_type_id},
            "inwardIssue": {"id": inward_issue_id},
            "outwardIssue": {"id": outward_issue_id},
        }
        try:
            response = await request_within(
                self.timeout_seconds,
                "POST",
                f"{self.base_url}/rest/api/3/issueLink",
                transport=self._transport,
                json=payload,
                auth=self.auth,
                headers={"Accept": "application/json", "Content-Type": "application/json"},
            )
        except DEADLINE_ERRORS as e:
            raise UpstreamTimeout(
                f"Jira API timeout when linking {inward_issue_id} to {outward_issue_id}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("JIRA issue link request failed to send", error=str(e))
            raise UpstreamUnreachable("Jira", str(e)) from e

        if not response.is_success:
            logger.error(
                "Failed to create JIRA issue link",
                status_code=response.status_code,
                response=response.text,
            )
            raise UpstreamRejection(response.status_code, response.reason_phrase, response.text, service="Jira")
        logger.info(
            "JIRA issue link created",
            link_type_id=link_type_id,
            inward_issue_id=inward_issue_id,
            outward_issue_id=outward_issue_id,
        )

    async def _get(
        self, path: str, params: Optional[Dict[str, Any]] = None, issue_key: Optional[str] = None
    ) -> httpx.Response:
        self._require_configured()
        try:
            response = await request_within(
                self.timeout_seconds,
                "GET",
                f"{self.base_url}{path}",
                transport=self._transport,
                params=params,
                auth=self.auth,
                headers={"Accept": "application/json"},
            )
        except DEADLINE_ERRORS as e:
            target = f"getting issue ID for {issue_key}" if issue_key else f"calling {path}"
            logger.error("JIRA request timed out", path=path, timeout_seconds=self.timeout_seconds)
            raise UpstreamTimeout(f"Jira API timeout when {target}") from e
        except httpx.HTTPError as e:
            logger.error("JIRA request failed to send", path=path, error=str(e))
            raise UpstreamUnreachable("Jira", str(e)) from e

        if response.is_success:
            return response

        logger.error("JIRA request failed", path=path, issue_key=issue_key, status_code=response.status_code)
        if issue_key:
            raise LookupFailure(
                issue_key, f"Failed to get issue details: {response.status_code} {response.reason_phrase}"
            )
        raise UpstreamRejection(response.status_code, response.reason_phrase, response.text, service="Jira")

    def _require_configured(self) -> None:
        if not self._is_configured():
            raise ConfigurationError("JIRA_BASE_URL, JIRA_USERNAME and JIRA_API_TOKEN must be set")

    def _is_configured(self) -> bool:
        """Check if JIRA service is properly configured"""
        return bool(self.base_url and self.username and self.api_token)
