from abc import ABC, abstractmethod
from typing import List, Dict, Any

from xray_agent.models.schemas import IssueDetails, ResolvedIssue


class IJiraService(ABC):
    """Interface for JIRA integration operations"""

    @abstractmethod
    async def resolve_issue(self, issue_key_or_url: str) -> ResolvedIssue:
        """Resolve an issue key or browse URL to its numeric ID and Jira base URL"""
        pass

    @abstractmethod
    async def get_issue(self, issue_key_or_url: str) -> IssueDetails:
        """Get JIRA issue summary, status and plain-text description"""
        pass

    @abstractmethod
    async def get_issue_link_types(self) -> List[Dict[str, Any]]:
        """List the issue link types configured in JIRA"""
        pass

    @abstractmethod
    async def create_issue_link(self, link_type_id: str, inward_issue_id: str, outward_issue_id: str) -> None:
        """Create a directed link between two issues"""
        pass
