from typing import Any, Dict, Optional
import structlog

from xray_agent.repositories.interfaces.jira_service import IJiraService
from xray_agent.repositories.interfaces.link_type_resolver import ILinkTypeResolver
from xray_agent.models.schemas import LinkTypeDescriptor
from xray_agent.core.exceptions import NoLinkTypeFound

logger = structlog.get_logger()


def _descriptor(link_type: Dict[str, Any]) -> LinkTypeDescriptor:
    return LinkTypeDescriptor(
        id=str(link_type.get("id", "")),
        name=link_type.get("name") or "",
        inward=link_type.get("inward") or "",
        outward=link_type.get("outward") or "",
    )


class JiraLinkTypeResolver(ILinkTypeResolver):
    """Finds the link type Xray uses between tests and the requirements they cover.

    The label depends on how Xray was installed ("Test", "Tests",
    "Testing"...), so by default the catalog is searched for the first type
    whose name or verbs mention "test". A configured ``exact_name`` replaces
    the search. Results are not cached between calls.
    """

    def __init__(self, jira_service: IJiraService, exact_name: Optional[str] = None):
        self.jira_service = jira_service
        self.exact_name = exact_name

    async def find_tests_link_type(self) -> LinkTypeDescriptor:
        link_types = await self.jira_service.get_issue_link_types()

        if self.exact_name:
            wanted = self.exact_name.strip().lower()
            for link_type in link_types:
                if (link_type.get("name") or "").strip().lower() == wanted:
                    return _descriptor(link_type)
            raise NoLinkTypeFound(
                f"Configured issue link type '{self.exact_name}' does not exist in JIRA"
            )

        for link_type in link_types:
            labels = (link_type.get("name"), link_type.get("inward"), link_type.get("outward"))
            if any("test" in (label or "").lower() for label in labels):
                descriptor = _descriptor(link_type)
                logger.info("Found tests issue link type", link_type_id=descriptor.id, name=descriptor.name)
                return descriptor

        logger.error(
            "No tests issue link type found",
            available=[link_type.get("name") for link_type in link_types],
        )
        raise NoLinkTypeFound(
            "No issue link type for tests found in JIRA; check that Xray is installed"
        )
