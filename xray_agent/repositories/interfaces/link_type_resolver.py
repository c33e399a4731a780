from abc import ABC, abstractmethod

from xray_agent.models.schemas import LinkTypeDescriptor


class ILinkTypeResolver(ABC):
    """Interface for finding the issue link type used between tests and requirements"""

    @abstractmethod
    async def find_tests_link_type(self) -> LinkTypeDescriptor:
        """Return the "tests / is tested by" link type"""
        pass
