from abc import ABC, abstractmethod
from typing import Optional, Dict, Any


class IXrayClient(ABC):
    """Interface for the Xray GraphQL API"""

    @abstractmethod
    async def execute(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a query or mutation and return the parsed body (``data`` and/or ``errors``)"""
        pass
