from functools import lru_cache
from xray_agent.config.settings import settings
from xray_agent.core.token_cache import AuthTokenCache
from xray_agent.repositories.interfaces.jira_service import IJiraService
from xray_agent.repositories.interfaces.link_type_resolver import ILinkTypeResolver
from xray_agent.repositories.interfaces.xray_client import IXrayClient

from xray_agent.repositories.implementations.jira_service import AtlassianJiraService
from xray_agent.repositories.implementations.link_type_resolver import JiraLinkTypeResolver
from xray_agent.repositories.implementations.xray_graphql_client import XrayGraphQLClient

from xray_agent.services.content_synthesizer import ContentSynthesizer
from xray_agent.services.creation_orchestrator import TestCaseCreationOrchestrator
from xray_agent.services.test_case_service import TestCaseService
from xray_agent.services.xray_data_service import XrayDataService


class Container:
    """Dependency injection container"""

    def __init__(self):
        self._token_cache = None
        self._xray_client = None
        self._jira_service = None

    @lru_cache()
    def token_cache(self) -> AuthTokenCache:
        """Get the process-wide Xray token cache (singleton)"""
        if self._token_cache is None:
            self._token_cache = AuthTokenCache()
        return self._token_cache

    @lru_cache()
    def xray_client(self) -> IXrayClient:
        """Get Xray GraphQL client instance (singleton)"""
        if self._xray_client is None:
            self._xray_client = XrayGraphQLClient(self.token_cache())
        return self._xray_client

    @lru_cache()
    def jira_service(self) -> IJiraService:
        """Get JIRA service instance (singleton)"""
        if self._jira_service is None:
            self._jira_service = AtlassianJiraService()
        return self._jira_service

    def link_type_resolver(self) -> ILinkTypeResolver:
        """Get a link type resolver; link types are looked up per request"""
        return JiraLinkTypeResolver(self.jira_service(), exact_name=settings.xray_tests_link_type)

    def creation_orchestrator(self) -> TestCaseCreationOrchestrator:
        return TestCaseCreationOrchestrator(
            xray_client=self.xray_client(),
            jira_service=self.jira_service(),
            link_type_resolver=self.link_type_resolver(),
        )

    def test_case_service(self) -> TestCaseService:
        """Get test case service instance"""
        return TestCaseService(
            synthesizer=ContentSynthesizer(),
            orchestrator=self.creation_orchestrator(),
            jira_service=self.jira_service(),
        )

    def xray_data_service(self) -> XrayDataService:
        """Get Xray read service instance"""
        return XrayDataService(xray_client=self.xray_client(), jira_service=self.jira_service())


# Global container instance
container = Container()


# Dependency providers for FastAPI
def get_test_case_service() -> TestCaseService:
    """FastAPI dependency for test case service"""
    return container.test_case_service()


def get_creation_orchestrator() -> TestCaseCreationOrchestrator:
    """FastAPI dependency for the creation orchestrator"""
    return container.creation_orchestrator()


def get_xray_data_service() -> XrayDataService:
    """FastAPI dependency for Xray read service"""
    return container.xray_data_service()
