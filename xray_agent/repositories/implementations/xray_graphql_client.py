import httpx
from typing import Optional, Dict, Any
import structlog

from xray_agent.repositories.interfaces.xray_client import IXrayClient
from xray_agent.core.token_cache import AuthTokenCache
from xray_agent.core.exceptions import GraphQLError, UpstreamRejection, UpstreamTimeout, UpstreamUnreachable
from xray_agent.core.http import DEADLINE_ERRORS, request_within
from xray_agent.config.settings import settings

logger = structlog.get_logger()


def raise_for_errors(result: Dict[str, Any], operation: Optional[str] = None) -> Dict[str, Any]:
    """Raise GraphQLError if the response carries errors, otherwise return its ``data``"""
    errors = result.get("errors")
    if errors:
        raise GraphQLError(errors, operation=operation)
    return result.get("data") or {}


class XrayGraphQLClient(IXrayClient):
    """Xray Cloud GraphQL client authenticated through the shared token cache"""

    def __init__(
        self,
        token_cache: AuthTokenCache,
        api_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_cache = token_cache
        self.api_url = api_url or settings.xray_api_url
        self.timeout_seconds = timeout_seconds or settings.xray_graphql_timeout_seconds
        self._transport = transport

    async def execute(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a GraphQL document.

        A top-level ``errors`` array is returned to the caller untouched since
        GraphQL may return partial data next to errors.
        """
        token = await self.token_cache.get_token()
        payload = {"query": document, "variables": variables or {}}

        try:
            response = await request_within(
                self.timeout_seconds,
                "POST",
                self.api_url,
                transport=self._transport,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {token}",
                },
            )
        except DEADLINE_ERRORS as e:
            logger.error("Xray GraphQL request timed out", timeout_seconds=self.timeout_seconds)
            raise UpstreamTimeout(
                f"Xray GraphQL request timeout after {self.timeout_seconds} seconds"
            ) from e
        except httpx.HTTPError as e:
            logger.error("Xray GraphQL request failed to send", error=str(e))
            raise UpstreamUnreachable("Xray GraphQL", str(e)) from e

        if not response.is_success:
            logger.error(
                "Xray GraphQL request failed",
                status_code=response.status_code,
                response=response.text,
            )
            raise UpstreamRejection(
                response.status_code, response.reason_phrase, response.text, service="Xray GraphQL"
            )

        result = response.json()
        if result.get("errors"):
            logger.warning("Xray GraphQL response contains errors", errors=result["errors"])
        return result
