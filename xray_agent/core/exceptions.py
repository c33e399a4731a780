from typing import Any, Dict, List, Optional


class XrayAgentError(Exception):
    """Base class for every error raised by the agent"""


class ConfigurationError(XrayAgentError):
    """Required settings (credentials, base URLs) are missing"""


class ValidationError(XrayAgentError):
    """A required identifier or input was missing or malformed"""


class AuthenticationError(XrayAgentError):
    """Xray rejected the client credentials"""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Authentication failed: {status_code} - {body}")


class UpstreamTimeout(XrayAgentError):
    """An outbound call did not complete before its deadline.

    Timeouts are kept apart from rejections so callers can decide whether a
    retry is worthwhile.
    """


class AuthenticationTimeout(UpstreamTimeout):
    """The Xray authentication exchange did not complete before its deadline"""


class UpstreamRejection(XrayAgentError):
    """An upstream service answered with a non-success HTTP status"""

    def __init__(self, status_code: int, reason: str, body: str, service: str = "upstream"):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        self.service = service
        super().__init__(f"{service} request failed: {status_code} {reason} - {body}")


class UpstreamUnreachable(XrayAgentError):
    """An upstream service could not be reached (connection refused, DNS, protocol error)"""

    def __init__(self, service: str, detail: str):
        self.service = service
        super().__init__(f"{service} request failed: {detail}")


class GraphQLError(XrayAgentError):
    """A GraphQL response carried a non-empty top-level ``errors`` array"""

    def __init__(self, errors: List[Dict[str, Any]], operation: Optional[str] = None):
        self.errors = errors
        self.operation = operation
        messages = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
        prefix = f"GraphQL errors in {operation}" if operation else "GraphQL errors"
        super().__init__(f"{prefix}: {messages}")


class LookupFailure(XrayAgentError):
    """The issue tracker could not resolve an issue key"""

    def __init__(self, issue_key: str, detail: str):
        self.issue_key = issue_key
        super().__init__(f"Failed to get issue ID for {issue_key}: {detail}")


class NoLinkTypeFound(XrayAgentError):
    """No issue link type with "tests" semantics is configured in Jira"""


class CreationFailure(XrayAgentError):
    """The mandatory test issue creation stage failed"""

    def __init__(self, message: str, stage: str = "test", cause: Optional[BaseException] = None):
        self.stage = stage
        self.cause = cause
        super().__init__(message)
