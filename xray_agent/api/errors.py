from fastapi import HTTPException, status

from xray_agent.core.exceptions import (
    ConfigurationError,
    LookupFailure,
    UpstreamTimeout,
    ValidationError,
    XrayAgentError,
)


def to_http_exception(exc: XrayAgentError) -> HTTPException:
    """Map agent errors to HTTP errors; anything unlisted is an upstream failure"""
    if isinstance(exc, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, LookupFailure):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, UpstreamTimeout):
        code = status.HTTP_504_GATEWAY_TIMEOUT
    elif isinstance(exc, ConfigurationError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_502_BAD_GATEWAY
    return HTTPException(status_code=code, detail={"error": type(exc).__name__, "message": str(exc)})
