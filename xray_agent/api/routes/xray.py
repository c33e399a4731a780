from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query

from xray_agent.api.errors import to_http_exception
from xray_agent.core.exceptions import XrayAgentError
from xray_agent.core.dependencies import get_xray_data_service
from xray_agent.services.xray_data_service import XrayDataService

logger = structlog.get_logger()

router = APIRouter(prefix="/xray", tags=["xray"])


@router.get("/data")
async def get_xray_data(
    issue: str = Query(..., description="Test issue key (e.g. PROJ-123) or browse URL"),
    data_type: Optional[str] = Query(
        None, description="test-steps, preconditions, test-sets, test-plans or test-runs"
    ),
    service: XrayDataService = Depends(get_xray_data_service)
):
    """Fetch Xray data for a test; without data_type the available options are returned"""
    try:
        logger.info("Fetching Xray data", issue=issue, data_type=data_type)
        return await service.get_xray_data(issue, data_type)
    except XrayAgentError as e:
        logger.error("Failed to fetch Xray data", issue=issue, data_type=data_type, error=str(e))
        raise to_http_exception(e)
