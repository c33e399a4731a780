from typing import Any, Dict, List
from fastapi import APIRouter, Body, Depends, HTTPException, status
import structlog

from xray_agent.api.errors import to_http_exception
from xray_agent.core.exceptions import XrayAgentError
from xray_agent.models.schemas import (
    CreateTestCaseRequest,
    CreateTestCaseResponse,
    SynthesizeRequest,
    TestCaseContent,
    TestStep,
)
from xray_agent.services.creation_orchestrator import TestCaseCreationOrchestrator
from xray_agent.services.test_case_service import TestCaseService
from xray_agent.core.dependencies import get_creation_orchestrator, get_test_case_service

logger = structlog.get_logger()

router = APIRouter(prefix="/test-cases", tags=["test-cases"])


@router.post("/synthesize", response_model=TestCaseContent)
async def synthesize_test_case(
    request: SynthesizeRequest,
    service: TestCaseService = Depends(get_test_case_service)
):
    """Build a test case document from free text without creating anything"""
    try:
        return service.synthesize(request)
    except XrayAgentError as e:
        raise to_http_exception(e)


@router.post("/", response_model=CreateTestCaseResponse, status_code=status.HTTP_201_CREATED)
async def create_test_case(
    request: CreateTestCaseRequest,
    service: TestCaseService = Depends(get_test_case_service)
):
    """Synthesize a test case and create it in Xray with preconditions and a user story link"""
    try:
        logger.info("Creating test case", user_story=request.user_story, project_key=request.project_key)
        return await service.create_test_case(request)
    except XrayAgentError as e:
        logger.error("Failed to create test case", user_story=request.user_story, error=str(e))
        raise to_http_exception(e)


@router.post("/{test_issue_id}/steps", status_code=status.HTTP_201_CREATED)
async def add_test_step(
    test_issue_id: str,
    step: TestStep,
    orchestrator: TestCaseCreationOrchestrator = Depends(get_creation_orchestrator)
) -> Dict[str, Any]:
    """Append a step to an existing test"""
    try:
        return await orchestrator.attach_step(test_issue_id, step)
    except XrayAgentError as e:
        logger.error("Failed to add test step", test_issue_id=test_issue_id, error=str(e))
        raise to_http_exception(e)


@router.post("/{test_issue_id}/preconditions")
async def add_test_preconditions(
    test_issue_id: str,
    precondition_issue_ids: List[str] = Body(..., embed=True),
    orchestrator: TestCaseCreationOrchestrator = Depends(get_creation_orchestrator)
) -> Dict[str, Any]:
    """Associate existing preconditions with an existing test"""
    if not precondition_issue_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="precondition_issue_ids must not be empty"
        )
    try:
        added = await orchestrator.attach_preconditions(test_issue_id, precondition_issue_ids)
        return {"test_issue_id": test_issue_id, "added_preconditions": added}
    except XrayAgentError as e:
        logger.error("Failed to add preconditions", test_issue_id=test_issue_id, error=str(e))
        raise to_http_exception(e)
