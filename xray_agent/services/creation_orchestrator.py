from typing import Any, Dict, List, Optional
import httpx
import structlog

from xray_agent.config.settings import settings
from xray_agent.core.exceptions import ConfigurationError, CreationFailure, ValidationError, XrayAgentError
from xray_agent.models.schemas import (
    CreationResult,
    CreationStage,
    CreationState,
    FailedItem,
    LinkTypeDescriptor,
    Precondition,
    TestCaseContent,
    TestStep,
)
from xray_agent.models.xray import ParsedIssueRef, browse_url, parse_jira_field
from xray_agent.repositories.implementations.xray_graphql_client import raise_for_errors
from xray_agent.repositories.interfaces.jira_service import IJiraService
from xray_agent.repositories.interfaces.link_type_resolver import ILinkTypeResolver
from xray_agent.repositories.interfaces.xray_client import IXrayClient
from xray_agent.services.content_synthesizer import render_description

logger = structlog.get_logger()

# errors a best-effort stage records instead of propagating
STAGE_ERRORS = (XrayAgentError, httpx.HTTPError, ValueError)


CREATE_PRECONDITION = """
mutation CreatePrecondition($preconditionType: UpdatePreconditionTypeInput, $definition: String, $jira: JSON!) {
  createPrecondition(preconditionType: $preconditionType, definition: $definition, jira: $jira) {
    precondition {
      issueId
      jira(fields: ["key"])
    }
    warnings
  }
}
"""

CREATE_TEST = """
mutation CreateTest($testType: UpdateTestTypeInput, $steps: [CreateStepInput], $preconditionIssueIds: [String], $jira: JSON!) {
  createTest(testType: $testType, steps: $steps, preconditionIssueIds: $preconditionIssueIds, jira: $jira) {
    test {
      issueId
      jira(fields: ["key", "summary"])
    }
    warnings
  }
}
"""

ADD_TEST_STEP = """
mutation AddTestStep($issueId: String!, $step: CreateStepInput!) {
  addTestStep(issueId: $issueId, step: $step) {
    id
    action
    data
    result
  }
}
"""

ADD_TEST_PRECONDITIONS = """
mutation AddPreconditionsToTest($issueId: String!, $preconditionIssueIds: [String]!) {
  addPreconditionsToTest(issueId: $issueId, preconditionIssueIds: $preconditionIssueIds) {
    addedPreconditions
    warning
  }
}
"""


def step_input(step: TestStep) -> Dict[str, str]:
    return {"action": step.action, "data": step.data or "", "result": step.expected_result}


def build_link_payload(
    link_type: LinkTypeDescriptor, *, test_issue_id: str, requirement_issue_id: str
) -> Dict[str, Any]:
    """Issue link body: the test is the inward side ("tests"), the requirement the outward side"""
    return {
        "type": {"id": link_type.id},
        "inwardIssue": {"id": test_issue_id},
        "outwardIssue": {"id": requirement_issue_id},
    }


class TestCaseCreationOrchestrator:
    """Creates preconditions, the test issue and its requirement link.

    Stages run strictly one after another. Only the test issue creation is
    mandatory; precondition and link failures are recorded in the result and
    the run carries on.
    """

    def __init__(
        self,
        xray_client: IXrayClient,
        jira_service: IJiraService,
        link_type_resolver: ILinkTypeResolver,
    ):
        self.xray_client = xray_client
        self.jira_service = jira_service
        self.link_type_resolver = link_type_resolver

    async def create_test_case(
        self,
        content: TestCaseContent,
        project_key: str,
        tracker_base_url: Optional[str] = None,
        originating_issue: Optional[str] = None,
    ) -> CreationResult:
        if not project_key:
            raise ValidationError("Project key is required to create a test")

        log = logger.bind(project_key=project_key, summary=content.summary)
        state = CreationState.IDLE
        failures: List[FailedItem] = []

        state = self._transition(log, state, CreationState.PRECONDITIONS_IN_FLIGHT)
        precondition_ids = await self._create_preconditions(content.preconditions, project_key, failures, log)

        state = self._transition(log, state, CreationState.TEST_CREATION_IN_FLIGHT)
        try:
            test_issue_id, test_key = await self._create_test(content, project_key, precondition_ids)
        except (CreationFailure, ConfigurationError):
            self._transition(log, state, CreationState.FAILED)
            raise

        base_url = (tracker_base_url or settings.jira_base_url or "").rstrip("/")
        result = CreationResult(
            issue_id=test_issue_id,
            key=test_key,
            url=browse_url(base_url, test_key),
            steps_created=len(content.steps),
            preconditions_created=len(precondition_ids),
            precondition_issue_ids=precondition_ids,
        )

        if originating_issue:
            state = self._transition(log, state, CreationState.LINKING_IN_FLIGHT)
            result.user_story_linked = await self._link_to_requirement(
                test_issue_id, originating_issue, failures, log
            )

        result.failures = failures
        self._transition(log, state, CreationState.DONE)
        log.info(
            "Test case created",
            issue_id=result.issue_id,
            key=result.key,
            steps_created=result.steps_created,
            preconditions_created=result.preconditions_created,
            user_story_linked=result.user_story_linked,
            failures=len(failures),
        )
        return result

    async def attach_step(self, test_issue_id: str, step: TestStep) -> Dict[str, Any]:
        """Append one step to an existing test"""
        result = await self.xray_client.execute(ADD_TEST_STEP, {"issueId": test_issue_id, "step": step_input(step)})
        data = raise_for_errors(result, operation="addTestStep")
        return data.get("addTestStep") or {}

    async def attach_preconditions(self, test_issue_id: str, precondition_issue_ids: List[str]) -> List[str]:
        """Associate existing preconditions with an existing test; returns the ids Xray added"""
        if not precondition_issue_ids:
            return []
        result = await self.xray_client.execute(
            ADD_TEST_PRECONDITIONS,
            {"issueId": test_issue_id, "preconditionIssueIds": precondition_issue_ids},
        )
        data = raise_for_errors(result, operation="addPreconditionsToTest")
        payload = data.get("addPreconditionsToTest") or {}
        if payload.get("warning"):
            logger.warning("Xray warning while adding preconditions", issue_id=test_issue_id, warning=payload["warning"])
        return list(payload.get("addedPreconditions") or [])

    async def _create_preconditions(
        self,
        preconditions: List[Precondition],
        project_key: str,
        failures: List[FailedItem],
        log,
    ) -> List[str]:
        created: List[str] = []
        for precondition in preconditions:
            try:
                issue_id = await self._create_precondition(precondition, project_key)
            except STAGE_ERRORS as e:
                log.warning("Failed to create precondition", precondition_id=precondition.id, error=str(e))
                failures.append(
                    FailedItem(stage=CreationStage.PRECONDITION, item=precondition.id, error=str(e))
                )
                continue
            log.info("Precondition created", precondition_id=precondition.id, issue_id=issue_id)
            created.append(issue_id)
        return created

    async def _create_precondition(self, precondition: Precondition, project_key: str) -> str:
        variables = {
            "preconditionType": {"name": "Manual"},
            "definition": precondition.description or precondition.condition,
            "jira": {"fields": {"summary": precondition.condition, "project": {"key": project_key}}},
        }
        result = await self.xray_client.execute(CREATE_PRECONDITION, variables)
        data = raise_for_errors(result, operation="createPrecondition")
        issue_id = ((data.get("createPrecondition") or {}).get("precondition") or {}).get("issueId")
        if not issue_id:
            raise CreationFailure("createPrecondition returned no issue id", stage=CreationStage.PRECONDITION.value)
        return str(issue_id)

    async def _create_test(self, content: TestCaseContent, project_key: str, precondition_ids: List[str]):
        variables = {
            "testType": {"name": "Manual"},
            "steps": [step_input(step) for step in content.steps],
            "preconditionIssueIds": precondition_ids,
            "jira": {
                "fields": {
                    "summary": content.summary,
                    "project": {"key": project_key},
                    "description": render_description(content),
                }
            },
        }
        try:
            result = await self.xray_client.execute(CREATE_TEST, variables)
        except ConfigurationError:
            raise
        except STAGE_ERRORS as e:
            logger.error("Test creation request failed", project_key=project_key, error=str(e))
            raise CreationFailure(f"Failed to create test in Xray: {e}", cause=e) from e

        if result.get("errors"):
            logger.error("Test creation returned GraphQL errors", errors=result["errors"])
            raise CreationFailure(f"Failed to create test in Xray: GraphQL errors: {result['errors']}")

        test = ((result.get("data") or {}).get("createTest") or {}).get("test") or {}
        test_issue_id = test.get("issueId")
        if not test_issue_id:
            logger.error("Test creation returned no data", response=result)
            raise CreationFailure("Failed to create test in Xray: response contained no test data")

        warnings = ((result.get("data") or {}).get("createTest") or {}).get("warnings")
        if warnings:
            logger.warning("Xray warnings while creating test", issue_id=test_issue_id, warnings=warnings)

        parsed = parse_jira_field(test.get("jira"), issue_id=str(test_issue_id))
        test_key = parsed.ref.key if isinstance(parsed, ParsedIssueRef) else None
        if parsed is not None and test_key is None:
            logger.warning("Could not read key of created test", issue_id=test_issue_id, jira=test.get("jira"))
        return str(test_issue_id), test_key

    async def _link_to_requirement(
        self, test_issue_id: str, originating_issue: str, failures: List[FailedItem], log
    ) -> bool:
        try:
            requirement = await self.jira_service.resolve_issue(originating_issue)
            link_type = await self.link_type_resolver.find_tests_link_type()
            payload = build_link_payload(
                link_type, test_issue_id=test_issue_id, requirement_issue_id=requirement.numeric_id
            )
            await self.jira_service.create_issue_link(
                link_type_id=payload["type"]["id"],
                inward_issue_id=payload["inwardIssue"]["id"],
                outward_issue_id=payload["outwardIssue"]["id"],
            )
        except STAGE_ERRORS as e:
            log.warning("Failed to link test to requirement", requirement=originating_issue, error=str(e))
            failures.append(FailedItem(stage=CreationStage.LINK, item=originating_issue, error=str(e)))
            return False
        log.info("Test linked to requirement", requirement=requirement.key, link_type=link_type.name)
        return True

    @staticmethod
    def _transition(log, current: CreationState, new: CreationState) -> CreationState:
        log.debug("Creation state changed", from_state=current.value, to_state=new.value)
        return new
