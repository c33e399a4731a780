from typing import Any, Dict, List, Optional
import structlog

from xray_agent.core.exceptions import ValidationError
from xray_agent.models.schemas import ResolvedIssue
from xray_agent.models.xray import (
    ExternalIssueRef,
    UnparseableIssueRef,
    issue_ref_or_empty,
    parse_jira_field,
)
from xray_agent.repositories.implementations.xray_graphql_client import raise_for_errors
from xray_agent.repositories.interfaces.jira_service import IJiraService
from xray_agent.repositories.interfaces.xray_client import IXrayClient

logger = structlog.get_logger()


DATA_TYPE_OPTIONS: List[Dict[str, str]] = [
    {"id": "test-steps", "label": "Test Steps", "description": "Get test steps, actions, and expected results"},
    {"id": "preconditions", "label": "Preconditions", "description": "Get test preconditions and requirements"},
    {"id": "test-sets", "label": "Test Sets", "description": "Get test sets containing this test"},
    {"id": "test-plans", "label": "Test Plans", "description": "Get test plans containing this test"},
    {"id": "test-runs", "label": "Test Runs", "description": "Get execution history and results"},
]

GET_TEST_STEPS = """
query GetTestData($issueId: String!) {
  getTest(issueId: $issueId) {
    issueId
    testType {
      name
      kind
    }
    steps {
      id
      action
      data
      result
    }
  }
}
"""

GET_TEST_PRECONDITIONS = """
query GetTestPreconditions($issueId: String!) {
  getTest(issueId: $issueId) {
    issueId
    preconditions(limit: 100) {
      results {
        issueId
        jira(fields: ["key", "summary", "status"])
      }
      total
    }
  }
}
"""

GET_TEST_SETS = """
query GetTestSetsContainingTest($issueId: String!) {
  getTests(issueIds: [$issueId], limit: 10) {
    results {
      testSets(limit: 50) {
        results {
          issueId
          jira(fields: ["key", "summary", "status"])
        }
        total
      }
    }
  }
}
"""

GET_TEST_PLANS = """
query GetTestPlansContainingTest($issueId: String!) {
  getTests(issueIds: [$issueId], limit: 10) {
    results {
      testPlans(limit: 50) {
        results {
          issueId
          jira(fields: ["key", "summary", "status"])
        }
        total
      }
    }
  }
}
"""

GET_TEST_RUNS = """
query GetTestRuns($issueId: String!) {
  getTestRuns(testIssueIds: [$issueId], limit: 50) {
    results {
      id
      status {
        name
        description
      }
      startedOn
      finishedOn
      testExecution {
        issueId
        jira(fields: ["key", "summary", "status"])
      }
    }
    total
  }
}
"""


class XrayDataService:
    """Read-only views of a test's Xray data (steps, preconditions, sets, plans, runs)"""

    def __init__(self, xray_client: IXrayClient, jira_service: IJiraService):
        self.xray_client = xray_client
        self.jira_service = jira_service
        self._handlers = {
            "test-steps": self.get_test_steps,
            "preconditions": self.get_preconditions,
            "test-sets": self.get_test_sets,
            "test-plans": self.get_test_plans,
            "test-runs": self.get_test_runs,
        }

    async def get_xray_data(self, issue: str, data_type: Optional[str] = None) -> Dict[str, Any]:
        """Dispatch on ``data_type``; without one, return the menu instead of guessing"""
        if not data_type:
            return {
                "message": "What Xray data would you like to retrieve for this test case?",
                "options": DATA_TYPE_OPTIONS,
            }
        handler = self._handlers.get(data_type)
        if handler is None:
            raise ValidationError(f"Unknown data type: {data_type}")
        return await handler(issue)

    async def get_test_steps(self, issue: str) -> Dict[str, Any]:
        resolved = await self.jira_service.resolve_issue(issue)
        data = await self._query(GET_TEST_STEPS, resolved, "getTest")

        test = data.get("getTest")
        if not test:
            logger.warning("getTest returned no data", issue_key=resolved.key)
            return {
                "issue_id": resolved.key,
                "message": (
                    f"Issue {resolved.key} has no test steps or test data defined in Xray yet. "
                    "Add test steps in Xray Cloud to see test data."
                ),
                "test_type": None,
                "steps": [],
            }

        steps = [
            {
                "step_number": index,
                "id": step.get("id"),
                "action": step.get("action"),
                "data": step.get("data"),
                "expected_result": step.get("result"),
            }
            for index, step in enumerate(test.get("steps") or [], start=1)
        ]
        logger.info("Retrieved test steps", issue_key=resolved.key, steps=len(steps))
        return {
            "issue_id": test.get("issueId"),
            "test_type": test.get("testType"),
            "steps": steps,
        }

    async def get_preconditions(self, issue: str) -> Dict[str, Any]:
        resolved = await self.jira_service.resolve_issue(issue)
        data = await self._query(GET_TEST_PRECONDITIONS, resolved, "getTest")

        test = data.get("getTest")
        if not test:
            return {
                "issue_id": resolved.key,
                "message": f"Issue {resolved.key} has no preconditions defined in Xray yet.",
                "preconditions": [],
                "total": 0,
                "jira_base_url": resolved.base_url,
            }

        page = test.get("preconditions") or {"results": [], "total": 0}
        preconditions = self._linked_issues(page.get("results") or [], resolved.base_url)
        total = page.get("total") or 0

        message = f"Found {total} precondition(s) for test {resolved.key}"
        links = [p for p in preconditions if p.key]
        if links:
            message += "\n\nPreconditions:\n" + "".join(f"• {p.key}: {p.url}\n" for p in links)

        return {
            "issue_id": resolved.key,
            "preconditions": [p.model_dump() for p in preconditions],
            "total": total,
            "message": message,
            "jira_base_url": resolved.base_url,
        }

    async def get_test_sets(self, issue: str) -> Dict[str, Any]:
        return await self._containers(issue, GET_TEST_SETS, "testSets", "test_sets", "test set")

    async def get_test_plans(self, issue: str) -> Dict[str, Any]:
        return await self._containers(issue, GET_TEST_PLANS, "testPlans", "test_plans", "test plan")

    async def get_test_runs(self, issue: str) -> Dict[str, Any]:
        resolved = await self.jira_service.resolve_issue(issue)
        data = await self._query(GET_TEST_RUNS, resolved, "getTestRuns")

        page = data.get("getTestRuns") or {"results": [], "total": 0}
        runs = []
        for run in page.get("results") or []:
            execution = run.get("testExecution") or {}
            execution_ref = self._issue_ref(execution.get("jira"), execution.get("issueId"), resolved.base_url)
            status = run.get("status") or {}
            runs.append(
                {
                    "id": run.get("id"),
                    "status": status.get("name"),
                    "status_description": status.get("description"),
                    "started_on": run.get("startedOn"),
                    "finished_on": run.get("finishedOn"),
                    "test_execution": execution_ref.model_dump(),
                }
            )
        total = page.get("total") or 0

        message = f"Found {total} test run(s) for test {resolved.key}"
        executions = [run["test_execution"] for run in runs if run["test_execution"]["key"]]
        if executions:
            message += "\n\nTest Executions:\n" + "".join(f"• {e['key']}: {e['url']}\n" for e in executions)

        return {
            "issue_id": resolved.key,
            "test_runs": runs,
            "total": total,
            "message": message,
            "jira_base_url": resolved.base_url,
        }

    async def _containers(self, issue: str, query: str, field: str, key: str, label: str) -> Dict[str, Any]:
        """Test sets and test plans share one response shape"""
        resolved = await self.jira_service.resolve_issue(issue)
        data = await self._query(query, resolved, "getTests")

        results = (data.get("getTests") or {}).get("results") or []
        page = (results[0].get(field) if results else None) or {"results": [], "total": 0}
        containers = self._linked_issues(page.get("results") or [], resolved.base_url)
        total = page.get("total") or 0
        return {
            "issue_id": resolved.key,
            key: [c.model_dump() for c in containers],
            "total": total,
            "message": f"Found {total} {label}(s) containing test {resolved.key}",
            "jira_base_url": resolved.base_url,
        }

    async def _query(self, query: str, resolved: ResolvedIssue, operation: str) -> Dict[str, Any]:
        result = await self.xray_client.execute(query, {"issueId": resolved.numeric_id})
        return raise_for_errors(result, operation=operation)

    def _linked_issues(self, results: List[Dict[str, Any]], base_url: str) -> List[ExternalIssueRef]:
        return [self._issue_ref(item.get("jira"), item.get("issueId"), base_url) for item in results]

    @staticmethod
    def _issue_ref(raw: Any, issue_id: Optional[str], base_url: str) -> ExternalIssueRef:
        parsed = parse_jira_field(raw, issue_id=issue_id, base_url=base_url)
        if isinstance(parsed, UnparseableIssueRef):
            logger.warning("Failed to parse jira field", issue_id=issue_id, reason=parsed.reason)
        return issue_ref_or_empty(parsed, issue_id=issue_id)
