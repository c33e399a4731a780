import json
from unittest.mock import AsyncMock

import pytest

from tests.conftest import FakeXrayClient, JIRA_URL
from xray_agent.core.exceptions import GraphQLError, ValidationError
from xray_agent.models.schemas import ResolvedIssue
from xray_agent.services.xray_data_service import DATA_TYPE_OPTIONS, XrayDataService


def jira_blob(key, summary, status="Done"):
    return json.dumps({"key": key, "summary": summary, "status": {"name": status}})


def make_service(responses):
    xray_client = FakeXrayClient(responses)
    jira_service = AsyncMock()
    jira_service.resolve_issue.return_value = ResolvedIssue(key="PROJ-1", numeric_id="10001", base_url=JIRA_URL)
    return XrayDataService(xray_client, jira_service), xray_client


@pytest.mark.asyncio
async def test_menu_is_returned_without_data_type():
    service, xray_client = make_service({})

    result = await service.get_xray_data("PROJ-1")

    assert result["options"] == DATA_TYPE_OPTIONS
    assert [o["id"] for o in result["options"]] == ["test-steps", "preconditions", "test-sets", "test-plans", "test-runs"]
    assert xray_client.calls == []


@pytest.mark.asyncio
async def test_unknown_data_type_is_rejected():
    service, _ = make_service({})

    with pytest.raises(ValidationError, match="test-cases"):
        await service.get_xray_data("PROJ-1", "test-cases")


@pytest.mark.asyncio
async def test_test_steps_are_numbered_from_one():
    response = {
        "data": {
            "getTest": {
                "issueId": "10001",
                "testType": {"name": "Manual", "kind": "Steps"},
                "steps": [
                    {"id": "s1", "action": "Open page", "data": "", "result": "Page shown"},
                    {"id": "s2", "action": "Click login", "data": "user/pass", "result": "Logged in"},
                ],
            }
        }
    }
    service, xray_client = make_service({"getTest": response})

    result = await service.get_xray_data("PROJ-1", "test-steps")

    assert xray_client.calls_to("getTest") == [{"issueId": "10001"}]
    assert result["test_type"] == {"name": "Manual", "kind": "Steps"}
    assert [s["step_number"] for s in result["steps"]] == [1, 2]
    assert result["steps"][1]["expected_result"] == "Logged in"


@pytest.mark.asyncio
async def test_missing_test_yields_explanatory_message():
    service, _ = make_service({"getTest": {"data": {"getTest": None}}})

    result = await service.get_test_steps("PROJ-1")

    assert result["steps"] == []
    assert "PROJ-1" in result["message"]


@pytest.mark.asyncio
async def test_graphql_errors_are_raised_for_reads():
    service, _ = make_service({"getTest": {"errors": [{"message": "not a test"}]}})

    with pytest.raises(GraphQLError, match="not a test"):
        await service.get_test_steps("PROJ-1")


@pytest.mark.asyncio
async def test_preconditions_degrade_unparseable_blobs():
    response = {
        "data": {
            "getTest": {
                "issueId": "10001",
                "preconditions": {
                    "results": [
                        {"issueId": "20001", "jira": jira_blob("PROJ-2", "User exists")},
                        {"issueId": "20002", "jira": "{broken"},
                    ],
                    "total": 2,
                },
            }
        }
    }
    service, _ = make_service({"getTest": response})

    result = await service.get_preconditions("PROJ-1")

    assert result["total"] == 2
    first, second = result["preconditions"]
    assert first == {
        "issue_id": "20001",
        "key": "PROJ-2",
        "summary": "User exists",
        "status": "Done",
        "url": f"{JIRA_URL}/browse/PROJ-2",
    }
    assert second == {"issue_id": "20002", "key": None, "summary": None, "status": None, "url": None}
    assert f"• PROJ-2: {JIRA_URL}/browse/PROJ-2" in result["message"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data_type, field, key",
    [("test-sets", "testSets", "test_sets"), ("test-plans", "testPlans", "test_plans")],
)
async def test_containers(data_type, field, key):
    response = {
        "data": {
            "getTests": {
                "results": [
                    {field: {"results": [{"issueId": "30001", "jira": jira_blob("PROJ-30", "Regression")}], "total": 1}}
                ]
            }
        }
    }
    service, _ = make_service({"getTests": response})

    result = await service.get_xray_data("PROJ-1", data_type)

    assert result["total"] == 1
    assert result[key][0]["key"] == "PROJ-30"
    assert result["jira_base_url"] == JIRA_URL


@pytest.mark.asyncio
async def test_containers_when_test_is_in_none():
    service, _ = make_service({"getTests": {"data": {"getTests": {"results": []}}}})

    result = await service.get_test_sets("PROJ-1")

    assert result["test_sets"] == []
    assert result["total"] == 0


@pytest.mark.asyncio
async def test_test_runs():
    response = {
        "data": {
            "getTestRuns": {
                "results": [
                    {
                        "id": "run-1",
                        "status": {"name": "PASSED", "description": "The test run has passed"},
                        "startedOn": "2024-01-01T10:00:00Z",
                        "finishedOn": "2024-01-01T10:05:00Z",
                        "testExecution": {"issueId": "40001", "jira": jira_blob("PROJ-40", "Sprint 1")},
                    },
                    {"id": "run-2", "status": None, "testExecution": None},
                ],
                "total": 2,
            }
        }
    }
    service, _ = make_service({"getTestRuns": response})

    result = await service.get_xray_data("PROJ-1", "test-runs")

    first, second = result["test_runs"]
    assert first["status"] == "PASSED"
    assert first["started_on"] == "2024-01-01T10:00:00Z"
    assert first["test_execution"]["key"] == "PROJ-40"
    assert second["status"] is None
    assert second["test_execution"]["key"] is None
    assert "• PROJ-40" in result["message"]
