import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from main import app
from xray_agent.repositories.interfaces.xray_client import IXrayClient

AUTH_URL = "https://xray.test/api/v1/authenticate"
GRAPHQL_URL = "https://xray.test/api/v2/graphql"
JIRA_URL = "https://example.atlassian.net"


class FakeClock:
    """Monotonic clock the tests move by hand"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served"""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


class DripStream(httpx.AsyncByteStream):
    """Response body that arrives one byte at a time, ``delay`` seconds apart"""

    def __init__(self, body: bytes, delay: float):
        self.body = body
        self.delay = delay

    async def __aiter__(self):
        for index in range(len(self.body)):
            await asyncio.sleep(self.delay)
            yield self.body[index:index + 1]


def drip_response(body: str, delay: float = 0.1) -> httpx.Response:
    return httpx.Response(200, stream=DripStream(body.encode(), delay))


def operation_name(document: str) -> str:
    """First field selected by a GraphQL document, e.g. ``createTest``"""
    body = document.split("{", 1)[1]
    return body.strip().split("(", 1)[0].split("{", 1)[0].strip()


class FakeXrayClient(IXrayClient):
    """In-memory Xray client answering per operation name.

    ``responses`` maps an operation name to either a response dict, an
    exception to raise, or a callable taking the variables.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def execute(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        name = operation_name(document)
        variables = variables or {}
        self.calls.append((name, variables))
        response = self.responses.get(name)
        if callable(response) and not isinstance(response, BaseException):
            response = response(variables)
        if isinstance(response, BaseException):
            raise response
        if response is None:
            raise AssertionError(f"Unexpected GraphQL operation {name}")
        return response

    def calls_to(self, name: str) -> List[Dict[str, Any]]:
        return [variables for op, variables in self.calls if op == name]


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content.decode())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_client():
    """Synchronous test client; dependency overrides are cleared afterwards"""
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
