"""Shared fixtures: an in-memory Azure DevOps backend and wired-up providers."""
import json

import httpx
import pytest

from ado_mcp import rest
from ado_mcp.auth import AccessToken
from ado_mcp.connection import AdoConnection
from ado_mcp.providers import Providers
from ado_mcp.registry import ToolRegistry

ORG_URL = "https://dev.azure.com/test-org"
USER_AGENT = "pytest"


async def token_provider() -> AccessToken:
    return AccessToken(token="mock-token")


def user_agent_provider() -> str:
    return USER_AGENT


class MockBackend:
    """Answers requests from registered routes and records every request.

    Routes match on HTTP method and a substring of the URL path; the first
    match wins. Unmatched requests get a 404.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._routes: list[tuple[str, str, object]] = []

    def route(self, method: str, path: str, status: int = 200, json_body=None, text=None, headers=None, responder=None):
        if responder is None:
            def responder(request):
                if text is not None:
                    return httpx.Response(status, text=text, headers=headers)
                if json_body is None:
                    return httpx.Response(status, headers=headers)
                return httpx.Response(status, json=json_body, headers=headers)
        self._routes.append((method, path, responder))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for method, path, responder in self._routes:
            if request.method == method and path in request.url.path:
                return responder(request)
        return httpx.Response(404, json={"message": f"No route for {request.method} {request.url.path}"})

    def sent(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and path in r.url.path]

    @staticmethod
    def body(request: httpx.Request):
        return json.loads(request.content)


@pytest.fixture
def backend(monkeypatch):
    """Mock backend serving both the connection and direct REST calls."""
    backend = MockBackend()
    transport = httpx.MockTransport(backend)
    monkeypatch.setattr(rest, "create_client", lambda timeout=None: httpx.AsyncClient(transport=transport))
    return backend


@pytest.fixture
def connection(backend):
    return AdoConnection(ORG_URL, token_provider, user_agent_provider, transport=httpx.MockTransport(backend))


@pytest.fixture
def providers(connection):
    async def connection_provider():
        return connection

    return Providers(token_provider, connection_provider, user_agent_provider)


@pytest.fixture
def registry():
    return ToolRegistry()
