"""Tests for the code, wiki and work item search tools."""
import json

import pytest

from ado_mcp.results import result_text
from ado_mcp.tools.search import SearchCodeParams, configure_search_tools, search_body


@pytest.fixture
def search(registry, providers):
    configure_search_tools(registry, providers)
    return registry


class TestSearchBody:
    """Request bodies only carry the filters that were given."""

    def test_defaults(self):
        body = search_body(SearchCodeParams(search_text="retry"), {"Project": None, "Repository": []})

        assert body == {"searchText": "retry", "includeFacets": False, "$skip": 0, "$top": 5}

    def test_filters(self):
        params = SearchCodeParams(search_text="retry", project=["p"], branch=["main"], top=20)
        body = search_body(params, {"Project": params.project, "Branch": params.branch, "Path": params.path})

        assert body["$top"] == 20
        assert body["filters"] == {"Project": ["p"], "Branch": ["main"]}


class TestSearchTools:
    """Calls to the search service."""

    @pytest.mark.asyncio
    async def test_search_code(self, search, backend):
        backend.route("POST", "/_apis/search/codesearchresults", json_body={"count": 1, "results": [{"fileName": "retry.py"}]})

        result = await search.call(
            "search_code", {"search_text": "retry", "project": ["p"], "repository": ["api"], "skip": 5}
        )

        request = backend.requests[0]
        assert str(request.url) == (
            "https://almsearch.dev.azure.com/test-org/_apis/search/codesearchresults?api-version=7.1"
        )
        assert request.headers["Authorization"] == "Bearer mock-token"
        assert backend.body(request) == {
            "searchText": "retry",
            "includeFacets": False,
            "$skip": 5,
            "$top": 5,
            "filters": {"Project": ["p"], "Repository": ["api"]},
        }
        assert json.loads(result_text(result))["count"] == 1

    @pytest.mark.asyncio
    async def test_search_wiki(self, search, backend):
        backend.route("POST", "/_apis/search/wikisearchresults", json_body={"count": 0, "results": []})

        await search.call("search_wiki", {"search_text": "onboarding", "wiki": ["Team.wiki"]})

        assert backend.body(backend.requests[0])["filters"] == {"Wiki": ["Team.wiki"]}

    @pytest.mark.asyncio
    async def test_search_workitem_filters(self, search, backend):
        backend.route("POST", "/_apis/search/workitemsearchresults", json_body={"count": 0, "results": []})

        await search.call(
            "search_workitem",
            {"search_text": "login", "project": ["p"], "state": ["Active"], "assigned_to": ["Ana Silva"]},
        )

        assert backend.body(backend.requests[0])["filters"] == {
            "System.TeamProject": ["p"],
            "System.State": ["Active"],
            "System.AssignedTo": ["Ana Silva"],
        }

    @pytest.mark.asyncio
    async def test_search_error(self, search, backend):
        backend.route("POST", "/_apis/search/workitemsearchresults", status=400, text="Invalid search text")

        with pytest.raises(RuntimeError, match="Azure DevOps Work Item Search API error: 400 Invalid search text"):
            await search.call("search_workitem", {"search_text": "*"})
