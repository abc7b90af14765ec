"""Tests for the wiki tools."""
import json

import httpx
import pytest

from ado_mcp.errors import ProviderError, ToolInputError
from ado_mcp.providers import Providers
from ado_mcp.results import result_text
from ado_mcp.tools.wiki import configure_wiki_tools, page_url, parse_wiki_url

from conftest import token_provider, user_agent_provider

PAGE_URL = (
    "https://dev.azure.com/test-org/proj1/_apis/wiki/wikis/wiki1/pages"
    "?path=%2FHome&versionDescriptor.versionType=branch&versionDescriptor.version=wikiMaster&api-version=7.1"
)


@pytest.fixture
def wiki(registry, providers):
    configure_wiki_tools(registry, providers)
    return registry


def conflict_then_update(request: httpx.Request) -> httpx.Response:
    if "If-Match" not in request.headers:
        return httpx.Response(409, json={"message": "The page already exists."})
    return httpx.Response(200, json={"path": "/Home", "id": 123})


class TestParseWikiUrl:
    """Wiki page URLs."""

    def test_page_path_query(self):
        url = "https://dev.azure.com/org/project/_wiki/wikis/myWiki?wikiVersion=GBmain&pagePath=%2FDocs%2FIntro"
        assert parse_wiki_url(url) == ("project", "myWiki", "/Docs/Intro", None)

    def test_page_id(self):
        url = "https://dev.azure.com/org/project/_wiki/wikis/myWiki/123/Page-Title"
        assert parse_wiki_url(url) == ("project", "myWiki", None, 123)

    def test_non_numeric_page_id_is_ignored(self):
        url = "https://dev.azure.com/org/project/_wiki/wikis/myWiki/abc/Page-Title"
        assert parse_wiki_url(url) == ("project", "myWiki", None, None)

    def test_page_path_wins_over_page_id(self):
        url = "https://dev.azure.com/org/project/_wiki/wikis/myWiki/123/Title?pagePath=%2FOther"
        assert parse_wiki_url(url) == ("project", "myWiki", "/Other", None)

    @pytest.mark.parametrize(
        "url, message",
        [
            ("not a url", "Invalid URL format"),
            ("https://dev.azure.com/org/project/_git/repo", "URL does not match expected wiki pattern"),
            ("https://dev.azure.com/org//_wiki/wikis/myWiki", "Could not extract project or wikiIdentifier from URL"),
        ],
    )
    def test_rejects(self, url, message):
        with pytest.raises(ToolInputError) as exc_info:
            parse_wiki_url(url)
        assert str(exc_info.value) == message

    def test_page_url(self):
        assert page_url("https://dev.azure.com/test-org", "proj1", "wiki1", "/Home", "wikiMaster") == PAGE_URL


class TestWikis:
    """Wiki lookups and page listings."""

    @pytest.mark.asyncio
    async def test_get_wiki(self, wiki, backend):
        backend.route("GET", "/_apis/wiki/wikis/wiki1", json_body={"id": "wiki1", "name": "Wiki 1"})

        result = await wiki.call("wiki_get_wiki", {"wiki_identifier": "wiki1", "project": "proj1"})

        assert json.loads(result_text(result)) == {"id": "wiki1", "name": "Wiki 1"}
        assert backend.requests[0].url.path == "/test-org/proj1/_apis/wiki/wikis/wiki1"

    @pytest.mark.asyncio
    async def test_get_wiki_api_error(self, wiki, backend):
        backend.route("GET", "/_apis/wiki/wikis/wiki1", status=500, json_body={"message": "API Error"})

        result = await wiki.call("wiki_get_wiki", {"wiki_identifier": "wiki1"})

        assert result.isError is True
        assert result_text(result) == "Error fetching wiki: Azure DevOps API error (500): API Error"

    @pytest.mark.asyncio
    async def test_get_wiki_null(self, wiki, backend):
        backend.route("GET", "/_apis/wiki/wikis/wiki1", status=204)

        result = await wiki.call("wiki_get_wiki", {"wiki_identifier": "wiki1"})

        assert result.isError is True
        assert result_text(result) == "No wiki found"

    @pytest.mark.asyncio
    async def test_list_wikis(self, wiki, backend):
        backend.route("GET", "/_apis/wiki/wikis", json_body={"value": [{"id": "wiki1"}]})

        result = await wiki.call("wiki_list_wikis", {"project": "proj1"})

        assert json.loads(result_text(result)) == [{"id": "wiki1"}]

    @pytest.mark.asyncio
    async def test_list_wikis_empty(self, wiki, backend):
        backend.route("GET", "/_apis/wiki/wikis", json_body={"value": []})

        result = await wiki.call("wiki_list_wikis", {})

        assert result.isError is True
        assert result_text(result) == "No wikis found"

    @pytest.mark.asyncio
    async def test_list_pages_default_top(self, wiki, backend):
        backend.route("POST", "/pagesbatch", json_body={"value": [{"id": 1, "path": "/Home"}]})

        result = await wiki.call("wiki_list_pages", {"wiki_identifier": "wiki1", "project": "proj1"})

        assert backend.body(backend.requests[0]) == {"top": 20, "continuationToken": None, "pageViewsForDays": None}
        assert json.loads(result_text(result)) == [{"id": 1, "path": "/Home"}]

    @pytest.mark.asyncio
    async def test_list_pages_empty(self, wiki, backend):
        backend.route("POST", "/pagesbatch", json_body={"value": []})

        result = await wiki.call("wiki_list_pages", {"wiki_identifier": "wiki1", "project": "proj1", "top": 5})

        assert result_text(result) == "No wiki pages found"

    @pytest.mark.asyncio
    async def test_provider_failure_propagates(self, registry):
        async def connection_provider():
            raise RuntimeError("connection refused")

        configure_wiki_tools(registry, Providers(token_provider, connection_provider, user_agent_provider))

        with pytest.raises(ProviderError, match="connection refused"):
            await registry.call("wiki_list_wikis", {})


class TestGetPageContent:
    """Reading page content by identifiers or URL."""

    @pytest.mark.asyncio
    async def test_by_identifiers(self, wiki, backend):
        backend.route("GET", "/wikis/wiki1/pages", text="# Home\nWelcome")

        result = await wiki.call(
            "wiki_get_page_content", {"wiki_identifier": "wiki1", "project": "proj1", "path": "/Home"}
        )

        assert result_text(result) == "# Home\nWelcome"
        request = backend.requests[0]
        assert request.url.params["path"] == "/Home"
        assert request.url.params["includeContent"] == "true"
        assert request.headers["Accept"] == "text/plain"

    @pytest.mark.asyncio
    async def test_defaults_to_root_path(self, wiki, backend):
        backend.route("GET", "/wikis/wiki1/pages", text="root")

        await wiki.call("wiki_get_page_content", {"wiki_identifier": "wiki1", "project": "proj1"})

        assert backend.requests[0].url.params["path"] == "/"

    @pytest.mark.asyncio
    async def test_url_with_page_path(self, wiki, backend):
        backend.route("GET", "/wikis/myWiki/pages", text="url path content")

        url = "https://dev.azure.com/test-org/project/_wiki/wikis/myWiki?wikiVersion=GBmain&pagePath=%2FDocs%2FIntro"
        result = await wiki.call("wiki_get_page_content", {"url": url})

        assert result_text(result) == "url path content"
        assert backend.requests[0].url.path == "/test-org/project/_apis/wiki/wikis/myWiki/pages"
        assert backend.requests[0].url.params["path"] == "/Docs/Intro"

    @pytest.mark.asyncio
    async def test_url_with_page_id_returns_content(self, wiki, backend):
        backend.route("GET", "/pages/123", json_body={"id": 123, "content": "# Page Title\nBody"})

        url = "https://dev.azure.com/test-org/project/_wiki/wikis/myWiki/123/Page-Title"
        result = await wiki.call("wiki_get_page_content", {"url": url})

        assert result_text(result) == "# Page Title\nBody"
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_url_with_page_id_falls_back_to_path(self, wiki, backend):
        backend.route("GET", "/pages/999", json_body={"id": 999, "path": "/Some/Page"})
        backend.route("GET", "/wikis/myWiki/pages", text="fallback content")

        url = "https://dev.azure.com/test-org/project/_wiki/wikis/myWiki/999/Some-Page"
        result = await wiki.call("wiki_get_page_content", {"url": url})

        assert result_text(result) == "fallback content"
        assert backend.requests[-1].url.params["path"] == "/Some/Page"

    @pytest.mark.asyncio
    async def test_url_with_missing_page_id(self, wiki, backend):
        backend.route("GET", "/pages/404", status=404, json_body={"message": "not found"})

        url = "https://dev.azure.com/test-org/project/_wiki/wikis/myWiki/404/Missing"
        result = await wiki.call("wiki_get_page_content", {"url": url})

        assert result.isError is True
        assert result_text(result) == "Error fetching wiki page content: Page with id 404 not found"

    @pytest.mark.asyncio
    async def test_both_url_and_identifiers(self, wiki, backend):
        result = await wiki.call(
            "wiki_get_page_content",
            {"url": "https://dev.azure.com/org/project/_wiki/wikis/myWiki", "wiki_identifier": "myWiki"},
        )

        assert result.isError is True
        assert "Provide either 'url' OR 'wiki_identifier' with 'project', not both." in result_text(result)
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_neither_url_nor_identifiers(self, wiki, backend):
        result = await wiki.call("wiki_get_page_content", {"wiki_identifier": "myWiki"})

        assert result.isError is True
        assert "You must provide either 'url' OR both 'wiki_identifier' and 'project'." in result_text(result)

    @pytest.mark.asyncio
    async def test_malformed_url(self, wiki, backend):
        result = await wiki.call("wiki_get_page_content", {"url": "https://dev.azure.com/org/project/_git/repo"})

        assert result.isError is True
        assert result_text(result) == "Error fetching wiki page content: URL does not match expected wiki pattern"


class TestCreateOrUpdatePage:
    """Upserting pages with ETag concurrency."""

    @pytest.mark.asyncio
    async def test_create_new_page(self, wiki, backend):
        backend.route("PUT", "/wikis/wiki1/pages", json_body={"path": "/Home", "id": 123})

        result = await wiki.call(
            "wiki_create_or_update_page",
            {"wiki_identifier": "wiki1", "path": "/Home", "content": "# Welcome", "project": "proj1"},
        )

        request = backend.requests[0]
        assert str(request.url) == PAGE_URL
        assert request.headers["Authorization"] == "Bearer mock-token"
        assert backend.body(request) == {"content": "# Welcome"}
        assert result_text(result).startswith("Successfully created wiki page at path: /Home. Response: ")
        assert not result.isError

    @pytest.mark.asyncio
    async def test_created_page_without_response_body(self, wiki, backend):
        backend.route("PUT", "/wikis/wiki1/pages", status=201)

        result = await wiki.call(
            "wiki_create_or_update_page",
            {"wiki_identifier": "wiki1", "path": "/Home", "content": "# Welcome", "project": "proj1"},
        )

        assert not result.isError
        assert result_text(result) == "Successfully created wiki page at path: /Home. Response: null"

    @pytest.mark.asyncio
    async def test_path_without_leading_slash(self, wiki, backend):
        backend.route("PUT", "/wikis/wiki1/pages", json_body={"path": "/Home"})

        result = await wiki.call(
            "wiki_create_or_update_page",
            {"wiki_identifier": "wiki1", "path": "Home", "content": "x", "project": "proj1"},
        )

        assert backend.requests[0].url.params["path"] == "/Home"
        assert "at path: /Home." in result_text(result)

    @pytest.mark.asyncio
    async def test_update_existing_page_with_etag_header(self, wiki, backend):
        backend.route("PUT", "/wikis/wiki1/pages", responder=conflict_then_update)
        backend.route("GET", "/wikis/wiki1/pages", json_body={"path": "/Home"}, headers={"ETag": 'W/"test-etag"'})

        result = await wiki.call(
            "wiki_create_or_update_page",
            {"wiki_identifier": "wiki1", "path": "/Home", "content": "# Updated", "project": "proj1"},
        )

        assert [request.method for request in backend.requests] == ["PUT", "GET", "PUT"]
        assert backend.requests[-1].headers["If-Match"] == 'W/"test-etag"'
        assert result_text(result).startswith("Successfully updated wiki page at path: /Home")

    @pytest.mark.asyncio
    async def test_etag_from_response_body(self, wiki, backend):
        backend.route("PUT", "/wikis/wiki1/pages", responder=conflict_then_update)
        backend.route("GET", "/wikis/wiki1/pages", json_body={"path": "/Home", "eTag": "body-etag"})

        await wiki.call(
            "wiki_create_or_update_page",
            {"wiki_identifier": "wiki1", "path": "/Home", "content": "x", "project": "proj1"},
        )

        assert backend.requests[-1].headers["If-Match"] == "body-etag"

    @pytest.mark.asyncio
    async def test_missing_etag(self, wiki, backend):
        backend.route("PUT", "/wikis/wiki1/pages", responder=conflict_then_update)
        backend.route("GET", "/wikis/wiki1/pages", json_body={"path": "/Home"})

        result = await wiki.call(
            "wiki_create_or_update_page",
            {"wiki_identifier": "wiki1", "path": "/Home", "content": "x", "project": "proj1"},
        )

        assert result.isError is True
        assert result_text(result) == "Error creating/updating wiki page: Could not retrieve ETag for existing page"

    @pytest.mark.asyncio
    async def test_failed_etag_lookup(self, wiki, backend):
        backend.route("PUT", "/wikis/wiki1/pages", responder=conflict_then_update)
        backend.route("GET", "/wikis/wiki1/pages", status=500, text="boom")

        result = await wiki.call(
            "wiki_create_or_update_page",
            {"wiki_identifier": "wiki1", "path": "/Home", "content": "x", "project": "proj1"},
        )

        assert result_text(result) == "Error creating/updating wiki page: Could not retrieve ETag for existing page"

    @pytest.mark.asyncio
    async def test_etag_parameter_skips_lookup(self, wiki, backend):
        backend.route("PUT", "/wikis/wiki1/pages", json_body={"path": "/Home"})

        result = await wiki.call(
            "wiki_create_or_update_page",
            {"wiki_identifier": "wiki1", "path": "/Home", "content": "x", "project": "proj1", "etag": "known"},
        )

        assert len(backend.requests) == 1
        assert backend.requests[0].headers["If-Match"] == "known"
        assert result_text(result).startswith("Successfully updated wiki page at path: /Home")

    @pytest.mark.asyncio
    async def test_create_failure(self, wiki, backend):
        backend.route("PUT", "/wikis/wiki1/pages", status=404, text="Wiki not found")

        result = await wiki.call(
            "wiki_create_or_update_page",
            {"wiki_identifier": "wiki1", "path": "/Home", "content": "x", "project": "proj1"},
        )

        assert result.isError is True
        assert result_text(result) == "Error creating/updating wiki page: Failed to create page (404): Wiki not found"

    @pytest.mark.asyncio
    async def test_update_failure(self, wiki, backend):
        def conflict_then_fail(request):
            if "If-Match" not in request.headers:
                return httpx.Response(409)
            return httpx.Response(412, text="Precondition failed")

        backend.route("PUT", "/wikis/wiki1/pages", responder=conflict_then_fail)
        backend.route("GET", "/wikis/wiki1/pages", headers={"ETag": "old"})

        result = await wiki.call(
            "wiki_create_or_update_page",
            {"wiki_identifier": "wiki1", "path": "/Home", "content": "x", "project": "proj1"},
        )

        assert result_text(result) == "Error creating/updating wiki page: Failed to update page (412): Precondition failed"
