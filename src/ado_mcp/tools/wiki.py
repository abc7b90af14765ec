"""Wiki tools: wikis, page listings, page content, and page upserts.

Every wiki tool reports failures inline (FailureMode.RECOVERABLE), prefixed
with what it was doing, e.g. ``Error fetching wiki pages: <message>``.
"""
import logging
import re
from functools import partial
from typing import Any, Optional
from urllib.parse import parse_qs, quote, urlsplit

from mcp.types import CallToolResult
from pydantic import Field

from .. import rest
from ..connection import API_VERSION
from ..domains import Domain
from ..errors import ToolInputError
from ..providers import Providers
from ..registry import FailureMode, ToolRegistry
from ..results import error_result, json_result, text_result, to_json
from .common import ToolParams

logger = logging.getLogger("ado-mcp.tools.wiki")

DEFAULT_BRANCH = "wikiMaster"

# /{organization}/{project}/_wiki/wikis/{wikiIdentifier}[/{pageId}[/...]]
WIKI_URL_PATTERN = re.compile(r"^/[^/]+/([^/]*)/_wiki/wikis/([^/]*)(?:/([^/]+))?")


class WikiRef(ToolParams):
    wiki_identifier: str = Field(..., description="The unique identifier of the wiki.")
    project: Optional[str] = Field(None, description="The project name or ID where the wiki is located.")


class ListWikisParams(ToolParams):
    project: Optional[str] = Field(
        None, description="The project name or ID to filter wikis. If not provided, all wikis in the organization will be returned."
    )


class ListPagesParams(ToolParams):
    wiki_identifier: str = Field(..., description="The unique identifier of the wiki.")
    project: str = Field(..., description="The project name or ID where the wiki is located.")
    top: int = Field(20, description="The maximum number of pages to return.")
    continuation_token: Optional[str] = Field(None, description="Token for pagination to retrieve the next set of pages.")
    page_views_for_days: Optional[int] = Field(None, description="Number of days to retrieve page views for. If not specified, page views are not included.")


class GetPageContentParams(ToolParams):
    url: Optional[str] = Field(
        None,
        description="The full URL of the wiki page, e.g. https://dev.azure.com/{org}/{project}/_wiki/wikis/{wiki}/{pageId}/{Title} "
        "or a URL with ?pagePath=. When provided, wiki_identifier, project and path are not needed.",
    )
    wiki_identifier: Optional[str] = Field(None, description="The unique identifier of the wiki.")
    project: Optional[str] = Field(None, description="The project name or ID where the wiki is located.")
    path: Optional[str] = Field(None, description="The path of the wiki page to retrieve content for. Defaults to the root page.")


class CreateOrUpdatePageParams(ToolParams):
    wiki_identifier: str = Field(..., description="The unique identifier or name of the wiki.")
    path: str = Field(..., description="The path of the wiki page (e.g., '/Home' or '/Documentation/Setup').")
    content: str = Field(..., description="The content of the wiki page in markdown format.")
    project: Optional[str] = Field(None, description="The project name or ID where the wiki is located. If not provided, the default project will be used.")
    etag: Optional[str] = Field(None, description="ETag for editing existing pages (optional, will be fetched if not provided).")
    branch: str = Field(DEFAULT_BRANCH, description="The branch name for the wiki repository. Defaults to 'wikiMaster'.")


def parse_wiki_url(url: str) -> tuple[str, str, Optional[str], Optional[int]]:
    """Split a wiki page URL into (project, wiki_identifier, page_path, page_id).

    ``pagePath`` in the query wins over a page id in the path. A non-numeric
    page id is ignored.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ToolInputError("Invalid URL format")

    match = WIKI_URL_PATTERN.match(parts.path)
    if not match:
        raise ToolInputError("URL does not match expected wiki pattern")

    project, wiki_identifier, page_segment = match.groups()
    if not project or not wiki_identifier:
        raise ToolInputError("Could not extract project or wikiIdentifier from URL")

    page_path = parse_qs(parts.query).get("pagePath", [None])[0]
    if page_path:
        return project, wiki_identifier, page_path, None

    page_id = int(page_segment) if page_segment and page_segment.isdigit() else None
    return project, wiki_identifier, None, page_id


def page_url(server_url: str, project: Optional[str], wiki_identifier: str, path: str, branch: str) -> str:
    return (
        f"{server_url}/{project or ''}/_apis/wiki/wikis/{wiki_identifier}/pages"
        f"?path={quote(path, safe='')}"
        f"&versionDescriptor.versionType=branch&versionDescriptor.version={quote(branch, safe='')}"
        f"&api-version={API_VERSION}"
    )


def configure_wiki_tools(registry: ToolRegistry, providers: Providers) -> None:
    tool = partial(registry.tool, domain=Domain.WIKI, failure_mode=FailureMode.RECOVERABLE)

    async def get_page_by_id(server_url: str, project: str, wiki_identifier: str, page_id: int) -> dict[str, Any]:
        url = (
            f"{server_url}/{quote(project, safe='')}/_apis/wiki/wikis/{quote(wiki_identifier, safe='')}"
            f"/pages/{page_id}?includeContent=true&api-version={API_VERSION}"
        )
        headers = await providers.auth_headers()
        async with rest.create_client() as client:
            response = await client.get(url, headers=headers)

        if response.status_code == 404:
            raise LookupError(f"Page with id {page_id} not found")
        if response.is_error:
            raise RuntimeError(f"Failed to retrieve wiki page by id {page_id}: {response.status_code} {rest.error_text(response)}")
        return response.json()

    @tool(
        "wiki_get_wiki",
        "Get the wiki by wiki_identifier",
        WikiRef,
        failure_action="fetching wiki",
    )
    async def get_wiki(params: WikiRef) -> CallToolResult:
        connection = await providers.connection()
        wiki = await connection.get_wiki_api().get_wiki(params.wiki_identifier, params.project)
        if not wiki:
            return error_result("No wiki found")
        return json_result(wiki)

    @tool(
        "wiki_list_wikis",
        "Retrieve a list of wikis for an organization or project.",
        ListWikisParams,
        failure_action="fetching wikis",
    )
    async def list_wikis(params: ListWikisParams) -> CallToolResult:
        connection = await providers.connection()
        wikis = await connection.get_wiki_api().get_all_wikis(params.project)
        if not wikis:
            return error_result("No wikis found")
        return json_result(wikis)

    @tool(
        "wiki_list_pages",
        "Retrieve a list of wiki pages for a specific wiki and project.",
        ListPagesParams,
        failure_action="fetching wiki pages",
    )
    async def list_pages(params: ListPagesParams) -> CallToolResult:
        connection = await providers.connection()
        request = {
            "top": params.top,
            "continuationToken": params.continuation_token,
            "pageViewsForDays": params.page_views_for_days,
        }
        pages = await connection.get_wiki_api().get_pages_batch(request, params.project, params.wiki_identifier)
        if not pages:
            return error_result("No wiki pages found")
        return json_result(pages)

    @tool(
        "wiki_get_page_content",
        "Retrieve wiki page content. Provide either a 'url' parameter OR the combination of 'wiki_identifier' and 'project' parameters.",
        GetPageContentParams,
        failure_action="fetching wiki page content",
    )
    async def get_page_content(params: GetPageContentParams) -> CallToolResult:
        has_url = bool(params.url)
        if has_url and (params.wiki_identifier or params.project):
            return error_result(
                "Error fetching wiki page content: Provide either 'url' OR 'wiki_identifier' with 'project', not both."
            )
        if not has_url and not (params.wiki_identifier and params.project):
            return error_result(
                "Error fetching wiki page content: You must provide either 'url' OR both 'wiki_identifier' and 'project'."
            )

        connection = await providers.connection()
        project, wiki_identifier, path = params.project, params.wiki_identifier, params.path

        if has_url:
            project, wiki_identifier, path, page_id = parse_wiki_url(params.url)
            if page_id is not None:
                page = await get_page_by_id(connection.server_url, project, wiki_identifier, page_id)
                if page.get("content"):
                    return text_result(page["content"])
                path = page.get("path")

        content = await connection.get_wiki_api().get_page_text(project, wiki_identifier, path or "/")
        if content is None:
            return error_result("No wiki page content found")
        return text_result(content)

    @tool(
        "wiki_create_or_update_page",
        "Create or update a wiki page with content.",
        CreateOrUpdatePageParams,
        failure_action="creating/updating wiki page",
    )
    async def create_or_update_page(params: CreateOrUpdatePageParams) -> CallToolResult:
        connection = await providers.connection()
        headers = await providers.auth_headers()
        path = params.path if params.path.startswith("/") else f"/{params.path}"
        url = page_url(connection.server_url, params.project, params.wiki_identifier, path, params.branch)
        body = {"content": params.content}

        async with rest.create_client() as client:
            etag = params.etag
            if etag is None:
                response = await client.put(url, headers=headers, json=body)
                if response.is_success:
                    logger.info(f"Created wiki page {path} in {params.wiki_identifier}")
                    return text_result(f"Successfully created wiki page at path: {path}. Response: {to_json(response.json() if response.content else None)}")
                if response.status_code != 409:
                    raise RuntimeError(f"Failed to create page ({response.status_code}): {rest.error_text(response)}")

                # Page exists; update it against its current version
                existing = await client.get(url, headers=headers)
                if existing.is_success:
                    etag = existing.headers.get("etag")
                    if not etag and existing.content:
                        etag = (existing.json() or {}).get("eTag")
                if not etag:
                    raise RuntimeError("Could not retrieve ETag for existing page")

            response = await client.put(url, headers={**headers, "If-Match": etag}, json=body)
            if response.is_error:
                raise RuntimeError(f"Failed to update page ({response.status_code}): {rest.error_text(response)}")

        logger.info(f"Updated wiki page {path} in {params.wiki_identifier}")
        return text_result(f"Successfully updated wiki page at path: {path}. Response: {to_json(response.json() if response.content else None)}")
