"""Search tools backed by the organization's search service (almsearch)."""
import logging
from functools import partial
from typing import Any, Optional

from mcp.types import CallToolResult
from pydantic import Field

from .. import rest
from ..connection import API_VERSION
from ..domains import Domain
from ..providers import Providers
from ..registry import ToolRegistry
from ..results import json_result
from .common import ToolParams

logger = logging.getLogger("ado-mcp.tools.search")


class SearchParams(ToolParams):
    search_text: str = Field(..., description="Keywords to search for.")
    project: Optional[list[str]] = Field(None, description="Filter by projects.")
    include_facets: bool = Field(False, description="Include facets in the search results.")
    skip: int = Field(0, description="Number of results to skip.")
    top: int = Field(5, description="Maximum number of results to return.")


class SearchCodeParams(SearchParams):
    repository: Optional[list[str]] = Field(None, description="Filter by repositories.")
    path: Optional[list[str]] = Field(None, description="Filter by paths.")
    branch: Optional[list[str]] = Field(None, description="Filter by branches.")


class SearchWikiParams(SearchParams):
    wiki: Optional[list[str]] = Field(None, description="Filter by wiki names.")


class SearchWorkItemParams(SearchParams):
    area_path: Optional[list[str]] = Field(None, description="Filter by area paths.")
    work_item_type: Optional[list[str]] = Field(None, description="Filter by work item types.")
    state: Optional[list[str]] = Field(None, description="Filter by work item states.")
    assigned_to: Optional[list[str]] = Field(None, description="Filter by assigned to users.")


def search_body(params: SearchParams, filters: dict[str, Optional[list[str]]]) -> dict[str, Any]:
    """Request body for one search call; empty filters are left out."""
    body: dict[str, Any] = {
        "searchText": params.search_text,
        "includeFacets": params.include_facets,
        "$skip": params.skip,
        "$top": params.top,
    }
    active = {key: values for key, values in filters.items() if values}
    if active:
        body["filters"] = active
    return body


def configure_search_tools(registry: ToolRegistry, providers: Providers) -> None:
    tool = partial(registry.tool, domain=Domain.SEARCH)

    async def search(kind: str, label: str, body: dict[str, Any]) -> Any:
        connection = await providers.connection()
        headers = await providers.auth_headers()
        url = f"{connection.service_url('almsearch')}/_apis/search/{kind}searchresults?api-version={API_VERSION}"

        async with rest.create_client() as client:
            response = await client.post(url, headers=headers, json=body)

        if response.is_error:
            raise RuntimeError(f"Azure DevOps {label} Search API error: {response.status_code} {rest.error_text(response)}")

        result = response.json()
        logger.debug(f"{label} search for '{body['searchText']}' returned {result.get('count')} results")
        return result

    @tool("search_code", "Search Azure DevOps Repositories for a given search text", SearchCodeParams)
    async def search_code(params: SearchCodeParams) -> CallToolResult:
        body = search_body(params, {
            "Project": params.project,
            "Repository": params.repository,
            "Path": params.path,
            "Branch": params.branch,
        })
        return json_result(await search("code", "Code", body))

    @tool("search_wiki", "Search Azure DevOps Wiki for a given search text", SearchWikiParams)
    async def search_wiki(params: SearchWikiParams) -> CallToolResult:
        body = search_body(params, {"Project": params.project, "Wiki": params.wiki})
        return json_result(await search("wiki", "Wiki", body))

    @tool("search_workitem", "Get Azure DevOps Work Item search results for a given search text", SearchWorkItemParams)
    async def search_workitem(params: SearchWorkItemParams) -> CallToolResult:
        body = search_body(params, {
            "System.TeamProject": params.project,
            "System.AreaPath": params.area_path,
            "System.WorkItemType": params.work_item_type,
            "System.State": params.state,
            "System.AssignedTo": params.assigned_to,
        })
        return json_result(await search("workitem", "Work Item", body))
