"""Core tools: projects, teams and identities."""
from functools import partial
from typing import Literal, Optional

from mcp.types import CallToolResult
from pydantic import Field

from ..domains import Domain
from ..identity import search_identities
from ..providers import Providers
from ..registry import FailureMode, ToolRegistry
from ..results import error_result, json_result
from .common import ToolParams


class ListProjectsParams(ToolParams):
    state_filter: Literal["all", "wellFormed", "createPending", "deleted"] = Field(
        "wellFormed", description="Filter projects by their state. Defaults to 'wellFormed'."
    )
    top: Optional[int] = Field(None, description="The maximum number of projects to return.")
    skip: Optional[int] = Field(None, description="The number of projects to skip for pagination.")
    continuation_token: Optional[int] = Field(None, description="Continuation token for pagination. Used to fetch the next set of results.")
    project_name_filter: Optional[str] = Field(
        None, description="Filter projects by name. Only projects whose names contain this string (case-insensitive) are returned."
    )


class ListProjectTeamsParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    mine: Optional[bool] = Field(None, description="If true, only return teams that the authenticated user is a member of.")
    top: Optional[int] = Field(None, description="The maximum number of teams to return.")
    skip: Optional[int] = Field(None, description="The number of teams to skip for pagination.")


class GetIdentityIdsParams(ToolParams):
    search_filter: str = Field(..., description="Search filter (unique name, display name, email) to retrieve identity IDs for.")


def configure_core_tools(registry: ToolRegistry, providers: Providers) -> None:
    tool = partial(registry.tool, domain=Domain.CORE)

    @tool(
        "core_list_projects",
        "Retrieve a list of projects in your Azure DevOps organization.",
        ListProjectsParams,
        failure_mode=FailureMode.RECOVERABLE,
        failure_action="fetching projects",
    )
    async def list_projects(params: ListProjectsParams) -> CallToolResult:
        connection = await providers.connection()
        projects = await connection.get_core_api().get_projects(
            params.state_filter, params.top, params.skip, params.continuation_token
        )

        if params.project_name_filter:
            name_filter = params.project_name_filter.lower()
            projects = [project for project in projects if name_filter in (project.get("name") or "").lower()]

        if not projects:
            return error_result("No projects found")
        return json_result(projects)

    @tool(
        "core_list_project_teams",
        "Retrieve a list of teams for the specified Azure DevOps project.",
        ListProjectTeamsParams,
        failure_mode=FailureMode.RECOVERABLE,
        failure_action="fetching project teams",
    )
    async def list_project_teams(params: ListProjectTeamsParams) -> CallToolResult:
        connection = await providers.connection()
        teams = await connection.get_core_api().get_teams(params.project, params.mine, params.top, params.skip)
        if not teams:
            return error_result("No teams found")
        return json_result(teams)

    @tool(
        "core_get_identity_ids",
        "Retrieve Azure DevOps identity IDs for a provided search filter.",
        GetIdentityIdsParams,
    )
    async def get_identity_ids(params: GetIdentityIdsParams) -> CallToolResult:
        identities = await search_identities(params.search_filter, providers)
        values = identities.get("value") or []
        if not values:
            return error_result(f"No identities found for {params.search_filter}")

        return json_result([
            {
                "id": identity.get("id"),
                "displayName": identity.get("providerDisplayName"),
                "descriptor": identity.get("descriptor"),
            }
            for identity in values
        ])
