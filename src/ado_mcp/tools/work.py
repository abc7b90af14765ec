"""Work tools: team iterations (sprints)."""
import logging
from datetime import datetime
from functools import partial
from typing import Literal, Optional

from mcp.types import CallToolResult
from pydantic import BaseModel, Field

from ..domains import Domain
from ..providers import Providers
from ..registry import ToolRegistry
from ..results import error_result, json_result
from .common import ToolParams

logger = logging.getLogger("ado-mcp.tools.work")


class ListTeamIterationsParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    team: str = Field(..., description="The name or ID of the Azure DevOps team.")
    timeframe: Optional[Literal["current"]] = Field(
        None, description="The timeframe for which to retrieve iterations. Currently, only 'current' is supported."
    )


class NewIteration(BaseModel):
    iteration_name: str = Field(..., description="The name of the iteration to create.")
    start_date: Optional[datetime] = Field(None, description="The start date of the iteration in ISO format (e.g., '2023-01-01T00:00:00Z'). Optional.")
    finish_date: Optional[datetime] = Field(None, description="The finish date of the iteration in ISO format (e.g., '2023-01-31T23:59:59Z'). Optional.")


class CreateIterationsParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    iterations: list[NewIteration] = Field(..., description="An array of iterations to create.")


class IterationAssignment(BaseModel):
    identifier: str = Field(..., description="The identifier of the iteration to assign.")
    path: str = Field(..., description="The path of the iteration to assign, e.g., 'Project/Iteration'.")


class AssignIterationsParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    team: str = Field(..., description="The name or ID of the Azure DevOps team.")
    iterations: list[IterationAssignment] = Field(..., description="An array of iterations to assign.")


def configure_work_tools(registry: ToolRegistry, providers: Providers) -> None:
    tool = partial(registry.tool, domain=Domain.WORK)

    @tool(
        "work_list_team_iterations",
        "Retrieve a list of iterations for a specific team in a project.",
        ListTeamIterationsParams,
    )
    async def list_team_iterations(params: ListTeamIterationsParams) -> CallToolResult:
        connection = await providers.connection()
        iterations = await connection.get_work_api().get_team_iterations(params.project, params.team, params.timeframe)
        if not iterations:
            return error_result("No iterations found")
        return json_result(iterations)

    @tool("work_create_iterations", "Create new iterations in a specified Azure DevOps project.", CreateIterationsParams)
    async def create_iterations(params: CreateIterationsParams) -> CallToolResult:
        connection = await providers.connection()
        wit_api = connection.get_work_item_tracking_api()

        created = []
        for iteration in params.iterations:
            attributes = {}
            if iteration.start_date:
                attributes["startDate"] = iteration.start_date.isoformat()
            if iteration.finish_date:
                attributes["finishDate"] = iteration.finish_date.isoformat()

            node_body = {"name": iteration.iteration_name}
            if attributes:
                node_body["attributes"] = attributes
            node = await wit_api.create_or_update_classification_node(
                node_body,
                params.project,
                "iterations",
            )
            if node:
                created.append(node)
            logger.info(f"Created iteration {iteration.iteration_name} in {params.project}")

        return json_result(created)

    @tool(
        "work_assign_iterations",
        "Assign existing iterations to a specific team in a project.",
        AssignIterationsParams,
    )
    async def assign_iterations(params: AssignIterationsParams) -> CallToolResult:
        connection = await providers.connection()
        work_api = connection.get_work_api()

        assigned = []
        for iteration in params.iterations:
            result = await work_api.post_team_iteration(
                {"id": iteration.identifier, "path": iteration.path}, params.project, params.team
            )
            if result:
                assigned.append(result)

        if not assigned:
            return error_result("No iterations were assigned to the team")
        return json_result(assigned)
