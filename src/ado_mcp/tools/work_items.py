"""Work item tools: reading, creating, updating and commenting on work items."""
import logging
from datetime import datetime
from functools import partial
from typing import Any, Literal, Optional
from urllib.parse import quote

from mcp.types import CallToolResult
from pydantic import BaseModel, Field

from .. import rest
from ..domains import Domain
from ..providers import Providers
from ..registry import ToolRegistry
from ..results import error_result, json_result
from .common import ToolParams

logger = logging.getLogger("ado-mcp.tools.work_items")

COMMENTS_API_VERSION = "7.2-preview.4"

DEFAULT_BATCH_FIELDS = [
    "System.Id",
    "System.WorkItemType",
    "System.Title",
    "System.State",
    "System.Parent",
    "System.Tags",
    "Microsoft.VSTS.Common.StackRank",
    "System.AssignedTo",
]


def flatten_assigned_to(work_items: list[dict]) -> list[dict]:
    """Replace identity objects in ``System.AssignedTo`` with ``Name <unique name>``."""
    for work_item in work_items:
        fields = work_item.get("fields") or {}
        assigned_to = fields.get("System.AssignedTo")
        if isinstance(assigned_to, dict):
            fields["System.AssignedTo"] = f"{assigned_to.get('displayName')} <{assigned_to.get('uniqueName')}>"
    return work_items


# ============================================================================
# Input models
# ============================================================================


class MyWorkItemsParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    type: Literal["assignedtome", "myactivity"] = Field("assignedtome", description="The type of work items to retrieve. Defaults to 'assignedtome'.")
    top: int = Field(50, description="The maximum number of work items to return. Defaults to 50.")
    include_completed: bool = Field(False, description="Whether to include completed work items. Defaults to false.")


class GetWorkItemParams(ToolParams):
    id: int = Field(..., description="The ID of the work item to retrieve.")
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    fields: Optional[list[str]] = Field(None, description="Optional list of fields to include in the response. If not provided, all fields will be returned.")
    as_of: Optional[datetime] = Field(None, description="Optional date string to retrieve the work item as of a specific time.")
    expand: Optional[Literal["all", "fields", "links", "none", "relations"]] = Field(
        None, description="Optional expand parameter to include additional details in the response."
    )


class GetWorkItemsBatchParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    ids: list[int] = Field(..., description="The IDs of the work items to retrieve.")
    fields: Optional[list[str]] = Field(None, description="Optional list of fields to include in the response. If not provided, a default set of fields will be used.")


class ListWorkItemCommentsParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    work_item_id: int = Field(..., description="The ID of the work item to retrieve comments for.")
    top: int = Field(50, description="Optional number of comments to retrieve. Defaults to all comments.")


class AddWorkItemCommentParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    work_item_id: int = Field(..., description="The ID of the work item to add a comment to.")
    comment: str = Field(..., description="The text of the comment to add to the work item.")
    format: Literal["markdown", "html"] = Field("html", description="Format of the comment text.")


class WorkItemField(BaseModel):
    name: str = Field(..., description="The name of the field, e.g., 'System.Title'.")
    value: str = Field(..., description="The value of the field.")
    format: Optional[Literal["Html", "Markdown"]] = Field(None, description="The format of the field value, e.g., 'Html', 'Markdown'. Optional, defaults to 'Html'.")


class CreateWorkItemParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    work_item_type: str = Field(..., description="The type of work item to create, e.g., 'Task', 'Bug', etc.")
    fields: list[WorkItemField] = Field(..., description="A record of field names and values to set on the new work item. Each field is an object with name and value.")


class WorkItemUpdate(BaseModel):
    op: Literal["add", "replace", "remove"] = Field("add", description="The operation to perform on the field.")
    path: str = Field(..., description="The path of the field to update, e.g., '/fields/System.Title'.")
    value: Optional[Any] = Field(None, description="The new value for the field. Required for add and replace operations.")


class UpdateWorkItemParams(ToolParams):
    id: int = Field(..., description="The ID of the work item to update.")
    updates: list[WorkItemUpdate] = Field(..., description="An array of field updates to apply to the work item.")


class GetWorkItemTypeParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    work_item_type: str = Field(..., description="The name of the work item type to retrieve.")


class GetQueryResultsParams(ToolParams):
    id: str = Field(..., description="The ID of the query to retrieve results for.")
    project: Optional[str] = Field(None, description="The name or ID of the Azure DevOps project. If not provided, the default project will be used.")
    team: Optional[str] = Field(None, description="The name or ID of the Azure DevOps team. If not provided, the default team will be used.")
    time_precision: Optional[bool] = Field(None, description="Whether to include time precision in the results.")
    top: int = Field(50, description="The maximum number of results to return. Defaults to 50.")


class WorkItemsForIterationParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    team: Optional[str] = Field(None, description="The name or ID of the Azure DevOps team. If not provided, the default team will be used.")
    iteration_id: str = Field(..., description="The ID of the iteration to retrieve work items for.")


# ============================================================================
# Registrar
# ============================================================================


def configure_work_item_tools(registry: ToolRegistry, providers: Providers) -> None:
    tool = partial(registry.tool, domain=Domain.WORK_ITEMS)

    @tool(
        "wit_my_work_items",
        "Retrieve a list of work items relevant to the authenticated user.",
        MyWorkItemsParams,
    )
    async def my_work_items(params: MyWorkItemsParams) -> CallToolResult:
        connection = await providers.connection()
        results = await connection.get_work_api().get_predefined_query_results(
            params.project, params.type, params.top, params.include_completed
        )
        return json_result(results)

    @tool("wit_get_work_item", "Get a single work item by ID.", GetWorkItemParams)
    async def get_work_item(params: GetWorkItemParams) -> CallToolResult:
        connection = await providers.connection()
        work_item = await connection.get_work_item_tracking_api().get_work_item(
            params.id,
            params.fields,
            params.as_of.isoformat() if params.as_of else None,
            params.expand,
            params.project,
        )
        return json_result(work_item)

    @tool(
        "wit_get_work_items_batch_by_ids",
        "Retrieve list of work items by IDs in batch.",
        GetWorkItemsBatchParams,
    )
    async def get_work_items_batch_by_ids(params: GetWorkItemsBatchParams) -> CallToolResult:
        connection = await providers.connection()
        fields = params.fields or DEFAULT_BATCH_FIELDS
        work_items = await connection.get_work_item_tracking_api().get_work_items_batch(params.ids, fields, params.project)
        return json_result(flatten_assigned_to(work_items))

    @tool(
        "wit_list_work_item_comments",
        "Retrieve list of comments for a work item by ID.",
        ListWorkItemCommentsParams,
    )
    async def list_work_item_comments(params: ListWorkItemCommentsParams) -> CallToolResult:
        connection = await providers.connection()
        comments = await connection.get_work_item_tracking_api().get_comments(
            params.project, params.work_item_id, params.top
        )
        return json_result(comments)

    @tool("wit_add_work_item_comment", "Add comment to a work item by ID.", AddWorkItemCommentParams)
    async def add_work_item_comment(params: AddWorkItemCommentParams) -> CallToolResult:
        connection = await providers.connection()
        headers = await providers.auth_headers()
        format_parameter = 0 if params.format == "markdown" else 1
        url = (
            f"{connection.server_url}/{quote(params.project, safe='')}/_apis/wit/workItems/{params.work_item_id}"
            f"/comments?format={format_parameter}&api-version={COMMENTS_API_VERSION}"
        )

        async with rest.create_client() as client:
            response = await client.post(url, headers=headers, json={"text": params.comment})

        if response.is_error:
            raise RuntimeError(f"Failed to add a work item comment: {response.status_code} {rest.error_text(response)}")

        logger.info(f"Added comment to work item {params.work_item_id}")
        return json_result(response.json())

    @tool("wit_create_work_item", "Create a new work item in a specified project and work item type.", CreateWorkItemParams)
    async def create_work_item(params: CreateWorkItemParams) -> CallToolResult:
        connection = await providers.connection()
        document: list[dict[str, Any]] = []
        for field in params.fields:
            document.append({"op": "add", "path": f"/fields/{field.name}", "value": field.value})
            if field.format == "Markdown" and len(field.value) > 50:
                document.append({"op": "add", "path": f"/multilineFieldsFormat/{field.name}", "value": "Markdown"})

        work_item = await connection.get_work_item_tracking_api().create_work_item(
            document, params.project, params.work_item_type
        )
        if not work_item:
            return error_result("Work item was not created")

        logger.info(f"Created {params.work_item_type} {work_item.get('id')} in {params.project}")
        return json_result(work_item)

    @tool("wit_update_work_item", "Update a work item by ID with specified fields.", UpdateWorkItemParams)
    async def update_work_item(params: UpdateWorkItemParams) -> CallToolResult:
        connection = await providers.connection()
        document = [update.model_dump(exclude_none=True) for update in params.updates]
        work_item = await connection.get_work_item_tracking_api().update_work_item(document, params.id)
        return json_result(work_item)

    @tool("wit_get_work_item_type", "Get a specific work item type.", GetWorkItemTypeParams)
    async def get_work_item_type(params: GetWorkItemTypeParams) -> CallToolResult:
        connection = await providers.connection()
        work_item_type = await connection.get_work_item_tracking_api().get_work_item_type(
            params.project, params.work_item_type
        )
        return json_result(work_item_type)

    @tool("wit_get_query_results_by_id", "Retrieve the results of a work item query given the query ID.", GetQueryResultsParams)
    async def get_query_results_by_id(params: GetQueryResultsParams) -> CallToolResult:
        connection = await providers.connection()
        results = await connection.get_work_item_tracking_api().get_query_results_by_id(
            params.id, params.project, params.team, params.time_precision, params.top
        )
        return json_result(results)

    @tool(
        "wit_get_work_items_for_iteration",
        "Retrieve a list of work items for a specified iteration.",
        WorkItemsForIterationParams,
    )
    async def get_work_items_for_iteration(params: WorkItemsForIterationParams) -> CallToolResult:
        connection = await providers.connection()
        work_items = await connection.get_work_api().get_iteration_work_items(
            params.project, params.team, params.iteration_id
        )
        return json_result(work_items)
