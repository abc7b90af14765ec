"""Pipelines tools: build definitions, builds, logs, and pipeline runs.

All tools here let backend errors propagate (FailureMode.FATAL).
"""
import asyncio
import logging
from datetime import datetime
from functools import partial
from typing import Any, Literal, Optional
from urllib.parse import quote

from mcp.types import CallToolResult
from pydantic import BaseModel, Field

from .. import rest
from ..connection import API_VERSION
from ..domains import Domain
from ..errors import ToolInputError
from ..providers import Providers
from ..registry import ToolRegistry
from ..results import json_result
from .common import ToolParams, camel, enum_name

logger = logging.getLogger("ado-mcp.tools.pipelines")

RepositoryType = Literal["TfsGit", "GitHub", "BitbucketCloud"]

DefinitionQueryOrder = Literal[
    "None",
    "LastModifiedAscending",
    "LastModifiedDescending",
    "DefinitionNameAscending",
    "DefinitionNameDescending",
]

BuildQueryOrder = Literal[
    "FinishTimeAscending",
    "FinishTimeDescending",
    "QueueTimeDescending",
    "QueueTimeAscending",
    "StartTimeDescending",
    "StartTimeAscending",
]

STAGE_UPDATE_TYPES = {"Cancel": 0, "Retry": 1, "Run": 2}

TASK_RESULTS = {
    0: "Succeeded",
    1: "SucceededWithIssues",
    2: "Failed",
    3: "Canceled",
    4: "Skipped",
    5: "Abandoned",
}

TIMELINE_RECORD_STATES = {0: "Pending", 1: "InProgress", 2: "Completed"}

STEP_RECORD_TYPES = ("Task", "Job", "Stage")


# ============================================================================
# Input models
# ============================================================================


class GetBuildDefinitionsParams(ToolParams):
    project: str = Field(..., description="Project ID or name to get build definitions for")
    repository_id: Optional[str] = Field(None, description="Repository ID to filter build definitions")
    repository_type: Optional[RepositoryType] = Field(None, description="Type of repository to filter build definitions")
    name: Optional[str] = Field(None, description="Name of the build definition to filter")
    path: Optional[str] = Field(None, description="Path of the build definition to filter")
    query_order: Optional[DefinitionQueryOrder] = Field(None, description="Order in which build definitions are returned")
    top: Optional[int] = Field(None, description="Maximum number of build definitions to return")
    continuation_token: Optional[str] = Field(None, description="Token for continuing paged results")
    min_metrics_time: Optional[datetime] = Field(None, description="Minimum metrics time to filter build definitions")
    definition_ids: Optional[list[int]] = Field(None, description="Array of build definition IDs to filter")
    built_after: Optional[datetime] = Field(None, description="Return definitions that have builds after this date")
    not_built_after: Optional[datetime] = Field(None, description="Return definitions that do not have builds after this date")
    include_all_properties: Optional[bool] = Field(None, description="Whether to include all properties in the results")
    include_latest_builds: Optional[bool] = Field(None, description="Whether to include the latest builds for each definition")
    task_id_filter: Optional[str] = Field(None, description="Task ID to filter build definitions")
    process_type: Optional[int] = Field(None, description="Process type to filter build definitions")
    yaml_filename: Optional[str] = Field(None, description="YAML filename to filter build definitions")


class GetBuildDefinitionRevisionsParams(ToolParams):
    project: str = Field(..., description="Project ID or name to get the build definition revisions for")
    definition_id: int = Field(..., description="ID of the build definition to get revisions for")


class GetBuildsParams(ToolParams):
    project: str = Field(..., description="Project ID or name to get builds for")
    definitions: Optional[list[int]] = Field(None, description="Array of build definition IDs to filter builds")
    queues: Optional[list[int]] = Field(None, description="Array of queue IDs to filter builds")
    build_number: Optional[str] = Field(None, description="Build number to filter builds")
    min_time: Optional[datetime] = Field(None, description="Minimum finish time to filter builds")
    max_time: Optional[datetime] = Field(None, description="Maximum finish time to filter builds")
    requested_for: Optional[str] = Field(None, description="User ID or name who requested the build")
    reason_filter: Optional[int] = Field(None, description="Reason filter for the build (see BuildReason enum)")
    status_filter: Optional[int] = Field(None, description="Status filter for the build (see BuildStatus enum)")
    result_filter: Optional[int] = Field(None, description="Result filter for the build (see BuildResult enum)")
    tag_filters: Optional[list[str]] = Field(None, description="Array of tags to filter builds")
    properties: Optional[list[str]] = Field(None, description="Array of property names to include in the results")
    top: Optional[int] = Field(None, description="Maximum number of builds to return")
    continuation_token: Optional[str] = Field(None, description="Token for continuing paged results")
    max_builds_per_definition: Optional[int] = Field(None, description="Maximum number of builds per definition")
    deleted_filter: Optional[int] = Field(None, description="Filter for deleted builds (see QueryDeletedOption enum)")
    query_order: BuildQueryOrder = Field("QueueTimeDescending", description="Order in which builds are returned")
    branch_name: Optional[str] = Field(None, description="Branch name to filter builds")
    build_ids: Optional[list[int]] = Field(None, description="Array of build IDs to retrieve")
    repository_id: Optional[str] = Field(None, description="Repository ID to filter builds")
    repository_type: Optional[RepositoryType] = Field(None, description="Type of repository to filter builds")


class BuildParams(ToolParams):
    project: str = Field(..., description="Project ID or name of the build")
    build_id: int = Field(..., description="ID of the build")


class GetBuildLogByIdParams(BuildParams):
    log_id: int = Field(..., description="ID of the log to retrieve")
    start_line: Optional[int] = Field(None, description="Starting line number for the log content, defaults to 0")
    end_line: Optional[int] = Field(None, description="Ending line number for the log content, defaults to the end of the log")


class GetBuildChangesParams(BuildParams):
    continuation_token: Optional[str] = Field(None, description="Continuation token for pagination")
    top: int = Field(100, description="Number of changes to retrieve, defaults to 100")
    include_source_change: Optional[bool] = Field(None, description="Whether to include source changes in the results, defaults to false")


class UpdateBuildStageParams(BuildParams):
    stage_name: str = Field(..., description="Name of the stage to update")
    status: Literal["Cancel", "Retry", "Run"] = Field(..., description="New status for the stage")
    force_retry_all_jobs: bool = Field(False, description="Whether to force retry all jobs in the stage.")


class PipelineParams(ToolParams):
    project: str = Field(..., description="Project ID or name of the pipeline")
    pipeline_id: int = Field(..., description="ID of the pipeline")


class GetRunParams(PipelineParams):
    run_id: int = Field(..., description="ID of the run to get")


class ResourceVersion(BaseModel):
    version: Optional[str] = Field(None, description="Version of the resource.")


class PipelineResource(BaseModel):
    run_id: int = Field(
        ...,
        serialization_alias="runId",
        description="Id of the source pipeline run that triggered or is referenced by this pipeline run.",
    )
    version: Optional[str] = Field(None, description="Version of the source pipeline run.")


class RepositoryResource(BaseModel):
    ref_name: str = Field(..., serialization_alias="refName", description="Reference name, e.g., refs/heads/main.")
    token: Optional[str] = None
    token_type: Optional[str] = Field(None, serialization_alias="tokenType")
    version: Optional[str] = Field(None, description="Version of the repository resource, git commit sha.")


class RunResources(BaseModel):
    builds: Optional[dict[str, ResourceVersion]] = None
    containers: Optional[dict[str, ResourceVersion]] = None
    packages: Optional[dict[str, ResourceVersion]] = None
    pipelines: Optional[dict[str, PipelineResource]] = None
    repositories: Optional[dict[str, RepositoryResource]] = None


class Variable(BaseModel):
    value: Optional[str] = None
    is_secret: Optional[bool] = Field(None, serialization_alias="isSecret")


class RunPipelineParams(PipelineParams):
    pipeline_version: Optional[int] = Field(None, description="Version of the pipeline to run. If not provided, the latest version will be used.")
    preview_run: Optional[bool] = Field(None, description="If true, returns the final YAML document after parsing templates without creating a new run.")
    resources: Optional[RunResources] = Field(None, description="A dictionary of resources to pass to the pipeline.")
    stages_to_skip: Optional[list[str]] = Field(None, description="A list of stages to skip.")
    template_parameters: Optional[dict[str, str]] = Field(None, description="Custom build parameters as key-value pairs")
    variables: Optional[dict[str, Variable]] = Field(None, description="A dictionary of variables to pass to the pipeline.")
    yaml_override: Optional[str] = Field(None, description="YAML override for the pipeline run.")


# ============================================================================
# Log / timeline join
# ============================================================================


def summarize_build_log(build_id: int, logs: Optional[list[dict]], timeline: Optional[dict]) -> dict[str, Any]:
    """Join build logs with timeline records on log id and count step outcomes.

    Each log gets ``stepInfo`` from the record that owns it, or None when no
    record references the log.
    """
    log_to_step: dict[Any, dict] = {}
    steps: list[dict[str, Any]] = []

    for record in (timeline or {}).get("records") or []:
        log_id = (record.get("log") or {}).get("id")
        if log_id:
            log_to_step[log_id] = record

        if record.get("type") in STEP_RECORD_TYPES:
            steps.append({
                "id": record.get("id"),
                "name": record.get("name"),
                "type": record.get("type"),
                "state": record.get("state"),
                "result": record.get("result"),
                "startTime": record.get("startTime"),
                "finishTime": record.get("finishTime"),
                "logId": log_id,
                "parentId": record.get("parentId"),
                "order": record.get("order"),
            })

    enhanced_logs = []
    for log in logs or []:
        step = log_to_step.get(log.get("id"))
        step_info = None
        if step is not None:
            step_info = {
                "stepName": step.get("name"),
                "stepType": step.get("type"),
                "state": step.get("state"),
                "result": step.get("result"),
                "startTime": step.get("startTime"),
                "finishTime": step.get("finishTime"),
            }
        enhanced_logs.append({**log, "stepInfo": step_info})

    results = [enum_name(step["result"], TASK_RESULTS) for step in steps]
    states = [enum_name(step["state"], TIMELINE_RECORD_STATES) for step in steps]

    return {
        "logs": enhanced_logs,
        "steps": steps,
        "buildId": build_id,
        "summary": {
            "totalLogs": len(logs or []),
            "totalSteps": len(steps),
            "passedSteps": results.count("succeeded"),
            "failedSteps": results.count("failed"),
            "skippedSteps": results.count("skipped"),
            "inProgressSteps": states.count("inprogress"),
        },
    }


# ============================================================================
# Registrar
# ============================================================================


def configure_pipeline_tools(registry: ToolRegistry, providers: Providers) -> None:
    tool = partial(registry.tool, domain=Domain.PIPELINES)

    @tool(
        "pipelines_get_build_definitions",
        "Retrieves a list of build definitions for a given project.",
        GetBuildDefinitionsParams,
    )
    async def get_build_definitions(params: GetBuildDefinitionsParams) -> CallToolResult:
        connection = await providers.connection()
        definitions = await connection.get_build_api().get_definitions(
            params.project,
            name=params.name,
            repositoryId=params.repository_id,
            repositoryType=params.repository_type,
            queryOrder=camel(params.query_order) if params.query_order else None,
            **{"$top": params.top},
            continuationToken=params.continuation_token,
            minMetricsTime=params.min_metrics_time,
            definitionIds=params.definition_ids,
            path=params.path,
            builtAfter=params.built_after,
            notBuiltAfter=params.not_built_after,
            includeAllProperties=params.include_all_properties,
            includeLatestBuilds=params.include_latest_builds,
            taskIdFilter=params.task_id_filter,
            processType=params.process_type,
            yamlFilename=params.yaml_filename,
        )
        return json_result(definitions)

    @tool(
        "pipelines_get_build_definition_revisions",
        "Retrieves a list of revisions for a specific build definition.",
        GetBuildDefinitionRevisionsParams,
    )
    async def get_build_definition_revisions(params: GetBuildDefinitionRevisionsParams) -> CallToolResult:
        connection = await providers.connection()
        revisions = await connection.get_build_api().get_definition_revisions(params.project, params.definition_id)
        return json_result(revisions)

    @tool("pipelines_get_builds", "Retrieves a list of builds for a given project.", GetBuildsParams)
    async def get_builds(params: GetBuildsParams) -> CallToolResult:
        connection = await providers.connection()
        builds = await connection.get_build_api().get_builds(
            params.project,
            definitions=params.definitions,
            queues=params.queues,
            buildNumber=params.build_number,
            minTime=params.min_time,
            maxTime=params.max_time,
            requestedFor=params.requested_for,
            reasonFilter=params.reason_filter,
            statusFilter=params.status_filter,
            resultFilter=params.result_filter,
            tagFilters=params.tag_filters,
            properties=params.properties,
            **{"$top": params.top},
            continuationToken=params.continuation_token,
            maxBuildsPerDefinition=params.max_builds_per_definition,
            deletedFilter=params.deleted_filter,
            queryOrder=camel(params.query_order),
            branchName=params.branch_name,
            buildIds=params.build_ids,
            repositoryId=params.repository_id,
            repositoryType=params.repository_type,
        )
        return json_result(builds)

    @tool(
        "pipelines_get_build_log",
        "Retrieves the logs for a specific build, each annotated with the pipeline step that produced it, plus a step summary.",
        BuildParams,
    )
    async def get_build_log(params: BuildParams) -> CallToolResult:
        connection = await providers.connection()
        build_api = connection.get_build_api()

        logs, timeline = await asyncio.gather(
            build_api.get_build_logs(params.project, params.build_id),
            build_api.get_build_timeline(params.project, params.build_id),
        )
        return json_result(summarize_build_log(params.build_id, logs, timeline))

    @tool("pipelines_get_build_log_by_id", "Get a specific build log by log ID.", GetBuildLogByIdParams)
    async def get_build_log_by_id(params: GetBuildLogByIdParams) -> CallToolResult:
        connection = await providers.connection()
        log_lines = await connection.get_build_api().get_build_log_lines(
            params.project, params.build_id, params.log_id, params.start_line, params.end_line
        )
        return json_result(log_lines)

    @tool("pipelines_get_build_changes", "Get the changes associated with a specific build.", GetBuildChangesParams)
    async def get_build_changes(params: GetBuildChangesParams) -> CallToolResult:
        connection = await providers.connection()
        changes = await connection.get_build_api().get_build_changes(
            params.project,
            params.build_id,
            params.continuation_token,
            params.top,
            params.include_source_change,
        )
        return json_result(changes)

    @tool("pipelines_get_build_status", "Fetches the status of a specific build.", BuildParams)
    async def get_build_status(params: BuildParams) -> CallToolResult:
        connection = await providers.connection()
        report = await connection.get_build_api().get_build_report(params.project, params.build_id)
        return json_result(report)

    @tool("pipelines_update_build_stage", "Updates the stage of a specific build.", UpdateBuildStageParams)
    async def update_build_stage(params: UpdateBuildStageParams) -> CallToolResult:
        connection = await providers.connection()
        endpoint = (
            f"{connection.server_url}/{quote(params.project, safe='')}/_apis/build/builds/{params.build_id}"
            f"/stages/{quote(params.stage_name, safe='')}?api-version={API_VERSION}"
        )
        headers = await providers.auth_headers()
        body = {
            "forceRetryAllJobs": params.force_retry_all_jobs,
            "state": STAGE_UPDATE_TYPES[params.status],
        }

        async with rest.create_client() as client:
            response = await client.patch(endpoint, headers=headers, json=body)

        if response.is_error:
            raise RuntimeError(f"Failed to update build stage: {response.status_code} {response.text}")

        logger.info(f"Updated stage {params.stage_name} of build {params.build_id} ({params.status})")
        return json_result(response.json() if response.content else None)

    @tool("pipelines_get_run", "Gets a run for a particular pipeline.", GetRunParams)
    async def get_run(params: GetRunParams) -> CallToolResult:
        connection = await providers.connection()
        run = await connection.get_pipelines_api().get_run(params.project, params.pipeline_id, params.run_id)
        return json_result(run)

    @tool("pipelines_list_runs", "Gets top 10000 runs for a particular pipeline.", PipelineParams)
    async def list_runs(params: PipelineParams) -> CallToolResult:
        connection = await providers.connection()
        runs = await connection.get_pipelines_api().list_runs(params.project, params.pipeline_id)
        return json_result(runs)

    @tool("pipelines_run_pipeline", "Starts a new run of a pipeline.", RunPipelineParams)
    async def run_pipeline(params: RunPipelineParams) -> CallToolResult:
        if params.yaml_override and not params.preview_run:
            raise ToolInputError("Parameter 'yaml_override' can only be specified together with parameter 'preview_run'.")

        connection = await providers.connection()
        run_request = {
            "previewRun": params.preview_run,
            "resources": params.resources.model_dump(by_alias=True, exclude_none=True) if params.resources else {},
            "stagesToSkip": params.stages_to_skip,
            "templateParameters": params.template_parameters,
            "variables": (
                {name: variable.model_dump(by_alias=True, exclude_none=True) for name, variable in params.variables.items()}
                if params.variables
                else None
            ),
            "yamlOverride": params.yaml_override,
        }
        run_request = {key: value for key, value in run_request.items() if value is not None}

        pipeline_run = await connection.get_pipelines_api().run_pipeline(
            run_request, params.project, params.pipeline_id, params.pipeline_version
        )
        if not pipeline_run or pipeline_run.get("id") is None:
            raise RuntimeError("Failed to get build ID from pipeline run")

        logger.info(f"Queued run {pipeline_run['id']} of pipeline {params.pipeline_id}")
        return json_result(pipeline_run)
