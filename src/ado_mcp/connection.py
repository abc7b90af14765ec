"""Azure DevOps REST connection.

``AdoConnection`` owns one ``httpx.AsyncClient`` and hands out thin,
per-area API clients (build, pipelines, git, wiki, ...). Each method maps to
one REST endpoint and returns the decoded JSON body; collection endpoints
return the ``value`` list.
"""
import logging
from datetime import date, datetime
from typing import Any, Optional, Sequence
from urllib.parse import quote

import httpx

from .auth import TokenProvider
from .errors import AdoApiError, ProviderError
from .providers import UserAgentProvider
from .results import error_message

logger = logging.getLogger("ado-mcp.connection")

API_VERSION = "7.1"
PREVIEW_API_VERSION = "7.1-preview.1"


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, set)):
        return ",".join(str(_query_value(item)) for item in value)
    return value


def clean_params(params: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Drop unset query parameters and render the rest the way ADO expects."""
    return {key: _query_value(value) for key, value in (params or {}).items() if value is not None}


def _path(segment: Any) -> str:
    return quote(str(segment), safe="")


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return response.text or response.reason_phrase


class AdoConnection:
    """Authenticated connection to one Azure DevOps organization."""

    def __init__(
        self,
        server_url: str,
        token_provider: TokenProvider,
        user_agent_provider: UserAgentProvider,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self._token_provider = token_provider
        self._user_agent_provider = user_agent_provider
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def organization(self) -> str:
        return self.server_url.rsplit("/", 1)[-1]

    def service_url(self, host: str) -> str:
        """Base URL of an organization-scoped sibling service (e.g. ``almsearch``)."""
        return f"https://{host}.dev.azure.com/{self.organization}"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        content_type: str = "application/json",
        api_version: str = API_VERSION,
        accept: str = "application/json",
    ) -> Any:
        """Send one REST call; raise ``AdoApiError`` on a non-success status.

        ``path`` is relative to the organization URL unless it is absolute.
        """
        url = path if path.startswith("https://") else f"{self.server_url}/{path.lstrip('/')}"
        query = clean_params(params)
        query["api-version"] = api_version

        try:
            token = await self._token_provider()
        except Exception as e:
            raise ProviderError(error_message(e)) from e

        headers = {
            "Authorization": token.authorization,
            "Accept": accept,
            "User-Agent": self._user_agent_provider(),
        }
        if json is not None:
            headers["Content-Type"] = content_type

        logger.debug(f"{method} {url}")
        response = await self._client.request(method, url, params=query, json=json, headers=headers)

        if response.is_error:
            detail = _error_detail(response)
            logger.warning(f"{method} {url} failed with {response.status_code}: {detail}")
            raise AdoApiError(
                f"Azure DevOps API error ({response.status_code}): {detail}",
                status_code=response.status_code,
                url=url,
            )

        if not response.content:
            return None
        if "json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    async def get_values(self, path: str, **kwargs) -> list[Any]:
        body = await self.request("GET", path, **kwargs)
        if isinstance(body, dict):
            return body.get("value", [])
        return body or []

    def get_build_api(self) -> "BuildApi":
        return BuildApi(self)

    def get_pipelines_api(self) -> "PipelinesApi":
        return PipelinesApi(self)

    def get_git_api(self) -> "GitApi":
        return GitApi(self)

    def get_wiki_api(self) -> "WikiApi":
        return WikiApi(self)

    def get_core_api(self) -> "CoreApi":
        return CoreApi(self)

    def get_work_item_tracking_api(self) -> "WorkItemTrackingApi":
        return WorkItemTrackingApi(self)

    def get_work_api(self) -> "WorkApi":
        return WorkApi(self)

    def get_test_plan_api(self) -> "TestPlanApi":
        return TestPlanApi(self)

    def get_alert_api(self) -> "AlertApi":
        return AlertApi(self)


class _AreaApi:
    def __init__(self, connection: AdoConnection):
        self._connection = connection


# ============================================================================
# Build and Pipelines
# ============================================================================


class BuildApi(_AreaApi):
    async def get_definitions(self, project: str, **filters) -> list[dict]:
        return await self._connection.get_values(f"{_path(project)}/_apis/build/definitions", params=filters)

    async def get_definition_revisions(self, project: str, definition_id: int) -> list[dict]:
        return await self._connection.get_values(
            f"{_path(project)}/_apis/build/definitions/{definition_id}/revisions"
        )

    async def get_builds(self, project: str, **filters) -> list[dict]:
        return await self._connection.get_values(f"{_path(project)}/_apis/build/builds", params=filters)

    async def get_build_logs(self, project: str, build_id: int) -> list[dict]:
        return await self._connection.get_values(f"{_path(project)}/_apis/build/builds/{build_id}/logs")

    async def get_build_timeline(self, project: str, build_id: int) -> Optional[dict]:
        return await self._connection.request("GET", f"{_path(project)}/_apis/build/builds/{build_id}/timeline")

    async def get_build_log_lines(
        self,
        project: str,
        build_id: int,
        log_id: int,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
    ) -> list[str]:
        return await self._connection.get_values(
            f"{_path(project)}/_apis/build/builds/{build_id}/logs/{log_id}",
            params={"startLine": start_line, "endLine": end_line},
        )

    async def get_build_changes(
        self,
        project: str,
        build_id: int,
        continuation_token: Optional[str] = None,
        top: Optional[int] = None,
        include_source_change: Optional[bool] = None,
    ) -> list[dict]:
        return await self._connection.get_values(
            f"{_path(project)}/_apis/build/builds/{build_id}/changes",
            params={
                "continuationToken": continuation_token,
                "$top": top,
                "includeSourceChange": include_source_change,
            },
        )

    async def get_build_report(self, project: str, build_id: int) -> Optional[dict]:
        return await self._connection.request(
            "GET",
            f"{_path(project)}/_apis/build/builds/{build_id}/report",
            api_version="7.1-preview.2",
        )


class PipelinesApi(_AreaApi):
    async def get_run(self, project: str, pipeline_id: int, run_id: int) -> Optional[dict]:
        return await self._connection.request(
            "GET", f"{_path(project)}/_apis/pipelines/{pipeline_id}/runs/{run_id}"
        )

    async def list_runs(self, project: str, pipeline_id: int) -> list[dict]:
        return await self._connection.get_values(f"{_path(project)}/_apis/pipelines/{pipeline_id}/runs")

    async def run_pipeline(
        self,
        run_parameters: dict,
        project: str,
        pipeline_id: int,
        pipeline_version: Optional[int] = None,
    ) -> Optional[dict]:
        return await self._connection.request(
            "POST",
            f"{_path(project)}/_apis/pipelines/{pipeline_id}/runs",
            params={"pipelineVersion": pipeline_version},
            json=run_parameters,
        )


# ============================================================================
# Git
# ============================================================================


def _search_criteria(criteria: Optional[dict[str, Any]]) -> dict[str, Any]:
    return {f"searchCriteria.{key}": value for key, value in (criteria or {}).items()}


class GitApi(_AreaApi):
    def _repo_path(self, repository_id: str, project: Optional[str] = None) -> str:
        prefix = f"{_path(project)}/" if project else ""
        return f"{prefix}_apis/git/repositories/{_path(repository_id)}"

    async def get_repositories(self, project: str) -> list[dict]:
        return await self._connection.get_values(f"{_path(project)}/_apis/git/repositories")

    async def get_repository(self, repository_id: str, project: Optional[str] = None) -> Optional[dict]:
        return await self._connection.request("GET", self._repo_path(repository_id, project))

    async def get_pull_requests(
        self,
        repository_id: str,
        search_criteria: dict[str, Any],
        project: Optional[str] = None,
        skip: Optional[int] = None,
        top: Optional[int] = None,
    ) -> list[dict]:
        params = _search_criteria(search_criteria)
        params.update({"$skip": skip, "$top": top})
        return await self._connection.get_values(
            f"{self._repo_path(repository_id, project)}/pullrequests", params=params
        )

    async def get_pull_requests_by_project(
        self,
        project: str,
        search_criteria: dict[str, Any],
        skip: Optional[int] = None,
        top: Optional[int] = None,
    ) -> list[dict]:
        params = _search_criteria(search_criteria)
        params.update({"$skip": skip, "$top": top})
        return await self._connection.get_values(f"{_path(project)}/_apis/git/pullrequests", params=params)

    async def get_pull_request(
        self,
        repository_id: str,
        pull_request_id: int,
        include_work_item_refs: Optional[bool] = None,
    ) -> Optional[dict]:
        return await self._connection.request(
            "GET",
            f"{self._repo_path(repository_id)}/pullrequests/{pull_request_id}",
            params={"includeWorkItemRefs": include_work_item_refs},
        )

    async def create_pull_request(self, pull_request: dict, repository_id: str) -> Optional[dict]:
        return await self._connection.request(
            "POST", f"{self._repo_path(repository_id)}/pullrequests", json=pull_request
        )

    async def update_pull_request(self, update: dict, repository_id: str, pull_request_id: int) -> Optional[dict]:
        return await self._connection.request(
            "PATCH", f"{self._repo_path(repository_id)}/pullrequests/{pull_request_id}", json=update
        )

    async def create_pull_request_reviewers(
        self, reviewers: list[dict], repository_id: str, pull_request_id: int
    ) -> list[dict]:
        body = await self._connection.request(
            "POST",
            f"{self._repo_path(repository_id)}/pullrequests/{pull_request_id}/reviewers",
            json=reviewers,
        )
        return body.get("value", []) if isinstance(body, dict) else body or []

    async def delete_pull_request_reviewer(self, repository_id: str, pull_request_id: int, reviewer_id: str) -> None:
        await self._connection.request(
            "DELETE",
            f"{self._repo_path(repository_id)}/pullrequests/{pull_request_id}/reviewers/{_path(reviewer_id)}",
        )

    async def get_threads(
        self,
        repository_id: str,
        pull_request_id: int,
        project: Optional[str] = None,
        iteration: Optional[int] = None,
        base_iteration: Optional[int] = None,
    ) -> list[dict]:
        return await self._connection.get_values(
            f"{self._repo_path(repository_id, project)}/pullRequests/{pull_request_id}/threads",
            params={"$iteration": iteration, "$baseIteration": base_iteration},
        )

    async def get_comments(
        self, repository_id: str, pull_request_id: int, thread_id: int, project: Optional[str] = None
    ) -> list[dict]:
        return await self._connection.get_values(
            f"{self._repo_path(repository_id, project)}/pullRequests/{pull_request_id}/threads/{thread_id}/comments"
        )

    async def create_comment(
        self, comment: dict, repository_id: str, pull_request_id: int, thread_id: int, project: Optional[str] = None
    ) -> Optional[dict]:
        return await self._connection.request(
            "POST",
            f"{self._repo_path(repository_id, project)}/pullRequests/{pull_request_id}/threads/{thread_id}/comments",
            json=comment,
        )

    async def create_thread(
        self, thread: dict, repository_id: str, pull_request_id: int, project: Optional[str] = None
    ) -> Optional[dict]:
        return await self._connection.request(
            "POST",
            f"{self._repo_path(repository_id, project)}/pullRequests/{pull_request_id}/threads",
            json=thread,
        )

    async def update_thread(
        self, thread: dict, repository_id: str, pull_request_id: int, thread_id: int
    ) -> Optional[dict]:
        return await self._connection.request(
            "PATCH",
            f"{self._repo_path(repository_id)}/pullRequests/{pull_request_id}/threads/{thread_id}",
            json=thread,
        )

    async def get_refs(
        self,
        repository_id: str,
        filter: Optional[str] = None,
        filter_contains: Optional[str] = None,
        my_branches: Optional[bool] = None,
    ) -> list[dict]:
        return await self._connection.get_values(
            f"{self._repo_path(repository_id)}/refs",
            params={"filter": filter, "filterContains": filter_contains, "includeMyBranches": my_branches},
        )

    async def get_commits(
        self,
        repository_id: str,
        search_criteria: dict[str, Any],
        project: Optional[str] = None,
        skip: Optional[int] = None,
        top: Optional[int] = None,
    ) -> list[dict]:
        params = _search_criteria(search_criteria)
        params.update({"searchCriteria.$skip": skip, "searchCriteria.$top": top})
        return await self._connection.get_values(
            f"{self._repo_path(repository_id, project)}/commits", params=params
        )

    async def get_pull_request_query(
        self, query: dict, repository_id: str, project: Optional[str] = None
    ) -> Optional[dict]:
        return await self._connection.request(
            "POST", f"{self._repo_path(repository_id, project)}/pullrequestquery", json=query
        )


# ============================================================================
# Wiki
# ============================================================================


class WikiApi(_AreaApi):
    def _wiki_path(self, wiki_identifier: str, project: Optional[str] = None) -> str:
        prefix = f"{_path(project)}/" if project else ""
        return f"{prefix}_apis/wiki/wikis/{_path(wiki_identifier)}"

    async def get_wiki(self, wiki_identifier: str, project: Optional[str] = None) -> Optional[dict]:
        return await self._connection.request("GET", self._wiki_path(wiki_identifier, project))

    async def get_all_wikis(self, project: Optional[str] = None) -> list[dict]:
        prefix = f"{_path(project)}/" if project else ""
        return await self._connection.get_values(f"{prefix}_apis/wiki/wikis")

    async def get_pages_batch(self, request: dict, project: str, wiki_identifier: str) -> list[dict]:
        body = await self._connection.request(
            "POST", f"{self._wiki_path(wiki_identifier, project)}/pagesbatch", json=request
        )
        return body.get("value", []) if isinstance(body, dict) else body or []

    async def get_page_text(self, project: str, wiki_identifier: str, path: str = "/") -> Optional[str]:
        return await self._connection.request(
            "GET",
            f"{self._wiki_path(wiki_identifier, project)}/pages",
            params={"path": path, "includeContent": True},
            accept="text/plain",
        )


# ============================================================================
# Core
# ============================================================================


class CoreApi(_AreaApi):
    async def get_projects(
        self,
        state_filter: Optional[str] = None,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        continuation_token: Optional[int] = None,
    ) -> list[dict]:
        return await self._connection.get_values(
            "_apis/projects",
            params={
                "stateFilter": state_filter,
                "$top": top,
                "$skip": skip,
                "continuationToken": continuation_token,
            },
        )

    async def get_teams(
        self,
        project: str,
        mine: Optional[bool] = None,
        top: Optional[int] = None,
        skip: Optional[int] = None,
    ) -> list[dict]:
        return await self._connection.get_values(
            f"_apis/projects/{_path(project)}/teams",
            params={"$mine": mine, "$top": top, "$skip": skip},
        )


# ============================================================================
# Work items and boards
# ============================================================================


class WorkItemTrackingApi(_AreaApi):
    async def get_work_item(
        self,
        id: int,
        fields: Optional[Sequence[str]] = None,
        as_of: Optional[str] = None,
        expand: Optional[str] = None,
        project: Optional[str] = None,
    ) -> Optional[dict]:
        prefix = f"{_path(project)}/" if project else ""
        return await self._connection.request(
            "GET",
            f"{prefix}_apis/wit/workitems/{id}",
            params={"fields": fields, "asOf": as_of, "$expand": expand},
        )

    async def get_work_items_batch(self, ids: Sequence[int], fields: Sequence[str], project: str) -> list[dict]:
        body = await self._connection.request(
            "POST",
            f"{_path(project)}/_apis/wit/workitemsbatch",
            json={"ids": list(ids), "fields": list(fields)},
        )
        return body.get("value", []) if isinstance(body, dict) else body or []

    async def get_comments(self, project: str, work_item_id: int, top: Optional[int] = None) -> Optional[dict]:
        return await self._connection.request(
            "GET",
            f"{_path(project)}/_apis/wit/workItems/{work_item_id}/comments",
            params={"$top": top},
            api_version="7.1-preview.4",
        )

    async def create_work_item(self, document: list[dict], project: str, work_item_type: str) -> Optional[dict]:
        return await self._connection.request(
            "POST",
            f"{_path(project)}/_apis/wit/workitems/${_path(work_item_type)}",
            json=document,
            content_type="application/json-patch+json",
        )

    async def update_work_item(self, document: list[dict], id: int) -> Optional[dict]:
        return await self._connection.request(
            "PATCH",
            f"_apis/wit/workitems/{id}",
            json=document,
            content_type="application/json-patch+json",
        )

    async def get_work_item_type(self, project: str, work_item_type: str) -> Optional[dict]:
        return await self._connection.request(
            "GET", f"{_path(project)}/_apis/wit/workitemtypes/{_path(work_item_type)}"
        )

    async def get_query_results_by_id(
        self,
        id: str,
        project: Optional[str] = None,
        team: Optional[str] = None,
        time_precision: Optional[bool] = None,
        top: Optional[int] = None,
    ) -> Optional[dict]:
        prefix = "/".join(_path(part) for part in (project, team) if part)
        prefix = f"{prefix}/" if prefix else ""
        return await self._connection.request(
            "GET",
            f"{prefix}_apis/wit/wiql/{_path(id)}",
            params={"timePrecision": time_precision, "$top": top},
        )

    async def create_or_update_classification_node(
        self, node: dict, project: str, structure_group: str, path: Optional[str] = None
    ) -> Optional[dict]:
        suffix = f"/{quote(path)}" if path else ""
        return await self._connection.request(
            "POST",
            f"{_path(project)}/_apis/wit/classificationnodes/{structure_group}{suffix}",
            json=node,
        )


class WorkApi(_AreaApi):
    def _team_path(self, project: str, team: Optional[str] = None) -> str:
        if team:
            return f"{_path(project)}/{_path(team)}"
        return _path(project)

    async def get_team_iterations(self, project: str, team: str, timeframe: Optional[str] = None) -> list[dict]:
        return await self._connection.get_values(
            f"{self._team_path(project, team)}/_apis/work/teamsettings/iterations",
            params={"$timeframe": timeframe},
        )

    async def post_team_iteration(self, iteration: dict, project: str, team: str) -> Optional[dict]:
        return await self._connection.request(
            "POST",
            f"{self._team_path(project, team)}/_apis/work/teamsettings/iterations",
            json=iteration,
        )

    async def get_iteration_work_items(self, project: str, team: Optional[str], iteration_id: str) -> Optional[dict]:
        return await self._connection.request(
            "GET",
            f"{self._team_path(project, team)}/_apis/work/teamsettings/iterations/{_path(iteration_id)}/workitems",
        )

    async def get_predefined_query_results(
        self, project: str, query_id: str, top: Optional[int] = None, include_completed: Optional[bool] = None
    ) -> Optional[dict]:
        return await self._connection.request(
            "GET",
            f"{_path(project)}/_apis/work/predefinedqueries/{_path(query_id)}",
            params={"$top": top, "includeCompleted": include_completed},
            api_version=PREVIEW_API_VERSION,
        )


# ============================================================================
# Test plans
# ============================================================================


class TestPlanApi(_AreaApi):
    async def get_test_plans(
        self,
        project: str,
        owner: Optional[str] = None,
        continuation_token: Optional[str] = None,
        include_plan_details: Optional[bool] = None,
        filter_active_plans: Optional[bool] = None,
    ) -> list[dict]:
        return await self._connection.get_values(
            f"{_path(project)}/_apis/testplan/plans",
            params={
                "owner": owner,
                "continuationToken": continuation_token,
                "includePlanDetails": include_plan_details,
                "filterActivePlans": filter_active_plans,
            },
        )

    async def create_test_plan(self, plan: dict, project: str) -> Optional[dict]:
        return await self._connection.request("POST", f"{_path(project)}/_apis/testplan/plans", json=plan)

    async def get_test_case_list(self, project: str, plan_id: int, suite_id: int) -> list[dict]:
        return await self._connection.get_values(
            f"{_path(project)}/_apis/testplan/Plans/{plan_id}/Suites/{suite_id}/TestCase"
        )

    async def add_test_cases_to_suite(
        self, project: str, plan_id: int, suite_id: int, test_case_ids: Sequence[int]
    ) -> list[dict]:
        ids = ",".join(str(test_case_id) for test_case_id in test_case_ids)
        body = await self._connection.request(
            "POST", f"{_path(project)}/_apis/test/Plans/{plan_id}/suites/{suite_id}/testcases/{ids}"
        )
        return body.get("value", []) if isinstance(body, dict) else body or []

    async def get_test_result_details_for_build(self, project: str, build_id: int) -> Optional[dict]:
        return await self._connection.request(
            "GET",
            f"https://vstmr.dev.azure.com/{self._connection.organization}/{_path(project)}/_apis/testresults/resultdetailsbybuild",
            params={"buildId": build_id},
            api_version="7.1-preview.1",
        )


# ============================================================================
# Advanced Security
# ============================================================================


class AlertApi(_AreaApi):
    def _alerts_path(self, project: str, repository: str) -> str:
        base = self._connection.service_url("advsec")
        return f"{base}/{_path(project)}/_apis/alert/repositories/{_path(repository)}/alerts"

    async def get_alerts(
        self,
        project: str,
        repository: str,
        criteria: Optional[dict[str, Any]] = None,
        top: Optional[int] = None,
        order_by: Optional[str] = None,
        continuation_token: Optional[str] = None,
    ) -> Optional[dict]:
        params = {f"criteria.{key}": value for key, value in (criteria or {}).items()}
        params.update({"top": top, "orderBy": order_by, "continuationToken": continuation_token})
        return await self._connection.request(
            "GET", self._alerts_path(project, repository), params=params, api_version="7.2-preview.1"
        )

    async def get_alert(
        self, project: str, repository: str, alert_id: int, ref: Optional[str] = None
    ) -> Optional[dict]:
        return await self._connection.request(
            "GET",
            f"{self._alerts_path(project, repository)}/{alert_id}",
            params={"ref": ref},
            api_version="7.2-preview.1",
        )


class SharedConnectionProvider:
    """Connection provider returning one shared ``AdoConnection``.

    The connection is opened on first use; ``aclose()`` releases its HTTP
    client when the server shuts down.
    """

    def __init__(
        self,
        organization_url: str,
        token_provider: TokenProvider,
        user_agent_provider: UserAgentProvider,
        timeout: float = 30.0,
    ):
        self._organization_url = organization_url
        self._token_provider = token_provider
        self._user_agent_provider = user_agent_provider
        self._timeout = timeout
        self._connection: Optional[AdoConnection] = None

    async def __call__(self) -> AdoConnection:
        if self._connection is None:
            self._connection = AdoConnection(
                self._organization_url, self._token_provider, self._user_agent_provider, timeout=self._timeout
            )
        return self._connection

    async def aclose(self) -> None:
        if self._connection is not None:
            await self._connection.aclose()
            self._connection = None
            logger.debug("Closed Azure DevOps connection")


def create_connection_provider(
    organization_url: str,
    token_provider: TokenProvider,
    user_agent_provider: UserAgentProvider,
    timeout: float = 30.0,
) -> SharedConnectionProvider:
    return SharedConnectionProvider(organization_url, token_provider, user_agent_provider, timeout=timeout)
