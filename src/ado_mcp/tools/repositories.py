"""Repository tools: repos, branches, pull requests, threads and commits."""
import logging
from functools import partial
from typing import Any, Literal, Optional

from mcp.types import CallToolResult
from pydantic import Field

from ..domains import Domain
from ..errors import ProviderError, ToolInputError
from ..identity import get_current_user_details, get_user_id_from_email
from ..providers import Providers
from ..registry import FailureMode, ToolRegistry
from ..results import error_message, error_result, json_result, text_result
from .common import ToolParams, camel, paginate

logger = logging.getLogger("ado-mcp.tools.repositories")

BRANCH_PREFIX = "refs/heads/"

PullRequestStatus = Literal["NotSet", "Active", "Abandoned", "Completed", "All"]

CommentThreadStatus = Literal["Unknown", "Active", "Fixed", "WontFix", "Closed", "ByDesign", "Pending"]

REPOSITORY_FIELDS = ("id", "name", "isDisabled", "isFork", "isInMaintenance", "webUrl", "size")


# ============================================================================
# Response trimming
# ============================================================================


def branch_names(refs: Optional[list[dict]], top: int) -> list[str]:
    """Branch names without the ``refs/heads/`` prefix, descending, at most ``top``."""
    names = [ref["name"] for ref in refs or [] if ref.get("name")]
    branches = [name[len(BRANCH_PREFIX):] for name in names if name.startswith(BRANCH_PREFIX)]
    return sorted(branches, reverse=True)[:top]


def trim_comments(comments: Optional[list[dict]]) -> Optional[list[dict]]:
    """Essential comment fields only; deleted comments are dropped."""
    if comments is None:
        return None
    return [
        {
            "id": comment.get("id"),
            "author": {
                "displayName": (comment.get("author") or {}).get("displayName"),
                "uniqueName": (comment.get("author") or {}).get("uniqueName"),
            },
            "content": comment.get("content"),
            "publishedDate": comment.get("publishedDate"),
            "lastUpdatedDate": comment.get("lastUpdatedDate"),
            "lastContentUpdatedDate": comment.get("lastContentUpdatedDate"),
        }
        for comment in comments
        if not comment.get("isDeleted")
    ]


def trim_pull_request(pr: dict, include_repository: bool = False) -> dict[str, Any]:
    trimmed: dict[str, Any] = {
        "pullRequestId": pr.get("pullRequestId"),
        "codeReviewId": pr.get("codeReviewId"),
    }
    if include_repository:
        trimmed["repository"] = (pr.get("repository") or {}).get("name")
    trimmed.update({
        "status": pr.get("status"),
        "createdBy": {
            "displayName": (pr.get("createdBy") or {}).get("displayName"),
            "uniqueName": (pr.get("createdBy") or {}).get("uniqueName"),
        },
        "creationDate": pr.get("creationDate"),
        "title": pr.get("title"),
        "isDraft": pr.get("isDraft"),
        "sourceRefName": pr.get("sourceRefName"),
        "targetRefName": pr.get("targetRefName"),
    })
    return trimmed


def _by_id(item: dict) -> int:
    return item.get("id") or 0


# ============================================================================
# Input models
# ============================================================================


class CreatePullRequestParams(ToolParams):
    repository_id: str = Field(..., description="The ID of the repository where the pull request will be created.")
    source_ref_name: str = Field(..., description="The source branch name for the pull request, e.g., 'refs/heads/feature-branch'.")
    target_ref_name: str = Field(..., description="The target branch name for the pull request, e.g., 'refs/heads/main'.")
    title: str = Field(..., description="The title of the pull request.")
    description: Optional[str] = Field(None, description="The description of the pull request. Optional.")
    is_draft: bool = Field(False, description="Indicates whether the pull request is a draft. Defaults to false.")
    work_items: Optional[str] = Field(None, description="Work item IDs to associate with the pull request, space-separated.")
    fork_source_repository_id: Optional[str] = Field(
        None,
        description="The ID of the fork repository that the pull request originates from. Optional, used when creating a pull request from a fork.",
    )


class UpdatePullRequestParams(ToolParams):
    repository_id: str = Field(..., description="The ID of the repository where the pull request exists.")
    pull_request_id: int = Field(..., description="The ID of the pull request to update.")
    title: Optional[str] = Field(None, description="The new title for the pull request.")
    description: Optional[str] = Field(None, description="The new description for the pull request.")
    is_draft: Optional[bool] = Field(None, description="Whether the pull request should be a draft.")
    target_ref_name: Optional[str] = Field(None, description="The new target branch name (e.g., 'refs/heads/main').")
    status: Optional[Literal["Active", "Abandoned"]] = Field(
        None, description="The new status of the pull request. Can be 'Active' or 'Abandoned'."
    )


class UpdatePullRequestReviewersParams(ToolParams):
    repository_id: str = Field(..., description="The ID of the repository where the pull request exists.")
    pull_request_id: int = Field(..., description="The ID of the pull request to update.")
    reviewer_ids: list[str] = Field(..., description="List of reviewer ids to add or remove from the pull request.")
    action: Literal["add", "remove"] = Field(..., description="Action to perform on the reviewers. Can be 'add' or 'remove'.")


class ListReposByProjectParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    top: int = Field(100, description="The maximum number of repositories to return.")
    skip: int = Field(0, description="The number of repositories to skip. Defaults to 0.")
    repo_name_filter: Optional[str] = Field(
        None,
        description="Optional filter to search for repositories by name. If provided, only repositories with names containing this string will be returned.",
    )


class PullRequestFilterParams(ToolParams):
    top: int = Field(100, description="The maximum number of pull requests to return.")
    skip: int = Field(0, description="The number of pull requests to skip.")
    created_by_me: bool = Field(False, description="Filter pull requests created by the current user.")
    created_by_user: Optional[str] = Field(
        None,
        description="Filter pull requests created by a specific user (provide email or unique name). Takes precedence over created_by_me if both are provided.",
    )
    i_am_reviewer: bool = Field(False, description="Filter pull requests where the current user is a reviewer.")
    user_is_reviewer: Optional[str] = Field(
        None,
        description="Filter pull requests where a specific user is a reviewer (provide email or unique name). Takes precedence over i_am_reviewer if both are provided.",
    )
    status: PullRequestStatus = Field("Active", description="Filter pull requests by status. Defaults to 'Active'.")
    source_ref_name: Optional[str] = Field(None, description="Filter pull requests from this source branch (e.g., 'refs/heads/feature-branch').")
    target_ref_name: Optional[str] = Field(None, description="Filter pull requests into this target branch (e.g., 'refs/heads/main').")


class ListPullRequestsByRepoParams(PullRequestFilterParams):
    repository_id: str = Field(..., description="The ID of the repository where the pull requests are located.")


class ListPullRequestsByProjectParams(PullRequestFilterParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")


class ListPullRequestThreadsParams(ToolParams):
    repository_id: str = Field(..., description="The ID of the repository where the pull request is located.")
    pull_request_id: int = Field(..., description="The ID of the pull request for which to retrieve threads.")
    project: Optional[str] = Field(None, description="Project ID or project name (optional)")
    iteration: Optional[int] = Field(None, description="The iteration ID for which to retrieve threads. Optional, defaults to the latest iteration.")
    base_iteration: Optional[int] = Field(None, description="The base iteration ID for which to retrieve threads. Optional, defaults to the latest base iteration.")
    top: int = Field(100, description="The maximum number of threads to return.")
    skip: int = Field(0, description="The number of threads to skip.")
    full_response: bool = Field(False, description="Return full thread JSON response instead of trimmed data.")


class ListPullRequestThreadCommentsParams(ToolParams):
    repository_id: str = Field(..., description="The ID of the repository where the pull request is located.")
    pull_request_id: int = Field(..., description="The ID of the pull request for which to retrieve thread comments.")
    thread_id: int = Field(..., description="The ID of the thread for which to retrieve comments.")
    project: Optional[str] = Field(None, description="Project ID or project name (optional)")
    top: int = Field(100, description="The maximum number of comments to return.")
    skip: int = Field(0, description="The number of comments to skip.")
    full_response: bool = Field(False, description="Return full comment JSON response instead of trimmed data.")


class ListBranchesParams(ToolParams):
    repository_id: str = Field(..., description="The ID of the repository where the branches are located.")
    top: int = Field(100, description="The maximum number of branches to return. Defaults to 100.")
    filter_contains: Optional[str] = Field(None, description="Filter to find branches that contain this string in their name.")


class GetRepoByNameOrIdParams(ToolParams):
    project: str = Field(..., description="Project name or ID where the repository is located.")
    repository_name_or_id: str = Field(..., description="Repository name or ID.")


class GetBranchByNameParams(ToolParams):
    repository_id: str = Field(..., description="The ID of the repository where the branch is located.")
    branch_name: str = Field(..., description="The name of the branch to retrieve, e.g., 'main' or 'feature-branch'.")


class GetPullRequestByIdParams(ToolParams):
    repository_id: str = Field(..., description="The ID of the repository where the pull request is located.")
    pull_request_id: int = Field(..., description="The ID of the pull request to retrieve.")
    include_work_item_refs: bool = Field(False, description="Whether to reference work items associated with the pull request.")


class ReplyToCommentParams(ToolParams):
    repository_id: str = Field(..., description="The ID of the repository where the pull request is located.")
    pull_request_id: int = Field(..., description="The ID of the pull request where the comment thread exists.")
    thread_id: int = Field(..., description="The ID of the thread to which the comment will be added.")
    content: str = Field(..., description="The content of the comment to be added.")
    project: Optional[str] = Field(None, description="Project ID or project name (optional)")
    full_response: bool = Field(False, description="Return full comment JSON response instead of a simple confirmation message.")


class CreatePullRequestThreadParams(ToolParams):
    repository_id: str = Field(..., description="The ID of the repository where the pull request is located.")
    pull_request_id: int = Field(..., description="The ID of the pull request where the comment thread exists.")
    content: str = Field(..., description="The content of the comment to be added.")
    project: Optional[str] = Field(None, description="Project ID or project name (optional)")
    file_path: Optional[str] = Field(None, description="The path of the file where the comment thread will be created. (optional)")
    status: CommentThreadStatus = Field("Active", description="The status of the comment thread. Defaults to 'Active'.")
    right_file_start_line: Optional[int] = Field(
        None, description="Line number of the first character of the thread's span in the right file. Starts at 1. (optional)"
    )
    right_file_start_offset: Optional[int] = Field(
        None,
        description="Character offset of the thread's start inside its line. Starts at 1. Must only be set if right_file_start_line is also specified. (optional)",
    )
    right_file_end_line: Optional[int] = Field(
        None,
        description="Line number of the last character of the thread's span in the right file. Starts at 1. Must only be set if right_file_start_line is also specified. (optional)",
    )
    right_file_end_offset: Optional[int] = Field(
        None,
        description="Character offset of the thread's end inside its line. Must only be set if right_file_end_line is also specified. (optional)",
    )


class ResolveCommentParams(ToolParams):
    repository_id: str = Field(..., description="The ID of the repository where the pull request is located.")
    pull_request_id: int = Field(..., description="The ID of the pull request where the comment thread exists.")
    thread_id: int = Field(..., description="The ID of the thread to be resolved.")
    full_response: bool = Field(False, description="Return full thread JSON response instead of a simple confirmation message.")


class SearchCommitsParams(ToolParams):
    project: str = Field(..., description="Project name or ID")
    repository: str = Field(..., description="Repository name or ID")
    from_commit: Optional[str] = Field(None, description="Starting commit ID")
    to_commit: Optional[str] = Field(None, description="Ending commit ID")
    version: Optional[str] = Field(None, description="The name of the branch, tag or commit to filter commits by")
    version_type: Literal["Branch", "Tag", "Commit"] = Field(
        "Branch", description="The meaning of the version parameter, e.g., branch, tag or commit"
    )
    skip: int = Field(0, description="Number of commits to skip")
    top: int = Field(10, description="Maximum number of commits to return")
    include_links: bool = Field(False, description="Include commit links")
    include_work_items: bool = Field(False, description="Include associated work items")


class ListPullRequestsByCommitsParams(ToolParams):
    project: str = Field(..., description="Project name or ID")
    repository: str = Field(..., description="Repository name or ID")
    commits: list[str] = Field(..., description="Array of commit IDs to query for")
    query_type: Literal["NotSet", "LastMergeCommit", "Commit"] = Field("LastMergeCommit", description="Type of query to perform")


def build_thread_context(params: CreatePullRequestThreadParams) -> dict[str, Any]:
    """Thread position for a file comment; raises ToolInputError on bad line/offset combinations."""
    file_path = params.file_path
    if file_path and not file_path.startswith("/"):
        file_path = f"/{file_path}"
    context: dict[str, Any] = {"filePath": file_path}

    if params.right_file_start_line is not None:
        if params.right_file_start_line < 1:
            raise ToolInputError("right_file_start_line must be greater than or equal to 1.")
        context["rightFileStart"] = {"line": params.right_file_start_line}

        if params.right_file_start_offset is not None:
            if params.right_file_start_offset < 1:
                raise ToolInputError("right_file_start_offset must be greater than or equal to 1.")
            context["rightFileStart"]["offset"] = params.right_file_start_offset

    if params.right_file_end_line is not None:
        if params.right_file_start_line is None:
            raise ToolInputError("right_file_end_line must only be specified if right_file_start_line is also specified.")
        if params.right_file_end_line < 1:
            raise ToolInputError("right_file_end_line must be greater than or equal to 1.")
        context["rightFileEnd"] = {"line": params.right_file_end_line}

        if params.right_file_end_offset is not None:
            if params.right_file_end_offset < 1:
                raise ToolInputError("right_file_end_offset must be greater than or equal to 1.")
            context["rightFileEnd"]["offset"] = params.right_file_end_offset

    return context


# ============================================================================
# Registrar
# ============================================================================


def configure_repo_tools(registry: ToolRegistry, providers: Providers) -> None:
    tool = partial(registry.tool, domain=Domain.REPOSITORIES)

    async def pull_request_criteria(params: PullRequestFilterParams) -> tuple[dict[str, Any], Optional[CallToolResult]]:
        """Search criteria for a PR listing, resolving user filters to ids.

        Lookups run one after another. An unknown user yields an error result
        instead of criteria.
        """
        criteria: dict[str, Any] = {"status": camel(params.status)}
        if params.source_ref_name:
            criteria["sourceRefName"] = params.source_ref_name
        if params.target_ref_name:
            criteria["targetRefName"] = params.target_ref_name

        if params.created_by_user:
            try:
                criteria["creatorId"] = await get_user_id_from_email(params.created_by_user, providers)
            except ProviderError:
                raise
            except Exception as e:
                return criteria, error_result(f"Error finding user with email {params.created_by_user}: {error_message(e)}")
        elif params.created_by_me:
            user = await get_current_user_details(providers)
            criteria["creatorId"] = user["authenticatedUser"]["id"]

        if params.user_is_reviewer:
            try:
                criteria["reviewerId"] = await get_user_id_from_email(params.user_is_reviewer, providers)
            except ProviderError:
                raise
            except Exception as e:
                return criteria, error_result(f"Error finding reviewer with email {params.user_is_reviewer}: {error_message(e)}")
        elif params.i_am_reviewer:
            user = await get_current_user_details(providers)
            criteria["reviewerId"] = user["authenticatedUser"]["id"]

        return criteria, None

    @tool("repo_create_pull_request", "Create a new pull request.", CreatePullRequestParams)
    async def create_pull_request(params: CreatePullRequestParams) -> CallToolResult:
        connection = await providers.connection()
        work_item_refs = [{"id": item.strip()} for item in params.work_items.split()] if params.work_items else []

        body: dict[str, Any] = {
            "sourceRefName": params.source_ref_name,
            "targetRefName": params.target_ref_name,
            "title": params.title,
            "description": params.description,
            "isDraft": params.is_draft,
            "workItemRefs": work_item_refs,
        }
        if params.fork_source_repository_id:
            body["forkSource"] = {"repository": {"id": params.fork_source_repository_id}}

        pull_request = await connection.get_git_api().create_pull_request(body, params.repository_id)
        logger.info(f"Created pull request in repository {params.repository_id}")
        return json_result(pull_request)

    @tool("repo_update_pull_request", "Update a Pull Request by ID with specified fields.", UpdatePullRequestParams)
    async def update_pull_request(params: UpdatePullRequestParams) -> CallToolResult:
        update: dict[str, Any] = {}
        if params.title is not None:
            update["title"] = params.title
        if params.description is not None:
            update["description"] = params.description
        if params.is_draft is not None:
            update["isDraft"] = params.is_draft
        if params.target_ref_name is not None:
            update["targetRefName"] = params.target_ref_name
        if params.status is not None:
            update["status"] = camel(params.status)

        if not update:
            return error_result(
                "Error: At least one field (title, description, is_draft, target_ref_name, or status) must be provided for update."
            )

        connection = await providers.connection()
        updated = await connection.get_git_api().update_pull_request(update, params.repository_id, params.pull_request_id)
        return json_result(updated)

    @tool(
        "repo_update_pull_request_reviewers",
        "Add or remove reviewers for an existing pull request.",
        UpdatePullRequestReviewersParams,
    )
    async def update_pull_request_reviewers(params: UpdatePullRequestReviewersParams) -> CallToolResult:
        connection = await providers.connection()
        git_api = connection.get_git_api()

        if params.action == "add":
            reviewers = await git_api.create_pull_request_reviewers(
                [{"id": reviewer_id} for reviewer_id in params.reviewer_ids],
                params.repository_id,
                params.pull_request_id,
            )
            return json_result(reviewers)

        for reviewer_id in params.reviewer_ids:
            await git_api.delete_pull_request_reviewer(params.repository_id, params.pull_request_id, reviewer_id)
        return text_result(
            f"Reviewers with IDs {', '.join(params.reviewer_ids)} removed from pull request {params.pull_request_id}."
        )

    @tool("repo_list_repos_by_project", "Retrieve a list of repositories for a given project", ListReposByProjectParams)
    async def list_repos_by_project(params: ListReposByProjectParams) -> CallToolResult:
        connection = await providers.connection()
        repositories = await connection.get_git_api().get_repositories(params.project)

        if params.repo_name_filter:
            name_filter = params.repo_name_filter.lower()
            repositories = [repo for repo in repositories if name_filter in (repo.get("name") or "").lower()]

        repositories = sorted(repositories, key=lambda repo: repo.get("name") or "")
        page = paginate(repositories, params.skip, params.top)
        return json_result([{field: repo.get(field) for field in REPOSITORY_FIELDS} for repo in page])

    @tool(
        "repo_list_pull_requests_by_repo",
        "Retrieve a list of pull requests for a given repository.",
        ListPullRequestsByRepoParams,
    )
    async def list_pull_requests_by_repo(params: ListPullRequestsByRepoParams) -> CallToolResult:
        connection = await providers.connection()
        criteria, failure = await pull_request_criteria(params)
        if failure is not None:
            return failure
        criteria["repositoryId"] = params.repository_id

        pull_requests = await connection.get_git_api().get_pull_requests(
            params.repository_id, criteria, skip=params.skip, top=params.top
        )
        return json_result([trim_pull_request(pr) for pr in pull_requests])

    @tool(
        "repo_list_pull_requests_by_project",
        "Retrieve a list of pull requests for a given project Id or Name.",
        ListPullRequestsByProjectParams,
    )
    async def list_pull_requests_by_project(params: ListPullRequestsByProjectParams) -> CallToolResult:
        connection = await providers.connection()
        criteria, failure = await pull_request_criteria(params)
        if failure is not None:
            return failure

        pull_requests = await connection.get_git_api().get_pull_requests_by_project(
            params.project, criteria, skip=params.skip, top=params.top
        )
        return json_result([trim_pull_request(pr, include_repository=True) for pr in pull_requests])

    @tool(
        "repo_list_pull_request_threads",
        "Retrieve a list of comment threads for a pull request.",
        ListPullRequestThreadsParams,
    )
    async def list_pull_request_threads(params: ListPullRequestThreadsParams) -> CallToolResult:
        connection = await providers.connection()
        threads = await connection.get_git_api().get_threads(
            params.repository_id, params.pull_request_id, params.project, params.iteration, params.base_iteration
        )
        page = paginate(sorted(threads, key=_by_id), params.skip, params.top)

        if params.full_response:
            return json_result(page)

        return json_result([
            {
                "id": thread.get("id"),
                "publishedDate": thread.get("publishedDate"),
                "lastUpdatedDate": thread.get("lastUpdatedDate"),
                "status": thread.get("status"),
                "comments": trim_comments(thread.get("comments")),
            }
            for thread in page
        ])

    @tool(
        "repo_list_pull_request_thread_comments",
        "Retrieve a list of comments in a pull request thread.",
        ListPullRequestThreadCommentsParams,
    )
    async def list_pull_request_thread_comments(params: ListPullRequestThreadCommentsParams) -> CallToolResult:
        connection = await providers.connection()
        comments = await connection.get_git_api().get_comments(
            params.repository_id, params.pull_request_id, params.thread_id, params.project
        )
        page = paginate(sorted(comments, key=_by_id), params.skip, params.top)

        if params.full_response:
            return json_result(page)
        return json_result(trim_comments(page))

    @tool("repo_list_branches_by_repo", "Retrieve a list of branches for a given repository.", ListBranchesParams)
    async def list_branches_by_repo(params: ListBranchesParams) -> CallToolResult:
        connection = await providers.connection()
        refs = await connection.get_git_api().get_refs(
            params.repository_id, filter="heads/", filter_contains=params.filter_contains
        )
        return json_result(branch_names(refs, params.top))

    @tool("repo_list_my_branches_by_repo", "Retrieve a list of my branches for a given repository Id.", ListBranchesParams)
    async def list_my_branches_by_repo(params: ListBranchesParams) -> CallToolResult:
        connection = await providers.connection()
        refs = await connection.get_git_api().get_refs(
            params.repository_id, filter="heads/", filter_contains=params.filter_contains, my_branches=True
        )
        return json_result(branch_names(refs, params.top))

    @tool("repo_get_repo_by_name_or_id", "Get the repository by project and repository name or ID.", GetRepoByNameOrIdParams)
    async def get_repo_by_name_or_id(params: GetRepoByNameOrIdParams) -> CallToolResult:
        connection = await providers.connection()
        repositories = await connection.get_git_api().get_repositories(params.project)

        wanted = params.repository_name_or_id
        repository = next((repo for repo in repositories if wanted in (repo.get("name"), repo.get("id"))), None)
        if repository is None:
            raise LookupError(f"Repository {wanted} not found in project {params.project}")
        return json_result(repository)

    @tool("repo_get_branch_by_name", "Get a branch by its name.", GetBranchByNameParams)
    async def get_branch_by_name(params: GetBranchByNameParams) -> CallToolResult:
        connection = await providers.connection()
        refs = await connection.get_git_api().get_refs(
            params.repository_id, filter="heads/", filter_contains=params.branch_name
        )
        wanted = (f"{BRANCH_PREFIX}{params.branch_name}", params.branch_name)
        branch = next((ref for ref in refs if ref.get("name") in wanted), None)
        if branch is None:
            return error_result(f"Branch {params.branch_name} not found in repository {params.repository_id}")
        return json_result(branch)

    @tool("repo_get_pull_request_by_id", "Get a pull request by its ID.", GetPullRequestByIdParams)
    async def get_pull_request_by_id(params: GetPullRequestByIdParams) -> CallToolResult:
        connection = await providers.connection()
        pull_request = await connection.get_git_api().get_pull_request(
            params.repository_id, params.pull_request_id, params.include_work_item_refs
        )
        return json_result(pull_request)

    @tool("repo_reply_to_comment", "Replies to a specific comment on a pull request.", ReplyToCommentParams)
    async def reply_to_comment(params: ReplyToCommentParams) -> CallToolResult:
        connection = await providers.connection()
        comment = await connection.get_git_api().create_comment(
            {"content": params.content}, params.repository_id, params.pull_request_id, params.thread_id, params.project
        )

        if not comment:
            return error_result(
                f"Error: Failed to add comment to thread {params.thread_id}. The comment was not created successfully."
            )
        if params.full_response:
            return json_result(comment)
        return text_result(f"Comment successfully added to thread {params.thread_id}.")

    @tool("repo_create_pull_request_thread", "Creates a new comment thread on a pull request.", CreatePullRequestThreadParams)
    async def create_pull_request_thread(params: CreatePullRequestThreadParams) -> CallToolResult:
        thread_context = build_thread_context(params)

        connection = await providers.connection()
        thread = await connection.get_git_api().create_thread(
            {
                "comments": [{"content": params.content}],
                "threadContext": thread_context,
                "status": camel(params.status),
            },
            params.repository_id,
            params.pull_request_id,
            params.project,
        )
        return json_result(thread)

    @tool("repo_resolve_comment", "Resolves a specific comment thread on a pull request.", ResolveCommentParams)
    async def resolve_comment(params: ResolveCommentParams) -> CallToolResult:
        connection = await providers.connection()
        thread = await connection.get_git_api().update_thread(
            {"status": "fixed"}, params.repository_id, params.pull_request_id, params.thread_id
        )

        if not thread:
            return error_result(
                f"Error: Failed to resolve thread {params.thread_id}. The thread status was not updated successfully."
            )
        if params.full_response:
            return json_result(thread)
        return text_result(f"Thread {params.thread_id} was successfully resolved.")

    @tool(
        "repo_search_commits",
        "Searches for commits in a repository",
        SearchCommitsParams,
        failure_mode=FailureMode.RECOVERABLE,
        failure_action="searching commits",
    )
    async def search_commits(params: SearchCommitsParams) -> CallToolResult:
        connection = await providers.connection()
        criteria: dict[str, Any] = {
            "fromCommitId": params.from_commit,
            "toCommitId": params.to_commit,
            "includeLinks": params.include_links,
            "includeWorkItems": params.include_work_items,
        }
        if params.version:
            criteria["itemVersion.version"] = params.version
            criteria["itemVersion.versionType"] = camel(params.version_type)

        commits = await connection.get_git_api().get_commits(
            params.repository, criteria, params.project, params.skip, params.top
        )
        return json_result(commits)

    @tool(
        "repo_list_pull_requests_by_commits",
        "Lists pull requests by commit IDs to find which pull requests contain specific commits",
        ListPullRequestsByCommitsParams,
        failure_mode=FailureMode.RECOVERABLE,
        failure_action="querying pull requests by commits",
    )
    async def list_pull_requests_by_commits(params: ListPullRequestsByCommitsParams) -> CallToolResult:
        connection = await providers.connection()
        query = {"queries": [{"items": params.commits, "type": camel(params.query_type)}]}
        result = await connection.get_git_api().get_pull_request_query(query, params.repository, params.project)
        return json_result(result)
