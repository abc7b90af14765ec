"""Tests for the work item and iteration tools."""
import json

import pytest

from ado_mcp.results import result_text
from ado_mcp.tools.work import configure_work_tools
from ado_mcp.tools.work_items import DEFAULT_BATCH_FIELDS, configure_work_item_tools, flatten_assigned_to


@pytest.fixture
def work_items(registry, providers):
    configure_work_item_tools(registry, providers)
    configure_work_tools(registry, providers)
    return registry


class TestFlattenAssignedTo:
    """Identity objects become display strings."""

    def test_flattens_identity(self):
        items = [
            {"id": 1, "fields": {"System.AssignedTo": {"displayName": "Ana Silva", "uniqueName": "ana@example.com"}}},
            {"id": 2, "fields": {"System.AssignedTo": "already text"}},
            {"id": 3},
        ]
        flattened = flatten_assigned_to(items)

        assert flattened[0]["fields"]["System.AssignedTo"] == "Ana Silva <ana@example.com>"
        assert flattened[1]["fields"]["System.AssignedTo"] == "already text"
        assert "fields" not in flattened[2]


class TestWorkItems:
    """Reading and writing work items."""

    @pytest.mark.asyncio
    async def test_my_work_items(self, work_items, backend):
        backend.route("GET", "/predefinedqueries/assignedtome", json_body={"id": "assignedtome", "results": []})

        await work_items.call("wit_my_work_items", {"project": "p"})

        params = backend.requests[0].url.params
        assert params["$top"] == "50"
        assert params["includeCompleted"] == "false"

    @pytest.mark.asyncio
    async def test_get_work_item(self, work_items, backend):
        backend.route("GET", "/_apis/wit/workitems/12", json_body={"id": 12, "fields": {"System.Title": "Bug"}})

        result = await work_items.call(
            "wit_get_work_item", {"id": 12, "project": "p", "fields": ["System.Title", "System.State"], "expand": "relations"}
        )

        params = backend.requests[0].url.params
        assert params["fields"] == "System.Title,System.State"
        assert params["$expand"] == "relations"
        assert json.loads(result_text(result))["id"] == 12

    @pytest.mark.asyncio
    async def test_batch_uses_default_fields(self, work_items, backend):
        backend.route("POST", "/workitemsbatch", json_body={"value": [
            {"id": 1, "fields": {"System.AssignedTo": {"displayName": "Ana", "uniqueName": "ana@example.com"}}},
        ]})

        result = await work_items.call("wit_get_work_items_batch_by_ids", {"project": "p", "ids": [1]})

        assert backend.body(backend.requests[0]) == {"ids": [1], "fields": DEFAULT_BATCH_FIELDS}
        assert json.loads(result_text(result))[0]["fields"]["System.AssignedTo"] == "Ana <ana@example.com>"

    @pytest.mark.asyncio
    async def test_add_comment(self, work_items, backend):
        backend.route("POST", "/workItems/12/comments", json_body={"id": 5, "text": "Done"})

        await work_items.call(
            "wit_add_work_item_comment", {"project": "p", "work_item_id": 12, "comment": "Done", "format": "markdown"}
        )

        request = backend.requests[0]
        assert request.url.params["format"] == "0"
        assert request.url.params["api-version"] == "7.2-preview.4"
        assert backend.body(request) == {"text": "Done"}

    @pytest.mark.asyncio
    async def test_add_comment_failure(self, work_items, backend):
        backend.route("POST", "/workItems/12/comments", status=400, text="Bad request")

        with pytest.raises(RuntimeError, match="Failed to add a work item comment: 400 Bad request"):
            await work_items.call("wit_add_work_item_comment", {"project": "p", "work_item_id": 12, "comment": "x"})

    @pytest.mark.asyncio
    async def test_create_work_item(self, work_items, backend):
        backend.route("POST", "/_apis/wit/workitems/$Task", json_body={"id": 99})

        long_text = "A description long enough to be stored as Markdown rather than HTML."
        await work_items.call(
            "wit_create_work_item",
            {
                "project": "p",
                "work_item_type": "Task",
                "fields": [
                    {"name": "System.Title", "value": "Write docs"},
                    {"name": "System.Description", "value": long_text, "format": "Markdown"},
                ],
            },
        )

        request = backend.requests[0]
        assert request.headers["Content-Type"] == "application/json-patch+json"
        assert backend.body(request) == [
            {"op": "add", "path": "/fields/System.Title", "value": "Write docs"},
            {"op": "add", "path": "/fields/System.Description", "value": long_text},
            {"op": "add", "path": "/multilineFieldsFormat/System.Description", "value": "Markdown"},
        ]

    @pytest.mark.asyncio
    async def test_create_work_item_without_result(self, work_items, backend):
        backend.route("POST", "/_apis/wit/workitems/$Bug", status=204)

        result = await work_items.call(
            "wit_create_work_item",
            {"project": "p", "work_item_type": "Bug", "fields": [{"name": "System.Title", "value": "x"}]},
        )

        assert result.isError is True
        assert result_text(result) == "Work item was not created"

    @pytest.mark.asyncio
    async def test_update_work_item(self, work_items, backend):
        backend.route("PATCH", "/_apis/wit/workitems/12", json_body={"id": 12, "rev": 3})

        await work_items.call(
            "wit_update_work_item",
            {"id": 12, "updates": [{"path": "/fields/System.State", "value": "Done"}, {"op": "remove", "path": "/fields/System.Tags"}]},
        )

        assert backend.body(backend.requests[0]) == [
            {"op": "add", "path": "/fields/System.State", "value": "Done"},
            {"op": "remove", "path": "/fields/System.Tags"},
        ]

    @pytest.mark.asyncio
    async def test_query_results_by_id(self, work_items, backend):
        backend.route("GET", "/_apis/wit/wiql/q-1", json_body={"workItems": [{"id": 1}]})

        await work_items.call("wit_get_query_results_by_id", {"id": "q-1", "project": "p", "team": "Team A"})

        request = backend.requests[0]
        assert "/test-org/p/Team%20A/_apis/wit/wiql/q-1" in str(request.url)
        assert request.url.params["$top"] == "50"


class TestIterations:
    """Team iterations."""

    @pytest.mark.asyncio
    async def test_list_team_iterations_empty(self, work_items, backend):
        backend.route("GET", "/teamsettings/iterations", json_body={"value": []})

        result = await work_items.call("work_list_team_iterations", {"project": "p", "team": "t"})

        assert result.isError is True
        assert result_text(result) == "No iterations found"

    @pytest.mark.asyncio
    async def test_create_iterations(self, work_items, backend):
        backend.route("POST", "/classificationnodes/iterations", json_body={"id": 1, "name": "Sprint 1"})

        result = await work_items.call(
            "work_create_iterations",
            {
                "project": "p",
                "iterations": [
                    {"iteration_name": "Sprint 1", "start_date": "2025-01-01T00:00:00Z", "finish_date": "2025-01-14T00:00:00Z"},
                    {"iteration_name": "Sprint 2"},
                ],
            },
        )

        first, second = (backend.body(request) for request in backend.requests)
        assert first["name"] == "Sprint 1"
        assert first["attributes"]["startDate"].startswith("2025-01-01T00:00:00")
        assert second == {"name": "Sprint 2"}
        assert len(json.loads(result_text(result))) == 2

    @pytest.mark.asyncio
    async def test_assign_iterations(self, work_items, backend):
        backend.route("POST", "/teamsettings/iterations", json_body={"id": "it-1", "path": "p\\Sprint 1"})

        await work_items.call(
            "work_assign_iterations",
            {"project": "p", "team": "t", "iterations": [{"identifier": "it-1", "path": "p\\Sprint 1"}]},
        )

        assert backend.body(backend.requests[0]) == {"id": "it-1", "path": "p\\Sprint 1"}

    @pytest.mark.asyncio
    async def test_work_items_for_iteration(self, work_items, backend):
        backend.route("GET", "/iterations/it-1/workitems", json_body={"workItemRelations": []})

        await work_items.call("wit_get_work_items_for_iteration", {"project": "p", "iteration_id": "it-1"})

        assert backend.requests[0].url.path == "/test-org/p/_apis/work/teamsettings/iterations/it-1/workitems"
