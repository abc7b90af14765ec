"""Advanced Security tools: code, dependency and secret scanning alerts."""
from functools import partial
from typing import Literal, Optional

from mcp.types import CallToolResult
from pydantic import Field

from ..domains import Domain
from ..providers import Providers
from ..registry import FailureMode, ToolRegistry
from ..results import error_result, json_result
from .common import ToolParams

AlertType = Literal["dependency", "secret", "code"]
AlertState = Literal["active", "dismissed", "fixed", "autoDismissed"]
Severity = Literal["low", "medium", "high", "critical", "note", "warning", "error", "undefined"]
Confidence = Literal["high", "other"]


class GetAlertsParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    repository: str = Field(..., description="The name or ID of the repository to get alerts for.")
    alert_type: Optional[AlertType] = Field(None, description="Filter alerts by type. If not specified, returns all alert types.")
    states: Optional[list[AlertState]] = Field(None, description="Filter alerts by state. If not specified, returns alerts in any state.")
    severities: Optional[list[Severity]] = Field(None, description="Filter alerts by severity level. If not specified, returns alerts at any severity.")
    rule_id: Optional[str] = Field(None, description="Filter alerts by rule ID.")
    rule_name: Optional[str] = Field(None, description="Filter alerts by rule name.")
    tool_name: Optional[str] = Field(None, description="Filter alerts by tool name.")
    ref: Optional[str] = Field(None, description="Filter alerts by git reference (branch). If not provided and only_default_branch is true, only includes alerts from the default branch.")
    only_default_branch: bool = Field(True, description="If true, only return alerts found on the default branch. Defaults to true.")
    confidence_levels: list[Confidence] = Field(
        ["high", "other"], description="Filter alerts by confidence levels. Only applicable for secret alerts."
    )
    top: int = Field(100, description="Maximum number of alerts to return. Defaults to 100.")
    order_by: Literal["id", "firstSeen", "lastSeen", "fixedOn", "severity"] = Field(
        "severity", description="Order results by specified field. Defaults to 'severity'."
    )
    continuation_token: Optional[str] = Field(None, description="Continuation token for pagination.")


class GetAlertDetailsParams(ToolParams):
    project: str = Field(..., description="The name or ID of the Azure DevOps project.")
    repository: str = Field(..., description="The name or ID of the repository containing the alert.")
    alert_id: int = Field(..., description="The ID of the alert to retrieve details for.")
    ref: Optional[str] = Field(None, description="Git reference (branch) to filter the alert.")


def alert_criteria(params: GetAlertsParams) -> dict:
    criteria = {
        "alertType": params.alert_type,
        "states": params.states,
        "severities": params.severities,
        "ruleId": params.rule_id,
        "ruleName": params.rule_name,
        "toolName": params.tool_name,
        "ref": params.ref,
        "onlyDefaultBranch": params.only_default_branch,
        "confidenceLevels": params.confidence_levels if params.alert_type in (None, "secret") else None,
    }
    return {key: value for key, value in criteria.items() if value is not None}


def configure_advanced_security_tools(registry: ToolRegistry, providers: Providers) -> None:
    tool = partial(registry.tool, domain=Domain.ADVANCED_SECURITY, failure_mode=FailureMode.RECOVERABLE)

    @tool(
        "advsec_get_alerts",
        "Retrieve Advanced Security alerts for a repository.",
        GetAlertsParams,
        failure_action="fetching Advanced Security alerts",
    )
    async def get_alerts(params: GetAlertsParams) -> CallToolResult:
        connection = await providers.connection()
        alerts = await connection.get_alert_api().get_alerts(
            params.project,
            params.repository,
            alert_criteria(params),
            params.top,
            params.order_by,
            params.continuation_token,
        )
        return json_result(alerts)

    @tool(
        "advsec_get_alert_details",
        "Get detailed information about a specific Advanced Security alert.",
        GetAlertDetailsParams,
        failure_action="fetching alert details",
    )
    async def get_alert_details(params: GetAlertDetailsParams) -> CallToolResult:
        connection = await providers.connection()
        alert = await connection.get_alert_api().get_alert(
            params.project, params.repository, params.alert_id, params.ref
        )
        if not alert:
            return error_result(f"Alert {params.alert_id} not found")
        return json_result(alert)
