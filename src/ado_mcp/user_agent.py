"""User-Agent string sent with every Azure DevOps request."""
from typing import Optional

from mcp.types import Implementation

from . import __version__

PRODUCT_NAME = "AzureDevOps.MCP"


class UserAgentComposer:
    """Builds ``AzureDevOps.MCP/<version> (local)``, extended with the MCP
    client's ``name/version`` once the client has initialized."""

    def __init__(self, version: str = __version__):
        self._user_agent = f"{PRODUCT_NAME}/{version} (local)"
        self._client_info_appended = False

    @property
    def user_agent(self) -> str:
        return self._user_agent

    def append_mcp_client_info(self, client_info: Optional[Implementation]) -> None:
        if self._client_info_appended or client_info is None:
            return
        if client_info.name and client_info.version:
            self._user_agent = f"{self._user_agent} {client_info.name}/{client_info.version}"
            self._client_info_appended = True
