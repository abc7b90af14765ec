"""Exception types raised by the Azure DevOps MCP server."""
from typing import Optional


class AdoApiError(Exception):
    """Raised when an Azure DevOps REST call returns a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class ProviderError(Exception):
    """Raised when the token or connection provider fails.

    Never converted into a tool result: credential and transport setup
    failures always reach the MCP layer.
    """


class ToolInputError(ValueError):
    """Raised by a handler when arguments pass schema validation but violate
    a cross-field rule (e.g. yaml_override without preview_run)."""


class UnknownToolError(LookupError):
    """Raised when a call names a tool that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name
