"""Azure DevOps MCP Server - Model Context Protocol integration.

This package exposes Azure DevOps (pipelines, repositories, wiki, work items,
search, test plans, advanced security) to AI assistants as MCP tools.

Modules:
- server: stdio MCP server implementation and CLI
- domains: domain selection (which tool groups are enabled)
- registry: tool registration and dispatch
- results: tool result envelope helpers
- tools: per-domain tool registrars
"""

__version__ = "1.0.0"

from .domains import Domain, DomainsManager
from .registry import FailureMode, ToolRegistry

__all__ = ["Domain", "DomainsManager", "FailureMode", "ToolRegistry", "__version__"]
