"""Azure DevOps MCP Server - Expose Azure DevOps to AI assistants over stdio."""
import asyncio
import logging
import sys
import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx
import typer
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, Tool

from . import __version__
from .auth import create_token_provider
from .config import Settings, get_settings
from .connection import SharedConnectionProvider, create_connection_provider
from .domains import DomainsManager
from .errors import AdoApiError, ProviderError
from .registry import ToolRegistry
from .tools import configure_all_tools
from .user_agent import UserAgentComposer

logger = logging.getLogger("ado-mcp")

SERVER_NAME = "Azure DevOps MCP Server"


def configure_logging(level: str = "INFO") -> None:
    # stdout carries the MCP protocol; logs go to stderr
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
        force=True
    )


def create_server(
    settings: Settings,
    domains_input: Any = None,
    connection_provider: Optional[SharedConnectionProvider] = None,
) -> Server:
    """Build the MCP server with the tools of every enabled domain.

    The shared connection is closed when the server stops running.
    """
    if domains_input is None:
        domains_input = settings.domains

    domains_manager = DomainsManager(domains_input)
    user_agent_composer = UserAgentComposer(__version__)
    token_provider = create_token_provider(settings)
    if connection_provider is None:
        connection_provider = create_connection_provider(
            settings.organization_url,
            token_provider,
            lambda: user_agent_composer.user_agent,
            timeout=settings.request_timeout,
        )

    registry = configure_all_tools(
        ToolRegistry(),
        domains_manager,
        token_provider,
        connection_provider,
        lambda: user_agent_composer.user_agent,
    )

    @asynccontextmanager
    async def lifespan(_server: Server) -> AsyncIterator[dict]:
        try:
            yield {}
        finally:
            await connection_provider.aclose()

    app = Server(SERVER_NAME, version=__version__, lifespan=lifespan)

    @app.list_tools()
    async def list_tools() -> list[Tool]:
        """List the tools of the enabled domains."""
        return registry.list_tools()

    @app.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> CallToolResult:
        """Dispatch a tool call to the registry."""
        client_params = app.request_context.session.client_params
        if client_params is not None:
            user_agent_composer.append_mcp_client_info(client_params.clientInfo)

        logger.info(f"Tool call: {name}")
        logger.debug(f"Arguments: {arguments}")

        try:
            return await registry.call(name, arguments)

        except AdoApiError as e:
            logger.error(f"Azure DevOps error during {name} call:")
            logger.error(f"  Status: {e.status_code}")
            logger.error(f"  URL: {e.url}")
            logger.error(f"  Error message: {e}")
            raise

        except httpx.RequestError as e:
            logger.error(f"Request error during {name} call:")
            logger.error(f"  Error type: {type(e).__name__}")
            logger.error(f"  Error message: {str(e)}")
            logger.error(f"  Traceback: {traceback.format_exc()}")
            raise

        except ProviderError as e:
            logger.error(f"Provider error during {name} call: {e}")
            raise

        except Exception as e:
            logger.error(f"Unexpected error during {name} call:")
            logger.error(f"  Error type: {type(e).__name__}")
            logger.error(f"  Error message: {str(e)}")
            logger.error(f"  Traceback:\n{traceback.format_exc()}")
            raise

    return app


async def run(app: Server) -> None:
    """Run the MCP server over stdio."""
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


cli = typer.Typer(add_completion=False, help="Azure DevOps MCP server (stdio).")


@cli.command()
def main(
    organization: Optional[str] = typer.Argument(
        None, help="Azure DevOps organization name. Defaults to AZURE_DEVOPS_ORG."
    ),
    domains: Optional[list[str]] = typer.Option(
        None,
        "--domains",
        "-d",
        help="Domains to enable: 'all' or any of advanced-security, pipelines, core, repositories, "
        "search, test-plans, wiki, work, work-items. Repeatable or comma-separated.",
    ),
    tenant: Optional[str] = typer.Option(
        None, "--tenant", "-t", help="Azure tenant ID, for multi-tenant Azure CLI sign-in."
    ),
):
    """Run the Azure DevOps MCP server."""
    overrides = {}
    if organization:
        overrides["organization"] = organization
    if tenant:
        overrides["tenant_id"] = tenant
    settings = get_settings().model_copy(update=overrides)

    configure_logging(settings.log_level)

    if not settings.organization:
        logger.error("Usage: ado-mcp-server <organization_name>")
        raise typer.Exit(code=1)

    logger.info(f"MCP Server starting for organization: {settings.organization}")
    if settings.pat:
        logger.info("MCP Server configured with Personal Access Token authentication")

    domains_input = ",".join(domains) if domains else None
    app = create_server(settings, domains_input)

    try:
        asyncio.run(run(app))
    except Exception as e:
        logger.error(f"Fatal error in main(): {type(e).__name__}: {e}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    cli()
