"""Per-domain tool registrars.

``configure_all_tools`` registers the tools of every enabled domain, and
only those, into one ``ToolRegistry``.
"""
import logging
from typing import Callable

from ..auth import TokenProvider
from ..domains import Domain, DomainsManager
from ..providers import ConnectionProvider, Providers, UserAgentProvider
from ..registry import ToolRegistry
from .advanced_security import configure_advanced_security_tools
from .core import configure_core_tools
from .pipelines import configure_pipeline_tools
from .repositories import configure_repo_tools
from .search import configure_search_tools
from .test_plans import configure_test_plan_tools
from .wiki import configure_wiki_tools
from .work import configure_work_tools
from .work_items import configure_work_item_tools

logger = logging.getLogger("ado-mcp.tools")

Registrar = Callable[[ToolRegistry, Providers], None]

DOMAIN_REGISTRARS: dict[Domain, Registrar] = {
    Domain.ADVANCED_SECURITY: configure_advanced_security_tools,
    Domain.PIPELINES: configure_pipeline_tools,
    Domain.CORE: configure_core_tools,
    Domain.REPOSITORIES: configure_repo_tools,
    Domain.SEARCH: configure_search_tools,
    Domain.TEST_PLANS: configure_test_plan_tools,
    Domain.WIKI: configure_wiki_tools,
    Domain.WORK: configure_work_tools,
    Domain.WORK_ITEMS: configure_work_item_tools,
}


def configure_all_tools(
    registry: ToolRegistry,
    domains_manager: DomainsManager,
    token_provider: TokenProvider,
    connection_provider: ConnectionProvider,
    user_agent_provider: UserAgentProvider,
) -> ToolRegistry:
    providers = Providers(token_provider, connection_provider, user_agent_provider)

    for domain, registrar in DOMAIN_REGISTRARS.items():
        if domains_manager.is_domain_enabled(domain.value):
            registrar(registry, providers)

    logger.info(f"Registered {len(registry)} tools for domains: {', '.join(sorted(domains_manager.get_enabled_domains()))}")
    return registry
