"""Domain selection for the Azure DevOps MCP server.

A domain is a named group of tools (e.g. ``repositories``, ``wiki``). At
startup the user may restrict the server to a subset of domains; everything
else is left unregistered so the agent never sees it.

Resolution rules:
- no selector, or nothing usable in it -> every domain
- ``all`` anywhere in the selector -> every domain
- otherwise -> the recognized names; each unrecognized one is logged
"""
import enum
import logging
from typing import Optional, Sequence, Union

logger = logging.getLogger("ado-mcp.domains")

ALL_DOMAINS = "all"

# Raw selector as received from the CLI or environment.
DomainSelector = Optional[Union[str, Sequence[str]]]


class Domain(str, enum.Enum):
    """Tool domains, in catalog order."""

    ADVANCED_SECURITY = "advanced-security"
    PIPELINES = "pipelines"
    CORE = "core"
    REPOSITORIES = "repositories"
    SEARCH = "search"
    TEST_PLANS = "test-plans"
    WIKI = "wiki"
    WORK = "work"
    WORK_ITEMS = "work-items"


class DomainsManager:
    """Resolves a domain selector into the set of enabled domain names.

    The set is computed once, at construction, and never changes afterwards.
    Construction never raises: unknown names are reported through the
    ``ado-mcp.domains`` logger and skipped.
    """

    def __init__(self, domains_input: DomainSelector = None):
        self._available_domains = self.get_available_domains()
        self._enabled_domains: set[str] = self._resolve(domains_input)

    def is_domain_enabled(self, domain: str) -> bool:
        return domain in self._enabled_domains

    def get_enabled_domains(self) -> set[str]:
        """Return a copy of the enabled set; mutating it has no effect here."""
        return set(self._enabled_domains)

    @staticmethod
    def get_available_domains() -> list[str]:
        return [domain.value for domain in Domain]

    @staticmethod
    def parse_domains_input(domains_input: DomainSelector = None) -> list[str]:
        """Normalize a raw selector into lowercase, trimmed tokens.

        A comma-separated string is split and empty pieces are dropped. Any
        other string becomes a single token, so ``""`` yields ``[""]``.
        Sequence elements are kept one-for-one, duplicates included.
        """
        if domains_input is None:
            return []

        if isinstance(domains_input, str):
            if "," in domains_input:
                tokens = (piece.strip().lower() for piece in domains_input.split(","))
                return [token for token in tokens if token]
            return [domains_input.strip().lower()]

        return [str(item).strip().lower() for item in domains_input]

    def _resolve(self, domains_input: DomainSelector) -> set[str]:
        tokens = self.parse_domains_input(domains_input)

        if not tokens or ALL_DOMAINS in tokens:
            return set(self._available_domains)

        enabled: set[str] = set()
        for token in dict.fromkeys(tokens):
            if token in self._available_domains:
                enabled.add(token)
            else:
                logger.error(
                    f"Error: Specified invalid domain '{token}'. Please specify exactly as available domains: "
                    f"{', '.join(self._available_domains)}"
                )

        if not enabled:
            logger.info("No valid domains specified, enabling all domains")
            return set(self._available_domains)

        return enabled
