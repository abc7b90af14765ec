"""Collaborators injected into every tool handler."""
from typing import TYPE_CHECKING, Awaitable, Callable

from .auth import AccessToken, TokenProvider
from .errors import ProviderError
from .results import error_message

if TYPE_CHECKING:
    from .connection import AdoConnection

ConnectionProvider = Callable[[], Awaitable["AdoConnection"]]
UserAgentProvider = Callable[[], str]


class Providers:
    """Bundles the token, connection and user-agent providers.

    Failures raised by the token or connection provider are re-raised as
    ``ProviderError`` so recoverable tools let them through.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        connection_provider: ConnectionProvider,
        user_agent_provider: UserAgentProvider,
    ):
        self._token_provider = token_provider
        self._connection_provider = connection_provider
        self._user_agent_provider = user_agent_provider

    async def token(self) -> AccessToken:
        try:
            return await self._token_provider()
        except Exception as e:
            raise ProviderError(error_message(e)) from e

    async def connection(self) -> "AdoConnection":
        try:
            return await self._connection_provider()
        except Exception as e:
            raise ProviderError(error_message(e)) from e

    def user_agent(self) -> str:
        return self._user_agent_provider()

    async def auth_headers(self, content_type: str = "application/json") -> dict[str, str]:
        """Headers for a direct REST call outside the connection's clients."""
        token = await self.token()
        return {
            "Authorization": token.authorization,
            "Content-Type": content_type,
            "User-Agent": self.user_agent(),
        }
