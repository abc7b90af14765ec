"""Access tokens for Azure DevOps.

Two sources are supported:
- a Personal Access Token from ``AZURE_DEVOPS_PAT`` (Basic auth)
- Microsoft Entra ID through azure-identity (Bearer auth)
"""
import asyncio
import base64
import logging
import os
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from azure.core.credentials import TokenCredential
from azure.identity import AzureCliCredential, ChainedTokenCredential, DefaultAzureCredential

from .config import Settings

logger = logging.getLogger("ado-mcp.auth")

# Azure DevOps resource id
ADO_SCOPE = "499b84ac-1321-427f-aa17-267ca6975798/.default"

# Refresh a little before the real expiry
EXPIRY_MARGIN_SECONDS = 60


@dataclass(frozen=True)
class AccessToken:
    token: str
    expires_on: int = 0
    scheme: str = "Bearer"

    @property
    def authorization(self) -> str:
        """Value for the ``Authorization`` header."""
        if self.scheme == "Basic":
            encoded = base64.b64encode(f":{self.token}".encode()).decode()
            return f"Basic {encoded}"
        return f"Bearer {self.token}"

    def is_expired(self, now: Optional[float] = None) -> bool:
        if not self.expires_on:
            return False
        now = time.time() if now is None else now
        return now >= self.expires_on - EXPIRY_MARGIN_SECONDS


TokenProvider = Callable[[], Awaitable[AccessToken]]


def create_credential(tenant_id: Optional[str], token_credentials: str) -> TokenCredential:
    """Build the azure-identity credential chain.

    ``AZURE_TOKEN_CREDENTIALS`` narrows what DefaultAzureCredential tries
    (``dev`` limits it to developer tools such as the Azure CLI). With a
    tenant, an AzureCliCredential bound to it is tried first.
    """
    os.environ["AZURE_TOKEN_CREDENTIALS"] = token_credentials
    default_credential = DefaultAzureCredential()
    if tenant_id:
        return ChainedTokenCredential(AzureCliCredential(tenant_id=tenant_id), default_credential)
    return default_credential


def create_pat_token_provider(pat: str) -> TokenProvider:
    token = AccessToken(token=pat, scheme="Basic")

    async def token_provider() -> AccessToken:
        return token

    return token_provider


def create_credential_token_provider(credential: TokenCredential) -> TokenProvider:
    """Token provider backed by an azure-identity credential, cached until near expiry."""
    cached: Optional[AccessToken] = None

    async def token_provider() -> AccessToken:
        nonlocal cached
        if cached is not None and not cached.is_expired():
            return cached
        result = await asyncio.to_thread(credential.get_token, ADO_SCOPE)
        if not result or not result.token:
            raise RuntimeError("Failed to obtain Azure DevOps token. Ensure you have Azure CLI logged in or another token source setup correctly.")
        cached = AccessToken(token=result.token, expires_on=result.expires_on)
        return cached

    return token_provider


def create_token_provider(settings: Settings) -> TokenProvider:
    if settings.pat:
        logger.info("Using Personal Access Token authentication")
        return create_pat_token_provider(settings.pat)
    logger.info(f"Using Azure Identity authentication (credentials: {settings.token_credentials})")
    return create_credential_token_provider(create_credential(settings.tenant_id, settings.token_credentials))
