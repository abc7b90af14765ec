"""Identity lookups: the signed-in user and users by email / unique name."""
import logging
from typing import Any

from . import rest
from .connection import API_VERSION
from .providers import Providers

logger = logging.getLogger("ado-mcp.identity")


async def get_current_user_details(providers: Providers) -> dict[str, Any]:
    """Return ``connectionData`` for the authenticated user."""
    connection = await providers.connection()
    url = f"{connection.server_url}/_apis/connectionData"
    headers = await providers.auth_headers()

    async with rest.create_client() as client:
        response = await client.get(url, headers=headers)

    if response.is_error:
        raise RuntimeError(f"Error fetching user details: {response.status_code} {rest.error_text(response)}")
    return response.json()


async def search_identities(identity: str, providers: Providers) -> dict[str, Any]:
    connection = await providers.connection()
    url = f"https://vssps.dev.azure.com/{connection.organization}/_apis/identities"
    params = {"api-version": API_VERSION, "searchFilter": "General", "filterValue": identity}
    headers = await providers.auth_headers()

    async with rest.create_client() as client:
        response = await client.get(url, params=params, headers=headers)

    if response.is_error:
        raise RuntimeError(f"HTTP {response.status_code}: {rest.error_text(response)}")
    return response.json()


async def get_user_id_from_email(user_email: str, providers: Providers) -> str:
    identities = await search_identities(user_email, providers)
    values = identities.get("value") or []
    if not values:
        raise LookupError(f"No user found with email/unique name: {user_email}")

    identity_id = values[0].get("id")
    if not identity_id:
        raise LookupError(f"No ID found for user with email/unique name: {user_email}")
    return identity_id
