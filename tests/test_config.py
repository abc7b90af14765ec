"""Tests for settings, access tokens and the User-Agent composer."""
import pytest
from mcp.types import Implementation

from ado_mcp.auth import AccessToken, create_pat_token_provider, create_token_provider
from ado_mcp.config import Settings
from ado_mcp.user_agent import UserAgentComposer


def make_settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


class TestSettings:
    """Environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        for name in ("AZURE_DEVOPS_ORG", "ADO_MCP_DOMAINS", "AZURE_DEVOPS_PAT", "ADO_MCP_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        settings = make_settings()

        assert settings.organization is None
        assert settings.domains is None
        assert settings.request_timeout == 30.0
        assert settings.token_credentials == "dev"
        assert settings.log_level == "INFO"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("AZURE_DEVOPS_ORG", "contoso")
        monkeypatch.setenv("ADO_MCP_DOMAINS", "repositories,wiki")
        monkeypatch.setenv("ADO_MCP_LOG_LEVEL", "debug")

        settings = make_settings()

        assert settings.organization_url == "https://dev.azure.com/contoso"
        assert settings.domains == "repositories,wiki"
        assert settings.log_level == "DEBUG"

    def test_blank_domains_mean_all(self):
        assert make_settings(domains="  ").domains is None

    def test_missing_organization(self, monkeypatch):
        monkeypatch.delenv("AZURE_DEVOPS_ORG", raising=False)

        with pytest.raises(ValueError, match="organization is not configured"):
            make_settings().organization_url


class TestAccessToken:
    """Authorization header values and expiry."""

    def test_bearer(self):
        assert AccessToken(token="abc").authorization == "Bearer abc"

    def test_basic(self):
        assert AccessToken(token="secret", scheme="Basic").authorization == "Basic OnNlY3JldA=="

    def test_expiry(self):
        token = AccessToken(token="abc", expires_on=1000)

        assert not token.is_expired(now=900)
        assert token.is_expired(now=950)
        assert not AccessToken(token="abc").is_expired()

    @pytest.mark.asyncio
    async def test_pat_provider(self):
        token = await create_pat_token_provider("secret")()

        assert token.scheme == "Basic"
        assert token.token == "secret"

    @pytest.mark.asyncio
    async def test_settings_with_pat(self):
        token = await create_token_provider(make_settings(pat="secret"))()

        assert token.authorization.startswith("Basic ")


class TestUserAgentComposer:
    """Client info is appended once."""

    def test_base(self):
        assert UserAgentComposer("1.2.3").user_agent == "AzureDevOps.MCP/1.2.3 (local)"

    def test_appends_client_once(self):
        composer = UserAgentComposer("1.2.3")

        composer.append_mcp_client_info(Implementation(name="vscode", version="1.99"))
        composer.append_mcp_client_info(Implementation(name="other", version="2.0"))

        assert composer.user_agent == "AzureDevOps.MCP/1.2.3 (local) vscode/1.99"

    def test_ignores_missing_client(self):
        composer = UserAgentComposer("1.2.3")

        composer.append_mcp_client_info(None)

        assert composer.user_agent == "AzureDevOps.MCP/1.2.3 (local)"
