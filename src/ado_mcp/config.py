"""Configuration management for the Azure DevOps MCP server."""
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server settings, read from the environment (and ``.env``)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # Azure DevOps
    organization: Optional[str] = Field(default=None, alias="AZURE_DEVOPS_ORG")
    domains: Optional[str] = Field(default=None, alias="ADO_MCP_DOMAINS")
    request_timeout: float = Field(default=30.0, alias="ADO_MCP_REQUEST_TIMEOUT")

    # Authentication
    tenant_id: Optional[str] = Field(default=None, alias="ADO_MCP_TENANT_ID")
    pat: Optional[str] = Field(default=None, alias="AZURE_DEVOPS_PAT")
    token_credentials: str = Field(default="dev", alias="ADO_MCP_AZURE_TOKEN_CREDENTIALS")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", alias="ADO_MCP_LOG_LEVEL"
    )

    @field_validator("domains", mode="before")
    @classmethod
    def blank_domains_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @property
    def organization_url(self) -> str:
        if not self.organization:
            raise ValueError("Azure DevOps organization is not configured")
        return f"https://dev.azure.com/{self.organization}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
