"""
Relay configuration.

Uses pydantic-settings to load and validate the relay settings from the
environment (or a .env file). Credentials still missing after that are
looked up in the HashiCorp Vault secret named by VAULT_SECRET_PATH.
"""

import os
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple, Type

from pydantic import AliasChoices, Field, SecretStr, ValidationError, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .errors import ConfigurationError
from ..services.vault_client import read_relay_secrets

DEFAULT_TOKEN_URL = (
    "https://zistvuimo5abwyl-microcrmdb.adb.eu-zurich-1.oraclecloudapps.com"
    "/ords/wksp_microcrm/oauth/token"
)
DEFAULT_PRODUCTS_URL = (
    "https://zistvuimo5abwyl-microcrmdb.adb.eu-zurich-1.oraclecloudapps.com"
    "/ords/wksp_microcrm/ali_products/get"
)

_UNCAPPED_VALUES = {"", "all", "none", "unlimited"}

# Credential fields that may come from Vault.
_VAULT_FIELDS = ("apex_username", "apex_password", "mcp_api_key")


def _env(field: str, env_name: str) -> AliasChoices:
    """Accept both the field name (constructor) and its environment variable."""
    return AliasChoices(field, env_name)


class VaultSettingsSource(PydanticBaseSettingsSource):
    """Reads the credential fields from the Vault secret at VAULT_SECRET_PATH."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        secret_path = os.getenv("VAULT_SECRET_PATH")
        if not secret_path:
            return {}

        try:
            vault_secrets = read_relay_secrets(secret_path)
        except Exception as e:
            raise ConfigurationError(f"Failed to read secrets from Vault at '{secret_path}': {e}")

        return {
            field: vault_secrets[field.upper()]
            for field in _VAULT_FIELDS
            if vault_secrets.get(field.upper())
        }


class RelayConfig(BaseSettings):
    """
    Process-wide settings. Built once at startup and never mutated.

    Attributes without an explicit alias are read from the upper-cased
    field name (APEX_USERNAME, PORT, ...).
    """

    model_config = SettingsConfigDict(frozen=True, env_file=".env", extra="ignore")

    apex_username: str = Field(..., min_length=1)
    apex_password: SecretStr
    mcp_api_key: Optional[SecretStr] = None

    host: str = "0.0.0.0"
    port: int = 10000

    token_url: str = Field(DEFAULT_TOKEN_URL, validation_alias=_env("token_url", "APEX_TOKEN_URL"))
    products_url: str = Field(DEFAULT_PRODUCTS_URL, validation_alias=_env("products_url", "APEX_PRODUCTS_URL"))

    # None means "return the full upstream listing".
    default_limit: Optional[int] = Field(
        5, ge=0, validation_alias=_env("default_limit", "PRODUCTS_DEFAULT_LIMIT")
    )
    include_url: bool = Field(False, validation_alias=_env("include_url", "PRODUCTS_INCLUDE_URL"))

    require_auth: bool = Field(True, validation_alias=_env("require_auth", "MCP_REQUIRE_AUTH"))
    protect_discovery: bool = Field(False, validation_alias=_env("protect_discovery", "MCP_PROTECT_DISCOVERY"))
    expose_upstream_errors: bool = Field(
        True, validation_alias=_env("expose_upstream_errors", "MCP_EXPOSE_UPSTREAM_ERRORS")
    )

    request_timeout: float = Field(30.0, gt=0, validation_alias=_env("request_timeout", "UPSTREAM_TIMEOUT"))
    discovery_delay: float = Field(0.1, ge=0, validation_alias=_env("discovery_delay", "DISCOVERY_DELAY"))
    discovery_hold_open: bool = Field(True, validation_alias=_env("discovery_hold_open", "DISCOVERY_HOLD_OPEN"))

    log_level: str = "INFO"

    @field_validator("default_limit", mode="before")
    @classmethod
    def _parse_limit(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in _UNCAPPED_VALUES:
            return None
        return value

    @field_validator("apex_password")
    @classmethod
    def _password_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("APEX_PASSWORD must not be empty")
        return value

    @classmethod
    def settings_customise_sources(
            cls,
            settings_cls: Type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,
            file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # Earlier sources win: Vault only fills what the environment left out.
        return init_settings, env_settings, dotenv_settings, VaultSettingsSource(settings_cls), file_secret_settings


def load_config(**overrides: Any) -> RelayConfig:
    """Builds a RelayConfig, turning validation failures into ConfigurationError."""
    try:
        return RelayConfig(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid relay configuration: {e}")


@lru_cache()
def get_config() -> RelayConfig:
    """Loads the relay configuration once per process."""
    return load_config()
