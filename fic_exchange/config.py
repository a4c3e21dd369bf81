"""Configuration handling for the federated credential exchange."""

from __future__ import annotations

import logging
import os
import re
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

from azure.identity import AzureAuthorityHosts

from .errors import ConfigurationError


TOKEN_EXCHANGE_AUDIENCE = "api://AzureADTokenExchange"
DEFAULT_AUTHORITY_HOST = f"https://{AzureAuthorityHosts.AZURE_PUBLIC_CLOUD}"

SECRET_CREDENTIAL_MANAGED_IDENTITY = "managed-identity"
SECRET_CREDENTIAL_EXCHANGED_TOKEN = "exchanged-token"
SECRET_CREDENTIAL_CHOICES = (
    SECRET_CREDENTIAL_MANAGED_IDENTITY,
    SECRET_CREDENTIAL_EXCHANGED_TOKEN,
)

# Mapping of Azure cloud names to their login authorities.
CLOUD_AUTHORITIES = {
    "azurepubliccloud": AzureAuthorityHosts.AZURE_PUBLIC_CLOUD,
    "azureusgovernment": AzureAuthorityHosts.AZURE_GOVERNMENT,
    "azurechinacloud": AzureAuthorityHosts.AZURE_CHINA,
}

_SECRET_NAME_PATTERN = re.compile(r"^[0-9A-Za-z-]{1,127}$")


@dataclass(frozen=True)
class Settings:
    """Runtime settings loaded from the environment."""

    tenant_id: str
    app_client_id: str
    managed_identity_client_id: str
    vault_url: str
    secret_name: str
    audience: str = TOKEN_EXCHANGE_AUDIENCE
    authority_host: str = DEFAULT_AUTHORITY_HOST
    secret_credential: str = SECRET_CREDENTIAL_MANAGED_IDENTITY
    log_level: str = "INFO"
    log_sensitive: bool = False
    pause_on_exit: bool = False

    def __post_init__(self) -> None:
        _validate_guid("tenant_id", self.tenant_id)
        _validate_guid("app_client_id", self.app_client_id)
        _validate_guid("managed_identity_client_id", self.managed_identity_client_id)
        _validate_https_url("vault_url", self.vault_url)
        _validate_https_url("authority_host", self.authority_host)
        if not _SECRET_NAME_PATTERN.match(self.secret_name):
            raise ConfigurationError(
                "secret_name must be 1-127 characters of letters, digits and '-'"
            )
        if not self.audience.strip():
            raise ConfigurationError("audience must not be empty")
        if self.secret_credential not in SECRET_CREDENTIAL_CHOICES:
            supported = ", ".join(SECRET_CREDENTIAL_CHOICES)
            raise ConfigurationError(
                f"Unsupported secret_credential '{self.secret_credential}'. "
                f"Supported values: {supported}."
            )
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigurationError(f"Unknown log_level '{self.log_level}'")

    @property
    def authority(self) -> str:
        """Microsoft Entra authority URL for the configured tenant."""

        return f"{self.authority_host.rstrip('/')}/{self.tenant_id}"

    @property
    def vault_scope(self) -> str:
        """Default scope of the configured Key Vault."""

        return f"{self.vault_url.rstrip('/')}/.default"


def _validate_guid(name: str, value: str) -> None:
    try:
        uuid.UUID(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a GUID, got '{value}'") from exc


def _validate_https_url(name: str, value: str) -> None:
    parsed = urlparse(value or "")
    if parsed.scheme != "https" or not parsed.netloc:
        raise ConfigurationError(f"{name} must be an https URL, got '{value}'")


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _required_env(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name)
    if not value:
        raise ConfigurationError(f"Environment variable '{name}' must be set")
    return value


def _normalize_authority_host(host: str) -> str:
    # AzureAuthorityHosts values are bare host names.
    if "://" not in host:
        return f"https://{host}"
    return host


def _resolve_authority_host(environ: Mapping[str, str]) -> str:
    explicit = environ.get("AZURE_AUTHORITY_HOST")
    if explicit:
        return _normalize_authority_host(explicit)

    cloud = environ.get("AZURE_CLOUD", "AzurePublicCloud").lower()
    authority = CLOUD_AUTHORITIES.get(cloud)
    if not authority:
        supported = ", ".join(sorted(CLOUD_AUTHORITIES))
        raise ConfigurationError(
            f"Unsupported AZURE_CLOUD '{cloud}'. Supported values: {supported}."
        )
    return _normalize_authority_host(authority)


def load_settings(
    environ: Optional[Mapping[str, str]] = None, **overrides: Any
) -> Settings:
    """Build settings from ``environ`` (defaults to ``os.environ``).

    Keyword overrides whose value is not ``None`` replace the matching field,
    which is how command-line flags take precedence over the environment.
    """

    env = os.environ if environ is None else environ

    values: dict[str, Any] = {
        "tenant_id": _required_env(env, "TENANT_ID"),
        "app_client_id": _required_env(env, "APP_CLIENT_ID"),
        "managed_identity_client_id": _required_env(env, "MANAGED_IDENTITY_CLIENT_ID"),
        "vault_url": env.get("VAULT_URL"),
        "secret_name": env.get("SECRET_NAME"),
        "audience": env.get("TOKEN_EXCHANGE_AUDIENCE", TOKEN_EXCHANGE_AUDIENCE),
        "authority_host": _resolve_authority_host(env),
        "secret_credential": env.get(
            "SECRET_CREDENTIAL", SECRET_CREDENTIAL_MANAGED_IDENTITY
        ),
        "log_level": env.get("LOG_LEVEL", "INFO"),
        "log_sensitive": _parse_bool(env.get("LOG_SENSITIVE_DEBUG"), False),
        "pause_on_exit": _parse_bool(env.get("PAUSE_ON_EXIT"), False),
    }
    values.update({key: value for key, value in overrides.items() if value is not None})

    # The vault URL and secret name may come from flags instead of the
    # environment, so they are only required once overrides are applied.
    for field_name, env_name in (("vault_url", "VAULT_URL"), ("secret_name", "SECRET_NAME")):
        if not values.get(field_name):
            raise ConfigurationError(f"Environment variable '{env_name}' must be set")

    return Settings(**values)


@lru_cache
def get_settings() -> Settings:
    """Load settings from environment variables (cached)."""

    return load_settings()
