"""Key Vault access for the final step of the exchange."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from azure.core.credentials import AccessToken as CoreAccessToken
from azure.core.credentials import TokenCredential
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.identity import CredentialUnavailableError, ManagedIdentityCredential
from azure.keyvault.secrets import SecretClient

from .config import SECRET_CREDENTIAL_EXCHANGED_TOKEN, Settings
from .errors import (
    AccessDenied,
    ConfigurationError,
    IdentityUnavailable,
    NetworkError,
    SecretNotFound,
)
from .token_service import AccessToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Secret:
    """A secret value as read from the vault."""

    name: str
    value: str = field(repr=False)
    version: Optional[str] = None


class StaticTokenCredential:
    """TokenCredential that hands out a token acquired elsewhere."""

    def __init__(self, token: AccessToken):
        self._token = token

    def get_token(self, *scopes: str, **kwargs: Any) -> CoreAccessToken:
        requested = " ".join(scopes)
        if requested and requested != self._token.scope:
            logger.warning(
                "Vault requested scope %s but the exchanged token is for %s",
                requested,
                self._token.scope,
            )
        return CoreAccessToken(self._token.token, self._token.expires_on)


def build_credential(
    settings: Settings, client_token: Optional[AccessToken] = None
) -> TokenCredential:
    """Return the credential the secret client authenticates with.

    By default this is an independent ``ManagedIdentityCredential`` for the
    configured identity. With ``secret_credential = exchanged-token`` the
    confidential client token from the exchange is used instead.
    """

    if settings.secret_credential == SECRET_CREDENTIAL_EXCHANGED_TOKEN:
        if client_token is None:
            raise ConfigurationError(
                "secret_credential 'exchanged-token' requires a client token"
            )
        logger.info("Authenticating to the vault with the exchanged client token")
        return StaticTokenCredential(client_token)

    logger.info(
        "Authenticating to the vault with managed identity %s",
        settings.managed_identity_client_id,
    )
    return ManagedIdentityCredential(client_id=settings.managed_identity_client_id)


def build_secret_client(settings: Settings, credential: TokenCredential) -> SecretClient:
    """Create a SecretClient for the configured vault."""

    return SecretClient(vault_url=settings.vault_url, credential=credential)


def fetch_secret(client: SecretClient, name: str) -> Secret:
    """Fetch the current version of secret ``name``."""

    try:
        kv_secret = client.get_secret(name)
    except ResourceNotFoundError as exc:
        raise SecretNotFound(f"Secret '{name}' was not found", error_code="404") from exc
    except CredentialUnavailableError as exc:
        # CredentialUnavailableError is a ClientAuthenticationError, so it has
        # to be checked first.
        raise IdentityUnavailable(f"Vault credential unavailable: {exc}") from exc
    except ClientAuthenticationError as exc:
        raise AccessDenied(f"Not authorised to read secret '{name}': {exc}") from exc
    except (ServiceRequestError, ServiceResponseError) as exc:
        raise NetworkError(f"Vault request failed: {exc}") from exc
    except HttpResponseError as exc:
        status = exc.status_code
        if status == 404:
            raise SecretNotFound(f"Secret '{name}' was not found", error_code="404") from exc
        if status in (401, 403):
            raise AccessDenied(
                f"Not authorised to read secret '{name}'", error_code=str(status)
            ) from exc
        raise

    if kv_secret.value is None:
        raise SecretNotFound(f"Secret '{name}' has no value")

    return Secret(
        name=kv_secret.name or name,
        value=kv_secret.value,
        version=kv_secret.properties.version,
    )
