"""Sequential orchestration of the three-step credential exchange."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pprint import pformat
from typing import Any, Dict, Optional

from .config import Settings
from .token_service import (
    AccessToken,
    acquire_managed_identity_token,
    exchange_for_client_token,
)
from .utils import diagnostic_claims, fingerprint
from .vault import Secret, build_credential, build_secret_client, fetch_secret

logger = logging.getLogger(__name__)
sensitive_logger = logging.getLogger("fic_exchange.sensitive")


@dataclass(frozen=True)
class FlowResult:
    """Outcome of one complete exchange."""

    managed_identity_expires_on: int
    client_token: AccessToken
    secret: Secret

    def summary(self) -> Dict[str, Any]:
        """Redacted description suitable for console or HTTP output."""

        return {
            "managed_identity_token": {
                "expires_on": self.managed_identity_expires_on,
            },
            "client_token": {
                "expires_on": self.client_token.expires_on,
                "scope": self.client_token.scope,
                "token_type": self.client_token.token_type,
            },
            "secret": {
                "name": self.secret.name,
                "version": self.secret.version,
                "length": len(self.secret.value),
                "fingerprint": fingerprint(self.secret.value),
            },
        }


def _log_flow_step(step: str, details: Optional[Dict[str, Any]] = None) -> None:
    """Emit structured log entries for the exchange steps."""

    if details:
        pretty_details = pformat(details, sort_dicts=True)
        logger.info("[Exchange] %s\n%s", step, pretty_details)
    else:
        logger.info("[Exchange] %s", step)


def _log_token(step: str, token: AccessToken, settings: Settings) -> None:
    _log_flow_step(
        step,
        {
            "expires_in": token.expires_in(),
            "expires_on": token.expires_on,
            "scope": token.scope,
            "source": token.source,
            "token": fingerprint(token.token),
        },
    )
    if settings.log_sensitive:
        sensitive_logger.debug(
            "%s claims: %s", token.source, pformat(diagnostic_claims(token.token), sort_dicts=True)
        )


def run_exchange(settings: Settings) -> FlowResult:
    """Run the managed identity -> client token -> secret sequence.

    Every step's failure propagates unchanged; nothing after a failed step
    runs.
    """

    _log_flow_step("Starting token acquisition process")

    _log_flow_step(
        "Acquiring token for user-assigned managed identity",
        {
            "audience": settings.audience,
            "managed_identity_client_id": settings.managed_identity_client_id,
        },
    )
    mi_token = acquire_managed_identity_token(settings)
    _log_token("Managed identity token acquired", mi_token, settings)
    mi_expires_on = mi_token.expires_on

    _log_flow_step(
        "Acquiring token for confidential client",
        {
            "app_client_id": settings.app_client_id,
            "authority": settings.authority,
            "scopes": [settings.vault_scope],
        },
    )
    # The managed identity token is consumed here and not kept afterwards.
    client_token = exchange_for_client_token(settings, mi_token)
    _log_token("Confidential client token acquired", client_token, settings)

    _log_flow_step(
        "Creating SecretClient",
        {"credential": settings.secret_credential, "vault_url": settings.vault_url},
    )
    credential = build_credential(settings, client_token)
    client = build_secret_client(settings, credential)

    _log_flow_step(f"Retrieving secret '{settings.secret_name}'")
    secret = fetch_secret(client, settings.secret_name)
    _log_flow_step(
        "Secret retrieved",
        {
            "fingerprint": fingerprint(secret.value),
            "name": secret.name,
            "version": secret.version,
        },
    )

    _log_flow_step("Token acquisition process completed")
    return FlowResult(
        managed_identity_expires_on=mi_expires_on,
        client_token=client_token,
        secret=secret,
    )
