"""Helpers for creating the MSAL clients used by the exchange."""

from __future__ import annotations

import logging

import msal
import requests

from .config import Settings
from .utils import redact

logger = logging.getLogger(__name__)

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


def build_managed_identity_client(
    settings: Settings, http_client: requests.Session
) -> msal.ManagedIdentityClient:
    """Construct a ManagedIdentityClient for the configured user-assigned identity.

    The caller owns ``http_client`` and is responsible for closing it.
    """

    managed_identity = msal.UserAssignedManagedIdentity(
        client_id=settings.managed_identity_client_id
    )
    return msal.ManagedIdentityClient(
        managed_identity,
        http_client=http_client,
    )


def build_confidential_client(
    settings: Settings, client_assertion: str
) -> msal.ConfidentialClientApplication:
    """Construct a ConfidentialClientApplication that authenticates with ``client_assertion``.

    The assertion is handed over as a plain string, so the application can only
    be built once the managed identity token is already in hand.
    """

    client_credential = {
        "client_assertion": client_assertion,
        "client_assertion_type": CLIENT_ASSERTION_TYPE,
    }

    logger.debug(
        "Building confidential client %s against %s with assertion %s",
        settings.app_client_id,
        settings.authority,
        redact(client_assertion),
    )
    return msal.ConfidentialClientApplication(
        client_id=settings.app_client_id,
        authority=settings.authority,
        client_credential=client_credential,
    )
