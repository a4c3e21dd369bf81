"""Token acquisition helpers for the managed identity and the confidential client."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Tuple, Type

import msal
import requests

from .config import Settings
from .errors import (
    AssertionRejected,
    FlowError,
    IdentityUnavailable,
    InvalidScope,
    NetworkError,
    TokenRequestDenied,
)
from .msal_client import build_confidential_client, build_managed_identity_client

logger = logging.getLogger(__name__)

TOKEN_SOURCE_MANAGED_IDENTITY = "managed_identity"
TOKEN_SOURCE_CONFIDENTIAL_CLIENT = "confidential_client"

ASSERTION_ERRORS = {"invalid_client", "unauthorized_client", "invalid_grant"}
# AADSTS codes reported when the federated identity credential does not match.
ASSERTION_ERROR_CODES = {70021, 700024, 700211, 700212, 700213}
SCOPE_ERRORS = {"invalid_scope", "invalid_resource"}
SCOPE_ERROR_CODES = {70011, 500011}


@dataclass(frozen=True)
class TokenRequest:
    """A single token request: the scopes asked for and the authority asked."""

    scopes: Tuple[str, ...]
    authority: Optional[str] = None


@dataclass(frozen=True)
class AccessToken:
    """Bearer token held in memory for the duration of one call."""

    token: str = field(repr=False)
    expires_on: int
    scope: str
    token_type: str = "Bearer"
    source: str = TOKEN_SOURCE_CONFIDENTIAL_CLIENT

    def expires_in(self, now: Optional[float] = None) -> int:
        """Seconds until expiry, negative once the token has expired."""

        current = time.time() if now is None else now
        return int(self.expires_on - current)


def build_access_token(result: Dict[str, Any], request: TokenRequest, source: str) -> AccessToken:
    """Normalise an MSAL response into an :class:`AccessToken`."""

    # MSAL reports ``expires_in``; ``expires_on`` only shows up for some
    # managed identity sources. Both are accepted so callers see one shape.
    expires_on = result.get("expires_on")
    if expires_on is None:
        expires_on = time.time() + int(result.get("expires_in", 0))
    return AccessToken(
        token=result["access_token"],
        expires_on=int(expires_on),
        scope=result.get("scope") or " ".join(request.scopes),
        token_type=result.get("token_type", "Bearer"),
        source=source,
    )


def _describe_error(result: Dict[str, Any]) -> Tuple[str, str, Iterable[int]]:
    error = str(result.get("error") or "unknown_error")
    description = str(result.get("error_description") or error)
    codes = result.get("error_codes") or ()
    return error, description, codes


def _classify_managed_identity_error(result: Dict[str, Any]) -> FlowError:
    error, description, _ = _describe_error(result)
    lowered = description.lower()
    # IMDS answers with a 400 "Identity not found" when the client ID is not
    # assigned to the host; that is a missing identity, not a denial.
    if "not found" in lowered or "no managed identity" in lowered:
        return IdentityUnavailable(
            f"Managed identity unavailable: {description}", error_code=error
        )
    return TokenRequestDenied(
        f"Managed identity token request denied: {description}", error_code=error
    )


def _classify_exchange_error(result: Dict[str, Any]) -> FlowError:
    error, description, codes = _describe_error(result)
    code_set = {int(code) for code in codes}
    error_class: Type[FlowError]
    if error in SCOPE_ERRORS or code_set & SCOPE_ERROR_CODES:
        error_class = InvalidScope
    elif error in ASSERTION_ERRORS or code_set & ASSERTION_ERROR_CODES:
        error_class = AssertionRejected
    else:
        error_class = TokenRequestDenied
    return error_class(f"Client token request failed: {description}", error_code=error)


def acquire_managed_identity_token(
    settings: Settings, client: Optional[msal.ManagedIdentityClient] = None
) -> AccessToken:
    """Acquire a token for the user-assigned managed identity.

    The token targets ``settings.audience`` (the token exchange audience by
    default) and is meant to be presented once as a client assertion.
    """

    request = TokenRequest(scopes=(settings.audience,))
    try:
        if client is not None:
            result = client.acquire_token_for_client(resource=settings.audience)
        else:
            with requests.Session() as http_client:
                client = build_managed_identity_client(settings, http_client)
                result = client.acquire_token_for_client(resource=settings.audience)
    except msal.ManagedIdentityError as exc:
        raise IdentityUnavailable(f"Managed identity unavailable: {exc}") from exc
    except requests.exceptions.ConnectionError as exc:
        # An unreachable managed identity endpoint means there is no identity
        # attached to this environment.
        raise IdentityUnavailable(
            f"Managed identity endpoint is not reachable: {exc}"
        ) from exc
    except requests.exceptions.RequestException as exc:
        raise NetworkError(f"Managed identity token request failed: {exc}") from exc

    if not result or "access_token" not in result:
        raise _classify_managed_identity_error(result or {})

    token = build_access_token(result, request, TOKEN_SOURCE_MANAGED_IDENTITY)
    logger.info(
        "Managed identity token acquired for %s (expires_on=%s)",
        token.scope,
        token.expires_on,
    )
    return token


def exchange_for_client_token(
    settings: Settings,
    assertion: AccessToken,
    scopes: Optional[Iterable[str]] = None,
) -> AccessToken:
    """Exchange a managed identity token for a confidential client token.

    ``assertion`` must be the managed identity token acquired beforehand; an
    empty assertion is refused before any request is built.
    """

    if assertion is None or not assertion.token:
        raise AssertionRejected("A managed identity assertion is required")

    request = TokenRequest(
        scopes=tuple(scopes) if scopes is not None else (settings.vault_scope,),
        authority=settings.authority,
    )
    try:
        app = build_confidential_client(settings, assertion.token)
    except requests.exceptions.RequestException as exc:
        raise NetworkError(f"Authority discovery failed: {exc}") from exc
    except ValueError as exc:
        # MSAL raises ValueError when the authority cannot be resolved.
        raise TokenRequestDenied(f"Authority rejected: {exc}") from exc

    try:
        result = app.acquire_token_for_client(list(request.scopes))
    except requests.exceptions.RequestException as exc:
        raise NetworkError(f"Client token request failed: {exc}") from exc

    if not result or "access_token" not in result:
        raise _classify_exchange_error(result or {})

    token = build_access_token(result, request, TOKEN_SOURCE_CONFIDENTIAL_CLIENT)
    logger.info(
        "Confidential client token acquired for %s (expires_on=%s)",
        token.scope,
        token.expires_on,
    )
    return token
