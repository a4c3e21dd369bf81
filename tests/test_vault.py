from __future__ import annotations

import dataclasses

import pytest
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ServiceRequestError,
)
from azure.identity import CredentialUnavailableError, ManagedIdentityCredential
from azure.keyvault.secrets import SecretClient

from fic_exchange.config import SECRET_CREDENTIAL_EXCHANGED_TOKEN
from fic_exchange.errors import (
    AccessDenied,
    ConfigurationError,
    IdentityUnavailable,
    NetworkError,
    SecretNotFound,
)
from fic_exchange.token_service import AccessToken
from fic_exchange.vault import (
    StaticTokenCredential,
    build_credential,
    build_secret_client,
    fetch_secret,
)
from tests.stubs import VAULT_URL, FakeSecretClient


def _client_token() -> AccessToken:
    return AccessToken(token="client-token", expires_on=2000000000, scope=f"{VAULT_URL}/.default")


def _http_error(status_code: int) -> HttpResponseError:
    error = HttpResponseError(message=f"HTTP {status_code}")
    error.status_code = status_code
    return error


def test_fetch_secret_returns_value_and_version():
    client = FakeSecretClient({"secret": ("s3cr3t", "v1")})

    secret = fetch_secret(client, "secret")

    assert secret.name == "secret"
    assert secret.value == "s3cr3t"
    assert secret.version == "v1"
    assert "s3cr3t" not in repr(secret)


def test_fetching_twice_returns_same_secret():
    client = FakeSecretClient({"secret": ("s3cr3t", "v1")})

    assert fetch_secret(client, "secret") == fetch_secret(client, "secret")
    assert client.requested == ["secret", "secret"]


def test_missing_secret_raises_not_found():
    client = FakeSecretClient({"secret": ("s3cr3t", "v1")})

    with pytest.raises(SecretNotFound) as excinfo:
        fetch_secret(client, "missing")

    assert excinfo.value.error_code == "404"


@pytest.mark.parametrize(
    "exc, error_class",
    [
        (_http_error(404), SecretNotFound),
        (_http_error(403), AccessDenied),
        (_http_error(401), AccessDenied),
        (ClientAuthenticationError(message="token rejected"), AccessDenied),
        (CredentialUnavailableError(message="no managed identity endpoint"), IdentityUnavailable),
        (ServiceRequestError(message="connection reset"), NetworkError),
    ],
)
def test_fetch_secret_error_mapping(exc, error_class):
    client = FakeSecretClient(exc=exc)

    with pytest.raises(error_class):
        fetch_secret(client, "secret")


def test_unexpected_http_error_propagates():
    error = _http_error(500)

    with pytest.raises(HttpResponseError) as excinfo:
        fetch_secret(FakeSecretClient(exc=error), "secret")

    assert excinfo.value is error


def test_secret_without_value_is_not_returned():
    client = FakeSecretClient({"secret": (None, "v1")})

    with pytest.raises(SecretNotFound):
        fetch_secret(client, "secret")


def test_default_credential_is_independent_managed_identity(settings):
    credential = build_credential(settings, _client_token())

    assert isinstance(credential, ManagedIdentityCredential)


def test_exchanged_token_credential(settings):
    settings = dataclasses.replace(settings, secret_credential=SECRET_CREDENTIAL_EXCHANGED_TOKEN)

    credential = build_credential(settings, _client_token())

    assert isinstance(credential, StaticTokenCredential)
    token = credential.get_token(f"{VAULT_URL}/.default")
    assert token.token == "client-token"
    assert token.expires_on == 2000000000


def test_exchanged_token_credential_requires_token(settings):
    settings = dataclasses.replace(settings, secret_credential=SECRET_CREDENTIAL_EXCHANGED_TOKEN)

    with pytest.raises(ConfigurationError):
        build_credential(settings, None)


def test_static_credential_accepts_challenge_kwargs(caplog):
    credential = StaticTokenCredential(_client_token())

    token = credential.get_token("https://vault.azure.net/.default", tenant_id="t", enable_cae=True)

    assert token.token == "client-token"
    assert "client-token" not in caplog.text


def test_build_secret_client(settings):
    client = build_secret_client(settings, StaticTokenCredential(_client_token()))

    assert isinstance(client, SecretClient)
    assert client.vault_url == VAULT_URL
