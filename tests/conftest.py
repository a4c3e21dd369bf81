from __future__ import annotations

from typing import Any, Callable, Dict, List

import pytest

from fic_exchange.config import Settings, get_settings
from tests.stubs import (
    APP_CLIENT_ID,
    MANAGED_IDENTITY_CLIENT_ID,
    TENANT_ID,
    VAULT_URL,
    FakeConfidentialClient,
    make_jwt,
)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def environ() -> Dict[str, str]:
    return {
        "TENANT_ID": TENANT_ID,
        "APP_CLIENT_ID": APP_CLIENT_ID,
        "MANAGED_IDENTITY_CLIENT_ID": MANAGED_IDENTITY_CLIENT_ID,
        "VAULT_URL": VAULT_URL,
        "SECRET_NAME": "secret",
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(
        tenant_id=TENANT_ID,
        app_client_id=APP_CLIENT_ID,
        managed_identity_client_id=MANAGED_IDENTITY_CLIENT_ID,
        vault_url=VAULT_URL,
        secret_name="secret",
    )


@pytest.fixture
def mi_token_value() -> str:
    return make_jwt(
        {
            "aud": "fb60f99c-7a34-4190-8149-302f77469936",
            "iss": f"https://login.microsoftonline.com/{TENANT_ID}/v2.0",
            "oid": MANAGED_IDENTITY_CLIENT_ID,
            "tid": TENANT_ID,
            "exp": 1999999999,
        }
    )


@pytest.fixture
def client_token_value() -> str:
    return make_jwt(
        {
            "aud": "https://vault.azure.net",
            "appid": APP_CLIENT_ID,
            "tid": TENANT_ID,
            "exp": 1999999999,
        }
    )


@pytest.fixture
def fake_confidential_factory(monkeypatch) -> Callable[..., List[Dict[str, Any]]]:
    """Patch the confidential client builder and record the assertions it receives."""

    def _install(client: FakeConfidentialClient) -> List[Dict[str, Any]]:
        calls: List[Dict[str, Any]] = []

        def _build(settings, client_assertion):
            calls.append({"settings": settings, "client_assertion": client_assertion})
            return client

        monkeypatch.setattr("fic_exchange.token_service.build_confidential_client", _build)
        return calls

    return _install
