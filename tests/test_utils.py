from __future__ import annotations

import pytest

from fic_exchange.utils import (
    decode_jwt_without_verification,
    diagnostic_claims,
    fingerprint,
    redact,
)
from tests.stubs import make_jwt


def test_decode_jwt_payload():
    token = make_jwt({"aud": "api://AzureADTokenExchange", "sub": "abc"})

    assert decode_jwt_without_verification(token) == {
        "aud": "api://AzureADTokenExchange",
        "sub": "abc",
    }


def test_decode_rejects_non_jwt():
    with pytest.raises(ValueError):
        decode_jwt_without_verification("opaque-token")


def test_diagnostic_claims_keeps_only_known_claims():
    token = make_jwt({"aud": "a", "oid": "o", "name": "Someone", "upn": "someone@example.com"})

    assert diagnostic_claims(token) == {"aud": "a", "oid": "o"}


def test_diagnostic_claims_of_opaque_token():
    assert "error" in diagnostic_claims("opaque-token")


def test_fingerprint_is_stable_and_hides_value():
    assert fingerprint("value") == fingerprint("value")
    assert fingerprint("value") != fingerprint("other")
    assert fingerprint("value").startswith("sha256:")
    assert "value" not in fingerprint("value")[len("sha256:"):]
    assert fingerprint(None) == "<none>"


def test_redact():
    assert redact("abcdef").startswith("<redacted len=6 sha256:")
    assert redact(None) == "<none>"


@pytest.mark.parametrize("payload", [123, [], "claims"])
def test_diagnostic_claims_of_non_object_payload(payload):
    assert diagnostic_claims(make_jwt(payload)) == {
        "error": "Token payload is not a claims object"
    }
