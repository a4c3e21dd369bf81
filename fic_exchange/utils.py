"""Miscellaneous helpers for redacted diagnostics."""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any, Dict, Optional

# Claims safe to surface on the opt-in debug channel.
DIAGNOSTIC_CLAIMS = ("aud", "iss", "oid", "appid", "azp", "tid", "exp")


def decode_jwt_without_verification(token: str) -> Dict[str, Any]:
    """Decode the payload of a JWT without validating the signature."""

    try:
        _, payload, _ = token.split(".")
    except ValueError as exc:
        raise ValueError("Token is not a valid JWT") from exc

    padded_payload = payload + "=" * (-len(payload) % 4)
    decoded_bytes = base64.urlsafe_b64decode(padded_payload.encode("ascii"))
    return json.loads(decoded_bytes.decode("utf-8"))


def diagnostic_claims(token: str) -> Dict[str, Any]:
    """Return the subset of claims that may be logged for troubleshooting."""

    try:
        claims = decode_jwt_without_verification(token)
    except ValueError as exc:
        return {"error": str(exc)}
    if not isinstance(claims, dict):
        return {"error": "Token payload is not a claims object"}
    return {name: claims[name] for name in DIAGNOSTIC_CLAIMS if name in claims}


def fingerprint(value: Optional[str]) -> str:
    """Return a short, stable digest that identifies ``value`` without revealing it."""

    if value is None:
        return "<none>"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()
    return f"sha256:{digest[:12]}"


def redact(value: Optional[str]) -> str:
    """Describe a sensitive string by length and fingerprint only."""

    if value is None:
        return "<none>"
    return f"<redacted len={len(value)} {fingerprint(value)}>"
