"""Exceptions raised by the credential exchange flow."""

from __future__ import annotations

from typing import Optional


class ConfigurationError(RuntimeError):
    """Raised when required settings are missing or malformed."""


class FlowError(Exception):
    """Base class for failures of one of the exchange steps."""

    def __init__(self, message: str, *, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code


class IdentityUnavailable(FlowError):
    """No managed identity is attached to the execution environment."""


class TokenRequestDenied(FlowError):
    """The identity provider refused to issue the requested token."""


class AssertionRejected(FlowError):
    """The federated client assertion was not trusted for the application."""


class InvalidScope(FlowError):
    """The requested scopes are not granted to the application."""


class SecretNotFound(FlowError):
    """The named secret does not exist in the vault."""


class AccessDenied(FlowError):
    """The caller is not allowed to read the secret."""


class NetworkError(FlowError):
    """A transport failure prevented a request from completing."""
