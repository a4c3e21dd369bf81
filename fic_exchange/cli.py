"""Console entry point for the federated credential exchange.

Runs the managed identity -> confidential client -> Key Vault sequence once
and prints a redacted summary.

Usage:
    export TENANT_ID=<tenant guid>
    export APP_CLIENT_ID=<app registration client id>
    export MANAGED_IDENTITY_CLIENT_ID=<user-assigned identity client id>
    export VAULT_URL=https://<vault>.vault.azure.net
    export SECRET_NAME=<secret>
    fic-exchange

Optional environment variables:
    TOKEN_EXCHANGE_AUDIENCE  Audience of the managed identity token. Defaults
                             to api://AzureADTokenExchange.
    AZURE_AUTHORITY_HOST     Authority host. Defaults to the value implied by
                             AZURE_CLOUD or https://login.microsoftonline.com.
    AZURE_CLOUD              Friendly cloud name (AzurePublicCloud,
                             AzureUSGovernment, AzureChinaCloud).
    SECRET_CREDENTIAL        managed-identity (default) or exchanged-token.
    LOG_LEVEL                Logging level, INFO by default.
    LOG_SENSITIVE_DEBUG      Log decoded token claims at DEBUG.
    PAUSE_ON_EXIT            Wait for Enter before exiting.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from .config import SECRET_CREDENTIAL_CHOICES, Settings, load_settings
from .errors import ConfigurationError, FlowError
from .flow import run_exchange

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fic-exchange",
        description=(
            "Exchange a managed identity token for a confidential client token "
            "and read one Key Vault secret."
        ),
    )
    parser.add_argument("--vault-url", help="Overrides VAULT_URL")
    parser.add_argument("--secret-name", help="Overrides SECRET_NAME")
    parser.add_argument(
        "--secret-credential",
        choices=SECRET_CREDENTIAL_CHOICES,
        help="Overrides SECRET_CREDENTIAL",
    )
    parser.add_argument("--log-level", help="Overrides LOG_LEVEL")
    parser.add_argument(
        "--log-sensitive",
        action="store_true",
        default=None,
        help="Log decoded token claims at DEBUG (never raw tokens)",
    )
    parser.add_argument(
        "--pause",
        dest="pause_on_exit",
        action="store_true",
        default=None,
        help="Wait for Enter before exiting",
    )
    return parser


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stdout,
    )
    if settings.log_sensitive:
        logging.getLogger("fic_exchange.sensitive").setLevel(logging.DEBUG)


def _print_summary(summary: dict) -> None:
    secret = summary["secret"]
    client_token = summary["client_token"]
    print()
    print(f"Confidential client token expires on: {client_token['expires_on']}")
    print(f"Secret: {secret['name']}")
    print(f"Version: {secret['version']}")
    print(f"Value (redacted): {secret['fingerprint']} ({secret['length']} characters)")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(
            vault_url=args.vault_url,
            secret_name=args.secret_name,
            secret_credential=args.secret_credential,
            log_level=args.log_level,
            log_sensitive=args.log_sensitive,
            pause_on_exit=args.pause_on_exit,
        )
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION

    configure_logging(settings)

    exit_code = EXIT_OK
    try:
        result = run_exchange(settings)
    except FlowError as exc:
        logger.debug("Exchange failed", exc_info=True)
        print(f"Error ({type(exc).__name__}): {exc}", file=sys.stderr)
        exit_code = EXIT_FAILURE
    else:
        _print_summary(result.summary())

    if settings.pause_on_exit:
        input("Press Enter to exit...")
    return exit_code


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("Aborted by user", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    run()
