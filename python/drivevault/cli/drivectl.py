#!/usr/bin/env python3
"""
drivevault/cli/drivectl.py

CLI for the service-account Drive backup pipeline:
  - store   : validate, encrypt and store a service-account JSON key
  - status  : report whether a credential is configured
  - test    : mint a token and call the Drive "about" endpoint
  - upload  : upload a JSON file to the shared drive
  - clear   : delete the stored credential
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, Callable, Coroutine

from drivevault.errors import DriveVaultError, KeyImportError, ValidationError
from drivevault.models.settings import DriveSettings
from drivevault.secrets.storage import JsonFileStorage
from drivevault.service import DriveBackupService

DEFAULT_STORAGE_PATH = "~/.drivevault/storage.json"


#
# Subcommand handlers
#
async def run_store(args: argparse.Namespace) -> None:
    """
    Store a service-account key read from --json-file or stdin.

    Raises SystemExit on error.
    """
    if args.json_file:
        try:
            with open(args.json_file, "r", encoding="utf-8") as f:
                raw_text = f.read()
        except OSError as exc:
            print(f"Error reading file '{args.json_file}': {exc}", file=sys.stderr)
            sys.exit(1)
    else:
        raw_text = sys.stdin.read()

    if not raw_text.strip():
        print("Error: please provide your service account JSON.", file=sys.stderr)
        sys.exit(1)

    async with _build_service(args) as service:
        try:
            stored = await service.store_credential(raw_text)
        except (ValidationError, KeyImportError) as exc:
            print(f"Invalid service account: {exc}", file=sys.stderr)
            sys.exit(1)
        except DriveVaultError as exc:
            print(f"Error storing service account: {exc}", file=sys.stderr)
            sys.exit(1)

    print(f"Service account stored: {stored.client_email}")


async def run_status(args: argparse.Namespace) -> None:
    """Print whether a service account is configured; exit 1 if not."""
    async with _build_service(args) as service:
        configured = await service.has_credential()
    if not configured:
        print("No service account configured.")
        sys.exit(1)
    print("Service account configured.")


async def run_test(args: argparse.Namespace) -> None:
    """Test the Drive connection with the stored credential."""
    async with _build_service(args) as service:
        status = await service.test_connection()
    if not status.ok:
        print(status.message, file=sys.stderr)
        sys.exit(1)
    print(status.message)


async def run_upload(args: argparse.Namespace) -> None:
    """
    Upload a local JSON file to the shared drive and print the file id.

    Raises SystemExit on error.
    """
    try:
        with open(args.file, "r", encoding="utf-8") as f:
            payload: Any = json.load(f)
    except (OSError, ValueError) as exc:
        print(f"Error reading/parsing file '{args.file}': {exc}", file=sys.stderr)
        sys.exit(1)

    name = args.name or os.path.basename(args.file)
    async with _build_service(args) as service:
        result = await service.save_to_drive(payload, name)
    if result is None:
        print(f"Upload of '{name}' failed (see log output).", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(result.model_dump(), indent=2))


async def run_clear(args: argparse.Namespace) -> None:
    """Delete the stored service account credential."""
    async with _build_service(args) as service:
        try:
            await service.clear_credential()
        except DriveVaultError as exc:
            print(f"Clear failed: {exc}", file=sys.stderr)
            sys.exit(1)
    print("Service account credentials cleared.")


#
# Helpers
#
def _build_drive_settings(args: argparse.Namespace) -> DriveSettings:
    """Construct a DriveSettings object from CLI arguments."""
    return DriveSettings(
        token_uri=args.token_uri,
        upload_url=args.upload_url,
        about_url=args.about_url,
        shared_drive_id=args.shared_drive_id,
        verify_ssl=not args.no_verify_ssl,
    )


def _build_service(args: argparse.Namespace) -> DriveBackupService:
    return DriveBackupService(
        _build_drive_settings(args), JsonFileStorage(args.storage_path)
    )


def _add_drive_cli_args(subparser: argparse.ArgumentParser) -> None:
    """
    Add storage and endpoint arguments to each subcommand parser.
    """
    defaults = DriveSettings()
    subparser.add_argument(
        "--storage-path",
        default=DEFAULT_STORAGE_PATH,
        help=f"Encrypted credential store (default: {DEFAULT_STORAGE_PATH}).",
    )
    subparser.add_argument(
        "--shared-drive-id",
        default=defaults.shared_drive_id,
        help=f"Target shared drive id (default: {defaults.shared_drive_id}).",
    )
    subparser.add_argument(
        "--token-uri",
        default=defaults.token_uri,
        help=f"OAuth2 token endpoint (default: {defaults.token_uri}).",
    )
    subparser.add_argument(
        "--upload-url",
        default=defaults.upload_url,
        help=f"Drive upload endpoint (default: {defaults.upload_url}).",
    )
    subparser.add_argument(
        "--about-url",
        default=defaults.about_url,
        help=f"Drive about endpoint used by 'test' (default: {defaults.about_url}).",
    )
    subparser.add_argument(
        "--no-verify-ssl",
        action="store_true",
        default=False,
        help="Disable SSL certificate verification (default: verify SSL).",
    )
    subparser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Log pipeline progress to stderr.",
    )


def main() -> None:
    """
    CLI entry point for credential management and Drive uploads.
    """
    parser = argparse.ArgumentParser(
        prog="drivectl",
        description=(
            "Store a Google service-account key encrypted at rest and use it to "
            "upload JSON backups to a shared drive."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    store_parser = subparsers.add_parser(
        "store", help="Validate, encrypt and store a service-account JSON key."
    )
    _add_drive_cli_args(store_parser)
    store_parser.add_argument("--json-file", help="JSON key file to load instead of stdin.")
    store_parser.set_defaults(func=run_store)

    status_parser = subparsers.add_parser(
        "status", help="Report whether a service account is configured."
    )
    _add_drive_cli_args(status_parser)
    status_parser.set_defaults(func=run_status)

    test_parser = subparsers.add_parser("test", help="Test the Google Drive connection.")
    _add_drive_cli_args(test_parser)
    test_parser.set_defaults(func=run_test)

    upload_parser = subparsers.add_parser(
        "upload", help="Upload a JSON file to the shared drive."
    )
    _add_drive_cli_args(upload_parser)
    upload_parser.add_argument("--file", required=True, help="Local JSON file to upload.")
    upload_parser.add_argument(
        "--name", help="Name in Drive (default: the local file name; must end in .json)."
    )
    upload_parser.set_defaults(func=run_upload)

    clear_parser = subparsers.add_parser(
        "clear", help="Delete the stored service-account credential."
    )
    _add_drive_cli_args(clear_parser)
    clear_parser.set_defaults(func=run_clear)

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    func: Callable[[argparse.Namespace], Coroutine[Any, Any, None]] = args.func
    asyncio.run(func(args))


if __name__ == "__main__":
    main()
