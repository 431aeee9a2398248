"""
drivevault/service.py

The API the extension UI calls into. One DriveBackupService per process holds
the CredentialVault, the TokenMinter (and therefore the token cache) and the
DriveUploader, and shares a single aiohttp session between them:

  - store_credential / has_credential / clear_credential
  - test_connection
  - save_to_drive (awaited, best effort)
  - save_everywhere (fire-and-forget, always True)
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Set, Type, Union

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from drivevault.auth.jwt import import_private_key
from drivevault.auth.token_minter import TokenMinter
from drivevault.drive.uploader import DriveUploader
from drivevault.errors import DecryptionError, StorageError, ValidationError
from drivevault.models.credentials import StoredCredential, validate_credential
from drivevault.models.drive import ConnectionStatus, FileMetadata, UploadRequest
from drivevault.models.settings import DriveSettings
from drivevault.secrets.credential_vault import CredentialVault
from drivevault.secrets.storage import KeyValueStorage

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Optional[FileMetadata]], None]


class DriveBackupService:
    """Credential configuration plus best-effort JSON backups to a shared drive."""

    def __init__(
        self,
        settings: DriveSettings,
        storage: KeyValueStorage,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the DriveBackupService.

        Args:
            settings (DriveSettings): Endpoints and shared drive configuration.
            storage (KeyValueStorage): Durable storage for the encrypted credential.
            session (Optional[aiohttp.ClientSession]): Optional shared HTTP session.
            clock (Callable[[], float]): Returns epoch seconds.
        """
        self.settings = settings
        self.vault = CredentialVault(storage, clock=clock)
        self.token_minter = TokenMinter(settings, session=session, clock=clock)
        self.uploader = DriveUploader(settings, self.token_minter)
        self._pending: Set[asyncio.Task[Optional[FileMetadata]]] = set()

    async def __aenter__(self) -> DriveBackupService:
        await self.token_minter.ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        await self.wait_pending()
        await self.token_minter.close()

    # ------------------------------
    # Credential configuration
    # ------------------------------
    async def store_credential(self, raw: Union[str, Dict[str, Any]]) -> StoredCredential:
        """Validate, test-import and store a service-account key (JSON text or dict).

        Raises:
            ValidationError: Bad JSON or missing/malformed fields.
            KeyImportError: The private key does not import as an RSA key.
            CryptoError: Encryption failed.
            StorageError: The encrypted blob could not be written.
        """
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                raise ValidationError(f"Invalid JSON: {exc}") from exc

        credential = validate_credential(raw)
        import_private_key(credential.private_key)
        stored = await self.vault.store(credential)
        # Tokens minted for a previous credential must not be reused
        self.token_minter.clear_token_cache()
        return stored

    async def has_credential(self) -> bool:
        return await self.vault.exists()

    async def clear_credential(self) -> None:
        """Delete the stored credential and forget any cached token.

        Raises:
            StorageError: If the storage cannot be written.
        """
        await self.vault.clear()
        self.token_minter.clear_token_cache()

    async def test_connection(self) -> ConnectionStatus:
        """Check that the stored credential can reach Drive.

        Configuration errors are reported in the returned status rather than raised.
        """
        try:
            credential = await self.vault.load()
        except (DecryptionError, StorageError) as exc:
            return ConnectionStatus(ok=False, message=f"Test failed: {exc}")
        if credential is None:
            return ConnectionStatus(ok=False, message="No service account configured")

        try:
            token = await self.token_minter.get_cached_access_token(credential)
            session = await self.token_minter.ensure_session()
            async with session.get(
                self.settings.about_url,
                params={"fields": "user", "supportsAllDrives": "true"},
                headers={"Authorization": f"Bearer {token.access_token}"},
                ssl=self.settings.verify_ssl,
            ) as resp:
                status = resp.status
                body = await resp.text()
        except Exception as exc:
            logger.error("Drive connection test failed: %s", exc)
            return ConnectionStatus(
                ok=False,
                message=f"Test failed: {exc}",
                client_email=credential.client_email,
            )

        if 200 <= status < 300:
            return ConnectionStatus(
                ok=True,
                message=f"Connected as: {credential.client_email}",
                client_email=credential.client_email,
                http_status=status,
            )

        logger.error("Drive API test failed: %s %s", status, body)
        if status in (401, 403):
            self.token_minter.clear_token_cache()
        return ConnectionStatus(
            ok=False,
            message=f"Connection failed: {status}",
            client_email=credential.client_email,
            http_status=status,
        )

    # ------------------------------
    # Backup uploads
    # ------------------------------
    async def save_to_drive(self, payload: Any, filename: str) -> Optional[FileMetadata]:
        """Upload payload to the shared drive. Returns None on any failure."""
        try:
            request = UploadRequest(payload=payload, filename=filename)
        except PydanticValidationError as exc:
            logger.warning("Skipping Drive save of %r: %s", filename, exc)
            return None

        try:
            credential = await self.vault.load()
        except (DecryptionError, StorageError) as exc:
            logger.error("Cannot read service account credential: %s", exc)
            return None
        if credential is None:
            logger.warning("No service account configured - skipping Drive save")
            return None

        return await self.uploader.upload(credential, request.filename, request.payload)

    def save_everywhere(
        self,
        payload: Any,
        filename: str,
        on_complete: Optional[CompletionCallback] = None,
    ) -> bool:
        """Schedule a Drive backup on the running event loop and return True at once.

        Independent uploads complete in any order. `on_complete`, if given, is
        called with the eventual result (None on failure).
        """
        task = asyncio.get_running_loop().create_task(
            self.save_to_drive(payload, filename)
        )
        self._pending.add(task)

        def _done(finished: asyncio.Task[Optional[FileMetadata]]) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.error("Google Drive backup of %s crashed: %r", filename, exc)
            result = None if exc is not None else finished.result()
            if result is not None:
                logger.info("Google Drive backup of %s completed", filename)
            else:
                logger.info(
                    "Google Drive backup of %s skipped or failed (local save unaffected)",
                    filename,
                )
            if on_complete is not None:
                on_complete(result)

        task.add_done_callback(_done)
        return True

    async def wait_pending(self) -> None:
        """Wait for every scheduled background upload to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
