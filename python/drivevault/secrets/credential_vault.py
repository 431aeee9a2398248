"""
drivevault/secrets/credential_vault.py

Encrypted persistence of the service-account credential:
 - store: validate, keep only what is needed, encrypt, write
 - load: read, decrypt, parse (None if nothing stored)
 - clear: delete the stored blob
 - exists: "is a credential configured" without surfacing decryption errors
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from drivevault.errors import CryptoError, DecryptionError
from drivevault.models.credentials import StoredCredential, validate_credential
from drivevault.models.validator import validate_type
from drivevault.secrets.crypto_box import decrypt_json, encrypt_json
from drivevault.secrets.storage import KeyValueStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = "drivevault_service_account_encrypted"


class CredentialVault:
    """Owns the lifecycle of the encrypted credential blob in a KeyValueStorage."""

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = STORAGE_KEY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            storage (KeyValueStorage): Where the encrypted blob lives.
            key (str): The storage key for the blob.
            clock (Callable[[], float]): Returns epoch seconds; used for stored_at.
        """
        self._storage = storage
        self._key = key
        self._clock = clock

    async def store(self, raw: Any) -> StoredCredential:
        """Validate and encrypt a credential, replacing any stored one.

        Only client_email, private_key, project_id and a stored_at timestamp
        are retained.

        Raises:
            ValidationError: If required fields are missing or malformed.
            CryptoError: If encryption fails.
            StorageError: If the blob cannot be written.
        """
        credential = validate_credential(raw)
        stored = StoredCredential(
            client_email=credential.client_email,
            private_key=credential.private_key,
            project_id=credential.project_id,
            stored_at=int(self._clock() * 1000),
        )
        blob = encrypt_json(stored.model_dump())
        await self._storage.write_value(self._key, blob)
        logger.info("Service account credential stored for %s", stored.client_email)
        return stored

    async def load(self) -> Optional[StoredCredential]:
        """Return the stored credential, or None if none is stored.

        Raises:
            DecryptionError: If the stored blob is corrupt.
            StorageError: If the storage cannot be read.
        """
        blob = await self._storage.read_value(self._key)
        if not blob:
            return None
        try:
            data = decrypt_json(blob)
            return validate_type(data, StoredCredential)
        except (CryptoError, ValueError) as exc:
            logger.error("Failed to decrypt stored service account credential")
            raise DecryptionError() from exc

    async def clear(self) -> None:
        """Delete the stored credential.

        Raises:
            StorageError: If the storage cannot be written.
        """
        await self._storage.delete_value(self._key)
        logger.info("Service account credential cleared")

    async def exists(self) -> bool:
        """True iff load() would return a credential. Failures count as "not configured"."""
        try:
            return await self.load() is not None
        except Exception as exc:
            logger.warning("Stored credential is unreadable: %s", exc)
            return False
