"""
drivevault/secrets/crypto_box.py

AES-256-GCM encryption of JSON values for storage at rest.

The key is derived with PBKDF2-HMAC-SHA256 (100,000 iterations) from a fixed
passphrase and salt that ship with the package. Anyone who can read the
package can derive the same key, so this protects the blob only as far as the
storage location itself is protected. It is not a secret-keeping scheme.

Blob layout (base64 of): iv (12 bytes) || ciphertext || GCM tag (16 bytes).
"""

import base64
import json
import os
from functools import lru_cache
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from drivevault.errors import CryptoError

PASSPHRASE = b"drivevault-service-account-secure-storage"
SALT = b"drivevault-salt-2024"
ITERATIONS = 100_000
IV_LENGTH = 12


@lru_cache(maxsize=1)
def derive_key() -> bytes:
    """Derive the 256-bit AES-GCM key. Deterministic, so computed once per process."""
    return PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=SALT,
        iterations=ITERATIONS,
        backend=default_backend(),
    ).derive(PASSPHRASE)


def encrypt_json(data: Any) -> str:
    """Serialize a JSON value and encrypt it into a base64 blob.

    A fresh random IV is generated on every call.

    Raises:
        CryptoError: If the value cannot be serialized or encrypted.
    """
    try:
        plaintext = json.dumps(data).encode("utf-8")
        iv = os.urandom(IV_LENGTH)
        encrypted = AESGCM(derive_key()).encrypt(iv, plaintext, None)
    except (TypeError, ValueError, OverflowError) as exc:
        raise CryptoError("Failed to encrypt sensitive data") from exc
    return base64.b64encode(iv + encrypted).decode("ascii")


def decrypt_json(blob: str) -> Any:
    """Decrypt a base64 blob produced by encrypt_json and parse the JSON inside.

    Raises:
        CryptoError: On malformed base64, a short blob, a tag mismatch
            (tampering or wrong key), or undecodable plaintext. No partial
            plaintext is ever returned.
    """
    try:
        combined = base64.b64decode(blob, validate=True)
        if len(combined) <= IV_LENGTH:
            raise ValueError("blob too short")
        iv, ciphertext = combined[:IV_LENGTH], combined[IV_LENGTH:]
        decrypted = AESGCM(derive_key()).decrypt(iv, ciphertext, None)
        return json.loads(decrypted.decode("utf-8"))
    except InvalidTag as exc:
        # Tampered data, or a blob encrypted under a different key
        raise CryptoError("Failed to decrypt stored data") from exc
    except (TypeError, ValueError) as exc:
        raise CryptoError("Failed to decrypt stored data") from exc
