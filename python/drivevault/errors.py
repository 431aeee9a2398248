"""
drivevault/errors.py

Error taxonomy for the credential / token / upload pipeline:

  - ValidationError        malformed or missing credential fields
  - CryptoError            encryption/decryption failure (generic message only)
  - DecryptionError        stored blob is corrupt or tampered with
  - StorageError           persistence layer failure
  - KeyImportError         PEM private key could not be imported
  - AuthExchangeError      token endpoint rejected the JWT assertion
  - MalformedResponseError token endpoint reply lacks an access token
  - TokenError             any failure while obtaining a Bearer token for an upload
  - UploadError            non-auth upload failure
"""

from __future__ import annotations

from typing import Optional


class DriveVaultError(Exception):
    """Base class for every error raised by drivevault."""


class ValidationError(DriveVaultError):
    """A service-account credential is malformed or missing required fields.

    The message is meant to be shown verbatim to whoever configured the credential.
    """


class CryptoError(DriveVaultError):
    """Encryption or decryption failed.

    The message never says why; the underlying cause is only chained.
    """

    def __init__(self, message: str = "Secure storage failed") -> None:
        super().__init__(message)


class DecryptionError(CryptoError):
    """The stored credential blob could not be decrypted."""

    def __init__(self, message: str = "Failed to decrypt stored data") -> None:
        super().__init__(message)


class StorageError(DriveVaultError):
    """The key-value storage could not be read or written."""


class KeyImportError(DriveVaultError):
    """A PEM private key could not be imported as an RS256 signing key."""


class AuthExchangeError(DriveVaultError):
    """The OAuth2 token endpoint returned a non-2xx response.

    Attributes:
        http_status (int): The HTTP status returned by the token endpoint.
        body (str): The raw response body.
    """

    def __init__(self, http_status: int, body: str) -> None:
        """
        Initialize an AuthExchangeError.

        Args:
            http_status (int): The HTTP status returned by the token endpoint.
            body (str): The raw response body.
        """
        super().__init__(f"OAuth2 token request failed: {http_status}")
        self.http_status = http_status
        self.body = body


class MalformedResponseError(DriveVaultError):
    """The token endpoint answered 2xx but did not include an access token."""


class TokenError(DriveVaultError):
    """Obtaining a Bearer token for an upload failed."""


class UploadError(DriveVaultError):
    """A Drive upload failed for a reason other than authentication.

    Attributes:
        http_status (Optional[int]): The HTTP status, or None for network failures.
        body (str): The response body or a description of the network failure.
    """

    def __init__(self, message: str, http_status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.http_status = http_status
        self.body = body
