"""
drivevault/models/credentials.py

Pydantic models for Google Cloud service-account credentials:
  - ServiceAccountCredential: the validated subset of a downloaded JSON key
  - StoredCredential: the minimal copy that is actually encrypted at rest
  - validate_credential(): turns untrusted input into a ServiceAccountCredential
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from drivevault.errors import ValidationError

PKCS8_MARKER = "BEGIN PRIVATE KEY"
SERVICE_ACCOUNT_DOMAIN = ".iam.gserviceaccount.com"
REQUIRED_FIELDS: List[str] = ["type", "project_id", "private_key", "client_email"]


class ServiceAccountCredential(BaseModel):
    """
    The fields of a GCP service-account JSON key that the upload pipeline needs.

    Extra keys present in the downloaded JSON (client_id, token_uri, ...) are
    ignored on validation and never retained.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["service_account"]
    project_id: str = Field(..., min_length=1)
    private_key: str
    client_email: str

    @field_validator("private_key")
    @classmethod
    def check_private_key(cls, value: str) -> str:
        if PKCS8_MARKER not in value:
            raise ValueError("Invalid private key format")
        return value

    @field_validator("client_email")
    @classmethod
    def check_client_email(cls, value: str) -> str:
        if "@" not in value or SERVICE_ACCOUNT_DOMAIN not in value:
            raise ValueError("Invalid service account email format")
        return value


class StoredCredential(BaseModel):
    """
    What survives in the encrypted blob: email, private key, project id and
    the epoch-ms time it was stored.
    """

    model_config = ConfigDict(frozen=True)

    client_email: str
    private_key: str
    project_id: str = ""
    stored_at: int = Field(..., description="Epoch milliseconds at store time.")


Credential = Union[ServiceAccountCredential, StoredCredential]


def validate_credential(raw: Any) -> ServiceAccountCredential:
    """
    Validate untrusted service-account data.

    Args:
        raw (Any): Decoded JSON (normally a dict) or an existing ServiceAccountCredential.

    Returns:
        ServiceAccountCredential: The validated credential.

    Raises:
        ValidationError: With a message suitable for showing to the user.
    """
    if isinstance(raw, ServiceAccountCredential):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError("Service account data must be a JSON object")

    data: Dict[str, Any] = raw
    missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    if data["type"] != "service_account":
        raise ValidationError("Invalid service account type")

    try:
        return ServiceAccountCredential.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        cause = first.get("ctx", {}).get("error")
        raise ValidationError(str(cause) if cause else first["msg"]) from exc
