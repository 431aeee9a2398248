"""
drivevault/models/drive.py

Pydantic models for the Drive side of the pipeline:
  - UploadRequest
  - UploadMetadata (the multipart "metadata" part)
  - FileMetadata (what Drive returns)
  - UploadResult (explicit success/failure value at the uploader boundary)
  - ConnectionStatus (outcome of a connection test)
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UploadRequest(BaseModel):
    """A JSON document to back up under a given filename."""

    payload: Any
    filename: str

    @field_validator("filename")
    @classmethod
    def check_filename(cls, value: str) -> str:
        if not value.endswith(".json"):
            raise ValueError("filename must end with '.json'")
        return value


class UploadMetadata(BaseModel):
    """
    Drive file metadata for a shared-drive upload.

    Both parents[0] and driveId must name the same shared drive.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    parents: List[str]
    mime_type: str = Field("application/json", alias="mimeType")
    drive_id: str = Field(..., alias="driveId")

    @classmethod
    def for_shared_drive(cls, filename: str, shared_drive_id: str) -> UploadMetadata:
        return cls(
            name=filename,
            parents=[shared_drive_id],
            mime_type="application/json",
            drive_id=shared_drive_id,
        )


class FileMetadata(BaseModel):
    """The file resource Drive returns after a successful upload."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str


class UploadResult(BaseModel):
    """
    Result of one upload attempt.

    Exactly one of `file` or `error` is set.
    """

    file: Optional[FileMetadata] = None
    error: Optional[str] = None
    http_status: Optional[int] = None
    auth_failure: bool = False

    @property
    def ok(self) -> bool:
        return self.file is not None


class ConnectionStatus(BaseModel):
    """Outcome of a Drive connection test."""

    ok: bool
    message: str
    client_email: Optional[str] = None
    http_status: Optional[int] = None
