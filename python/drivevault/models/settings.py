from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic.functional_validators import model_validator


class DriveSettings(BaseModel):
    token_uri: str = Field(default="https://oauth2.googleapis.com/token")
    upload_url: str = Field(
        default="https://www.googleapis.com/upload/drive/v3/files"
    )
    about_url: str = Field(default="https://www.googleapis.com/drive/v3/about")
    scope: str = "https://www.googleapis.com/auth/drive"
    shared_drive_id: str = "0AJAs3YBrbFCAUk9PVA"
    expiry_buffer_seconds: float = 300.0
    verify_ssl: bool = True

    @model_validator(mode="after")
    def check_values(self) -> DriveSettings:
        """
        Ensure a shared drive is named and the expiry buffer is not negative.
        Runs after fields are validated, returning 'self' or raising an error.
        """
        if not self.shared_drive_id:
            raise ValueError("shared_drive_id must not be empty.")
        if self.expiry_buffer_seconds < 0:
            raise ValueError("expiry_buffer_seconds must be >= 0.")
        return self
