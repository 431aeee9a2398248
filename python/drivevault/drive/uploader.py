"""
drivevault/drive/uploader.py

Multipart upload of JSON documents to a Google shared drive.

upload_result() returns an explicit UploadResult; upload() collapses it to
Optional[FileMetadata]. Neither raises: this is a best-effort backup path and
must never block the caller's primary save. A 401/403 from Drive clears the
token cache so the next call mints a fresh token; there is no retry within
the same call.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiohttp

from drivevault.auth.token_minter import TokenMinter
from drivevault.errors import TokenError, UploadError
from drivevault.models.credentials import Credential
from drivevault.models.drive import FileMetadata, UploadMetadata, UploadResult
from drivevault.models.settings import DriveSettings
from drivevault.models.validator import parse_json_as

logger = logging.getLogger(__name__)

UPLOAD_PARAMS: Dict[str, str] = {
    "uploadType": "multipart",
    "supportsAllDrives": "true",
    "supportsTeamDrives": "true",
}
AUTH_FAILURE_STATUSES = (401, 403)


def serialize_payload(payload: Any) -> str:
    """Strings pass through; anything else becomes 2-space indented JSON."""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, indent=2)


def build_upload_form(metadata: UploadMetadata, content: str) -> aiohttp.FormData:
    """The two-part multipart body: a JSON "metadata" part and a JSON "file" part."""
    form = aiohttp.FormData()
    form.add_field(
        "metadata",
        json.dumps(metadata.model_dump(by_alias=True)),
        content_type="application/json",
    )
    form.add_field(
        "file",
        content,
        filename=metadata.name,
        content_type="application/json",
    )
    return form


class DriveUploader:
    """Uploads JSON documents to the configured shared drive with a Bearer token."""

    def __init__(
        self,
        settings: DriveSettings,
        token_minter: TokenMinter,
    ) -> None:
        """
        Args:
            settings (DriveSettings): Upload endpoint, shared drive id, verify_ssl.
            token_minter (TokenMinter): Supplies (and caches) Bearer tokens; its
                session is reused for uploads.
        """
        self._upload_url = settings.upload_url
        self._shared_drive_id = settings.shared_drive_id
        self._verify_ssl = settings.verify_ssl
        self._token_minter = token_minter

    def build_metadata(self, filename: str) -> UploadMetadata:
        return UploadMetadata.for_shared_drive(filename, self._shared_drive_id)

    async def _obtain_token(self, credential: Credential) -> str:
        try:
            token = await self._token_minter.get_cached_access_token(credential)
        except Exception as exc:
            raise TokenError(f"Failed to obtain access token: {exc}") from exc
        return token.access_token

    async def _post_upload(self, token: str, filename: str, payload: Any) -> FileMetadata:
        try:
            content = serialize_payload(payload)
        except (TypeError, ValueError) as exc:
            raise UploadError("Payload is not JSON-serializable", body=str(exc)) from exc

        session = await self._token_minter.ensure_session()
        form = build_upload_form(self.build_metadata(filename), content)
        headers = {"Authorization": f"Bearer {token}"}
        try:
            async with session.post(
                self._upload_url,
                params=UPLOAD_PARAMS,
                data=form,
                headers=headers,
                ssl=self._verify_ssl,
            ) as resp:
                if not 200 <= resp.status < 300:
                    body = await resp.text()
                    raise UploadError(
                        f"Google Drive upload failed: {resp.status}",
                        http_status=resp.status,
                        body=body,
                    )
                status = resp.status
                body = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise UploadError(f"Google Drive upload failed: {exc!r}", body=str(exc)) from exc

        try:
            return parse_json_as(body, FileMetadata)
        except ValueError as exc:
            raise UploadError(
                "Google Drive upload returned unexpected file metadata",
                http_status=status,
                body=body,
            ) from exc

    async def upload_result(
        self, credential: Credential, filename: str, payload: Any
    ) -> UploadResult:
        """Upload payload as filename and report the outcome as a value."""
        try:
            token = await self._obtain_token(credential)
            file_data = await self._post_upload(token, filename, payload)
        except TokenError as exc:
            self._log_failure(filename, str(exc))
            return UploadResult(error=str(exc))
        except UploadError as exc:
            auth_failure = exc.http_status in AUTH_FAILURE_STATUSES
            if auth_failure:
                logger.info("Clearing token cache due to auth error")
                self._token_minter.clear_token_cache()
            self._log_failure(filename, str(exc), exc.body)
            return UploadResult(
                error=str(exc), http_status=exc.http_status, auth_failure=auth_failure
            )

        logger.info(
            "Uploaded %s to Google Drive (file id %s)", file_data.name, file_data.id
        )
        return UploadResult(file=file_data)

    async def upload(
        self, credential: Credential, filename: str, payload: Any
    ) -> Optional[FileMetadata]:
        """Upload payload as filename; None on any failure."""
        result = await self.upload_result(credential, filename, payload)
        return result.file

    @staticmethod
    def _log_failure(filename: str, message: str, body: str = "") -> None:
        logger.warning(
            "Drive backup of %s failed at %s: %s %s",
            filename,
            datetime.now(timezone.utc).isoformat(),
            message,
            body,
        )
