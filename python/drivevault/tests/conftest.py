"""
Shared pytest fixtures: an RSA service-account key, a synthetic clock, and a
local aiohttp application standing in for Google's token, upload and about
endpoints.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
)

from drivevault.models.settings import DriveSettings

SHARED_DRIVE_ID = "0AtestSharedDrive"


class FakeClock:
    """Callable returning epoch seconds that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGoogle:
    """Records requests and serves canned token/upload/about responses."""

    def __init__(self) -> None:
        self.token_requests: List[Dict[str, str]] = []
        self.upload_requests: List[Dict[str, Any]] = []
        self.about_requests: List[Dict[str, Any]] = []

        self.token_status = 200
        self.token_body: Optional[Dict[str, Any]] = None
        self.upload_statuses: List[int] = []
        self.about_status = 200
        self.shared_drive_id = SHARED_DRIVE_ID

        self.app = web.Application()
        self.app.router.add_post("/token", self.handle_token)
        self.app.router.add_post("/upload/drive/v3/files", self.handle_upload)
        self.app.router.add_get("/drive/v3/about", self.handle_about)

    async def handle_token(self, request: web.Request) -> web.Response:
        form = await request.post()
        self.token_requests.append({k: str(v) for k, v in form.items()})
        if self.token_status != 200:
            return web.Response(status=self.token_status, text='{"error":"invalid_grant"}')
        if self.token_body is not None:
            return web.json_response(self.token_body)
        return web.json_response(
            {
                "access_token": f"token-{len(self.token_requests)}",
                "token_type": "Bearer",
                "expires_in": 3600,
            }
        )

    async def handle_upload(self, request: web.Request) -> web.Response:
        parts: Dict[str, Dict[str, Any]] = {}
        reader = await request.multipart()
        async for part in reader:
            parts[part.name] = {
                "content_type": part.headers.get("Content-Type"),
                "text": await part.text(),
            }
        self.upload_requests.append(
            {
                "authorization": request.headers.get("Authorization"),
                "query": dict(request.query),
                "content_type": request.content_type,
                "parts": parts,
            }
        )
        status = self.upload_statuses.pop(0) if self.upload_statuses else 200
        if status != 200:
            return web.Response(status=status, text='{"error":"denied"}')

        metadata = json.loads(parts["metadata"]["text"])
        return web.json_response(
            {
                "kind": "drive#file",
                "id": f"F{len(self.upload_requests)}",
                "name": metadata["name"],
                "mimeType": metadata["mimeType"],
            }
        )

    async def handle_about(self, request: web.Request) -> web.Response:
        self.about_requests.append(
            {
                "authorization": request.headers.get("Authorization"),
                "query": dict(request.query),
            }
        )
        if self.about_status != 200:
            return web.Response(status=self.about_status, text="forbidden")
        return web.json_response({"user": {"displayName": "svc"}})

    def settings(self, server: TestServer, **overrides: Any) -> DriveSettings:
        values: Dict[str, Any] = {
            "token_uri": str(server.make_url("/token")),
            "upload_url": str(server.make_url("/upload/drive/v3/files")),
            "about_url": str(server.make_url("/drive/v3/about")),
            "shared_drive_id": self.shared_drive_id,
            "verify_ssl": False,
        }
        values.update(overrides)
        return DriveSettings(**values)


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> str:
    return rsa_private_key.private_bytes(
        Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
    ).decode("ascii")


@pytest.fixture
def credential_data(private_key_pem: str) -> Dict[str, Any]:
    return {
        "type": "service_account",
        "project_id": "p",
        "private_key_id": "abc123",
        "private_key": private_key_pem,
        "client_email": "a@b.iam.gserviceaccount.com",
        "client_id": "1234567890",
        "token_uri": "https://oauth2.googleapis.com/token",
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_google() -> FakeGoogle:
    return FakeGoogle()
