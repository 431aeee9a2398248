"""
drivevault/models/tokens.py

The OAuth2 access token as held in the TokenMinter's in-memory cache.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AccessToken(BaseModel):
    """
    A Bearer token obtained through the JWT-bearer grant.

    Attributes:
        access_token (str): Opaque bearer string.
        token_type (str): Always "Bearer" for Google.
        expires_in (int): Lifetime in seconds reported by the endpoint.
        expires_at (int): Absolute deadline in epoch milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600
    expires_at: int = Field(..., description="Epoch milliseconds.")

    def is_fresh(self, now_ms: int, buffer_ms: int) -> bool:
        """True while the token is outside the safety buffer before its deadline."""
        return now_ms < self.expires_at - buffer_ms


class TokenResponse(BaseModel):
    """The JSON body returned by the OAuth2 token endpoint."""

    access_token: str = Field(..., min_length=1)
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
