"""Verified caller identity."""

from __future__ import annotations

from pydantic import BaseModel


class UserInfo(BaseModel):
    """Claims extracted from a verified access token.  ``username`` is the workspace owner."""

    username: str
    email: str | None = None
    email_verified: bool | None = None
    name: str | None = None
