# -*- coding: utf-8 -*-
"""Bearer-token identity resolution.

Token issuance lives outside the garden service (see `cli user add`); requests
only need the token to map to a user id.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.garden.errors import AuthError

from .store import GardenStore

_bearer = HTTPBearer(auto_error=False)


def get_store(request: Request) -> GardenStore:
    return request.app.state.store  # type: ignore[attr-defined]


def current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    store: GardenStore = Depends(get_store),
) -> Dict[str, Any]:
    """Resolve the authenticated user (401 on missing/unknown token)."""
    if credentials is None or not credentials.credentials:
        raise AuthError("Access token required")
    if str(credentials.scheme or "").lower() != "bearer":
        raise AuthError("Bearer token required")
    user = store.user_by_token(credentials.credentials)
    if user is None:
        raise AuthError("Invalid or expired token")
    return user


def current_user_id(user: Dict[str, Any] = Depends(current_user)) -> str:
    return str(user["id"])
