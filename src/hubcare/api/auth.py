"""Bearer JWT authentication.

Provides:
- verify_token(): Validates an HS256 JWT and returns its {id, role} claims
- get_current_user(): FastAPI dependency for authenticated account context

Token issuance lives in the auth service; this module only verifies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import HTTPException, Request

from hubcare.settings import get_settings

ROLE_USER = "User"
ROLE_PROVIDER = "Provider"
ROLE_ADMIN = "Admin"

ROLES = (ROLE_USER, ROLE_PROVIDER, ROLE_ADMIN)


@dataclass
class CurrentUser:
    """Authenticated account context."""

    id: str
    role: str
    name: str | None
    email: str | None


def verify_token(token: str) -> dict[str, Any]:
    """Verify JWT and return its claims.

    Args:
        token: JWT token string.

    Returns:
        Claims dict with at least "id" and "role".

    Raises:
        HTTPException: 401 if token is invalid, expired or auth is not configured.
    """
    secret = get_settings().jwt_secret
    if not secret:
        raise HTTPException(status_code=401, detail="Auth not configured")

    try:
        payload = jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    if not payload.get("id") or payload.get("role") not in ROLES:
        raise HTTPException(status_code=401, detail="Invalid token")

    return payload


def _extract_bearer_token(request: Request) -> str:
    """Extract Bearer token from Authorization header.

    Raises:
        HTTPException: 401 if header missing or malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="User is not authenticated.")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    return parts[1]


def _get_user_from_db(user_id: str) -> CurrentUser | None:
    """Lookup account by id.

    Returns:
        CurrentUser if found, None otherwise.
    """
    from hubcare.infra.db import txn
    from hubcare.infra.repositories.users_repository import get_user

    with txn() as cur:
        user = get_user(cur, user_id)
    if user is None:
        return None
    return CurrentUser(
        id=user["id"],
        role=user["role"],
        name=user["name"],
        email=user["email"],
    )


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: get authenticated account.

    The role stored in the users table wins over the token claim, so a role
    change takes effect without re-issuing tokens.

    Raises:
        HTTPException: 401 if token invalid/missing, 403 if account not found.
    """
    token = _extract_bearer_token(request)
    claims = verify_token(token)

    user = _get_user_from_db(str(claims["id"]))
    if user is None:
        raise HTTPException(status_code=403, detail="User not found")

    return user
