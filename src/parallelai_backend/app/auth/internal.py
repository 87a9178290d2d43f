# src/parallelai_backend/app/auth/internal.py
"""
Bearer tokens for the chat API.

Tokens are HS256 JWTs minted by whatever fronts this service (or by
make_dev_token locally). The only thing the chat layer takes from a
token is its 'sub', which becomes the caller identity that history is
keyed on.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional, Set

import jwt
from fastapi import Header, HTTPException, status

from parallelai_backend.app.core.logging import trace_event

_log = logging.getLogger("parallelai.auth")

JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret_do_not_use_in_prod_parallelai_local")
JWT_ISS    = os.getenv("JWT_ISS", "parallelai")
JWT_AUD    = os.getenv("JWT_AUD", "parallelai-api")
ALGO       = "HS256"

ACCESS_TTL = int(os.getenv("JWT_ACCESS_TTL_SEC", "604800"))  # 7d

SCOPE_CHAT = "chat:run"
SCOPE_HISTORY = "history:read"
DEFAULT_SCOPE = f"{SCOPE_CHAT} {SCOPE_HISTORY}"

REQUIRED_CLAIMS = ["exp", "iss", "aud", "sub"]


def issue_access_token(
    sub: str,
    scope: str = DEFAULT_SCOPE,
    extra: Optional[Dict[str, Any]] = None,
    ttl: Optional[int] = None,
) -> str:
    issued = int(time.time())
    claims: Dict[str, Any] = dict(extra or {})
    claims.update(
        iss=JWT_ISS,
        aud=JWT_AUD,
        sub=sub,
        scope=scope,
        iat=issued,
        nbf=issued,
        exp=issued + (ttl or ACCESS_TTL),
    )
    trace_event(_log, "auth.issue", sub=sub, scope=scope, exp=claims["exp"])
    return jwt.encode(claims, JWT_SECRET, algorithm=ALGO)


def make_dev_token(
    sub: str = "dev-user",
    ttl_sec: int = 900,
    scope: str = DEFAULT_SCOPE,
) -> str:
    """Short-lived token for tests and local runs."""
    return issue_access_token(sub=sub, scope=scope, ttl=ttl_sec)


def token_scopes(claims: Dict[str, Any]) -> Set[str]:
    return set(str(claims.get("scope") or "").split())


def _unauthorized(reason: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"invalid token: {reason}")


def verify_bearer(token: str, required_scope: Optional[str] = None) -> Dict[str, Any]:
    """
    Check signature, issuer, audience, expiry and subject, then the scope.
    401 for a bad token, 403 for a good token without the scope.
    """
    try:
        claims = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[ALGO],
            audience=JWT_AUD,
            issuer=JWT_ISS,
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("exp (expired)")
    except jwt.InvalidIssuerError:
        raise _unauthorized(f"issuer mismatch (want={JWT_ISS})")
    except jwt.InvalidAudienceError:
        raise _unauthorized(f"audience mismatch (want={JWT_AUD})")
    except jwt.PyJWTError as ex:
        raise _unauthorized(str(ex))

    if required_scope and required_scope not in token_scopes(claims):
        trace_event(_log, "auth.scope_denied", sub=claims["sub"], want=required_scope)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_scope")

    trace_event(_log, "auth.verify_ok", sub=claims["sub"], scope=claims.get("scope"))
    return claims


def _bearer_token(authorization: Optional[str]) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    return token


def require_scope(required: Optional[str]):
    """FastAPI dependency factory: verified claims, or 401/403."""
    async def dep(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
        return verify_bearer(_bearer_token(authorization), required_scope=required)
    return dep
