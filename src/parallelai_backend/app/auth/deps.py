# src/parallelai_backend/app/auth/deps.py
from __future__ import annotations
from typing import Any, Dict, Optional

from fastapi import Depends

from parallelai_backend.app.auth.internal import require_scope


def caller_identity(required: Optional[str] = None):
    """
    Dependency factory returning the caller identity (the token's 'sub').
    The orchestration layer only ever sees this opaque string.
    """
    async def _dep(claims: Dict[str, Any] = Depends(require_scope(required))) -> str:
        return str(claims["sub"])
    return _dep
