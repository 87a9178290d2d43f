# src/parallelai_backend/app/core/logging.py
from __future__ import annotations
import logging
import os
from typing import Any, Optional

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"

# third-party loggers that are chatty at INFO (httpx logs every provider request)
_QUIET = ("httpx", "httpcore")


def _flag(var: str) -> bool:
    return (os.getenv(var, "")).strip().lower() in ("1", "true", "yes", "on")


def _resolve_level(name: Optional[str]) -> int:
    level = logging.getLevelName((name or "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once; later calls only adjust the level.
    Level comes from the argument, else LOG_LEVEL, else INFO.
    """
    root = logging.getLogger()
    resolved = _resolve_level(level or os.getenv("LOG_LEVEL"))
    root.setLevel(resolved)

    for name in _QUIET:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))

    if root.handlers:
        # uvicorn / pytest already installed handlers
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(handler)


def trace_event(log: logging.Logger, event: str, **kv: Any) -> None:
    """
    Single-line key=value trace, emitted only when PARALLELAI_TRACE is on.
      chat.multi user=u-1 entry=... ok=4/5
    """
    if not _flag("PARALLELAI_TRACE"):
        return
    log.info("%s %s", event, " ".join(f"{k}={v}" for k, v in kv.items()))
