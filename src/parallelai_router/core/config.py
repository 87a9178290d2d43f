from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import SecretStr, ValidationError

from parallelai_router.core.registry import ProviderRegistry
from parallelai_router.errors import ConfigurationError, ProviderUnavailable
from parallelai_router.models import GROQ_BASE_URL, ProviderConfig

logger = logging.getLogger(__name__)


# --- Per-call-site tuning ----------------------------------------------------
# Fan-out is tuned for quick comparative answers, the single-model path for a
# fuller answer, consensus for one reconciling call on the primary model.

MAX_RETRIES = 2

FANOUT_TIMEOUT_S = 15.0
FANOUT_MAX_TOKENS = 1000
FANOUT_BACKOFF_BASE_S = 1.0

SINGLE_TIMEOUT_S = 30.0
SINGLE_MAX_TOKENS = 4000
SINGLE_BACKOFF_BASE_S = 1.0

CONSENSUS_TIMEOUT_S = 20.0
CONSENSUS_MAX_TOKENS = 1500
CONSENSUS_BACKOFF_BASE_S = 1.5
CONSENSUS_TEMPERATURE = 0.1
CONSENSUS_ANSWER_CHARS = 500


# --- providers.yml location --------------------------------------------------

# This file lives at: src/parallelai_router/core/config.py
# providers.yml is at project root (three levels up from src/parallelai_router/core)
ROOT_DIR = Path(__file__).resolve().parents[3]
DEFAULT_PROVIDERS_PATH = ROOT_DIR / "providers.yml"


def providers_path() -> Path:
    override = (os.getenv("PARALLELAI_PROVIDERS_FILE") or "").strip()
    return Path(override) if override else DEFAULT_PROVIDERS_PATH


def read_provider_table(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        raise ConfigurationError(f"Provider table not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    rows = cfg.get("providers") if isinstance(cfg, dict) else None
    if not rows:
        raise ConfigurationError(f"No providers listed in {path}")
    if not isinstance(rows, list):
        raise ConfigurationError(f"'providers' must be a list in {path}")
    return rows


def load_registry(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ProviderRegistry:
    """
    Build the ProviderRegistry from providers.yml + environment credentials.

    Every provider must have its credential; any gap raises
    ProviderUnavailable listing all offenders, and the process should not
    start serving.
    """
    if env is None:
        env = os.environ
    path = path or providers_path()

    rows = read_provider_table(path)
    providers: List[ProviderConfig] = []
    missing: List[str] = []

    for row in rows:
        model_id = str(row.get("model_id") or "").strip()
        key_env = str(row.get("api_key_env") or "").strip()
        if not model_id or not key_env:
            raise ConfigurationError(f"Provider entry needs model_id and api_key_env: {row!r}")

        api_key = (env.get(key_env) or "").strip()
        logger.info("provider %s: credential %s (%s)", model_id, "loaded" if api_key else "missing", key_env)
        if not api_key:
            missing.append(model_id)
            continue

        try:
            providers.append(
                ProviderConfig(
                    model_id=model_id,
                    credential=SecretStr(api_key),
                    preprompt=str(row.get("preprompt") or ""),
                    token_budget=int(row.get("token_budget", 8000)),
                    temperature=float(row.get("temperature", 0.2)),
                    base_url=str(row.get("base_url") or GROQ_BASE_URL).rstrip("/"),
                )
            )
        except (TypeError, ValueError, ValidationError) as ex:
            raise ConfigurationError(f"Invalid provider entry for {model_id}: {ex}") from ex

    if missing:
        raise ProviderUnavailable(missing)

    return ProviderRegistry(providers)
