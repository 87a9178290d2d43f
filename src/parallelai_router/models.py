# src/parallelai_router/models.py
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr


GROQ_BASE_URL = "https://api.groq.com/openai/v1"

CONSENSUS_MODEL_ID = "consensus-engine"


class InvocationStatus(str, Enum):
    success = "success"
    error = "error"


# ============================================================
# ProviderConfig  (one row of providers.yml, immutable)
# ============================================================

class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    model_id: str
    credential: SecretStr
    preprompt: str
    token_budget: int = Field(8000, gt=0)
    temperature: float = Field(0.2, ge=0.0, le=2.0)
    base_url: str = GROQ_BASE_URL


# ============================================================
# InvocationResult  (one call, one model)
# ============================================================

class InvocationResult(BaseModel):
    model_id: str
    # raw provider text, usually a JSON-encoded {"short_ans", "explanation"}
    answer_text: str
    status: InvocationStatus
    error_detail: Optional[str] = None
    latency_ms: int = 0
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.status == InvocationStatus.success


# Same shape, fixed model_id (CONSENSUS_MODEL_ID).
ConsensusResult = InvocationResult

# Registry-ordered, one element per configured provider.
FanOutResult = List[InvocationResult]
