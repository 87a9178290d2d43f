from __future__ import annotations

import logging
from typing import List, Sequence

from parallelai_router.core.config import (
    CONSENSUS_ANSWER_CHARS,
    CONSENSUS_BACKOFF_BASE_S,
    CONSENSUS_MAX_TOKENS,
    CONSENSUS_TEMPERATURE,
    CONSENSUS_TIMEOUT_S,
)
from parallelai_router.core.invoke import ModelInvoker
from parallelai_router.core.registry import ProviderRegistry
from parallelai_router.models import (
    CONSENSUS_MODEL_ID,
    ConsensusResult,
    InvocationResult,
    InvocationStatus,
)

logger = logging.getLogger(__name__)

CONSENSUS_SYSTEM_PROMPT = "You are an expert consensus engine. Output ONLY JSON."
CONSENSUS_FALLBACK_ANSWER = "Failed to generate consensus due to a technical error."


def build_consensus_prompt(
    question: str,
    results: Sequence[InvocationResult],
    limit: int = CONSENSUS_ANSWER_CHARS,
) -> str:
    """
    Compose the reconciliation prompt. Only successful answers are embedded,
    each cut to ``limit`` characters; failed models are left out entirely.
    """
    blocks = [
        f"Model ({r.model_id}): {r.answer_text[:limit]}"
        for r in results
        if r.status == InvocationStatus.success
    ]

    lines: List[str] = [
        "Analyze these AI responses and the user question.",
        "Return ONLY a JSON object:",
        "{",
        '  "short_ans": "One-line clear answer",',
        '  "explanation": "Brief synthesis of logic"',
        "}",
        "",
        f"Question: {question}",
        "",
        "Responses:",
        "\n\n---\n\n".join(blocks),
    ]
    return "\n".join(lines)


class ConsensusSynthesizer:
    """
    One extra call on the registry's primary model that reconciles the
    per-model answers. Failure is reported as data (status=error with a
    fixed answer), never raised.
    """

    def __init__(self, registry: ProviderRegistry, invoker: ModelInvoker):
        self.registry = registry
        self.invoker = invoker.with_backoff(CONSENSUS_BACKOFF_BASE_S)

    async def synthesize(self, question: str, results: Sequence[InvocationResult]) -> ConsensusResult:
        if not any(r.status == InvocationStatus.success for r in results):
            logger.error("consensus skipped: no successful answers to reconcile")
            return self._failed("no successful answers to reconcile")

        prompt = build_consensus_prompt(question, results)
        outcome = await self.invoker.invoke(
            self.registry.primary(),
            prompt,
            max_tokens=CONSENSUS_MAX_TOKENS,
            timeout_s=CONSENSUS_TIMEOUT_S,
            system_prompt=CONSENSUS_SYSTEM_PROMPT,
            temperature=CONSENSUS_TEMPERATURE,
            result_model_id=CONSENSUS_MODEL_ID,
        )

        if outcome.ok:
            return outcome

        logger.error("consensus generation failed: %s", outcome.error_detail)
        return outcome.model_copy(update={"answer_text": CONSENSUS_FALLBACK_ANSWER})

    @staticmethod
    def _failed(detail: str) -> ConsensusResult:
        return InvocationResult(
            model_id=CONSENSUS_MODEL_ID,
            answer_text=CONSENSUS_FALLBACK_ANSWER,
            status=InvocationStatus.error,
            error_detail=detail,
            attempts=0,
        )
