# src/parallelai_backend/app/services/chat_service.py

import logging
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from parallelai_backend.app.core.logging import trace_event
from parallelai_backend.app.db.models import ConversationEntry
from parallelai_backend.app.schemas.chat import ChatMode
from parallelai_backend.app.services.recorder import attach_consensus, record_exchange
from parallelai_router.core.consensus import ConsensusSynthesizer
from parallelai_router.core.fanout import FanOutOrchestrator
from parallelai_router.models import InvocationResult

logger = logging.getLogger(__name__)


# ============================================================
#  Multi mode: fan-out (+ optional consensus) -> record
# ============================================================

async def run_multi(
    db: AsyncSession,
    *,
    user_id: str,
    question: str,
    orchestrator: FanOutOrchestrator,
    synthesizer: ConsensusSynthesizer,
    with_consensus: bool = False,
) -> Tuple[ConversationEntry, List[InvocationResult], Optional[InvocationResult]]:
    # AllProvidersFailed propagates; nothing is recorded for a dead fan-out
    results = await orchestrator.fan_out(question)

    entry = await record_exchange(
        db,
        user_id=user_id,
        question=question,
        mode=ChatMode.multi,
        results=results,
    )

    consensus: Optional[InvocationResult] = None
    if with_consensus:
        # strictly after the fan-out has settled
        consensus = await synthesizer.synthesize(question, results)
        entry = await attach_consensus(
            db,
            user_id=user_id,
            question=question,
            results=results,
            consensus=consensus,
            entry_id=entry.id,
        )

    trace_event(
        logger,
        "chat.multi",
        user=user_id,
        entry=entry.id,
        ok=f"{sum(1 for r in results if r.ok)}/{len(results)}",
        consensus=consensus.status.value if consensus else "none",
    )
    return entry, results, consensus


# ============================================================
#  Single mode: one model, wider budget
# ============================================================

async def run_single(
    db: AsyncSession,
    *,
    user_id: str,
    question: str,
    model_id: str,
    orchestrator: FanOutOrchestrator,
) -> Tuple[ConversationEntry, InvocationResult]:
    result = await orchestrator.ask_single(model_id, question)

    entry = await record_exchange(
        db,
        user_id=user_id,
        question=question,
        mode=ChatMode.single,
        results=[result],
        selected_model=model_id,
    )
    trace_event(logger, "chat.single", user=user_id, entry=entry.id, model=model_id)
    return entry, result


# ============================================================
#  Follow-up consensus over answers the caller already has
# ============================================================

async def run_consensus(
    db: AsyncSession,
    *,
    user_id: str,
    question: str,
    responses: Sequence[InvocationResult],
    synthesizer: ConsensusSynthesizer,
    entry_id: Optional[UUID] = None,
) -> Tuple[ConversationEntry, InvocationResult]:
    consensus = await synthesizer.synthesize(question, responses)

    # EntryNotFound propagates for a foreign or unknown entry_id
    entry = await attach_consensus(
        db,
        user_id=user_id,
        question=question,
        results=responses,
        consensus=consensus,
        entry_id=entry_id,
    )
    trace_event(logger, "chat.consensus", user=user_id, entry=entry.id, status=consensus.status.value)
    return entry, consensus
