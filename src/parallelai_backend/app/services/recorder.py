# src/parallelai_backend/app/services/recorder.py

import logging
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parallelai_backend.app.db.models import ConversationEntry, EntryResult
from parallelai_backend.app.schemas.chat import ChatMode, HistoryEntry
from parallelai_router.models import InvocationResult, InvocationStatus

logger = logging.getLogger(__name__)

ROLE_ANSWER = "answer"
ROLE_CONSENSUS = "consensus"


class EntryNotFound(LookupError):
    def __init__(self, entry_id: UUID):
        super().__init__(f"Conversation entry not found: {entry_id}")
        self.entry_id = entry_id


def _to_row(result: InvocationResult, role: str, position: int) -> EntryResult:
    return EntryResult(
        role=role,
        position=position,
        model_id=result.model_id,
        answer_text=result.answer_text,
        status=result.status.value,
        error_detail=result.error_detail,
        latency_ms=result.latency_ms,
    )


def _from_row(row: EntryResult) -> InvocationResult:
    return InvocationResult(
        model_id=row.model_id,
        answer_text=row.answer_text,
        status=InvocationStatus(row.status),
        error_detail=row.error_detail,
        latency_ms=row.latency_ms or 0,
    )


def entry_answers(entry: ConversationEntry) -> List[InvocationResult]:
    rows = sorted((r for r in entry.results if r.role == ROLE_ANSWER), key=lambda r: r.position)
    return [_from_row(r) for r in rows]


def entry_consensus(entry: ConversationEntry) -> Optional[InvocationResult]:
    for r in entry.results:
        if r.role == ROLE_CONSENSUS:
            return _from_row(r)
    return None


def to_history(entry: ConversationEntry) -> HistoryEntry:
    return HistoryEntry(
        id=entry.id,
        question=entry.question,
        mode=ChatMode(entry.mode),
        selected_model=entry.selected_model,
        responses=entry_answers(entry),
        consensus=entry_consensus(entry),
        created_at=entry.created_at,
    )


async def record_exchange(
    db: AsyncSession,
    *,
    user_id: str,
    question: str,
    mode: ChatMode,
    results: Sequence[InvocationResult],
    selected_model: Optional[str] = None,
) -> ConversationEntry:
    """
    Append one completed exchange (fan-out or single-model) for this caller.
    Answer order is preserved via EntryResult.position.
    """
    entry = ConversationEntry(
        user_id=user_id,
        question=question,
        mode=mode.value,
        selected_model=selected_model if mode == ChatMode.single else None,
        results=[_to_row(r, ROLE_ANSWER, i) for i, r in enumerate(results)],
    )
    db.add(entry)
    await db.commit()
    return entry


async def _get_owned_entry(db: AsyncSession, user_id: str, entry_id: UUID) -> ConversationEntry:
    stmt = select(ConversationEntry).where(
        ConversationEntry.id == entry_id,
        ConversationEntry.user_id == user_id,
    )
    entry = (await db.execute(stmt)).scalar_one_or_none()
    if entry is None or entry.mode != ChatMode.multi.value:
        raise EntryNotFound(entry_id)
    return entry


async def _latest_entry(db: AsyncSession, user_id: str) -> Optional[ConversationEntry]:
    stmt = (
        select(ConversationEntry)
        .where(ConversationEntry.user_id == user_id)
        .order_by(ConversationEntry.created_at.desc())
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def attach_consensus(
    db: AsyncSession,
    *,
    user_id: str,
    question: str,
    results: Sequence[InvocationResult],
    consensus: InvocationResult,
    entry_id: Optional[UUID] = None,
) -> ConversationEntry:
    """
    Store a consensus answer.

    With entry_id: attach to that entry (must be this caller's multi entry).
    Without: update the caller's newest entry in place if it is the same
    question in multi mode; otherwise append a new multi entry holding the
    supplied answers plus the consensus. An existing consensus is replaced.
    """
    if entry_id is not None:
        entry = await _get_owned_entry(db, user_id, entry_id)
    else:
        entry = await _latest_entry(db, user_id)
        if entry is None or entry.mode != ChatMode.multi.value or entry.question != question:
            entry = None

    if entry is None:
        logger.info("attach_consensus: no matching entry for user=%s, appending", user_id)
        rows = [_to_row(r, ROLE_ANSWER, i) for i, r in enumerate(results)]
        rows.append(_to_row(consensus, ROLE_CONSENSUS, len(rows)))
        entry = ConversationEntry(
            user_id=user_id,
            question=question,
            mode=ChatMode.multi.value,
            results=rows,
        )
        db.add(entry)
    else:
        kept = [r for r in entry.results if r.role != ROLE_CONSENSUS]
        position = max((r.position for r in kept), default=-1) + 1
        entry.results = kept + [_to_row(consensus, ROLE_CONSENSUS, position)]

    await db.commit()
    return entry


async def list_history(db: AsyncSession, user_id: str) -> List[ConversationEntry]:
    """Every entry for this caller, newest first."""
    stmt = (
        select(ConversationEntry)
        .where(ConversationEntry.user_id == user_id)
        .order_by(ConversationEntry.created_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())
