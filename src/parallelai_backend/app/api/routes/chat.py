# src/parallelai_backend/app/api/routes/chat.py
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from parallelai_backend.app.auth.deps import caller_identity
from parallelai_backend.app.auth.internal import SCOPE_CHAT, SCOPE_HISTORY
from parallelai_backend.app.db.session import get_db
from parallelai_backend.app.schemas.chat import (
    ConsensusRequest,
    ConsensusResponse,
    HistoryEntry,
    ModelList,
    MultiChatRequest,
    MultiChatResponse,
    SingleChatRequest,
    SingleChatResponse,
)
from parallelai_backend.app.services.chat_service import run_consensus, run_multi, run_single
from parallelai_backend.app.services.recorder import EntryNotFound, list_history, to_history
from parallelai_router.core.consensus import ConsensusSynthesizer
from parallelai_router.core.fanout import FanOutOrchestrator
from parallelai_router.errors import AllProvidersFailed, ProviderNotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


# Built once in create_app() and parked on app.state
def get_orchestrator(request: Request) -> FanOutOrchestrator:
    return request.app.state.orchestrator


def get_synthesizer(request: Request) -> ConsensusSynthesizer:
    return request.app.state.synthesizer


@router.get("/models", response_model=ModelList)
async def list_models(
    orchestrator: FanOutOrchestrator = Depends(get_orchestrator),
    _user_id: str = Depends(caller_identity(SCOPE_CHAT)),
) -> ModelList:
    return ModelList(models=orchestrator.registry.model_ids())


@router.post("/multi", response_model=MultiChatResponse)
async def multi_mode_chat(
    req: MultiChatRequest,
    user_id: str = Depends(caller_identity(SCOPE_CHAT)),
    db: AsyncSession = Depends(get_db),
    orchestrator: FanOutOrchestrator = Depends(get_orchestrator),
    synthesizer: ConsensusSynthesizer = Depends(get_synthesizer),
) -> MultiChatResponse:
    logger.info("multi_mode_chat: user=%s consensus=%s", user_id, req.consensus)
    try:
        entry, results, consensus = await run_multi(
            db,
            user_id=user_id,
            question=req.question,
            orchestrator=orchestrator,
            synthesizer=synthesizer,
            with_consensus=req.consensus,
        )
    except AllProvidersFailed as ex:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(ex))

    return MultiChatResponse(entry_id=entry.id, responses=results, consensus=consensus)


@router.post("/single", response_model=SingleChatResponse)
async def single_mode_chat(
    req: SingleChatRequest,
    user_id: str = Depends(caller_identity(SCOPE_CHAT)),
    db: AsyncSession = Depends(get_db),
    orchestrator: FanOutOrchestrator = Depends(get_orchestrator),
) -> SingleChatResponse:
    logger.info("single_mode_chat: user=%s model=%s", user_id, req.model)
    try:
        entry, result = await run_single(
            db,
            user_id=user_id,
            question=req.question,
            model_id=req.model,
            orchestrator=orchestrator,
        )
    except ProviderNotFound:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid model selected")
    except AllProvidersFailed as ex:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(ex))

    return SingleChatResponse(entry_id=entry.id, response=result)


@router.post("/consensus", response_model=ConsensusResponse)
async def consensus_chat(
    req: ConsensusRequest,
    user_id: str = Depends(caller_identity(SCOPE_CHAT)),
    db: AsyncSession = Depends(get_db),
    synthesizer: ConsensusSynthesizer = Depends(get_synthesizer),
) -> ConsensusResponse:
    try:
        entry, consensus = await run_consensus(
            db,
            user_id=user_id,
            question=req.question,
            responses=req.responses,
            synthesizer=synthesizer,
            entry_id=req.entry_id,
        )
    except EntryNotFound as ex:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(ex))

    return ConsensusResponse(entry_id=entry.id, consensus=consensus)


@router.get("/history", response_model=List[HistoryEntry])
async def get_history(
    user_id: str = Depends(caller_identity(SCOPE_HISTORY)),
    db: AsyncSession = Depends(get_db),
) -> List[HistoryEntry]:
    entries = await list_history(db, user_id)
    return [to_history(e) for e in entries]
