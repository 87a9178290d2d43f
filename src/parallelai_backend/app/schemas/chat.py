# src/parallelai_backend/app/schemas/chat.py
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from parallelai_router.models import InvocationResult


class ChatMode(str, Enum):
    single = "single"
    multi = "multi"


# ============================================================
# Requests
# ============================================================

class MultiChatRequest(BaseModel):
    question: str = Field(..., min_length=1)
    # ask the primary model to reconcile the answers in the same request
    consensus: bool = False


class SingleChatRequest(BaseModel):
    question: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)


class ConsensusRequest(BaseModel):
    question: str = Field(..., min_length=1)
    responses: List[InvocationResult] = Field(..., min_length=1)
    # entry the responses came from; without it the newest matching entry is reused
    entry_id: Optional[UUID] = None


# ============================================================
# Responses
# ============================================================

class MultiChatResponse(BaseModel):
    entry_id: UUID
    responses: List[InvocationResult]
    consensus: Optional[InvocationResult] = None


class SingleChatResponse(BaseModel):
    entry_id: UUID
    response: InvocationResult


class ConsensusResponse(BaseModel):
    entry_id: UUID
    consensus: InvocationResult


class HistoryEntry(BaseModel):
    id: UUID
    question: str
    mode: ChatMode
    selected_model: Optional[str] = None
    responses: List[InvocationResult]
    consensus: Optional[InvocationResult] = None
    created_at: datetime


class ModelList(BaseModel):
    models: List[str]
