from .chat import (
    ChatMode,
    ConsensusRequest,
    ConsensusResponse,
    HistoryEntry,
    ModelList,
    MultiChatRequest,
    MultiChatResponse,
    SingleChatRequest,
    SingleChatResponse,
)

__all__ = [
    "ChatMode",
    "ConsensusRequest",
    "ConsensusResponse",
    "HistoryEntry",
    "ModelList",
    "MultiChatRequest",
    "MultiChatResponse",
    "SingleChatRequest",
    "SingleChatResponse",
]
