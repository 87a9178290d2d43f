from .config import load_registry
from .consensus import ConsensusSynthesizer, build_consensus_prompt
from .fanout import FanOutOrchestrator
from .invoke import ModelInvoker
from .registry import ProviderRegistry

__all__ = [
    "ConsensusSynthesizer",
    "FanOutOrchestrator",
    "ModelInvoker",
    "ProviderRegistry",
    "build_consensus_prompt",
    "load_registry",
]
