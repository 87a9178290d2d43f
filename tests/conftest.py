# tests/conftest.py
from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Union

import pytest
from pydantic import SecretStr

# ---------- Isolated database ----------
# Must be set before parallelai_backend.app.db.session is imported (engine is module-level).
_TMP_DIR = Path(tempfile.mkdtemp(prefix="parallelai-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from parallelai_router.core.invoke import ModelInvoker  # noqa: E402
from parallelai_router.core.registry import ProviderRegistry  # noqa: E402
from parallelai_router.models import ProviderConfig  # noqa: E402

MODEL_IDS = ["model-a", "model-b", "model-c", "model-d", "model-e"]

Step = Union[str, BaseException]


def make_provider(model_id: str, **overrides) -> ProviderConfig:
    data = {
        "model_id": model_id,
        "credential": SecretStr(f"key-{model_id}"),
        "preprompt": f"Return ONLY JSON for {model_id}.",
        "token_budget": 8000,
        "temperature": 0.2,
        "base_url": "https://llm.test/v1",
    }
    data.update(overrides)
    return ProviderConfig(**data)


def default_answer(model_id: str) -> str:
    return '{"short_ans": "answer from %s", "explanation": "because"}' % model_id


class Call(NamedTuple):
    model_id: str
    messages: List[Dict[str, str]]
    max_tokens: int
    temperature: float


class FakeBackend:
    """
    Stand-in for the provider HTTP layer.

    script(model_id, *steps): each call consumes one step (the last step
    repeats). A step is the answer text or an exception to raise.
    delay(model_id, seconds): sleep before answering, on every call.
    """

    def __init__(self) -> None:
        self.scripts: Dict[str, List[Step]] = {}
        self.delays: Dict[str, float] = {}
        self.calls: List[Call] = []

    def script(self, model_id: str, *steps: Step) -> None:
        self.scripts[model_id] = list(steps)

    def delay(self, model_id: str, seconds: float) -> None:
        self.delays[model_id] = seconds

    def calls_for(self, model_id: str) -> List[Call]:
        return [c for c in self.calls if c.model_id == model_id]

    def factory(self, provider: ProviderConfig) -> "_FakeClient":
        return _FakeClient(self, provider.model_id)


class _FakeClient:
    def __init__(self, backend: FakeBackend, model_id: str):
        self.backend = backend
        self.model_id = model_id

    async def invoke(self, messages, *, max_tokens: int, temperature: float) -> str:
        self.backend.calls.append(Call(self.model_id, messages, max_tokens, temperature))
        seconds = self.backend.delays.get(self.model_id, 0.0)
        if seconds:
            await asyncio.sleep(seconds)

        steps = self.backend.scripts.get(self.model_id)
        if not steps:
            return default_answer(self.model_id)
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, BaseException):
            raise step
        return step


class RecordingSleep:
    """Replaces asyncio.sleep in the invoker; records backoff delays, never waits."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ---------- Fixtures ----------
@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry(make_provider(m) for m in MODEL_IDS)


@pytest.fixture
def invoker(backend: FakeBackend, sleeps: RecordingSleep) -> ModelInvoker:
    return ModelInvoker(backend.factory, sleep=sleeps)


@pytest.fixture
def fresh_db():
    """Drop and recreate every table around a test."""
    from parallelai_backend.app.db.init_db import drop_models, init_models

    asyncio.run(drop_models())
    asyncio.run(init_models())
    yield
    asyncio.run(drop_models())


@pytest.fixture
def provider_factory():
    return make_provider


@pytest.fixture
def answer_for():
    return default_answer
