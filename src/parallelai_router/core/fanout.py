from __future__ import annotations

import asyncio
import logging

from parallelai_router.core.config import (
    FANOUT_MAX_TOKENS,
    FANOUT_TIMEOUT_S,
    SINGLE_BACKOFF_BASE_S,
    SINGLE_MAX_TOKENS,
    SINGLE_TIMEOUT_S,
)
from parallelai_router.core.invoke import ModelInvoker
from parallelai_router.core.registry import ProviderRegistry
from parallelai_router.errors import AllProvidersFailed
from parallelai_router.models import FanOutResult, InvocationResult

logger = logging.getLogger(__name__)


class FanOutOrchestrator:
    def __init__(self, registry: ProviderRegistry, invoker: ModelInvoker):
        self.registry = registry
        self.invoker = invoker
        self._single_invoker = invoker.with_backoff(SINGLE_BACKOFF_BASE_S)

    async def fan_out(self, question: str) -> FanOutResult:
        """
        Ask every configured provider concurrently and wait for all of them.

        Results come back in registry order, one per provider. Raises
        AllProvidersFailed if none succeeded. No caching: every call is a
        fresh dispatch.
        """
        providers = self.registry.list_providers()
        results = await asyncio.gather(
            *(
                self.invoker.invoke(
                    p,
                    question,
                    max_tokens=FANOUT_MAX_TOKENS,
                    timeout_s=FANOUT_TIMEOUT_S,
                )
                for p in providers
            )
        )

        ok = sum(1 for r in results if r.ok)
        logger.info("fan_out: %d/%d providers answered", ok, len(results))
        if ok == 0:
            raise AllProvidersFailed()
        return list(results)

    async def ask_single(self, model_id: str, question: str) -> InvocationResult:
        # ProviderNotFound propagates: the caller picked a model we don't have
        provider = self.registry.find_provider(model_id)
        result = await self._single_invoker.invoke(
            provider,
            question,
            max_tokens=SINGLE_MAX_TOKENS,
            timeout_s=SINGLE_TIMEOUT_S,
        )
        if not result.ok:
            raise AllProvidersFailed(f"Model {model_id} failed to respond: {result.error_detail}")
        return result
