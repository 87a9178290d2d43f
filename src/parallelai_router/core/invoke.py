from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from parallelai_router.adapters.groq import GroqClientFactory
from parallelai_router.core.config import FANOUT_BACKOFF_BASE_S, MAX_RETRIES
from parallelai_router.errors import InvocationTimeout, RateLimited
from parallelai_router.models import InvocationResult, InvocationStatus, ProviderConfig

logger = logging.getLogger(__name__)

UNAVAILABLE_ANSWER = "Model unavailable"


class ChatClient(Protocol):
    async def invoke(
        self,
        messages: List[Dict[str, str]],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str: ...


ClientFactory = Callable[[ProviderConfig], ChatClient]
Sleeper = Callable[[float], Awaitable[None]]


class ModelInvoker:
    """
    Runs exactly one completion for one provider and always returns an
    InvocationResult.

    Reliability policy:
      - each attempt is raced against ``timeout_s``; a timeout ends the call
        and does not consume the rate-limit budget
      - RateLimited is retried up to ``max_retries`` more times, sleeping
        ``attempt * backoff_base_s`` before each retry
      - anything else ends the call with status=error
    """

    def __init__(
        self,
        client_factory: Optional[ClientFactory] = None,
        *,
        backoff_base_s: float = FANOUT_BACKOFF_BASE_S,
        max_retries: int = MAX_RETRIES,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.client_factory = client_factory or GroqClientFactory()
        self.backoff_base_s = backoff_base_s
        self.max_retries = max_retries
        self._sleep = sleep

    def with_backoff(self, backoff_base_s: float) -> "ModelInvoker":
        """Same client factory and sleeper, different backoff base."""
        return ModelInvoker(
            self.client_factory,
            backoff_base_s=backoff_base_s,
            max_retries=self.max_retries,
            sleep=self._sleep,
        )

    async def invoke(
        self,
        provider: ProviderConfig,
        question: str,
        *,
        max_tokens: int,
        timeout_s: float,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        result_model_id: Optional[str] = None,
    ) -> InvocationResult:
        model_id = result_model_id or provider.model_id
        messages = [
            {"role": "system", "content": system_prompt if system_prompt is not None else provider.preprompt},
            {"role": "user", "content": question},
        ]
        max_tokens = min(max_tokens, provider.token_budget)
        temperature = provider.temperature if temperature is None else temperature

        start = time.perf_counter()
        attempt = 0

        while True:
            attempt += 1
            try:
                client = self.client_factory(provider)
                content = await asyncio.wait_for(
                    client.invoke(messages, max_tokens=max_tokens, temperature=temperature),
                    timeout=timeout_s,
                )
                result = InvocationResult(
                    model_id=model_id,
                    answer_text=content,
                    status=InvocationStatus.success,
                    latency_ms=_elapsed_ms(start),
                    attempts=attempt,
                )
            except RateLimited as ex:
                if attempt <= self.max_retries:
                    delay = attempt * self.backoff_base_s
                    logger.warning(
                        "rate limit hit for %s, retrying (%d/%d) in %.1fs",
                        provider.model_id, attempt, self.max_retries, delay,
                    )
                    await self._sleep(delay)
                    continue
                err: Exception = ex
            except asyncio.TimeoutError:
                err = InvocationTimeout(f"request timed out after {timeout_s:g}s")
            except Exception as ex:
                # every per-provider failure becomes data, never an exception
                err = ex
            else:
                return result

            detail = f"{type(err).__name__}: {err}"
            logger.warning("model %s failed after %d attempt(s): %s", provider.model_id, attempt, detail)
            return InvocationResult(
                model_id=model_id,
                answer_text=UNAVAILABLE_ANSWER,
                status=InvocationStatus.error,
                error_detail=detail,
                latency_ms=_elapsed_ms(start),
                attempts=attempt,
            )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
