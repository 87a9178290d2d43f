# src/parallelai_router/adapters/groq.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from parallelai_router.errors import InvocationFailed, RateLimited
from parallelai_router.models import GROQ_BASE_URL, ProviderConfig

EMPTY_ANSWER = '{"short_ans": "No response", "explanation": ""}'


def _retry_after(resp: httpx.Response) -> Optional[float]:
    raw = resp.headers.get("retry-after")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class GroqProvider:
    """
    Groq chat adapter (OpenAI-compatible /chat/completions).

    Cheap to build per call; pass a shared ``client`` to reuse connections
    (see GroqClientFactory). The deadline is enforced by the invoker, so the
    client timeout here is only a backstop.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = GROQ_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = client

    async def invoke(
        self,
        messages: List[Dict[str, str]],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
        }

        try:
            if self._client is not None:
                resp = await self._client.post(url, headers=headers, json=payload)
            else:
                async with httpx.AsyncClient(timeout=60.0) as client:
                    resp = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as ex:
            raise InvocationFailed(f"{type(ex).__name__}: {ex}") from ex

        # some upstreams report quota exhaustion with a 4xx/5xx body code instead of 429
        if resp.status_code == 429 or (resp.status_code >= 400 and "rate_limit_exceeded" in resp.text):
            raise RateLimited(retry_after_s=_retry_after(resp), message=f"rate limited ({resp.status_code})")

        if resp.status_code >= 300:
            raise InvocationFailed(f"HTTP {resp.status_code}: {resp.text[:400]}")

        try:
            data: Dict[str, Any] = resp.json()
        except ValueError as ex:
            raise InvocationFailed(f"malformed response body: {resp.text[:400]}") from ex

        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            raise InvocationFailed(f"response without choices: {str(data)[:400]}")

        msg = choices[0].get("message") or {}
        if not isinstance(msg, dict):
            raise InvocationFailed(f"response without message: {str(data)[:400]}")
        content = msg.get("content")
        if content is None:
            return EMPTY_ANSWER
        if not isinstance(content, str):
            # multi-part content lists are not something the JSON preprompts ask for
            raise InvocationFailed(f"unexpected content type {type(content).__name__}: {str(content)[:200]}")
        return content or EMPTY_ANSWER


class GroqClientFactory:
    """
    Builds a GroqProvider per call on top of one shared httpx.AsyncClient,
    so fan-out members and their retries reuse pooled connections.

    The pool is opened lazily on first use; close it with ``aclose()`` at
    shutdown.
    """

    def __init__(self, **client_kwargs: Any):
        client_kwargs.setdefault("timeout", 60.0)
        self._client_kwargs = client_kwargs
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(**self._client_kwargs)
        return self._client

    def __call__(self, provider: ProviderConfig) -> GroqProvider:
        return GroqProvider(
            api_key=provider.credential.get_secret_value(),
            model=provider.model_id,
            base_url=provider.base_url,
            client=self.client,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
