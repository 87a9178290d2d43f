import json
import os

import httpx
import pytest

from parallelai_router.adapters.groq import EMPTY_ANSWER, GroqClientFactory, GroqProvider
from parallelai_router.errors import InvocationFailed, RateLimited

MESSAGES = [
    {"role": "system", "content": "Return ONLY JSON."},
    {"role": "user", "content": "hi"},
]


def _provider(handler) -> GroqProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GroqProvider(api_key="k", model="llama-3.1-8b-instant", base_url="https://llm.test/v1", client=client)


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.mark.asyncio
async def test_posts_openai_style_payload_and_returns_content():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert str(request.url) == "https://llm.test/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer k"

        body = json.loads(request.content.decode("utf-8"))
        assert body["model"] == "llama-3.1-8b-instant"
        assert body["messages"] == MESSAGES
        assert body["max_tokens"] == 1000
        assert body["temperature"] == 0.2
        assert body["response_format"] == {"type": "json_object"}
        return httpx.Response(200, json=_completion('{"short_ans": "hello", "explanation": ""}'))

    out = await _provider(handler).invoke(MESSAGES, max_tokens=1000, temperature=0.2)
    assert out == '{"short_ans": "hello", "explanation": ""}'


@pytest.mark.asyncio
async def test_429_raises_rate_limited_with_retry_after():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"retry-after": "7"}, json={"error": {"message": "slow down"}})

    with pytest.raises(RateLimited) as exc:
        await _provider(handler).invoke(MESSAGES, max_tokens=10, temperature=0.2)
    assert exc.value.retry_after_s == 7.0


@pytest.mark.asyncio
async def test_rate_limit_code_in_error_body_is_rate_limited():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(413, json={"error": {"code": "rate_limit_exceeded", "message": "TPM"}})

    with pytest.raises(RateLimited):
        await _provider(handler).invoke(MESSAGES, max_tokens=10, temperature=0.2)


@pytest.mark.asyncio
async def test_rate_limit_words_in_a_successful_answer_are_not_an_error():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_completion('{"short_ans": "rate_limit_exceeded means 429"}'))

    out = await _provider(handler).invoke(MESSAGES, max_tokens=10, temperature=0.2)
    assert "rate_limit_exceeded" in out


@pytest.mark.asyncio
async def test_server_error_is_invocation_failed():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="upstream exploded")

    with pytest.raises(InvocationFailed) as exc:
        await _provider(handler).invoke(MESSAGES, max_tokens=10, temperature=0.2)
    assert "HTTP 500" in str(exc.value)


@pytest.mark.asyncio
async def test_malformed_body_is_invocation_failed():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>not json</html>")

    with pytest.raises(InvocationFailed):
        await _provider(handler).invoke(MESSAGES, max_tokens=10, temperature=0.2)


@pytest.mark.asyncio
async def test_missing_choices_is_invocation_failed():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    with pytest.raises(InvocationFailed):
        await _provider(handler).invoke(MESSAGES, max_tokens=10, temperature=0.2)


@pytest.mark.asyncio
async def test_transport_error_is_invocation_failed():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(InvocationFailed) as exc:
        await _provider(handler).invoke(MESSAGES, max_tokens=10, temperature=0.2)
    assert "ConnectError" in str(exc.value)


@pytest.mark.asyncio
async def test_empty_content_gets_placeholder_answer():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_completion(None))

    out = await _provider(handler).invoke(MESSAGES, max_tokens=10, temperature=0.2)
    assert out == EMPTY_ANSWER


@pytest.mark.asyncio
async def test_multipart_content_list_is_invocation_failed():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_completion([{"type": "text", "text": "hi"}]))

    with pytest.raises(InvocationFailed) as exc:
        await _provider(handler).invoke(MESSAGES, max_tokens=10, temperature=0.2)
    assert "unexpected content type list" in str(exc.value)


@pytest.mark.asyncio
async def test_non_object_message_is_invocation_failed():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": "hi"}]})

    with pytest.raises(InvocationFailed):
        await _provider(handler).invoke(MESSAGES, max_tokens=10, temperature=0.2)


@pytest.mark.asyncio
async def test_client_factory_shares_one_connection_pool(provider_factory):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content)["model"])
        return httpx.Response(200, json=_completion("{}"))

    factory = GroqClientFactory(transport=httpx.MockTransport(handler))
    first = factory(provider_factory("model-a"))
    second = factory(provider_factory("model-b"))

    assert first._client is second._client
    assert first.api_key == "key-model-a"
    assert first.base_url == "https://llm.test/v1"

    await first.invoke(MESSAGES, max_tokens=10, temperature=0.2)
    await second.invoke(MESSAGES, max_tokens=10, temperature=0.2)
    assert seen == ["model-a", "model-b"]

    await factory.aclose()
    assert factory(provider_factory("model-a"))._client is not first._client
    await factory.aclose()


@pytest.mark.groq_live
@pytest.mark.asyncio
async def test_groq_live_smoke():
    """
    Live smoke test against Groq.

    Requires GROQ_API_KEY1 in env (or .env).
    """
    api_key = os.getenv("GROQ_API_KEY1")
    if not api_key:
        pytest.skip("GROQ_API_KEY1 not set; skipping live Groq test")

    provider = GroqProvider(api_key=api_key, model="llama-3.1-8b-instant")
    out = await provider.invoke(
        [
            {"role": "system", "content": 'Return ONLY JSON: {"short_ans": "...", "explanation": "..."}.'},
            {"role": "user", "content": "Say OK."},
        ],
        max_tokens=100,
        temperature=0.2,
    )
    assert "short_ans" in out
