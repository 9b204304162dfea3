from __future__ import annotations

import json

import httpx
import pytest

from pr_review.llm.client import ChatMessage
from pr_review.llm.client import LLMOutputError
from pr_review.llm.client import OpenAICompatLLMClient
from pr_review.review.models import PolicyOutput


def _completion(content: str | None) -> dict[str, object]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 0,
        "model": "test-model",
        "choices": [
            {
                "index": 0,
                "finish_reason": "stop",
                "message": {"role": "assistant", "content": content},
            }
        ],
    }


def _client(content: str | None, seen: list[httpx.Request]) -> OpenAICompatLLMClient:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_completion(content))

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAICompatLLMClient(api_key="k", base_url="https://llm.example.com", http_client=http_client, model="m")


MESSAGES = [ChatMessage(role="user", content="review")]


@pytest.mark.anyio
async def test_complete_json_validates_schema_and_sends_json_mode() -> None:
    seen: list[httpx.Request] = []
    client = _client(json.dumps({"issues": [], "summary": "ok"}), seen)

    result = await client.complete_json(messages=MESSAGES, schema=PolicyOutput, temperature=0.2)

    assert isinstance(result, PolicyOutput)
    assert result.summary == "ok"
    assert str(seen[0].url) == "https://llm.example.com/v1/chat/completions"
    body = json.loads(seen[0].content)
    assert body["response_format"] == {"type": "json_object"}
    assert body["temperature"] == 0.2
    assert body["model"] == "m"


@pytest.mark.anyio
async def test_complete_json_rejects_invalid_json() -> None:
    client = _client("not json at all", [])
    with pytest.raises(LLMOutputError):
        await client.complete_json(messages=MESSAGES, schema=PolicyOutput)


@pytest.mark.anyio
async def test_complete_json_rejects_schema_mismatch() -> None:
    client = _client(json.dumps({"issues": [{"lineNumber": "x"}]}), [])
    with pytest.raises(LLMOutputError):
        await client.complete_json(messages=MESSAGES, schema=PolicyOutput)


@pytest.mark.anyio
async def test_complete_json_rejects_empty_content() -> None:
    client = _client(None, [])
    with pytest.raises(LLMOutputError):
        await client.complete_json(messages=MESSAGES, schema=PolicyOutput)


def test_llm_output_error_is_value_error() -> None:
    assert issubclass(LLMOutputError, ValueError)
