"""
LLM Client（基于 OpenAI SDK，对接任意 OpenAI-compatible 网关）。

目标：
- **尽量薄**：只做协议适配与错误处理
- **严格 JSON**：policy 的输出必须可机读，并经过 schema 校验
- **错误分类**：输出不合法 -> `LLMOutputError`（由 policy 隔离处理）；网络/API 错误直接抛出
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)


class LLMOutputError(ValueError):
    """模型返回内容为空、不是 JSON、或不符合 schema。"""

    pass


class ChatMessage(BaseModel):
    """OpenAI chat message 的最小结构。"""

    role: str
    content: str


def _normalize_base_url(base_url: str) -> str:
    normalized = base_url.rstrip("/")
    if normalized.endswith("/v1"):
        return normalized
    return f"{normalized}/v1"


class OpenAICompatLLMClient:
    """通过 OpenAI-compatible API 调用 LLM（OpenAI / LiteLLM Proxy / 本地 mock 均可）。"""

    def __init__(self, api_key: str, base_url: str, http_client: httpx.AsyncClient, model: str) -> None:
        """
        - api_key: LLM API key
        - base_url: OpenAI-compatible base URL（会自动补全 `/v1`）
        - http_client: 复用 httpx.AsyncClient 连接池
        - model: 模型名（例如 `gpt-4o-mini`）
        """
        self._base_url = _normalize_base_url(base_url=base_url)
        self._model = model
        # 不做自动重试：失败直接暴露给调用方
        self._client = AsyncOpenAI(api_key=api_key, base_url=self._base_url, http_client=http_client, max_retries=0)

    async def complete_json(
        self,
        messages: Sequence[ChatMessage],
        schema: type[BaseModel],
        temperature: float | None = None,
    ) -> BaseModel:
        """
        约定：让模型输出"纯 JSON"，然后做严格 schema 校验。

        - **JSON mode**：使用 response_format 确保返回纯 JSON（不包含 markdown 代码块）
        - **失败策略**：内容为空/解析失败/校验失败抛 `LLMOutputError`；调用失败原样抛出
        """
        extra: dict[str, float] = {}
        if temperature is not None:
            extra["temperature"] = temperature
        try:
            logger.info(f"LLM JSON request: model={self._model}, schema={schema.__name__}")
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[m.model_dump() for m in messages],
                response_format={"type": "json_object"},
                **extra,
            )
        except OpenAIError as exc:
            logger.error(f"LLM API error: {exc}")
            raise
        except httpx.HTTPError as exc:
            logger.error(f"LLM HTTP error: {exc}")
            raise

        if not response.choices:
            logger.error("LLM returned no choices")
            raise LLMOutputError("LLM returned no choices")
        content = response.choices[0].message.content
        if content is None:
            logger.error("LLM returned None content")
            raise LLMOutputError("LLM returned None content")

        logger.info(f"LLM JSON response: {len(content)} chars")

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            logger.error(f"Invalid JSON from LLM. Raw content: {content}")
            raise LLMOutputError(f"LLM did not return valid JSON. Raw: {content}") from exc

        try:
            validated = schema.model_validate(parsed)
        except ValidationError as exc:
            logger.error(f"Schema validation failed: {exc}")
            raise LLMOutputError(f"LLM JSON does not match schema {schema.__name__}: {exc}") from exc

        logger.info(f"Successfully validated JSON to {schema.__name__}")
        return validated
