"""
本地 Mock OpenAI-compatible LLM server。

用途：
- 在没有真实 LLM 网关的情况下，本地跑通闭环（policy 的 JSON-only 输出）
- 每个 policy 请求都在渲染后 diff 的第一个 `[L<n>]` 行上返回一条 finding

启动：
  python -m pr_review.dev.mock_openai_server
  LLM_BASE_URL=http://127.0.0.1:9001 pr-review review <pr-url>
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, Field

from pr_review.llm.client import ChatMessage

LINE_MARKER_RE = re.compile(r"^\[L(\d+)\] ", re.MULTILINE)
SEVERITY_RE = re.compile(r'"severity": "(\w+)"')
OUTPUT_SCHEMA_MARKER = "请以 JSON 格式输出"


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage] = Field(default_factory=list)


def _first_target_line(prompt: str) -> int | None:
    match = LINE_MARKER_RE.search(prompt)
    if match is None:
        return None
    return int(match.group(1))


def _first_allowed_severity(prompt: str) -> str:
    # 只看输出结构部分：diff 正文里也可能出现 "severity" 字样
    _, marker, schema_text = prompt.rpartition(OUTPUT_SCHEMA_MARKER)
    match = SEVERITY_RE.search(schema_text) if marker else None
    if match is None:
        raise ValueError("Cannot find severity choices in policy prompt")
    return match.group(1)


def _decide_mock_response(messages: Sequence[ChatMessage]) -> str:
    user_texts = [m.content for m in messages if m.role == "user"]
    if not user_texts:
        raise ValueError("Mock server expects at least one user message")
    prompt = "\n".join(user_texts)

    line = _first_target_line(prompt=prompt)
    if line is None or '"issues"' not in prompt:
        return json.dumps({"issues": [], "summary": "[MOCK] 没有可评论的行"}, ensure_ascii=False)

    issue = {
        "lineNumber": line,
        "severity": _first_allowed_severity(prompt=prompt),
        "issue": "[MOCK] 建议补充更严格的错误处理与边界校验。",
        "suggestion": "为关键逻辑添加单元测试。",
    }
    return json.dumps({"issues": [issue], "summary": "[MOCK] 1 条建议"}, ensure_ascii=False)


app = FastAPI(title="Mock OpenAI-compatible LLM", version="0.1.0")


@app.post("/v1/chat/completions")
async def chat_completions(req: ChatCompletionRequest) -> dict[str, object]:
    content = _decide_mock_response(messages=req.messages)
    return {
        "id": "chatcmpl-mock",
        "object": "chat.completion",
        "created": 0,
        "model": req.model,
        "choices": [
            {
                "index": 0,
                "finish_reason": "stop",
                "message": {"role": "assistant", "content": content},
            }
        ],
    }


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9001)


if __name__ == "__main__":
    main()
