"""
FastAPI 服务入口（GitHub webhook 模式）。

这里做三件事：
- 加载配置（严格校验环境变量）
- 组装外部依赖（HTTP Client / LLM Client / GitHub Client / policies）
- 装配路由（health + github webhook）

注意：
- 业务流程不写在这里（由 `review/runner.py` 负责）
- `httpx.AsyncClient` 会被复用（避免每个请求新建连接）
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from pr_review.config import AppConfig
from pr_review.config import load_config_from_env
from pr_review.github.client import GitHubClient
from pr_review.github.webhook import build_github_webhook_router
from pr_review.llm.client import OpenAICompatLLMClient
from pr_review.review.orchestrator import ReviewOrchestrator
from pr_review.review.orchestrator import build_review_orchestrator
from pr_review.review.policies import build_review_policies
from pr_review.review.runner import build_github_webhook_handler


def build_clients(config: AppConfig, http_client: httpx.AsyncClient) -> tuple[GitHubClient, ReviewOrchestrator]:
    """根据配置创建 GitHub client 与 orchestrator（CLI 与服务共用）。"""
    llm_client = OpenAICompatLLMClient(
        api_key=config.llm.api_key,
        base_url=str(config.llm.base_url).rstrip("/"),
        http_client=http_client,
        model=config.llm.model,
    )
    policies = build_review_policies(
        names=config.review_policies,
        llm_client=llm_client,
        temperature=config.llm.temperature,
    )
    github_client = GitHubClient(
        api_base_url=str(config.github.api_base_url).rstrip("/"),
        token=config.github.token,
        http_client=http_client,
    )
    return github_client, build_review_orchestrator(policies=policies)


def build_app(environ: Mapping[str, str] | None = None) -> FastAPI:
    """创建并返回 FastAPI app（便于测试/复用）。"""

    # 1) 配置：缺失会直接抛错，启动失败（这是期望行为）
    config = load_config_from_env(os.environ if environ is None else environ)

    # 2) 可复用的 HTTP client：供 GitHub API 与 LLM 调用使用
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(60.0))
    github_client, orchestrator = build_clients(config=config, http_client=http_client)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await http_client.aclose()

    app = FastAPI(title="PR Review Bot", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """健康检查：用于 k8s / LB 探活。"""
        return {"status": "ok"}

    if config.github.webhook_secret is not None:
        handler = build_github_webhook_handler(github_client=github_client, orchestrator=orchestrator)
        app.include_router(build_github_webhook_router(webhook_secret=config.github.webhook_secret, handler=handler))
    return app
