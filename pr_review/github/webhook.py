"""
GitHub Webhook 接入层。

请求处理顺序：签名校验 -> event 过滤 -> payload 解析 -> action 过滤 -> handler。
签名必须最先校验：未通过校验的请求不会暴露任何其他信息（包括是否被忽略）。
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter
from fastapi import Header
from fastapi import HTTPException
from fastapi import Request
from pydantic import ValidationError

from pr_review.github.schemas import GitHubPullRequestWebhookEvent

logger = logging.getLogger(__name__)

GitHubWebhookHandler = Callable[[GitHubPullRequestWebhookEvent], Awaitable[None]]

WEBHOOK_PATH = "/github/webhook"
HANDLED_EVENT = "pull_request"
HANDLED_ACTIONS = frozenset({"opened", "reopened", "synchronize"})


def sign_payload(body: bytes, secret: str) -> str:
    """按 GitHub 的方式计算 `X-Hub-Signature-256` 头的值。"""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def signature_matches(body: bytes, signature_header: str | None, secret: str) -> bool:
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    return hmac.compare_digest(sign_payload(body=body, secret=secret), signature_header)


def _decode_pull_request_event(body: bytes) -> GitHubPullRequestWebhookEvent:
    try:
        return GitHubPullRequestWebhookEvent.model_validate(json.loads(body))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail="Unexpected pull_request payload") from exc


def build_github_webhook_router(webhook_secret: str, handler: GitHubWebhookHandler) -> APIRouter:
    router = APIRouter()

    @router.post(WEBHOOK_PATH)
    async def github_webhook(
        request: Request,
        x_github_event: str | None = Header(default=None, alias="X-GitHub-Event"),
        x_hub_signature_256: str | None = Header(default=None, alias="X-Hub-Signature-256"),
    ) -> dict[str, str]:
        body = await request.body()
        if not signature_matches(body=body, signature_header=x_hub_signature_256, secret=webhook_secret):
            logger.warning("Rejected webhook delivery with a missing or invalid signature")
            raise HTTPException(status_code=401, detail="Invalid webhook signature")

        if x_github_event != HANDLED_EVENT:
            return {"status": "ignored"}
        event = _decode_pull_request_event(body)
        if event.action not in HANDLED_ACTIONS:
            logger.info(f"Ignoring pull_request action {event.action!r}")
            return {"status": "ignored"}

        logger.info(f"Handling pull_request {event.action} for {event.repository.full_name}#{event.pull_request.number}")
        await handler(event)
        return {"status": "ok"}

    return router
