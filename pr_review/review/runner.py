"""
一次完整的 PR review 流程（CLI 与 webhook 共用）。

Fetch PR + raw diff -> parse -> review_change_set -> 位置过滤 ->（可选）写回 GitHub

失败策略：任何外部调用失败都直接抛出，整次运行中止（不做部分写回、不重试）。
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from pr_review.github.client import GitHubClient
from pr_review.github.schemas import GitHubPullRequest
from pr_review.github.schemas import GitHubPullRequestWebhookEvent
from pr_review.github.schemas import PullRequestId
from pr_review.review.diff_parser import parse_diff
from pr_review.review.filtering import build_valid_lines_by_file
from pr_review.review.filtering import partition_by_validity
from pr_review.review.models import AggregatedReport
from pr_review.review.models import FileChange
from pr_review.review.models import Finding
from pr_review.review.models import PositionedComment
from pr_review.review.orchestrator import ReviewOrchestrator
from pr_review.review.synthesis import format_review_markdown

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewRun:
    """一次运行的全部产物（供 CLI 打印/保存）。"""

    pr: PullRequestId
    pull_request: GitHubPullRequest
    files: list[FileChange]
    report: AggregatedReport
    postable: list[PositionedComment]
    unpostable: list[Finding]


async def run_pull_request_review(
    github_client: GitHubClient,
    orchestrator: ReviewOrchestrator,
    pr: PullRequestId,
    post_comments: bool,
    now: datetime | None = None,
) -> ReviewRun:
    """
    跑一次完整 review。

    - post_comments=True 且有 finding 时：先发行内评论 review，再发 summary 评论
    - 行内评论只包含落在 diff 可见行上的 finding，其余进入 summary 的 “outside diff range”
    """
    pull_request = await github_client.get_pull_request(pr)
    diff_text = await github_client.get_pull_request_diff(pr)
    files = parse_diff(diff_text)
    logger.info(f"Found {len(files)} changed file(s) in {pr.owner}/{pr.repo}#{pr.number}")

    report = await orchestrator.review_change_set(
        number=pull_request.number,
        title=pull_request.title,
        description=pull_request.body,
        files=files,
    )
    postable, unpostable = partition_by_validity(
        findings_by_file=report.findings_by_file,
        valid_lines_by_file=build_valid_lines_by_file(files),
    )
    run = ReviewRun(
        pr=pr,
        pull_request=pull_request,
        files=files,
        report=report,
        postable=postable,
        unpostable=unpostable,
    )

    if post_comments and report.total_findings > 0:
        await publish_review(github_client=github_client, run=run, now=now)
    return run


async def publish_review(github_client: GitHubClient, run: ReviewRun, now: datetime | None = None) -> None:
    """写回 GitHub：行内评论（如果有）+ summary 评论。"""
    if run.postable:
        await github_client.create_review(run.pr, commit_id=run.pull_request.head.sha, comments=run.postable)
    else:
        logger.info("No findings inside the diff range; skipping inline review")

    body = format_review_markdown(
        report=run.report,
        title=run.pull_request.title,
        url=run.pull_request.html_url,
        unpostable=run.unpostable,
        generated_at=now,
    )
    await github_client.create_issue_comment(run.pr, body=body)
    logger.info(f"Review posted: {len(run.postable)} inline, {len(run.unpostable)} outside diff range")


def build_github_webhook_handler(
    github_client: GitHubClient,
    orchestrator: ReviewOrchestrator,
) -> Callable[[GitHubPullRequestWebhookEvent], Awaitable[None]]:
    """
    装配 webhook handler：
    - 把外部依赖（GitHubClient）和业务编排（orchestrator）绑定起来
    - 返回一个 `async def handle(event)` 给 webhook 路由调用
    """

    async def handle(event: GitHubPullRequestWebhookEvent) -> None:
        pr = PullRequestId(
            owner=event.repository.owner.login,
            repo=event.repository.name,
            number=event.pull_request.number,
        )
        await run_pull_request_review(
            github_client=github_client,
            orchestrator=orchestrator,
            pr=pr,
            post_comments=True,
        )

    return handle
