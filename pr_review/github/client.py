"""
GitHub API 客户端（外部系统连接器）。

约定：
- 这里只做 HTTP 调用 + 错误处理 + schema 校验
- 出错直接抛错（不要吞，也不重试），由入口统一失败
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from pr_review.github.schemas import GitHubPullRequest
from pr_review.github.schemas import PullRequestId
from pr_review.review.models import PositionedComment

logger = logging.getLogger(__name__)


class GitHubClient:
    """最小 GitHub API client（PR 元信息 + raw diff + review/评论写回）。"""

    def __init__(self, api_base_url: str, token: str, http_client: httpx.AsyncClient) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._token = token
        self._http_client = http_client

    def _headers(self, accept: str = "application/vnd.github+json") -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": accept,
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _pull_url(self, pr: PullRequestId) -> str:
        return f"{self._api_base_url}/repos/{pr.owner}/{pr.repo}/pulls/{pr.number}"

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code >= 400:
            raise RuntimeError(f"GitHub API error {response.status_code}: {response.text}")

    async def get_pull_request(self, pr: PullRequestId) -> GitHubPullRequest:
        """拉取 PR 元信息（标题、描述、head/base ref 与 sha）。"""
        response = await self._http_client.get(self._pull_url(pr), headers=self._headers())
        self._raise_for_status(response)
        return GitHubPullRequest.model_validate(response.json())

    async def get_pull_request_diff(self, pr: PullRequestId) -> str:
        """拉取整个 PR 的 unified diff 文本（`diff --git` 格式）。"""
        response = await self._http_client.get(
            self._pull_url(pr),
            headers=self._headers(accept="application/vnd.github.diff"),
        )
        self._raise_for_status(response)
        return response.text

    async def create_review(
        self,
        pr: PullRequestId,
        commit_id: str,
        comments: Sequence[PositionedComment],
        body: str = "",
    ) -> None:
        """
        创建一条带行内评论的 PR review（event=COMMENT，不 approve / request changes）。

        所有行内评论一次性提交：要么全部成功，要么整体失败。
        """
        payload = {
            "commit_id": commit_id,
            "body": body,
            "event": "COMMENT",
            "comments": [{"path": c.path, "line": c.line, "body": c.body} for c in comments],
        }
        logger.info(f"Posting review with {len(comments)} inline comment(s) to {pr.owner}/{pr.repo}#{pr.number}")
        response = await self._http_client.post(f"{self._pull_url(pr)}/reviews", headers=self._headers(), json=payload)
        self._raise_for_status(response)

    async def create_issue_comment(self, pr: PullRequestId, body: str) -> None:
        """在 PR 下发布一条全局评论（summary）。"""
        url = f"{self._api_base_url}/repos/{pr.owner}/{pr.repo}/issues/{pr.number}/comments"
        response = await self._http_client.post(url, headers=self._headers(), json={"body": body})
        self._raise_for_status(response)
