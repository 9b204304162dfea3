"""
GitHub Webhook / API response schemas（Pydantic）。

说明：
- 字段只覆盖当前流程需要的子集（PR 元信息 + PR webhook）。
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel

PULL_REQUEST_URL_RE = re.compile(r"github\.com/([^/]+)/([^/]+)/pull/(\d+)")


class PullRequestId(BaseModel):
    """PR 的唯一定位：owner/repo#number。"""

    owner: str
    repo: str
    number: int

    @property
    def html_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/pull/{self.number}"


def parse_pull_request_url(url: str) -> PullRequestId:
    """解析 `https://github.com/<owner>/<repo>/pull/<number>`。"""
    match = PULL_REQUEST_URL_RE.search(url)
    if match is None:
        raise ValueError(f"Invalid GitHub PR URL: {url}")
    return PullRequestId(owner=match.group(1), repo=match.group(2), number=int(match.group(3)))


class GitHubUser(BaseModel):
    login: str


class GitHubOwner(BaseModel):
    login: str


class GitHubRepository(BaseModel):
    name: str
    owner: GitHubOwner
    full_name: str


class GitHubRef(BaseModel):
    ref: str
    sha: str


class GitHubPullRequest(BaseModel):
    """GET /repos/{owner}/{repo}/pulls/{number} 的子集。"""

    number: int
    title: str
    body: str | None = None
    state: Literal["open", "closed"]
    user: GitHubUser | None = None
    head: GitHubRef
    base: GitHubRef
    html_url: str
    created_at: str
    updated_at: str


class GitHubWebhookPullRequest(BaseModel):
    number: int
    head: GitHubRef
    base: GitHubRef


class GitHubPullRequestWebhookEvent(BaseModel):
    """
    GitHub `pull_request` webhook event（最小结构）。

    action: opened/reopened/synchronize 等；未知 action 也允许解析（路由层再过滤）
    """

    action: str
    pull_request: GitHubWebhookPullRequest
    repository: GitHubRepository
