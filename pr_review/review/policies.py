"""
Review policies（文件级审查规则）。

所有 policy 都满足同一个能力：“给定 ReviewContext，产出 ReviewOutcome”。
这里不做继承体系：一个可配置的 `PromptReviewPolicy` + 一张按名字注册的 `POLICY_SPECS` 表。

失败隔离：
- LLM 输出不合法（非 JSON / schema 不符 / severity 越界） -> 空 findings + 诊断 summary
- 网络/API 错误不在这里处理，直接抛给上游（整次运行失败）
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel

from pr_review.llm.client import ChatMessage
from pr_review.llm.client import LLMOutputError
from pr_review.review.diff_parser import render_for_review
from pr_review.review.models import Category
from pr_review.review.models import Finding
from pr_review.review.models import PolicyIssue
from pr_review.review.models import PolicyOutput
from pr_review.review.models import ReviewContext
from pr_review.review.models import ReviewOutcome
from pr_review.review.models import Severity
from pr_review.review.prompts import LOGIC_SYSTEM_PROMPT
from pr_review.review.prompts import SECURITY_SYSTEM_PROMPT
from pr_review.review.prompts import STYLE_SYSTEM_PROMPT
from pr_review.review.prompts import build_policy_user_prompt

logger = logging.getLogger(__name__)


class JSONCompletionClient(Protocol):
    """finding generator 协议（`OpenAICompatLLMClient` 满足该协议，测试里可替换为 fake）。"""

    async def complete_json(
        self,
        messages: Sequence[ChatMessage],
        schema: type[BaseModel],
        temperature: float | None = None,
    ) -> BaseModel: ...


class ReviewPolicy(Protocol):
    """review policy 协议：orchestrator 只依赖这个能力。"""

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    async def review(self, context: ReviewContext) -> ReviewOutcome: ...


@dataclass(frozen=True)
class PolicySpec:
    """一个内置 policy 的静态定义。"""

    name: str
    description: str
    label: str
    category: Category
    severities: tuple[Severity, ...]
    system_prompt: str
    instruction: str
    with_attack_vector: bool = False


POLICY_SPECS: dict[str, PolicySpec] = {
    "logic": PolicySpec(
        name="logic-reviewer",
        description="审查代码逻辑正确性",
        label="审查",
        category="logic",
        severities=("error", "warning", "suggestion"),
        system_prompt=LOGIC_SYSTEM_PROMPT,
        instruction="请审查以下代码变更：",
    ),
    "security": PolicySpec(
        name="security-checker",
        description="检测代码中的安全漏洞",
        label="安全审查",
        category="security",
        severities=("error", "warning"),
        system_prompt=SECURITY_SYSTEM_PROMPT,
        instruction="请从安全角度审查以下代码变更：",
        with_attack_vector=True,
    ),
    "style": PolicySpec(
        name="style-advisor",
        description="提升代码可读性和可维护性",
        label="风格审查",
        category="style",
        severities=("suggestion", "nitpick"),
        system_prompt=STYLE_SYSTEM_PROMPT,
        instruction="请从代码风格角度审查以下代码变更：",
    ),
}


@dataclass(frozen=True)
class PromptReviewPolicy:
    """基于 prompt + JSON 输出的 policy。"""

    spec: PolicySpec
    llm_client: JSONCompletionClient
    temperature: float | None = None

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def description(self) -> str:
        return self.spec.description

    def build_messages(self, context: ReviewContext) -> list[ChatMessage]:
        user_prompt = build_policy_user_prompt(
            instruction=self.spec.instruction,
            title=context.change_set_title,
            description=context.change_set_description,
            rendered_diff=render_for_review(context.file),
            full_file_content=context.full_file_content,
            severities=self.spec.severities,
            with_attack_vector=self.spec.with_attack_vector,
        )
        return [
            ChatMessage(role="system", content=self.spec.system_prompt),
            ChatMessage(role="user", content=user_prompt),
        ]

    async def review(self, context: ReviewContext) -> ReviewOutcome:
        messages = self.build_messages(context=context)
        try:
            result = await self.llm_client.complete_json(
                messages=messages,
                schema=PolicyOutput,
                temperature=self.temperature,
            )
            if not isinstance(result, PolicyOutput):
                raise LLMOutputError(f"{self.name} output did not validate to PolicyOutput")
            self._check_severities(result.issues)
        except LLMOutputError as exc:
            logger.warning(f"Discarding {self.name} output for {context.file.path}: {exc}")
            return ReviewOutcome(policy=self.name, findings=[], summary=f"解析{self.spec.label}结果失败")

        findings = [self._to_finding(issue=issue, file_path=context.file.path) for issue in result.issues]
        return ReviewOutcome(policy=self.name, findings=findings, summary=result.summary)

    def _check_severities(self, issues: Sequence[PolicyIssue]) -> None:
        for issue in issues:
            if issue.severity not in self.spec.severities:
                raise LLMOutputError(f"{self.name} does not report severity {issue.severity!r}")

    def _to_finding(self, issue: PolicyIssue, file_path: str) -> Finding:
        message = issue.issue
        if self.spec.with_attack_vector and issue.attackVector:
            message = f"{message} (攻击场景: {issue.attackVector})"
        return Finding(
            file_path=file_path,
            line_number=issue.lineNumber,
            severity=issue.severity,
            category=self.spec.category,
            message=message,
            suggested_fix=issue.suggestion,
        )


def build_review_policies(
    names: Sequence[str],
    llm_client: JSONCompletionClient,
    temperature: float | None = None,
) -> list[PromptReviewPolicy]:
    """按配置顺序构造 policy 列表（该顺序即 outcome 的返回顺序）。"""
    unknown = [n for n in names if n not in POLICY_SPECS]
    if unknown:
        raise ValueError(f"Unknown review policies: {', '.join(unknown)} (known: {', '.join(POLICY_SPECS)})")
    policies = [
        PromptReviewPolicy(spec=POLICY_SPECS[n], llm_client=llm_client, temperature=temperature) for n in names
    ]
    if not policies:
        raise ValueError("At least one review policy must be configured")
    return policies
