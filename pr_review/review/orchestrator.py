"""
Review Orchestrator（多 policy 汇总）。

流程（每次调用都是独立的一次 pass，不保留任何状态）：
  逐文件（按输入顺序） -> 并发调用所有 policy -> 按注册顺序合并 -> 统计 -> 拼接 summary

并发模型：
- 只有“同一文件的多个 policy”并发（anyio task group，fan-out / fan-in）
- 文件之间顺序执行，因此 findings_by_file 的顺序天然确定
- 结果按 policy 注册下标回填，与完成先后无关
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import anyio

from pr_review.llm.client import LLMOutputError
from pr_review.review.models import AggregatedReport
from pr_review.review.models import FileChange
from pr_review.review.models import Finding
from pr_review.review.models import ReviewContext
from pr_review.review.models import ReviewOutcome
from pr_review.review.models import SeverityStats
from pr_review.review.policies import ReviewPolicy

logger = logging.getLogger(__name__)

NO_ISSUES_SUMMARY = "未发现需要关注的问题。"


@dataclass(frozen=True)
class ReviewOrchestrator:
    """持有按注册顺序排列的 policy 列表。"""

    policies: tuple[ReviewPolicy, ...]

    async def review_file(self, context: ReviewContext) -> list[ReviewOutcome]:
        """
        对同一个文件并发执行所有 policy，返回值按 policy 注册顺序排列。

        - policy 输出不合法：该 policy 记为空 findings + 诊断 summary，不影响其他 policy
        - 其他异常（网络/鉴权等）：取消同组其他 policy，并把第一个异常原样抛出
        """
        slots: list[ReviewOutcome | None] = [None] * len(self.policies)

        async def run(index: int, policy: ReviewPolicy) -> None:
            logger.debug(f"Running {policy.name} ({policy.description}) on {context.file.path}")
            slots[index] = await _run_isolated(policy=policy, context=context)

        logger.info(f"Dispatching {len(self.policies)} policies for {context.file.path}")
        try:
            async with anyio.create_task_group() as tg:
                for index, policy in enumerate(self.policies):
                    tg.start_soon(run, index, policy)
        except ExceptionGroup as group:
            raise group.exceptions[0]

        return [outcome for outcome in slots if outcome is not None]

    async def review_change_set(
        self,
        number: int,
        title: str,
        description: str | None,
        files: Sequence[FileChange],
        full_contents: Mapping[str, str] | None = None,
    ) -> AggregatedReport:
        """
        review 整个 PR，返回汇总报告。

        不变量：total_findings == 各文件 findings 数之和 == 各 severity 计数之和
        """
        findings_by_file: dict[str, list[Finding]] = {}
        severity_counts: Counter[str] = Counter()
        total = 0
        summaries: list[str] = []

        for file_change in files:
            # 已删除的文件没有可评论的位置
            if file_change.change_type == "deleted":
                logger.debug(f"Skipping deleted file {file_change.path}")
                continue

            context = ReviewContext(
                change_set_title=title,
                change_set_description=description,
                file=file_change,
                full_file_content=(full_contents or {}).get(file_change.path),
            )
            outcomes = await self.review_file(context=context)

            for outcome in outcomes:
                if outcome.findings:
                    findings_by_file.setdefault(file_change.path, []).extend(outcome.findings)
                    total += len(outcome.findings)
                    severity_counts.update(f.severity for f in outcome.findings)
                if outcome.summary:
                    summaries.append(f"[{outcome.policy}] {file_change.path}: {outcome.summary}")

        logger.info(f"Review of #{number} finished: {total} finding(s) in {len(findings_by_file)} file(s)")
        return AggregatedReport(
            change_set_number=number,
            findings_by_file=findings_by_file,
            total_findings=total,
            stats=SeverityStats(
                errors=severity_counts["error"],
                warnings=severity_counts["warning"],
                suggestions=severity_counts["suggestion"],
                nitpicks=severity_counts["nitpick"],
            ),
            summary="\n".join(summaries) if summaries else NO_ISSUES_SUMMARY,
        )


async def _run_isolated(policy: ReviewPolicy, context: ReviewContext) -> ReviewOutcome:
    try:
        return await policy.review(context)
    except LLMOutputError as exc:
        logger.warning(f"Policy {policy.name} produced malformed output for {context.file.path}: {exc}")
        return ReviewOutcome(policy=policy.name, findings=[], summary=f"输出解析失败: {exc}")


def build_review_orchestrator(policies: Sequence[ReviewPolicy]) -> ReviewOrchestrator:
    """创建 orchestrator（policy 顺序在这里固定下来）。"""
    if not policies:
        raise ValueError("At least one review policy is required")
    return ReviewOrchestrator(policies=tuple(policies))
