from __future__ import annotations

"""
Synthesis（汇总输出）。

注意：
- 这里是**确定性输出**（不依赖 LLM）；时间戳由调用方传入，便于测试
- Markdown 用于 PR summary 评论与本地保存；console 文本用于 CLI
"""

from collections.abc import Sequence
from datetime import datetime, timezone

from pr_review.github.schemas import PullRequestId
from pr_review.review.filtering import SEVERITY_ICONS
from pr_review.review.models import AggregatedReport
from pr_review.review.models import Finding

FOOTER = "*Generated by PR Review Bot*"


def _stats_lines(report: AggregatedReport) -> list[str]:
    stats = report.stats
    return [
        f"- {SEVERITY_ICONS['error']} Errors: {stats.errors}",
        f"- {SEVERITY_ICONS['warning']} Warnings: {stats.warnings}",
        f"- {SEVERITY_ICONS['suggestion']} Suggestions: {stats.suggestions}",
        f"- {SEVERITY_ICONS['nitpick']} Nitpicks: {stats.nitpicks}",
    ]


def format_review_markdown(
    report: AggregatedReport,
    title: str,
    url: str,
    unpostable: Sequence[Finding] = (),
    generated_at: datetime | None = None,
) -> str:
    """
    将汇总报告拼成 Markdown（PR summary 评论 / 保存到文件）。

    - unpostable：超出 diff 范围、无法作为行内评论的 finding，单独成节
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    lines: list[str] = []
    lines.append(f"# PR Review: {title}\n")
    lines.append(f"**PR:** [#{report.change_set_number}]({url})\n")
    lines.append(f"**Date:** {generated_at.isoformat()}\n")
    lines.append("---\n")
    lines.append("## AI Code Review Summary\n")
    lines.append(f"**Total issues found:** {report.total_findings}\n")
    lines.extend(_stats_lines(report))
    lines.append("")

    if report.total_findings > 0:
        lines.append("### Details\n")
        for file_path, findings in report.findings_by_file.items():
            lines.append(f"#### `{file_path}`\n")
            for f in findings:
                lines.append(f"{SEVERITY_ICONS[f.severity]} **Line {f.line_number}** [{f.category}]: {f.message}")
                if f.suggested_fix:
                    lines.append(f"> {f.suggested_fix}")
                lines.append("")

    if unpostable:
        lines.append("### Issues outside diff range\n")
        lines.append("The following issues could not be posted as inline comments:\n")
        for f in unpostable:
            lines.append(f"{SEVERITY_ICONS[f.severity]} **`{f.file_path}` Line {f.line_number}:** {f.message}")
            if f.suggested_fix:
                lines.append(f"> {f.suggested_fix}")
            lines.append("")

    lines.append("### Reviewer notes\n")
    lines.append(report.summary)
    lines.append("")
    lines.append("---")
    lines.append(FOOTER)
    return "\n".join(lines)


def format_review_console(report: AggregatedReport) -> str:
    """终端输出：统计 + 逐文件 finding + policy summary。"""
    rule = "━" * 60
    lines: list[str] = [rule, f"Review Summary for PR #{report.change_set_number}", rule]
    lines.append(f"\nTotal issues found: {report.total_findings}")
    lines.append(f"  Errors: {report.stats.errors}")
    lines.append(f"  Warnings: {report.stats.warnings}")
    lines.append(f"  Suggestions: {report.stats.suggestions}")
    lines.append(f"  Nitpicks: {report.stats.nitpicks}")

    for file_path, findings in report.findings_by_file.items():
        lines.append(f"\n## {file_path}")
        for f in findings:
            lines.append(f"  [{f.severity}] Line {f.line_number}: {f.message}")
            if f.suggested_fix:
                lines.append(f"     Suggestion: {f.suggested_fix}")

    lines.append("\n" + rule)
    lines.append("Summary:")
    lines.append(report.summary)
    lines.append(rule)
    return "\n".join(lines)


def review_markdown_filename(pr: PullRequestId, generated_at: datetime) -> str:
    """例如 `owner_repo_pr12_2024-01-02T03-04-05.md`。"""
    stamp = generated_at.strftime("%Y-%m-%dT%H-%M-%S")
    return f"{pr.owner}_{pr.repo}_pr{pr.number}_{stamp}.md"
