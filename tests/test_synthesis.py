from __future__ import annotations

from datetime import datetime, timezone

from pr_review.github.schemas import PullRequestId
from pr_review.review.models import AggregatedReport
from pr_review.review.models import Finding
from pr_review.review.models import SeverityStats
from pr_review.review.synthesis import format_review_console
from pr_review.review.synthesis import format_review_markdown
from pr_review.review.synthesis import review_markdown_filename

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _report() -> AggregatedReport:
    finding = Finding(
        file_path="src/a.py",
        line_number=3,
        severity="error",
        category="security",
        message="SQL 注入",
        suggested_fix="使用参数化查询",
    )
    return AggregatedReport(
        change_set_number=9,
        findings_by_file={"src/a.py": [finding]},
        total_findings=1,
        stats=SeverityStats(errors=1),
        summary="[security-checker] src/a.py: 1 个高危问题",
    )


def test_markdown_contains_header_totals_and_details() -> None:
    md = format_review_markdown(_report(), title="Add login", url="https://github.com/o/r/pull/9", generated_at=NOW)
    assert md.startswith("# PR Review: Add login\n")
    assert "**PR:** [#9](https://github.com/o/r/pull/9)" in md
    assert "**Date:** 2024-01-02T03:04:05+00:00" in md
    assert "**Total issues found:** 1" in md
    assert "- :red_circle: Errors: 1" in md
    assert "#### `src/a.py`" in md
    assert ":red_circle: **Line 3** [security]: SQL 注入" in md
    assert "> 使用参数化查询" in md
    assert "Issues outside diff range" not in md
    assert md.endswith("*Generated by PR Review Bot*")


def test_markdown_lists_unpostable_findings_separately() -> None:
    outside = Finding(file_path="src/b.py", line_number=77, severity="nitpick", category="style", message="命名")
    md = format_review_markdown(_report(), title="t", url="u", unpostable=[outside], generated_at=NOW)
    assert "### Issues outside diff range" in md
    assert ":white_circle: **`src/b.py` Line 77:** 命名" in md


def test_markdown_is_deterministic_for_fixed_time() -> None:
    first = format_review_markdown(_report(), title="t", url="u", generated_at=NOW)
    second = format_review_markdown(_report(), title="t", url="u", generated_at=NOW)
    assert first == second


def test_console_output_lists_findings_and_summary() -> None:
    text = format_review_console(_report())
    assert "Review Summary for PR #9" in text
    assert "Errors: 1" in text
    assert "[error] Line 3: SQL 注入" in text
    assert "Suggestion: 使用参数化查询" in text
    assert "[security-checker] src/a.py: 1 个高危问题" in text


def test_review_markdown_filename() -> None:
    pr = PullRequestId(owner="octo", repo="demo", number=12)
    assert review_markdown_filename(pr, NOW) == "octo_demo_pr12_2024-01-02T03-04-05.md"
