from __future__ import annotations

from dataclasses import dataclass, field

import anyio
import pytest

from pr_review.llm.client import LLMOutputError
from pr_review.review.diff_parser import parse_diff
from pr_review.review.models import FileChange
from pr_review.review.models import Finding
from pr_review.review.models import ReviewContext
from pr_review.review.models import ReviewOutcome
from pr_review.review.orchestrator import NO_ISSUES_SUMMARY
from pr_review.review.orchestrator import ReviewOrchestrator
from pr_review.review.orchestrator import build_review_orchestrator


@dataclass
class FakePolicy:
    name: str
    description: str = "fake reviewer"
    issues: list[tuple[int, str]] = field(default_factory=list)
    summary: str | None = None
    delay: float = 0.0
    error: Exception | None = None
    wait_for: anyio.Event | None = None
    signals: anyio.Event | None = None
    seen: list[ReviewContext] = field(default_factory=list)

    async def review(self, context: ReviewContext) -> ReviewOutcome:
        self.seen.append(context)
        if self.signals is not None:
            self.signals.set()
        if self.wait_for is not None:
            await self.wait_for.wait()
        await anyio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        findings = [
            Finding(
                file_path=context.file.path,
                line_number=line,
                severity=severity,
                category="logic",
                message=f"{self.name} at {line}",
            )
            for line, severity in self.issues
        ]
        return ReviewOutcome(policy=self.name, findings=findings, summary=self.summary)


def _file(path: str, change_type: str = "modified") -> FileChange:
    return FileChange(path=path, change_type=change_type)


def _context(path: str = "a.py") -> ReviewContext:
    return ReviewContext(change_set_title="Add feature", file=_file(path))


@pytest.mark.anyio
async def test_review_file_returns_outcomes_in_registration_order() -> None:
    slow = FakePolicy(name="slow", delay=0.05)
    fast = FakePolicy(name="fast")
    orchestrator = build_review_orchestrator([slow, fast])

    outcomes = await orchestrator.review_file(_context())

    assert [o.policy for o in outcomes] == ["slow", "fast"]


@pytest.mark.anyio
async def test_review_file_runs_policies_concurrently() -> None:
    # "first" 只有在 "second" 开始执行后才能完成
    started = anyio.Event()
    first = FakePolicy(name="first", wait_for=started, issues=[(1, "warning")])
    second = FakePolicy(name="second", signals=started, issues=[(2, "nitpick")])
    orchestrator = build_review_orchestrator([first, second])

    with anyio.fail_after(1):
        outcomes = await orchestrator.review_file(_context())

    assert [o.policy for o in outcomes] == ["first", "second"]
    assert [o.findings[0].line_number for o in outcomes] == [1, 2]


@pytest.mark.anyio
async def test_review_file_isolates_malformed_policy_output() -> None:
    broken = FakePolicy(name="broken", error=LLMOutputError("not json"))
    healthy = FakePolicy(name="healthy", issues=[(3, "warning")], summary="ok")
    orchestrator = build_review_orchestrator([broken, healthy])

    outcomes = await orchestrator.review_file(_context())

    assert [o.policy for o in outcomes] == ["broken", "healthy"]
    assert outcomes[0].findings == []
    assert outcomes[0].summary
    assert [f.line_number for f in outcomes[1].findings] == [3]


@pytest.mark.anyio
async def test_review_file_propagates_collaborator_failure() -> None:
    failing = FakePolicy(name="failing", error=RuntimeError("connection reset"))
    other = FakePolicy(name="other", delay=0.05)
    orchestrator = build_review_orchestrator([failing, other])

    with pytest.raises(RuntimeError, match="connection reset"):
        await orchestrator.review_file(_context())


@pytest.mark.anyio
async def test_review_change_set_counts_and_single_summary_line() -> None:
    first = FakePolicy(name="logic-reviewer", issues=[(1, "error"), (2, "nitpick")], summary="ok")
    second = FakePolicy(name="style-advisor")
    orchestrator = build_review_orchestrator([first, second])

    report = await orchestrator.review_change_set(
        number=7, title="t", description=None, files=[_file("src/a.py")]
    )

    assert report.change_set_number == 7
    assert report.total_findings == 2
    assert report.stats.errors == 1
    assert report.stats.nitpicks == 1
    assert report.summary == "[logic-reviewer] src/a.py: ok"


@pytest.mark.anyio
async def test_review_change_set_skips_deleted_files(sample_diff: str) -> None:
    policy = FakePolicy(name="p", issues=[(1, "warning")])
    orchestrator = build_review_orchestrator([policy])

    report = await orchestrator.review_change_set(
        number=1, title="t", description="d", files=parse_diff(sample_diff)
    )

    assert [c.file.path for c in policy.seen] == ["src/utils.ts", "src/config.ts"]
    assert "src/old-file.ts" not in report.findings_by_file


@pytest.mark.anyio
async def test_review_change_set_count_invariant_and_file_order() -> None:
    a = FakePolicy(name="a", issues=[(1, "error"), (2, "warning")], summary="found two")
    b = FakePolicy(name="b", issues=[(5, "suggestion")])
    orchestrator = ReviewOrchestrator(policies=(a, b))
    files = [_file("z.py"), _file("gone.py", "deleted"), _file("a.py", "added")]

    report = await orchestrator.review_change_set(number=3, title="t", description=None, files=files)

    assert list(report.findings_by_file) == ["z.py", "a.py"]
    per_file = sum(len(v) for v in report.findings_by_file.values())
    stats = report.stats
    assert report.total_findings == per_file == stats.errors + stats.warnings + stats.suggestions + stats.nitpicks
    assert [f.message for f in report.findings_by_file["z.py"]] == ["a at 1", "a at 2", "b at 5"]
    assert report.summary.splitlines() == ["[a] z.py: found two", "[a] a.py: found two"]


@pytest.mark.anyio
async def test_review_change_set_without_findings_uses_sentinel_summary() -> None:
    orchestrator = build_review_orchestrator([FakePolicy(name="quiet")])

    report = await orchestrator.review_change_set(number=1, title="t", description=None, files=[_file("a.py")])

    assert report.total_findings == 0
    assert report.findings_by_file == {}
    assert report.summary == NO_ISSUES_SUMMARY


@pytest.mark.anyio
async def test_review_change_set_keeps_other_policies_when_one_is_malformed() -> None:
    broken = FakePolicy(name="broken", error=LLMOutputError("schema mismatch"))
    healthy = FakePolicy(name="healthy", issues=[(4, "warning")])
    orchestrator = build_review_orchestrator([broken, healthy])

    report = await orchestrator.review_change_set(number=1, title="t", description=None, files=[_file("a.py")])

    assert report.total_findings == 1
    assert report.findings_by_file["a.py"][0].line_number == 4
    assert report.summary.startswith("[broken] a.py: ")


@pytest.mark.anyio
async def test_review_change_set_passes_context_fields() -> None:
    policy = FakePolicy(name="p")
    orchestrator = build_review_orchestrator([policy])

    await orchestrator.review_change_set(
        number=1,
        title="Fix bug",
        description="Long description",
        files=[_file("a.py"), _file("b.py")],
        full_contents={"a.py": "print(1)\n"},
    )

    first, second = policy.seen
    assert first.change_set_title == "Fix bug"
    assert first.change_set_description == "Long description"
    assert first.full_file_content == "print(1)\n"
    assert second.full_file_content is None


def test_build_review_orchestrator_requires_policies() -> None:
    with pytest.raises(ValueError):
        build_review_orchestrator([])
