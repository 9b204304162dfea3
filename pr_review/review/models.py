"""
Review 领域模型（Pydantic）。

用途：
- diff 解析结果（FileChange/Hunk/LineChange）：解析完成后不可变
- reviewer 输出（Finding/ReviewOutcome）与汇总报告（AggregatedReport）
- 作为 LLM JSON 输出的 schema 校验（PolicyOutput）
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

ChangeType = Literal["added", "modified", "deleted", "renamed"]
LineKind = Literal["add", "delete", "context"]
Severity = Literal["error", "warning", "suggestion", "nitpick"]
Category = Literal["logic", "security", "style", "performance"]


class LineChange(BaseModel):
    """
    hunk 内的一行。

    line_number：add/context 为新文件行号，delete 为旧文件行号。
    """

    model_config = ConfigDict(frozen=True)

    kind: LineKind
    line_number: int
    text: str


class Hunk(BaseModel):
    """一段连续变更（`@@ -a,b +c,d @@`）。"""

    model_config = ConfigDict(frozen=True)

    old_start: int
    old_line_count: int
    new_start: int
    new_line_count: int
    header_text: str
    changes: tuple[LineChange, ...] = ()


class FileChange(BaseModel):
    """单个文件的变更（从 unified diff 解析而来）。"""

    model_config = ConfigDict(frozen=True)

    path: str
    previous_path: str | None = None
    change_type: ChangeType
    hunks: tuple[Hunk, ...] = ()

    @model_validator(mode="after")
    def _previous_path_only_for_renames(self) -> FileChange:
        if (self.previous_path is not None) != (self.change_type == "renamed"):
            raise ValueError("previous_path must be set iff change_type is 'renamed'")
        return self


class Finding(BaseModel):
    """reviewer 报告的单条问题（定位到 文件 + 新文件行号）。"""

    file_path: str
    line_number: int
    severity: Severity
    category: Category
    message: str
    suggested_fix: str | None = None


class ReviewOutcome(BaseModel):
    """单个 policy 对单个文件的 review 结果。"""

    policy: str
    findings: list[Finding] = Field(default_factory=list)
    summary: str | None = None


class ReviewContext(BaseModel):
    """单文件 review 的输入（所有 policy 共享同一份）。"""

    model_config = ConfigDict(frozen=True)

    change_set_title: str
    change_set_description: str | None = None
    file: FileChange
    full_file_content: str | None = None


class SeverityStats(BaseModel):
    errors: int = 0
    warnings: int = 0
    suggestions: int = 0
    nitpicks: int = 0


class AggregatedReport(BaseModel):
    """
    一次 PR review 的汇总结果。

    findings_by_file 的插入顺序 = 文件输入顺序，文件内按 policy 注册顺序追加。
    """

    change_set_number: int
    findings_by_file: dict[str, list[Finding]] = Field(default_factory=dict)
    total_findings: int = 0
    stats: SeverityStats = Field(default_factory=SeverityStats)
    summary: str


class PositionedComment(BaseModel):
    """可以直接作为行内评论发布的 finding。"""

    path: str
    line: int
    body: str


class PolicyIssue(BaseModel):
    """LLM 输出中的单条 issue（字段名与 prompt 中的 JSON 约定一致）。"""

    lineNumber: int
    severity: Severity
    issue: str
    suggestion: str | None = None
    attackVector: str | None = None


class PolicyOutput(BaseModel):
    """policy 的 LLM 输出 schema（必须 JSON-only）。"""

    issues: list[PolicyIssue]
    summary: str
