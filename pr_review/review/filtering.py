"""
Finding 位置过滤。

policy 报告的行号可能不在 diff 的可见范围内（模型写错行号），
这种 finding 无法作为行内评论发布，但信息不能丢：单独返回，交给 summary 展示。
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from pr_review.review.diff_parser import valid_target_lines
from pr_review.review.models import FileChange
from pr_review.review.models import Finding
from pr_review.review.models import PositionedComment

SEVERITY_ICONS: dict[str, str] = {
    "error": ":red_circle:",
    "warning": ":yellow_circle:",
    "suggestion": ":large_blue_circle:",
    "nitpick": ":white_circle:",
}


def build_valid_lines_by_file(files: Sequence[FileChange]) -> dict[str, set[int]]:
    return {f.path: valid_target_lines(f) for f in files}


def format_comment_body(finding: Finding) -> str:
    """行内评论正文：severity 图标 + 类别 + 描述（+ 修复建议引用）。"""
    body = f"{SEVERITY_ICONS[finding.severity]} **[{finding.category}]** {finding.message}"
    if finding.suggested_fix:
        body += f"\n\n> {finding.suggested_fix}"
    return body


def partition_by_validity(
    findings_by_file: Mapping[str, Sequence[Finding]],
    valid_lines_by_file: Mapping[str, set[int]],
) -> tuple[list[PositionedComment], list[Finding]]:
    """
    把 findings 分成 (可发布的行内评论, 超出 diff 范围的 finding)。

    - 文件不在 valid_lines_by_file 中：视为没有任何合法行
    - 两部分数量之和 == 输入 finding 总数
    """
    postable: list[PositionedComment] = []
    unpostable: list[Finding] = []
    for file_path, findings in findings_by_file.items():
        valid_lines = valid_lines_by_file.get(file_path, set())
        for finding in findings:
            if finding.line_number in valid_lines:
                postable.append(
                    PositionedComment(path=file_path, line=finding.line_number, body=format_comment_body(finding))
                )
            else:
                unpostable.append(finding)
    return postable, unpostable
