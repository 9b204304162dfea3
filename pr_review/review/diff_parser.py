"""
Unified diff 解析器（非 AI，必须确定性）。

输出：按 diff 顺序排列的 `FileChange`，每个 hunk 内每一行都带有准确的行号：
- add/context：新文件行号（可以作为行内评论位置）
- delete：旧文件行号（不能作为行内评论位置）

解析策略是宽松的：diff 来自可信的格式化器（git/GitHub），无法识别的行直接忽略，不抛错。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from pr_review.review.models import ChangeType
from pr_review.review.models import FileChange
from pr_review.review.models import Hunk
from pr_review.review.models import LineChange

logger = logging.getLogger(__name__)

FILE_HEADER_RE = re.compile(r"^diff --git a/(.+) b/(.+)$")
HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

CHANGE_TYPE_LOOKAHEAD = 10
DELETED_LINE_MARKER = "[DEL]"


@dataclass
class _OpenHunk:
    old_start: int
    old_line_count: int
    new_start: int
    new_line_count: int
    header_text: str
    changes: list[LineChange] = field(default_factory=list)

    def close(self) -> Hunk:
        return Hunk(
            old_start=self.old_start,
            old_line_count=self.old_line_count,
            new_start=self.new_start,
            new_line_count=self.new_line_count,
            header_text=self.header_text,
            changes=tuple(self.changes),
        )


@dataclass
class _OpenFile:
    path: str
    previous_path: str | None
    change_type: ChangeType
    hunks: list[_OpenHunk] = field(default_factory=list)

    def close(self) -> FileChange:
        return FileChange(
            path=self.path,
            previous_path=self.previous_path,
            change_type=self.change_type,
            hunks=tuple(h.close() for h in self.hunks),
        )


def parse_diff(diff_text: str) -> list[FileChange]:
    """
    将完整的 unified diff（`git diff` / GitHub `.diff` 格式）解析为 `FileChange` 列表。

    - 遇到 `diff --git` 头：结束上一个文件，开启新文件（变更类型由后续元信息行决定）
    - 遇到 `@@` 头：在当前文件下开启新 hunk，并重置新/旧行号计数
    - hunk 内 `+`/`-`/` ` 开头的行：记录为 add/delete/context，行号取自自增前的计数
    """
    lines = diff_text.split("\n")
    files: list[FileChange] = []
    current_file: _OpenFile | None = None
    current_hunk: _OpenHunk | None = None
    old_line = 0
    new_line = 0

    for index, line in enumerate(lines):
        header = FILE_HEADER_RE.match(line)
        if header:
            if current_file is not None:
                files.append(current_file.close())
            old_path, new_path = header.group(1), header.group(2)
            change_type = _detect_change_type(lines=lines, header_index=index, old_path=old_path, new_path=new_path)
            current_file = _OpenFile(
                path=new_path,
                previous_path=old_path if change_type == "renamed" else None,
                change_type=change_type,
            )
            current_hunk = None
            continue

        if line.startswith("@@"):
            hunk = _parse_hunk_header(header=line)
            if hunk is None or current_file is None:
                # 之后的行不再归属任何 hunk，直到下一个合法的 hunk 头
                logger.debug(f"Skipping hunk header without a usable file context: {line!r}")
                current_hunk = None
                continue
            current_file.hunks.append(hunk)
            current_hunk = hunk
            old_line = hunk.old_start
            new_line = hunk.new_start
            continue

        if current_hunk is None or not line:
            continue

        marker = line[0]
        text = line[1:]
        if marker == "+":
            current_hunk.changes.append(LineChange(kind="add", line_number=new_line, text=text))
            new_line += 1
        elif marker == "-":
            current_hunk.changes.append(LineChange(kind="delete", line_number=old_line, text=text))
            old_line += 1
        elif marker == " ":
            current_hunk.changes.append(LineChange(kind="context", line_number=new_line, text=text))
            old_line += 1
            new_line += 1

    if current_file is not None:
        files.append(current_file.close())

    logger.debug(f"Parsed diff: {len(files)} file(s)")
    return files


def _parse_hunk_header(header: str) -> _OpenHunk | None:
    # @@ -a,b +c,d @@ ；省略的行数默认为 1
    match = HUNK_HEADER_RE.match(header)
    if match is None:
        return None
    return _OpenHunk(
        old_start=int(match.group(1)),
        old_line_count=int(match.group(2) or 1),
        new_start=int(match.group(3)),
        new_line_count=int(match.group(4) or 1),
        header_text=header,
    )


def _detect_change_type(lines: list[str], header_index: int, old_path: str, new_path: str) -> ChangeType:
    """向后最多看 10 行元信息（遇到 hunk 头或下一个文件头即停止）。"""
    end = min(header_index + 1 + CHANGE_TYPE_LOOKAHEAD, len(lines))
    for line in lines[header_index + 1 : end]:
        if line.startswith("@@") or FILE_HEADER_RE.match(line):
            break
        if line.startswith("new file mode"):
            return "added"
        if line.startswith("deleted file mode"):
            return "deleted"
        if line.startswith("rename from") or line.startswith("similarity index"):
            return "renamed"

    if old_path != new_path:
        return "renamed"
    return "modified"


def valid_target_lines(file_change: FileChange) -> set[int]:
    """可以挂行内评论的行号集合：所有 add/context 行的新文件行号。"""
    return {
        change.line_number
        for hunk in file_change.hunks
        for change in hunk.changes
        if change.kind in ("add", "context")
    }


def added_lines(file_change: FileChange) -> list[LineChange]:
    """只保留新增行（保持 hunk 顺序与 hunk 内顺序）。"""
    return [change for hunk in file_change.hunks for change in hunk.changes if change.kind == "add"]


def render_for_review(file_change: FileChange) -> str:
    """
    把单个文件的 diff 渲染成给 LLM 看的文本（这是 policy 能看到的唯一文件上下文）。

    - 每行前缀一个位置标记：add/context 为 `[L<新文件行号>]`，delete 为 `[DEL]`
    - 因此文本中出现的任何行号都可以原样作为评论位置使用
    - 输出完全确定（便于测试 fixture 复现）
    """
    lines: list[str] = [f"## {file_change.path}", f"Change type: {file_change.change_type}"]
    if file_change.previous_path is not None:
        lines.append(f"Previous path: {file_change.previous_path}")
    lines.extend(
        [
            "",
            "Each line is prefixed with a position marker:",
            "- `[L<number>]` = line number in the new file (valid comment target)",
            f"- `{DELETED_LINE_MARKER}` = deleted line (never a comment target)",
            "",
        ]
    )

    for hunk in file_change.hunks:
        lines.append("```diff")
        lines.append(hunk.header_text)
        for change in hunk.changes:
            if change.kind == "delete":
                lines.append(f"{DELETED_LINE_MARKER} -{change.text}")
            else:
                prefix = "+" if change.kind == "add" else " "
                lines.append(f"[L{change.line_number}] {prefix}{change.text}")
        lines.append("```")
        lines.append("")

    return "\n".join(lines)
