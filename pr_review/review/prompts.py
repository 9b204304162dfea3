"""
各 review policy 的 prompt 文本。

约定：
- system prompt 只描述“审查维度 + 输出要求 + 行号规则”
- user prompt 统一由 `build_policy_user_prompt` 拼接（PR 信息 + 渲染后的 diff + 输出 JSON 结构）
"""

from __future__ import annotations

from collections.abc import Sequence

MAX_FULL_CONTENT_CHARS = 12000

LINE_NUMBER_RULES = (
    "行号规则（重要）：\n"
    "- 代码中每行以 [L<number>] 或 [DEL] 开头\n"
    "- lineNumber 必须使用 [L<number>] 中的数字\n"
    "- 不可使用 [DEL] 标记的行（这些是被删除的行）\n"
    "- 只评论新增或修改的代码行"
)

LOGIC_SYSTEM_PROMPT = (
    "你是一个严格的代码逻辑审查专家。\n\n"
    "审查维度：\n"
    "1. 边界条件处理 - 空值、越界、类型转换\n"
    "2. 错误处理 - 异常捕获、错误传播\n"
    "3. 逻辑漏洞 - 条件遗漏、状态不一致\n"
    "4. 可能的 Bug - 拼写错误、错误的比较运算符\n\n"
    "输出要求：\n"
    "- 只指出真正的问题，不要过度挑剔\n"
    "- 每个问题必须说明：在什么情况下会出问题\n"
    "- 如果代码没有明显问题，返回空的 issues 数组\n"
    "- 你必须输出严格 JSON（不要 markdown、不要解释）\n"
    "- 用中文回复\n\n" + LINE_NUMBER_RULES
)

SECURITY_SYSTEM_PROMPT = (
    "你是一个安全审计专家，专注于发现代码中的安全漏洞。\n\n"
    "审查维度：\n"
    "1. 注入风险 - SQL 注入、XSS、命令注入、路径遍历\n"
    "2. 敏感信息 - 硬编码密钥、Token、密码、日志中泄露敏感数据\n"
    "3. 认证授权 - 权限检查缺失、不安全的身份验证\n"
    "4. 危险调用 - eval、不安全的反序列化\n"
    "5. SSRF - 服务端请求伪造\n"
    "6. 加密问题 - 弱加密算法、不安全的随机数\n\n"
    "输出要求：\n"
    "- 高危标记为 error，中低危标记为 warning\n"
    "- 说明具体的攻击场景（attackVector）并给出修复建议\n"
    "- 不要误报；没有安全问题时返回空的 issues 数组\n"
    "- 你必须输出严格 JSON（不要 markdown、不要解释）\n"
    "- 用中文回复\n\n" + LINE_NUMBER_RULES
)

STYLE_SYSTEM_PROMPT = (
    "你是一个代码风格顾问，专注于提升代码可读性和可维护性。\n\n"
    "审查维度：\n"
    "1. 命名 - 变量、函数、类的命名是否清晰\n"
    "2. 结构 - 函数是否过长、嵌套是否过深、职责是否单一\n"
    "3. 类型 - 类型标注是否恰当\n"
    "4. 注释 - 复杂逻辑是否缺少必要说明\n"
    "5. 重复 - 是否有明显可以抽象的重复代码\n\n"
    "输出要求：\n"
    "- 值得改进的标记为 suggestion，主观的小问题标记为 nitpick\n"
    "- 不要过度苛刻；代码风格良好时返回空的 issues 数组\n"
    "- 你必须输出严格 JSON（不要 markdown、不要解释）\n"
    "- 用中文回复\n\n" + LINE_NUMBER_RULES
)


def _truncate_text(text: str, max_chars: int) -> str:
    """控制输入长度，避免超出模型上下文/预算。"""
    if max_chars <= 0:
        raise ValueError("max_chars must be > 0")
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "\n...TRUNCATED..."


def _output_schema_text(severities: Sequence[str], with_attack_vector: bool) -> str:
    severity_choices = " | ".join(f'"{s}"' for s in severities)
    fields = [
        '      "lineNumber": <行号>',
        f'      "severity": {severity_choices}',
        '      "issue": "<问题描述>"',
    ]
    if with_attack_vector:
        fields.append('      "attackVector": "<攻击场景说明>"')
    fields.append('      "suggestion": "<可选的修复建议>"')
    return (
        "{\n"
        '  "issues": [\n'
        "    {\n" + ",\n".join(fields) + "\n    }\n"
        "  ],\n"
        '  "summary": "<简短总结>"\n'
        "}"
    )


def build_policy_user_prompt(
    instruction: str,
    title: str,
    description: str | None,
    rendered_diff: str,
    full_file_content: str | None,
    severities: Sequence[str],
    with_attack_vector: bool = False,
) -> str:
    """拼接 policy 的 user prompt：PR 信息 + 代码变更 +（可选）完整文件 + 输出结构。"""
    parts: list[str] = [f"{instruction}\n", "## PR 信息", f"标题: {title}"]
    if description:
        parts.append(f"描述: {description}")
    parts.append("")
    parts.append("## 代码变更")
    parts.append(rendered_diff)
    if full_file_content:
        parts.append("## 完整文件内容（仅供参考，行号以上面的标记为准）")
        parts.append(_truncate_text(text=full_file_content, max_chars=MAX_FULL_CONTENT_CHARS))
        parts.append("")
    parts.append("请以 JSON 格式输出，结构如下：")
    parts.append(_output_schema_text(severities=severities, with_attack_vector=with_attack_vector))
    return "\n".join(parts)
