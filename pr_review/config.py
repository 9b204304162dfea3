"""
应用配置加载。

设计目标：
- **严格**：缺少必要环境变量就直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验 URL/数值等，减少运行时踩坑
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, Field, HttpUrl, ValidationError, field_validator

from pr_review.review.policies import POLICY_SPECS

DEFAULT_LLM_BASE_URL = "https://api.openai.com/v1"
DEFAULT_LLM_MODEL = "gpt-4o-mini"
DEFAULT_GITHUB_API_BASE_URL = "https://api.github.com"
DEFAULT_REVIEW_POLICIES = "logic,security,style"


class LLMConfig(BaseModel):
    base_url: HttpUrl
    api_key: str
    model: str
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)


class GitHubConfig(BaseModel):
    api_base_url: HttpUrl
    token: str
    webhook_secret: str | None = None


class AppConfig(BaseModel):
    """应用运行所需配置。"""

    llm: LLMConfig
    github: GitHubConfig
    review_policies: list[str]

    @field_validator("review_policies")
    @classmethod
    def _known_policies(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("REVIEW_POLICIES must name at least one policy")
        unknown = [name for name in value if name not in POLICY_SPECS]
        if unknown:
            raise ValueError(f"Unknown review policies: {', '.join(unknown)}")
        return value


def _split_names(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def load_config_from_env(environ: Mapping[str, str]) -> AppConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`AppConfig`
    - **失败**：必填项缺失/为空，或取值不合法，统一抛 `ValueError`
    """
    required_keys: tuple[str, ...] = ("LLM_API_KEY", "GITHUB_TOKEN")
    missing: list[str] = [key for key in required_keys if not environ.get(key)]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")

    try:
        # 交给 Pydantic 做类型校验（例如 URL 合法性）
        return AppConfig(
            llm=LLMConfig(
                base_url=environ.get("LLM_BASE_URL") or DEFAULT_LLM_BASE_URL,
                api_key=environ["LLM_API_KEY"],
                model=environ.get("LLM_MODEL") or DEFAULT_LLM_MODEL,
                temperature=environ.get("LLM_TEMPERATURE") or 0.3,
            ),
            github=GitHubConfig(
                api_base_url=environ.get("GITHUB_API_BASE_URL") or DEFAULT_GITHUB_API_BASE_URL,
                token=environ["GITHUB_TOKEN"],
                webhook_secret=environ.get("GITHUB_WEBHOOK_SECRET") or None,
            ),
            review_policies=_split_names(environ.get("REVIEW_POLICIES") or DEFAULT_REVIEW_POLICIES),
        )
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
