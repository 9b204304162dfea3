from __future__ import annotations

import pytest

from pr_review.config import load_config_from_env

BASE_ENV = {"LLM_API_KEY": "k", "GITHUB_TOKEN": "t"}


def test_load_config_requires_llm_key_and_github_token() -> None:
    with pytest.raises(ValueError, match="LLM_API_KEY, GITHUB_TOKEN"):
        load_config_from_env(environ={})


def test_load_config_rejects_empty_values() -> None:
    with pytest.raises(ValueError, match="GITHUB_TOKEN"):
        load_config_from_env(environ={"LLM_API_KEY": "k", "GITHUB_TOKEN": ""})


def test_load_config_defaults() -> None:
    cfg = load_config_from_env(environ=BASE_ENV)
    assert str(cfg.llm.base_url).rstrip("/") == "https://api.openai.com/v1"
    assert cfg.llm.model == "gpt-4o-mini"
    assert cfg.llm.temperature == 0.3
    assert str(cfg.github.api_base_url).rstrip("/") == "https://api.github.com"
    assert cfg.github.webhook_secret is None
    assert cfg.review_policies == ["logic", "security", "style"]


def test_load_config_overrides() -> None:
    environ = {
        **BASE_ENV,
        "LLM_BASE_URL": "http://127.0.0.1:9001",
        "LLM_MODEL": "m",
        "LLM_TEMPERATURE": "0",
        "GITHUB_API_BASE_URL": "https://ghe.example.com/api/v3",
        "GITHUB_WEBHOOK_SECRET": "s",
        "REVIEW_POLICIES": " security , logic ",
    }
    cfg = load_config_from_env(environ=environ)
    assert cfg.llm.model == "m"
    assert cfg.llm.temperature == 0.0
    assert cfg.github.webhook_secret == "s"
    assert cfg.review_policies == ["security", "logic"]


def test_load_config_rejects_unknown_policy() -> None:
    with pytest.raises(ValueError):
        load_config_from_env(environ={**BASE_ENV, "REVIEW_POLICIES": "logic,typos"})


def test_load_config_rejects_invalid_url() -> None:
    with pytest.raises(ValueError):
        load_config_from_env(environ={**BASE_ENV, "LLM_BASE_URL": "not a url"})
