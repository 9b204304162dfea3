from __future__ import annotations

from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def sample_diff() -> str:
    return (FIXTURES_DIR / "sample.diff").read_text(encoding="utf-8")
