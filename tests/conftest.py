"""共通フィクスチャ."""

from __future__ import annotations

from datetime import date

import pytest

from helpers import days


@pytest.fixture
def flat_closes() -> dict[date, float]:
    """2023-12-20 から 2024-03-15 まで毎日 100 の終値."""
    return {d: 100.0 for d in days(date(2023, 12, 20), date(2024, 3, 15))}
