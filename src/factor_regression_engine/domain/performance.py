"""Rules: リターン列を合計リターンと年率 Sharpe に要約する."""
from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from factor_regression_engine.schemas.config import SignalSettings
from factor_regression_engine.schemas.reports import PerformanceSummary


def total_return(returns: Sequence[float] | np.ndarray) -> float:
    """単純合計（複利ではない近似）."""
    return float(np.sum(np.asarray(returns, dtype="float64")))


def sharpe_ratio(
    returns: Sequence[float] | np.ndarray,
    *,
    risk_free_rate: float,
    periods_per_year: int,
) -> float | None:
    """sqrt(P) * (mean - rf / P) / std を返す.

    Returns:
        float | None: 2 件未満、全期間同値、または非有限の場合は None（未定義）.
    """
    r = np.asarray(returns, dtype="float64")
    if r.size < 2:
        return None
    # 全期間同値なら std は丸め誤差だけになる
    if float(np.ptp(r)) == 0.0:
        return None

    with np.errstate(divide="ignore", invalid="ignore"):
        excess = r.mean() - risk_free_rate / periods_per_year
        std = r.std(ddof=1)
        value = math.sqrt(periods_per_year) * np.float64(excess) / np.float64(std)

    if not np.isfinite(value):
        return None
    return float(value)


def summarize(returns: Sequence[float] | np.ndarray, signals: SignalSettings) -> PerformanceSummary:
    r = np.asarray(returns, dtype="float64")
    return PerformanceSummary(
        total_return=total_return(r),
        sharpe_ratio=sharpe_ratio(
            r,
            risk_free_rate=signals.risk_free_rate,
            periods_per_year=signals.periods_per_year,
        ),
        periods=int(r.size),
        active_periods=int(np.count_nonzero(r)),
    )
