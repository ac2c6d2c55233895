"""パイプライン全体（読み込み → 特徴量 → 学習 → スコア → バックテスト）."""

from __future__ import annotations

import math
import time as time_module
from datetime import date

import numpy as np
import pandas as pd
import pytest

from factor_regression_engine.domain.regression import ExactLeastSquares, make_solver
from factor_regression_engine.domain.series import PriceSeries
from factor_regression_engine.exceptions import (
    ConfigurationError,
    DataLoadError,
    FatalError,
    InsufficientDataError,
    ModelFitError,
)
from factor_regression_engine.pipeline import analysis
from factor_regression_engine.pipeline.context import build_engine_context
from factor_regression_engine.schemas.reports import SkippedAsset
from helpers import FixedModelSolver, daily_frame, days, hourly_frame, in_memory_services, make_config

MOMENTUM_ONLY = {"reference": False, "index": False, "weekdays": False}


def _alternating_closes(start: date, end: date) -> dict[date, float]:
    """日次リターンが r_{t+1} = 0.02 - r_t に従う終値（5% と -3% を交互に繰り返す）."""
    closes: dict[date, float] = {}
    price, step = 100.0, 0.05
    for d in days(start, end):
        closes[d] = price
        price *= 1.0 + step
        step = 0.02 - step
    return closes


def _doubling_closes(start: date, end: date) -> dict[date, float]:
    return {d: 2.0**i for i, d in enumerate(days(start, end))}


def _services(asset_closes: dict[str, dict[date, float]], shared: dict[date, float], solver=None):
    session = {symbol: hourly_frame(closes) for symbol, closes in asset_closes.items()}
    session.setdefault("BTCUSDT", hourly_frame(shared))
    return in_memory_services(session, {"$SPX": daily_frame(shared)}, solver)


def test_autoregressive_returns_are_recovered(flat_closes: dict[date, float]) -> None:
    closes = _alternating_closes(date(2023, 12, 20), date(2024, 3, 15))
    config = make_config(features=MOMENTUM_ONLY)

    report = analysis.run(config, _services({"ETHUSDT": closes}, flat_closes, ExactLeastSquares()))

    assert [r.symbol for r in report.results] == ["ETHUSDT"]
    result = report.results[0]
    assert result.training_size == 31
    assert result.test_size == 29
    assert result.weights == pytest.approx([-1.0], abs=1e-9)
    assert result.intercept == pytest.approx(0.02, abs=1e-9)
    assert result.is_r2 == pytest.approx(1.0, abs=1e-9)
    assert result.oos_r2 == pytest.approx(1.0, abs=1e-9)
    assert report.median_oos_r2 == pytest.approx(1.0, abs=1e-9)

    # 予測 +5% の日は long、予測 -3% の日は short だけが成立する
    assert result.long.active_periods + result.short.active_periods == 29
    assert result.long.total_return == pytest.approx(0.05 * result.long.active_periods)
    assert result.short.total_return == pytest.approx((1.0 / 0.97 - 1.0) * result.short.active_periods)
    assert result.long.sharpe_ratio is not None
    assert result.short.sharpe_ratio is not None


def test_doubling_prices_give_degenerate_scores(flat_closes: dict[date, float]) -> None:
    closes = _doubling_closes(date(2023, 12, 20), date(2024, 3, 15))
    config = make_config(features=MOMENTUM_ONLY)

    report = analysis.run(config, _services({"ETHUSDT": closes}, flat_closes, make_solver(config.model)))

    result = report.results[0]
    # 定数列 1 に対する勾配法は切片と重みを等分する
    assert result.weights[0] == pytest.approx(0.5, abs=1e-3)
    assert result.intercept + result.weights[0] == pytest.approx(1.0, abs=1e-6)
    # 特徴量もラベルも常に 1 なので R² の分母が 0
    assert not math.isfinite(result.is_r2)
    assert not math.isfinite(result.oos_r2)
    assert report.median_oos_r2 is None
    assert result.long.total_return == pytest.approx(29.0)
    assert result.long.sharpe_ratio is None
    assert result.short.active_periods == 0


def test_flat_prices_run_with_default_features(flat_closes: dict[date, float]) -> None:
    solver = FixedModelSolver([0.001] + [0.0] * 10)

    report = analysis.run(make_config(), _services({"ETHUSDT": flat_closes}, flat_closes, solver))

    result = report.results[0]
    assert len(result.weights) == 10
    assert result.intercept == 0.001
    # ラベルは常に 0 なので long はすべて 0 リターン
    assert result.long.total_return == 0.0
    assert result.long.active_periods == 0
    assert result.short.total_return == 0.0


def test_results_follow_configured_order(flat_closes: dict[date, float]) -> None:
    symbols = ["SOLUSDT", "ETHUSDT", "ADAUSDT", "XRPUSDT"]
    config = make_config(assets=[{"symbol": s} for s in symbols], max_workers=4)
    frames = {s: hourly_frame(flat_closes) for s in [*symbols, "BTCUSDT"]}

    def load_session(cfg, symbol: str) -> pd.DataFrame:
        # 先頭の銘柄だけ遅らせて完了順を入れ替える
        if symbol == "SOLUSDT":
            time_module.sleep(0.2)
        return frames[symbol]

    services = analysis.PipelineServices(
        load_session_records=load_session,
        load_daily_records=lambda cfg, symbol: daily_frame(flat_closes),
        make_solver=lambda settings: FixedModelSolver([0.0] * 11),
    )

    report = analysis.run(config, services)

    assert [r.symbol for r in report.results] == symbols


def test_insufficient_training_data_aborts_by_default(flat_closes: dict[date, float]) -> None:
    config = make_config(assets=[{"symbol": "ETHUSDT"}, {"symbol": "LATEUSDT", "start_date": "2024-02-10"}])
    services = _services({"ETHUSDT": flat_closes, "LATEUSDT": flat_closes}, flat_closes, FixedModelSolver([0.0] * 11))

    with pytest.raises(InsufficientDataError) as excinfo:
        analysis.run(config, services)
    assert excinfo.value.context["symbol"] == "LATEUSDT"


def test_skip_policy_drops_failed_asset(flat_closes: dict[date, float]) -> None:
    config = make_config(
        assets=[{"symbol": "ETHUSDT"}, {"symbol": "LATEUSDT", "start_date": "2024-02-10"}, {"symbol": "SOLUSDT"}],
        error_policy="skip",
    )
    services = _services(
        {"ETHUSDT": flat_closes, "LATEUSDT": flat_closes, "SOLUSDT": flat_closes},
        flat_closes,
        FixedModelSolver([0.0] * 11),
    )

    report = analysis.run(config, services)

    assert [r.symbol for r in report.results] == ["ETHUSDT", "SOLUSDT"]
    assert len(report.skipped) == 1
    assert isinstance(report.skipped[0], SkippedAsset)
    assert report.skipped[0].symbol == "LATEUSDT"
    assert report.skipped[0].reason.startswith("No training examples.")


def test_fit_failure_is_tagged_with_symbol(flat_closes: dict[date, float]) -> None:
    class FailingSolver:
        def fit(self, features: np.ndarray, labels: np.ndarray):
            raise ModelFitError("Failed to fit model: diverged")

    config = make_config(error_policy="skip")
    report = analysis.run(config, _services({"ETHUSDT": flat_closes}, flat_closes, FailingSolver()))

    assert report.results == []
    assert report.skipped[0].reason == "Failed to fit model: diverged (symbol=ETHUSDT)"
    assert report.median_oos_r2 is None


def test_load_failure_is_fatal_even_when_skipping(flat_closes: dict[date, float]) -> None:
    config = make_config(assets=[{"symbol": "ETHUSDT"}, {"symbol": "MISSINGUSDT"}], error_policy="skip")

    with pytest.raises(DataLoadError):
        analysis.run(config, _services({"ETHUSDT": flat_closes}, flat_closes, FixedModelSolver([0.0] * 11)))


def test_missing_shared_series_is_fatal(flat_closes: dict[date, float]) -> None:
    services = in_memory_services({"ETHUSDT": hourly_frame(flat_closes)}, {"$SPX": daily_frame(flat_closes)})

    with pytest.raises(DataLoadError) as excinfo:
        analysis.run(make_config(), services)
    assert excinfo.value.context["symbol"] == "BTCUSDT"


def test_unexpected_exception_becomes_fatal(flat_closes: dict[date, float]) -> None:
    class BrokenSolver:
        def fit(self, features: np.ndarray, labels: np.ndarray):
            raise RuntimeError("boom")

    config = make_config(error_policy="skip")

    with pytest.raises(FatalError) as excinfo:
        analysis.run(config, _services({"ETHUSDT": flat_closes}, flat_closes, BrokenSolver()))
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert excinfo.value.context["symbol"] == "ETHUSDT"


def test_engine_context_rejects_mismatched_series() -> None:
    config = make_config()

    with pytest.raises(ConfigurationError):
        build_engine_context(
            config,
            reference=PriceSeries(symbol="ETHUSDT", closes={}),
            index=PriceSeries(symbol="$SPX", closes={}),
        )

    ctx = build_engine_context(
        config,
        reference=PriceSeries(symbol="BTCUSDT", closes={}),
        index=PriceSeries(symbol="$SPX", closes={}),
    )
    assert ctx.notes == {"reference_points": 0, "index_points": 0}
