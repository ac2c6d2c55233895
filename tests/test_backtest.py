"""閾値シグナルのバックテスト."""

from __future__ import annotations

from datetime import date

import numpy as np
import pytest

from factor_regression_engine.domain.backtest import long_return, run_backtest, short_return
from factor_regression_engine.domain.features import LabeledExample, Partition
from factor_regression_engine.domain.regression import LinearModel
from factor_regression_engine.schemas.config import SignalSettings


def _partition(rows: list[tuple[float, float]]) -> Partition:
    examples = tuple(
        LabeledExample(date=date(2024, 2, i + 1), features=(x,), label=y) for i, (x, y) in enumerate(rows)
    )
    return Partition(examples=examples, width=1)


def test_long_realizes_label_only_above_threshold() -> None:
    assert long_return(0.02, 0.05, 0.0) == 0.05
    assert long_return(0.0, 0.05, 0.0) == 0.0
    assert long_return(-0.01, 0.05, 0.0) == 0.0


def test_short_uses_inverse_price_return() -> None:
    # 10% 上昇に対するショートは 1/1.1 - 1
    assert short_return(-0.02, 0.1, 0.0) == pytest.approx(1.0 / 1.1 - 1.0)
    assert short_return(-0.02, -0.5, 0.0) == pytest.approx(1.0)
    assert short_return(0.0, 0.1, 0.0) == 0.0
    assert short_return(0.01, 0.1, 0.0) == 0.0


def test_backtest_aligns_with_test_partition() -> None:
    model = LinearModel(parameters=np.array([0.0, 1.0]))
    partition = _partition([(0.5, 0.1), (-0.5, -0.2), (0.0, 0.3), (0.2, -0.1)])

    result = run_backtest(model, partition, SignalSettings())

    np.testing.assert_allclose(result.predictions, [0.5, -0.5, 0.0, 0.2])
    np.testing.assert_allclose(result.long_returns, [0.1, 0.0, 0.0, -0.1])
    np.testing.assert_allclose(result.short_returns, [0.0, 1.0 / 0.8 - 1.0, 0.0, 0.0])
    assert result.long_active == 2
    assert result.short_active == 1


def test_independent_thresholds_can_overlap() -> None:
    model = LinearModel(parameters=np.array([0.0, 1.0]))
    partition = _partition([(0.0, 0.25)])
    signals = SignalSettings(long_threshold=-0.1, short_threshold=0.1)

    result = run_backtest(model, partition, signals)

    assert result.long_returns[0] == pytest.approx(0.25)
    assert result.short_returns[0] == pytest.approx(1.0 / 1.25 - 1.0)


def test_empty_partition_gives_empty_returns() -> None:
    model = LinearModel(parameters=np.array([0.0, 1.0]))

    result = run_backtest(model, Partition(examples=(), width=1), SignalSettings())

    assert result.long_returns.shape == (0,)
    assert result.short_returns.shape == (0,)


def test_prediction_between_thresholds_is_flat() -> None:
    model = LinearModel(parameters=np.array([0.0, 1.0]))
    partition = _partition([(0.005, 0.2), (0.005, -0.2)])
    signals = SignalSettings(long_threshold=0.01, short_threshold=-0.01)

    result = run_backtest(model, partition, signals)

    np.testing.assert_array_equal(result.long_returns, [0.0, 0.0])
    np.testing.assert_array_equal(result.short_returns, [0.0, 0.0])
    assert result.long_active == 0
    assert result.short_active == 0
