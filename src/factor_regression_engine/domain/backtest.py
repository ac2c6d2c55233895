"""Rules: 予測値から long / short のシグナルを作り、期間リターン列に変換する.

Notes:
    - long: 予測 > long_threshold なら label を実現、それ以外は 0（フラット）。
    - short: 予測 < short_threshold なら 1/(1+label) - 1 を実現（-label ではない）、それ以外は 0。
    - 閾値は独立。同じ期間に long と short が両方成立することもある。
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from factor_regression_engine.domain.features import Partition
from factor_regression_engine.domain.regression import LinearModel
from factor_regression_engine.schemas.config import SignalSettings


def long_return(prediction: float, label: float, threshold: float) -> float:
    if prediction > threshold:
        return label
    return 0.0


def short_return(prediction: float, label: float, threshold: float) -> float:
    if prediction < threshold:
        return 1.0 / (1.0 + label) - 1.0
    return 0.0


@dataclass(frozen=True, eq=False)
class BacktestResult:
    """検証パーティションと 1:1 に並ぶ予測値とリターン列."""

    predictions: np.ndarray
    long_returns: np.ndarray
    short_returns: np.ndarray

    @property
    def long_active(self) -> int:
        return int(np.count_nonzero(self.long_returns))

    @property
    def short_active(self) -> int:
        return int(np.count_nonzero(self.short_returns))


def run_backtest(model: LinearModel, partition: Partition, signals: SignalSettings) -> BacktestResult:
    """検証パーティションの各事例を予測し、long/short のリターン列を返す.

    Raises:
        PredictionError: 予測に失敗した場合.
    """
    predictions = model.predict_many(partition.features)
    labels = partition.labels

    longs = [long_return(p, y, signals.long_threshold) for p, y in zip(predictions, labels)]
    shorts = [short_return(p, y, signals.short_threshold) for p, y in zip(predictions, labels)]

    return BacktestResult(
        predictions=predictions,
        long_returns=np.asarray(longs, dtype="float64"),
        short_returns=np.asarray(shorts, dtype="float64"),
    )
