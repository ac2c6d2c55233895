"""Rules: 決定係数（R²）と銘柄横断の集計."""
from __future__ import annotations

from typing import Iterable

import numpy as np

from factor_regression_engine.domain.features import Partition
from factor_regression_engine.domain.regression import LinearModel


def r2_from_predictions(labels: np.ndarray, predictions: np.ndarray) -> float:
    """1 - SS_res / SS_tot（平均はそのパーティション自身のラベル平均）.

    分母 0（ラベル分散 0）や空集合は特別扱いせず、IEEE 演算の結果（nan / -inf）をそのまま返す。
    """
    y = np.asarray(labels, dtype="float64")
    p = np.asarray(predictions, dtype="float64")
    with np.errstate(divide="ignore", invalid="ignore"):
        mean_observed = y.mean() if y.size else np.nan
        residual_sum = float(np.sum((y - p) ** 2))
        total_sum = float(np.sum((y - mean_observed) ** 2))
        return float(1.0 - np.float64(residual_sum) / np.float64(total_sum))


def r2_score(model: LinearModel, partition: Partition) -> float:
    """学習済みモデルの予測とパーティションのラベルから R² を計算する.

    Raises:
        PredictionError: 予測に失敗した場合（モデル側で送出）.
    """
    predictions = model.predict_many(partition.features)
    return r2_from_predictions(partition.labels, predictions)


def median_score(scores: Iterable[float | None]) -> float | None:
    """有限値だけの中央値（有限値が 1 つもなければ None）."""
    finite = [s for s in scores if s is not None and np.isfinite(s)]
    if not finite:
        return None
    return float(np.median(finite))
