"""R² と銘柄横断の中央値."""

from __future__ import annotations

import math
from datetime import date

import numpy as np
import pytest

from factor_regression_engine.domain.features import LabeledExample, Partition
from factor_regression_engine.domain.regression import LinearModel
from factor_regression_engine.domain.scoring import median_score, r2_from_predictions, r2_score


def _partition(rows: list[tuple[float, float]]) -> Partition:
    examples = tuple(
        LabeledExample(date=date(2024, 1, i + 1), features=(x,), label=y) for i, (x, y) in enumerate(rows)
    )
    return Partition(examples=examples, width=1)


def test_perfect_fit_scores_one() -> None:
    labels = np.array([0.1, -0.2, 0.3])

    assert r2_from_predictions(labels, labels) == pytest.approx(1.0)


def test_mean_prediction_scores_zero() -> None:
    labels = np.array([1.0, 2.0, 3.0])

    assert r2_from_predictions(labels, np.full(3, 2.0)) == pytest.approx(0.0)


def test_worse_than_mean_is_negative() -> None:
    labels = np.array([1.0, 2.0, 3.0])

    assert r2_from_predictions(labels, np.array([3.0, 2.0, 1.0])) == pytest.approx(-3.0)


def test_constant_labels_follow_ieee_arithmetic() -> None:
    labels = np.full(4, 0.5)

    assert math.isnan(r2_from_predictions(labels, labels))
    assert r2_from_predictions(labels, labels + 0.1) == -math.inf


def test_empty_partition_is_nan() -> None:
    assert math.isnan(r2_from_predictions(np.empty(0), np.empty(0)))


def test_r2_score_uses_partition_mean() -> None:
    model = LinearModel(parameters=np.array([0.0, 1.0]))
    partition = _partition([(1.0, 1.0), (2.0, 2.0), (3.0, 4.0)])

    # SS_res = 1, 平均 7/3 に対する SS_tot = 14/3
    assert r2_score(model, partition) == pytest.approx(1.0 - 1.0 / (14.0 / 3.0))


def test_median_ignores_non_finite_scores() -> None:
    assert median_score([0.1, math.nan, 0.3, -math.inf, None]) == pytest.approx(0.2)
    assert median_score([0.5, 0.1, 0.9]) == pytest.approx(0.5)


def test_median_without_finite_scores_is_none() -> None:
    assert median_score([]) is None
    assert median_score([math.nan, None]) is None
