"""Rules: 最小二乗ソルバの狭いインタフェースと scikit-learn アダプタ.

Notes:
    - ソルバは外部依存（scikit-learn）として扱い、本モジュールは
      「行列→パラメータベクトル」と「1 ベクトル→スカラー予測」の 2 操作だけを公開する。
    - パラメータベクトルは index 0 が切片、1..N が特徴量の重み（特徴量ベクトルと同じ順序）。
    - テストでは RegressionSolver を満たす決定的な偽ソルバに差し替えられる。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

import numpy as np
from sklearn.linear_model import LinearRegression, SGDRegressor

from factor_regression_engine.exceptions import ModelFitError, PredictionError
from factor_regression_engine.schemas.config import ModelSettings


@dataclass(frozen=True, eq=False)
class LinearModel:
    """学習済みの線形モデル（銘柄ごとに独立。共有・再学習しない）."""

    parameters: np.ndarray

    @property
    def intercept(self) -> float:
        return float(self.parameters[0])

    @property
    def weights(self) -> np.ndarray:
        return self.parameters[1:]

    def predict(self, features: Sequence[float]) -> float:
        """1 ベクトル分の予測値を返す.

        Raises:
            PredictionError: 次元不一致、または結果が有限でない場合.
        """
        x = np.asarray(features, dtype="float64")
        if x.ndim != 1 or x.shape[0] != self.weights.shape[0]:
            raise PredictionError(
                "Feature vector has the wrong shape.",
                context={"expected": int(self.weights.shape[0]), "actual": tuple(x.shape)},
            )
        value = self.intercept + float(np.dot(self.weights, x))
        if not np.isfinite(value):
            raise PredictionError("Prediction is not finite.", context={"value": value})
        return value

    def predict_many(self, features: np.ndarray) -> np.ndarray:
        return np.asarray([self.predict(row) for row in features], dtype="float64")


class RegressionSolver(Protocol):
    """学習操作だけを持つソルバ契約."""

    def fit(self, features: np.ndarray, labels: np.ndarray) -> LinearModel: ...


def _to_model(intercept: float, coefficients: np.ndarray) -> LinearModel:
    parameters = np.concatenate([[float(intercept)], np.asarray(coefficients, dtype="float64").ravel()])
    if not np.all(np.isfinite(parameters)):
        raise ModelFitError("Solver returned non-finite parameters.", context={"parameters": parameters.tolist()})
    return LinearModel(parameters=parameters)


def _check_inputs(features: np.ndarray, labels: np.ndarray) -> None:
    if features.ndim != 2 or labels.ndim != 1 or features.shape[0] != labels.shape[0]:
        raise ModelFitError(
            "Training matrix and labels have inconsistent shapes.",
            context={"features": tuple(features.shape), "labels": tuple(labels.shape)},
        )
    if features.shape[0] == 0:
        raise ModelFitError("Training matrix is empty.")
    if not (np.all(np.isfinite(features)) and np.all(np.isfinite(labels))):
        raise ModelFitError("Training data contains non-finite values.")


# 学習 MSE がラベル分散（平均予測の MSE）のこの倍数を超えたら発散とみなす
_DIVERGENCE_FACTOR = 2.0
# ラベル分散 0 の縮退データでも丸め誤差だけで失敗させない下限
_MIN_VARIANCE = 1e-12


def _check_convergence(model: LinearModel, features: np.ndarray, labels: np.ndarray) -> None:
    """学習後の当てはまりを検査する.

    SGDRegressor は損失勾配をクリップするため、発散しても有限の巨大なパラメータを返す。
    平均で予測するより明らかに悪い解は非収束として扱う。

    Raises:
        ModelFitError: 学習 MSE が非有限、または平均予測の MSE を大きく上回る場合.
    """
    with np.errstate(over="ignore", invalid="ignore"):
        predictions = model.intercept + features @ model.weights
        mse = float(np.mean((labels - predictions) ** 2))
    variance = float(np.var(labels))
    if not np.isfinite(mse) or mse > _DIVERGENCE_FACTOR * max(variance, _MIN_VARIANCE):
        raise ModelFitError(
            "Solver did not converge.",
            context={"training_mse": mse, "label_variance": variance},
        )


@dataclass(frozen=True)
class GradientLeastSquares:
    """固定学習率の勾配法による最小二乗（SGDRegressor）.

    非収束（学習 MSE が平均予測より大きく悪い）や数値異常は ModelFitError として返す。
    """

    learning_rate: float = 0.001
    regularization: float = 0.0
    max_iterations: int = 10000

    def fit(self, features: np.ndarray, labels: np.ndarray) -> LinearModel:
        _check_inputs(features, labels)
        estimator = SGDRegressor(
            loss="squared_error",
            penalty="l2" if self.regularization > 0.0 else None,
            alpha=self.regularization,
            learning_rate="constant",
            eta0=self.learning_rate,
            max_iter=self.max_iterations,
            tol=None,
            shuffle=False,
            random_state=0,
        )
        try:
            estimator.fit(features, labels)
        except (ValueError, FloatingPointError) as e:
            raise ModelFitError(f"Failed to fit model: {e}") from e
        model = _to_model(float(np.ravel(estimator.intercept_)[0]), estimator.coef_)
        _check_convergence(model, features, labels)
        return model


@dataclass(frozen=True)
class ExactLeastSquares:
    """正規方程式相当の厳密解（LinearRegression）."""

    def fit(self, features: np.ndarray, labels: np.ndarray) -> LinearModel:
        _check_inputs(features, labels)
        estimator = LinearRegression()
        try:
            estimator.fit(features, labels)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise ModelFitError(f"Failed to fit model: {e}") from e
        return _to_model(float(estimator.intercept_), estimator.coef_)


def make_solver(settings: ModelSettings) -> RegressionSolver:
    """設定からソルバを生成する（銘柄ごとに呼び出し、共有しない）."""
    if settings.method == "exact":
        return ExactLeastSquares()
    return GradientLeastSquares(
        learning_rate=settings.learning_rate,
        regularization=settings.regularization,
        max_iterations=settings.max_iterations,
    )
