"""テスト用ヘルパ: 合成価格フレーム・設定・決定的な偽ソルバ."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Mapping

import numpy as np
import pandas as pd

from factor_regression_engine.config.resolver import resolve_config
from factor_regression_engine.domain.regression import LinearModel
from factor_regression_engine.exceptions import DataLoadError, ModelFitError
from factor_regression_engine.pipeline.analysis import PipelineServices
from factor_regression_engine.schemas.config import AnalysisConfig

BASE_CONFIG: dict[str, Any] = {
    "binance_directory": "unused/binance",
    "barchart_directory": "unused/barchart",
    "start_date": "2024-01-01",
    "split_date": "2024-02-01",
    "end_date": "2024-03-01",
    "index_symbol": "$SPX",
    "reference_symbol": "BTCUSDT",
    "report": {"color": False},
    "assets": [{"symbol": "ETHUSDT"}],
}


def make_config(**overrides: Any) -> AnalysisConfig:
    """BASE_CONFIG に上書きを deep merge して検証済み設定を返す."""
    return resolve_config(BASE_CONFIG, overrides=overrides)


def days(start: date, end: date) -> list[date]:
    """[start, end] の日付列."""
    out = []
    current = start
    while current <= end:
        out.append(current)
        current += timedelta(days=1)
    return out


def hourly_frame(closes: Mapping[date, float], *, session_hour: int = 21) -> pd.DataFrame:
    """各日 0..23 時の時間足を作る（session_hour の足だけが closes の値、他はノイズ値）."""
    stamps: list[datetime] = []
    values: list[float] = []
    for day, close in closes.items():
        for hour in range(24):
            stamps.append(datetime(day.year, day.month, day.day, hour))
            values.append(close if hour == session_hour else close * 1000.0 + hour)
    return ohlc_frame(stamps, values)


def daily_frame(closes: Mapping[date, float]) -> pd.DataFrame:
    stamps = [datetime(d.year, d.month, d.day) for d in closes]
    return ohlc_frame(stamps, list(closes.values()))


def ohlc_frame(stamps: list[datetime], closes: list[float]) -> pd.DataFrame:
    values = np.asarray(closes, dtype="float64")
    frame = pd.DataFrame(
        {"open": values, "high": values, "low": values, "close": values, "volume": np.zeros(len(values))},
        index=pd.DatetimeIndex(stamps, name="timestamp"),
    )
    return frame


class NumpyLeastSquares:
    """切片付きの厳密最小二乗（numpy.linalg.lstsq）."""

    def fit(self, features: np.ndarray, labels: np.ndarray) -> LinearModel:
        if features.shape[0] == 0:
            raise ModelFitError("Training matrix is empty.")
        design = np.column_stack([np.ones(features.shape[0]), features])
        parameters, *_ = np.linalg.lstsq(design, labels, rcond=None)
        return LinearModel(parameters=np.asarray(parameters, dtype="float64"))


class FixedModelSolver:
    """学習データを無視して固定パラメータを返す."""

    def __init__(self, parameters: list[float]) -> None:
        self.parameters = np.asarray(parameters, dtype="float64")

    def fit(self, features: np.ndarray, labels: np.ndarray) -> LinearModel:
        return LinearModel(parameters=self.parameters.copy())


def in_memory_services(
    session: Mapping[str, pd.DataFrame],
    daily: Mapping[str, pd.DataFrame],
    solver: Any = None,
) -> PipelineServices:
    """ファイルを読まずに dict からレコードを返す services."""

    def load(source: Mapping[str, pd.DataFrame], symbol: str) -> pd.DataFrame:
        if symbol not in source:
            raise DataLoadError("No records.", context={"symbol": symbol})
        return source[symbol]

    return PipelineServices(
        load_session_records=lambda config, symbol: load(session, symbol),
        load_daily_records=lambda config, symbol: load(daily, symbol),
        make_solver=lambda settings: solver if solver is not None else NumpyLeastSquares(),
    )
