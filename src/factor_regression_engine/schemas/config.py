"""実行設定（AnalysisConfig）の契約定義。

設計意図:
- 設定を「1 つの明示的な不変オブジェクト」として固定し、各コンポーネントへ引数で渡す。
  プロセス全体のグローバル設定は持たない（並列実行時の読み取り競合を構造的に排除する）。
- 特徴量フラグと曜日エンコーディングは実行時設定とし、ヘッダと特徴量順序は
  domain/features.py の FeatureLayout が本設定から一意に導出する。
- schema_version により設定形状の変更を明示的に扱う。
"""

from __future__ import annotations

from datetime import date, time
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from factor_regression_engine.config.defaults import SCHEMA_VERSION


class Weekday(str, Enum):
    """曜日（value は名前、number は Monday=0 の Python 規約）。"""

    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @property
    def number(self) -> int:
        return list(Weekday).index(self)

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_number(cls, number: int) -> "Weekday":
        return list(cls)[number % 7]


def _upper_weekday(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


class AssetSpec(BaseModel):
    """分析対象の銘柄（個別の開始日上書きを任意で持つ）。"""

    model_config = ConfigDict(extra="forbid", frozen=True)

    symbol: str = Field(..., min_length=1, max_length=32, description="Asset symbol (Binance source)")
    start_date: date | None = Field(None, description="Drop records before this date")


class WeekdayEncoding(BaseModel):
    """曜日 one-hot の幅と起点。

    Notes:
        - slot = (weekday - origin) mod 7
        - slot >= slots の曜日は全ゼロベクトルになる（5 枠なら週末が該当）
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    slots: int = Field(7, ge=1, le=7, description="One-hot width")
    origin: Weekday = Field(Weekday.MONDAY, description="Weekday at slot 0")

    @field_validator("origin", mode="before")
    @classmethod
    def _normalize_origin(cls, value: Any) -> Any:
        return _upper_weekday(value)


class FeatureFlags(BaseModel):
    """有効な特徴量グループ（順序は momentum, reference, index, weekdays で固定）。"""

    model_config = ConfigDict(extra="forbid", frozen=True)

    momentum: bool = True
    reference: bool = True
    index: bool = True
    weekdays: bool = True
    weekday_encoding: WeekdayEncoding = Field(default_factory=WeekdayEncoding)

    @model_validator(mode="after")
    def _require_any_group(self) -> "FeatureFlags":
        if not (self.momentum or self.reference or self.index or self.weekdays):
            raise ValueError("At least one feature group must be enabled.")
        return self


class SignalSettings(BaseModel):
    """売買シグナル閾値と Sharpe 計算の前提。

    Notes:
        - long/short の閾値は独立（重なり・隙間を許容する）。
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    long_threshold: float = Field(0.0, description="Go long when prediction > threshold")
    short_threshold: float = Field(0.0, description="Go short when prediction < threshold")
    risk_free_rate: float = Field(0.0, ge=-1.0, le=1.0, description="Annualized risk-free rate")
    periods_per_year: int = Field(52, ge=1, le=100000, description="Sharpe annualization constant")


class ModelSettings(BaseModel):
    """最小二乗ソルバの設定。"""

    model_config = ConfigDict(extra="forbid", frozen=True)

    method: Literal["gradient", "exact"] = Field("gradient", description="Solver backend")
    learning_rate: float = Field(0.001, gt=0.0, description="Fixed learning rate (gradient only)")
    regularization: float = Field(0.0, ge=0.0, description="L2 penalty (gradient only)")
    max_iterations: int = Field(10000, ge=1, le=10_000_000, description="Iteration bound (gradient only)")


class ReportSettings(BaseModel):
    """表出力の設定（列グループ・強調表示）。"""

    model_config = ConfigDict(extra="forbid", frozen=True)

    show_scores: bool = Field(True, description="IS/OOS R² columns")
    show_backtest: bool = Field(True, description="Long/short return and Sharpe columns")
    highlight_threshold: float = Field(0.05, ge=0.0, description="Coefficient emphasis threshold")
    color: bool = Field(True, description="Colorize emphasized cells")
    tablefmt: str = Field("simple", min_length=1, description="tabulate table format")


class AnalysisConfig(BaseModel):
    """1 回のレポート実行に必要な設定一式（不変）。"""

    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: int = Field(SCHEMA_VERSION, description="Configuration schema version")

    binance_directory: str = Field(..., min_length=1, description="Hourly Binance kline directory")
    barchart_directory: str = Field(..., min_length=1, description="Daily Barchart export directory")

    start_date: date = Field(..., description="First date of the analysis range (inclusive)")
    split_date: date = Field(..., description="First out-of-sample date")
    end_date: date = Field(..., description="End of the analysis range (exclusive)")

    index_symbol: str = Field(..., min_length=1, description="Benchmark index (Barchart source)")
    reference_symbol: str = Field("BTCUSDT", min_length=1, description="Reference asset (Binance source)")

    session_end: time = Field(time(21, 0), description="Time of day used for session-close collapsing")
    closest_lookback_days: int = Field(10, ge=1, le=366, description="Closest-prior lookup bound")
    holding_days: int = Field(1, ge=1, le=366, description="Forward-return horizon in days")
    weekday_filter: Weekday | None = Field(None, description="Only use this weekday if set")

    features: FeatureFlags = Field(default_factory=FeatureFlags)
    signals: SignalSettings = Field(default_factory=SignalSettings)
    model: ModelSettings = Field(default_factory=ModelSettings)
    report: ReportSettings = Field(default_factory=ReportSettings)

    error_policy: Literal["abort", "skip"] = Field("abort", description="Per-asset failure policy")
    max_workers: int | None = Field(None, ge=1, le=256, description="Thread pool size")

    assets: list[AssetSpec] = Field(..., min_length=1, description="Asset universe")

    @field_validator("weekday_filter", mode="before")
    @classmethod
    def _normalize_weekday_filter(cls, value: Any) -> Any:
        return _upper_weekday(value)

    @field_validator("session_end", mode="before")
    @classmethod
    def _coerce_session_end(cls, value: Any) -> Any:
        # YAML 1.1 は未クォートの 21:00 を 60 進整数（1260）として読む
        if isinstance(value, int) and not isinstance(value, bool):
            hours, minutes = divmod(value, 60)
            return time(hours, minutes)
        return value

    @field_validator("error_policy", mode="before")
    @classmethod
    def _lower_policy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def _validate_ranges(self) -> "AnalysisConfig":
        if self.schema_version != SCHEMA_VERSION:
            raise ValueError(f"Unsupported schema_version: {self.schema_version} (expected {SCHEMA_VERSION}).")
        if not (self.start_date <= self.split_date <= self.end_date):
            raise ValueError("Expected start_date <= split_date <= end_date.")
        return self
