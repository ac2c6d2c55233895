"""レポート（AssetResult / AnalysisReport）の契約定義。

設計意図:
- 回帰・スコア・バックテストの数値を「表現層」が改変せずに扱える契約として固定する。
- 縮退した統計量（R² の分母 0、Sharpe 未定義）はエラーではなく nan / None で保持し、
  表示側でプレースホルダに変換する。
- 表の列構成はここでは持たない（reports/table_report.py が設定から導出する）。
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class PerformanceSummary(BaseModel):
    """1 スタンス（long / short）分のリターン要約。"""

    model_config = ConfigDict(frozen=True)

    total_return: float = Field(..., description="Simple sum of period returns")
    sharpe_ratio: float | None = Field(None, description="Annualized Sharpe ratio (None if undefined)")
    periods: int = Field(..., ge=0, description="Number of test periods")
    active_periods: int = Field(0, ge=0, description="Periods with a non-zero return")


class AssetResult(BaseModel):
    """1 銘柄 1 行分の結果。"""

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1, description="Asset symbol")
    weights: list[float] = Field(..., description="Feature weights in feature-vector order")
    intercept: float = Field(..., description="Fitted intercept")

    is_r2: float = Field(..., description="In-sample R² (may be nan/inf)")
    oos_r2: float = Field(..., description="Out-of-sample R² (may be nan/inf)")

    training_size: int = Field(..., ge=0)
    test_size: int = Field(..., ge=0)
    skipped_days: int = Field(0, ge=0)

    long: PerformanceSummary
    short: PerformanceSummary


class SkippedAsset(BaseModel):
    """error_policy=skip のときに除外された銘柄と理由。"""

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1)
    reason: str = Field(..., description="Exception message (English)")


class AnalysisReport(BaseModel):
    """1 回の実行結果（銘柄順は設定の順序を保持する）。"""

    model_config = ConfigDict(frozen=True)

    start_date: date
    split_date: date
    end_date: date

    results: list[AssetResult] = Field(default_factory=list)
    skipped: list[SkippedAsset] = Field(default_factory=list)

    median_oos_r2: float | None = Field(None, description="Median of finite OOS R² values")
