"""パイプライン実行文脈（EngineContext）の組み立て。

設計意図:
- 検証済み設定と、全銘柄で共有する 2 系列（参照銘柄・ベンチマーク指数）を
  単一の不変文脈に固定する。
- 共有系列は fan-out 前に 1 回だけ同期的に構築し、以後は読み取り専用とする。
- 銘柄ごとのパイプラインはこの文脈のみを信頼し、グローバル状態を参照しない。
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from factor_regression_engine.domain.series import PriceSeries
from factor_regression_engine.exceptions import ConfigurationError
from factor_regression_engine.schemas.config import AnalysisConfig


class EngineContext(BaseModel):
    """1 回のレポート実行で全銘柄が参照する文脈（不変）。"""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    config: AnalysisConfig = Field(..., description="Validated configuration")
    reference: PriceSeries = Field(..., description="Reference asset session-close series")
    index: PriceSeries = Field(..., description="Benchmark index daily series")

    # 監査・デバッグ用の付帯情報（ログの材料）
    notes: dict[str, Any] = Field(default_factory=dict, description="Diagnostic notes")


def build_engine_context(
    config: AnalysisConfig,
    *,
    reference: PriceSeries,
    index: PriceSeries,
    notes: dict[str, Any] | None = None,
) -> EngineContext:
    """設定と共有系列から EngineContext を生成する。

    Raises:
        ConfigurationError: 共有系列のシンボルが設定と一致しない場合。
    """
    if reference.symbol != config.reference_symbol:
        raise ConfigurationError(
            "Reference series does not match reference_symbol.",
            context={"expected": config.reference_symbol, "actual": reference.symbol},
        )
    if index.symbol != config.index_symbol:
        raise ConfigurationError(
            "Index series does not match index_symbol.",
            context={"expected": config.index_symbol, "actual": index.symbol},
        )

    merged_notes: dict[str, Any] = dict(notes or {})
    merged_notes.setdefault("reference_points", len(reference))
    merged_notes.setdefault("index_points", len(index))

    return EngineContext(config=config, reference=reference, index=index, notes=merged_notes)
