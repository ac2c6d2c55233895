"""共通例外定義（import なしで完結させる）。

設計意図:
- パイプライン全体で共通の失敗モデル（致命的 / 銘柄単位）を揃える。
- 結合キー欠損（join-miss）や統計量の縮退は例外にしない（スキップ / None / NaN）。
- 銘柄単位の失敗（AssetError）を止めるか飛ばすかは上位（pipeline）が error_policy で決める。
- 例外メッセージは英語で統一する（ログ・CI の一貫性）。
"""

from __future__ import annotations

from typing import Any, Mapping


class FactorRegressionError(Exception):
    """本プロジェクトの基底例外.

    Attributes:
        - message: 例外メッセージ（英語）
        - context: 追加情報（symbol, step, path など任意）
    """

    def __init__(self, message: str, *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})

    def with_context(self, **kwargs: Any) -> "FactorRegressionError":
        """コンテキストを追加した同型例外を返す（raise はしない）。"""
        merged = dict(self.context)
        merged.update(kwargs)
        return type(self)(self.message, context=merged)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class FatalError(FactorRegressionError):
    """実行全体を停止すべき致命的障害。"""


class ConfigurationError(FatalError):
    """設定不備（起動前に検知し停止する）。"""


class DataLoadError(FatalError):
    """価格ファイルの欠落・破損。部分レポートは出さない。"""


class ContractViolation(FatalError):
    """内部契約の逸脱（例: ヘッダと行の列数不一致）。"""


class AssetError(FactorRegressionError):
    """銘柄単位の失敗。停止かスキップかは error_policy が決める。"""


class InsufficientDataError(AssetError):
    """学習データが 0 件（設定/データ起因。数値的失敗とは区別する）。"""


class ModelFitError(AssetError):
    """回帰ソルバの学習失敗（非収束・数値異常・不正な入力行列）。"""


class PredictionError(AssetError):
    """学習済みモデルでの予測失敗。"""
