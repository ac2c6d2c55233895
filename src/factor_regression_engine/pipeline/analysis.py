"""銘柄横断の回帰・バックテスト パイプライン（オーケストレーション）。

設計意図:
- 手続き（Step の順序）をここで固定し、各 Step の中身は domain/ 配下へ委譲する。
- I/O（価格ファイル読み込み）とソルバ生成は services として注入し、テストで差し替えられるようにする。
- 共有 2 系列は fan-out 前に 1 回だけ構築し、銘柄ごとの処理はスレッドプールで並列実行する。
  結果は到着順ではなく設定の銘柄順に並べ直す。
- 例外分類に従う:
  - FatalError（読み込み失敗・設定不備など）: 常に実行全体を停止
  - AssetError（学習 0 件・学習失敗・予測失敗）: error_policy=abort なら停止、skip なら当該銘柄を除外
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable

import pandas as pd

from factor_regression_engine.data.loaders import barchart, binance
from factor_regression_engine.domain.backtest import run_backtest
from factor_regression_engine.domain.features import build_dataset
from factor_regression_engine.domain.performance import summarize
from factor_regression_engine.domain.regression import RegressionSolver, make_solver
from factor_regression_engine.domain.scoring import median_score, r2_score
from factor_regression_engine.domain.series import build_price_series
from factor_regression_engine.exceptions import (
    AssetError,
    FactorRegressionError,
    FatalError,
    InsufficientDataError,
)
from factor_regression_engine.pipeline.context import EngineContext, build_engine_context
from factor_regression_engine.schemas.config import AnalysisConfig, AssetSpec, ModelSettings
from factor_regression_engine.schemas.reports import AnalysisReport, AssetResult, SkippedAsset

logger = logging.getLogger(__name__)


# -------------------------
# Service contracts (DI)
# -------------------------


@dataclass(frozen=True)
class PipelineServices:
    """パイプラインが呼び出す機能群（依存注入）。

    - load_session_records: 時間足ソース（Binance）から (config, symbol) のレコードを返す
    - load_daily_records: 日足ソース（Barchart）から (config, symbol) のレコードを返す
    - make_solver: 銘柄ごとに新しいソルバを返す
    """

    load_session_records: Callable[[AnalysisConfig, str], pd.DataFrame]
    load_daily_records: Callable[[AnalysisConfig, str], pd.DataFrame]
    make_solver: Callable[[ModelSettings], RegressionSolver] = make_solver


def default_services() -> PipelineServices:
    """ファイルローダと scikit-learn ソルバを使う既定の services。"""
    return PipelineServices(
        load_session_records=lambda config, symbol: binance.load_records(config.binance_directory, symbol),
        load_daily_records=lambda config, symbol: barchart.load_records(config.barchart_directory, symbol),
        make_solver=make_solver,
    )


# -------------------------
# Steps
# -------------------------


def load_shared_context(config: AnalysisConfig, services: PipelineServices) -> EngineContext:
    """参照銘柄（セッション終値）と指数（日足そのまま）を 1 回だけ読み込む。"""
    reference = build_price_series(
        config.reference_symbol,
        services.load_session_records(config, config.reference_symbol),
        session_end=config.session_end,
    )
    index = build_price_series(
        config.index_symbol,
        services.load_daily_records(config, config.index_symbol),
        session_end=None,
    )
    logger.info(
        "Loaded shared series: %s=%d points, %s=%d points",
        reference.symbol,
        len(reference),
        index.symbol,
        len(index),
    )
    return build_engine_context(config, reference=reference, index=index)


def analyze_asset(ctx: EngineContext, services: PipelineServices, asset: AssetSpec) -> AssetResult:
    """1 銘柄分: 系列構築 → 特徴量 → 学習 → スコア → バックテスト → 要約。

    Raises:
        DataLoadError: 価格ファイルの読み込み失敗。
        InsufficientDataError: 学習データが 0 件。
        ModelFitError / PredictionError: ソルバ・予測の失敗。
    """
    config = ctx.config
    series = build_price_series(
        asset.symbol,
        services.load_session_records(config, asset.symbol),
        start_date=asset.start_date,
        session_end=config.session_end,
    )

    dataset = build_dataset(
        asset.symbol,
        asset=series,
        reference=ctx.reference,
        index=ctx.index,
        config=config,
    )
    if len(dataset.training) == 0:
        raise InsufficientDataError(
            "No training examples.",
            context={"symbol": asset.symbol, "test_size": len(dataset.test)},
        )

    solver = services.make_solver(config.model)
    try:
        model = solver.fit(dataset.training.features, dataset.training.labels)
        is_r2 = r2_score(model, dataset.training)
        oos_r2 = r2_score(model, dataset.test)
        backtest = run_backtest(model, dataset.test, config.signals)
    except AssetError as e:
        raise e.with_context(symbol=asset.symbol) from e

    logger.info(
        "Fitted %s: training=%d test=%d IS R2=%.4f OOS R2=%.4f",
        asset.symbol,
        len(dataset.training),
        len(dataset.test),
        is_r2,
        oos_r2,
    )

    return AssetResult(
        symbol=asset.symbol,
        weights=[float(w) for w in model.weights],
        intercept=model.intercept,
        is_r2=is_r2,
        oos_r2=oos_r2,
        training_size=len(dataset.training),
        test_size=len(dataset.test),
        skipped_days=dataset.skipped_days,
        long=summarize(backtest.long_returns, config.signals),
        short=summarize(backtest.short_returns, config.signals),
    )


# -------------------------
# Public API
# -------------------------


def run(config: AnalysisConfig, services: PipelineServices | None = None) -> AnalysisReport:
    """全銘柄を並列に分析し、設定順に並んだ AnalysisReport を返す。

    Args:
        config: 検証済み設定。
        services: 各 Step の実装（未指定ならファイルローダ + scikit-learn）。

    Returns:
        AnalysisReport: results は config.assets の順序（スキップ銘柄を除く）。

    Raises:
        FatalError: 読み込み失敗などの致命的障害。
        AssetError: error_policy=abort で銘柄単位の失敗が起きた場合。
    """
    services = services or default_services()
    ctx = load_shared_context(config, services)

    assets = list(config.assets)
    slots: list[AssetResult | SkippedAsset | None] = [None] * len(assets)

    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        futures: dict[Future[AssetResult], int] = {
            executor.submit(analyze_asset, ctx, services, asset): i for i, asset in enumerate(assets)
        }
        for future in as_completed(futures):
            i = futures[future]
            symbol = assets[i].symbol
            try:
                slots[i] = future.result()
            except AssetError as e:
                if config.error_policy == "abort":
                    _cancel_pending(futures)
                    raise
                logger.warning("Skipping %s: %s", symbol, e)
                slots[i] = SkippedAsset(symbol=symbol, reason=str(e))
            except FactorRegressionError:
                _cancel_pending(futures)
                raise
            except Exception as e:  # noqa: BLE001
                # 未分類例外は致命的として扱う（契約外のため）
                _cancel_pending(futures)
                raise FatalError(f"Unhandled exception while analyzing asset: {e}", context={"symbol": symbol}) from e

    results = [s for s in slots if isinstance(s, AssetResult)]
    skipped = [s for s in slots if isinstance(s, SkippedAsset)]

    return AnalysisReport(
        start_date=config.start_date,
        split_date=config.split_date,
        end_date=config.end_date,
        results=results,
        skipped=skipped,
        median_oos_r2=median_score(r.oos_r2 for r in results),
    )


def _cancel_pending(futures: dict[Future[AssetResult], int]) -> None:
    for future in futures:
        future.cancel()
