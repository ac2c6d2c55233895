"""Rules: 銘柄ごとの特徴量ベクトルとフォワードリターンラベルの組み立て.

Notes:
    - 特徴量の並びは momentum, reference, index, 曜日 one-hot で固定。
    - 表のヘッダ（labels）とベクトル（vector）は同じ FeatureLayout から導出し、ずれを構造的に防ぐ。
    - 結合キーの欠損はエラーにせず、その日を学習/検証のどちらにも入れない。
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta

import numpy as np

from factor_regression_engine.domain.series import PriceSeries, as_day_key, find_closest_prior
from factor_regression_engine.schemas.config import AnalysisConfig, FeatureFlags, Weekday

logger = logging.getLogger(__name__)

MOMENTUM_LABEL = "Momentum"


def rate_of_change(current: float, previous: float) -> float:
    """モメンタム（current/previous - 1）."""
    return current / previous - 1.0


@dataclass(frozen=True)
class FeatureLayout:
    """有効な特徴量グループからヘッダとベクトル構成を一意に決める."""

    flags: FeatureFlags
    reference_label: str
    index_label: str

    @classmethod
    def from_config(cls, config: AnalysisConfig) -> "FeatureLayout":
        return cls(
            flags=config.features,
            reference_label=config.reference_symbol,
            index_label=config.index_symbol,
        )

    def labels(self) -> list[str]:
        """特徴量列のヘッダ（vector と同じ順序）."""
        out: list[str] = []
        if self.flags.momentum:
            out.append(MOMENTUM_LABEL)
        if self.flags.reference:
            out.append(self.reference_label)
        if self.flags.index:
            out.append(self.index_label)
        if self.flags.weekdays:
            origin = self.flags.weekday_encoding.origin.number
            for slot in range(self.flags.weekday_encoding.slots):
                out.append(Weekday.from_number(origin + slot).label)
        return out

    @property
    def width(self) -> int:
        return len(self.labels())

    def weekday_one_hot(self, weekday: Weekday) -> list[float]:
        """曜日 one-hot（枠外の曜日は全ゼロ）."""
        encoding = self.flags.weekday_encoding
        slot = (weekday.number - encoding.origin.number) % 7
        return [1.0 if j == slot else 0.0 for j in range(encoding.slots)]

    def vector(
        self,
        *,
        asset_momentum: float,
        reference_momentum: float,
        index_momentum: float,
        weekday: Weekday,
    ) -> tuple[float, ...]:
        out: list[float] = []
        if self.flags.momentum:
            out.append(asset_momentum)
        if self.flags.reference:
            out.append(reference_momentum)
        if self.flags.index:
            out.append(index_momentum)
        if self.flags.weekdays:
            out.extend(self.weekday_one_hot(weekday))
        return tuple(out)


@dataclass(frozen=True)
class LabeledExample:
    """1 銘柄 1 日分の (特徴量, ラベル)."""

    date: date
    features: tuple[float, ...]
    label: float


@dataclass(frozen=True)
class Partition:
    """学習または検証の事例列（日付順）."""

    examples: tuple[LabeledExample, ...]
    width: int

    def __len__(self) -> int:
        return len(self.examples)

    @property
    def features(self) -> np.ndarray:
        if not self.examples:
            return np.empty((0, self.width), dtype="float64")
        return np.asarray([e.features for e in self.examples], dtype="float64")

    @property
    def labels(self) -> np.ndarray:
        return np.asarray([e.label for e in self.examples], dtype="float64")


@dataclass(frozen=True)
class FeatureDataset:
    """1 銘柄分の学習/検証データ."""

    symbol: str
    layout: FeatureLayout
    training: Partition
    test: Partition
    skipped_days: int


def build_dataset(
    symbol: str,
    *,
    asset: PriceSeries,
    reference: PriceSeries,
    index: PriceSeries,
    config: AnalysisConfig,
) -> FeatureDataset:
    """[start_date, end_date) を 1 日ずつ走査し、学習/検証に振り分けた事例を返す.

    Args:
        symbol: 対象銘柄.
        asset: 対象銘柄のセッション終値系列.
        reference: 参照銘柄のセッション終値系列.
        index: ベンチマーク指数の日足系列（欠損日は最近接過去で補う）.
        config: 実行設定.

    Returns:
        FeatureDataset: split_date より前は training、以降は test.
    """
    layout = FeatureLayout.from_config(config)
    one_day = timedelta(days=1)
    holding = timedelta(days=config.holding_days)
    lookback = config.closest_lookback_days
    is_reference_asset = symbol == config.reference_symbol

    training: list[LabeledExample] = []
    test: list[LabeledExample] = []
    skipped = 0

    day = config.start_date
    while day < config.end_date:
        current_day = day
        day = day + one_day

        weekday = Weekday.from_number(current_day.weekday())
        if config.weekday_filter is not None and weekday != config.weekday_filter:
            continue

        key = as_day_key(current_day)
        previous_key = key - one_day

        current_index = find_closest_prior(index, key, lookback_days=lookback)
        if current_index is None:
            skipped += 1
            continue
        # 前日分は「見つかった日」の前日から探す（祝日をまたいで連鎖させる）
        previous_index = find_closest_prior(index, current_index.found - one_day, lookback_days=lookback)
        if previous_index is None:
            skipped += 1
            continue

        current_close = asset.get(key)
        previous_close = asset.get(previous_key)
        if current_close is None or previous_close is None:
            skipped += 1
            continue

        forward_close = asset.get(key + holding)
        if forward_close is None:
            skipped += 1
            continue

        current_reference = reference.get(key)
        previous_reference = reference.get(previous_key)
        if current_reference is None or previous_reference is None:
            skipped += 1
            continue

        # 0 以下の終値は欠損と同じ扱い（フォワード終値 0 はラベル -1 になりショート側が 1/0 になる）
        if min(current_close, previous_close, forward_close, previous_reference, previous_index.close) <= 0.0:
            skipped += 1
            continue

        features = layout.vector(
            asset_momentum=rate_of_change(current_close, previous_close),
            reference_momentum=0.0 if is_reference_asset else rate_of_change(current_reference, previous_reference),
            index_momentum=rate_of_change(current_index.close, previous_index.close),
            weekday=weekday,
        )
        example = LabeledExample(
            date=current_day,
            features=features,
            label=rate_of_change(forward_close, current_close),
        )

        if current_day < config.split_date:
            training.append(example)
        else:
            test.append(example)

    logger.debug(
        "Built dataset for %s: training=%d test=%d skipped=%d",
        symbol,
        len(training),
        len(test),
        skipped,
    )

    return FeatureDataset(
        symbol=symbol,
        layout=layout,
        training=Partition(examples=tuple(training), width=layout.width),
        test=Partition(examples=tuple(test), width=layout.width),
        skipped_days=skipped,
    )
