"""Rules: 価格レコードから終値マップを作り、欠損日を最近接過去レコードで補う."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterator, Mapping

import pandas as pd


@dataclass(frozen=True)
class PriceSeries:
    """1 銘柄の timestamp -> 終値 マップ（1 回の実行中は不変）.

    Notes:
        - セッション終値モードではキーは日付（00:00 の datetime）。
        - パススルーモードではキーは元レコードの timestamp そのもの。
    """

    symbol: str
    closes: Mapping[datetime, float] = field(default_factory=dict)

    def get(self, key: datetime) -> float | None:
        return self.closes.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.closes

    def __len__(self) -> int:
        return len(self.closes)

    def __iter__(self) -> Iterator[datetime]:
        return iter(self.closes)


@dataclass(frozen=True)
class ClosestPrice:
    """最近接過去レコードの探索結果."""

    close: float
    found: datetime


def build_price_series(
    symbol: str,
    records: pd.DataFrame,
    *,
    start_date: date | None = None,
    session_end: time | None = None,
) -> PriceSeries:
    """正規化済み OHLC フレームから PriceSeries を作る.

    Args:
        symbol: 銘柄シンボル.
        records: index=DatetimeIndex, columns に "close" を含むフレーム（入力順を保持）.
        start_date: これより前のレコードを落とす（None なら制限なし）.
        session_end: 指定時はその時刻ちょうどのレコードだけを残し、日付キーへ畳み込む.
            None ならすべてのレコードを元の timestamp で残す.

    Returns:
        PriceSeries: 同じキーが複数回現れた場合は入力順で後のレコードが勝つ.
    """
    if records.empty:
        return PriceSeries(symbol=symbol, closes={})

    frame = records
    index = pd.DatetimeIndex(frame.index)

    if start_date is not None:
        keep = index >= pd.Timestamp(start_date)
        frame = frame.loc[keep]
        index = index[keep]

    if session_end is not None:
        keep = (
            (index.hour == session_end.hour)
            & (index.minute == session_end.minute)
            & (index.second == session_end.second)
        )
        frame = frame.loc[keep]
        keys = index[keep].normalize()
    else:
        keys = index

    closes: dict[datetime, float] = {}
    for key, close in zip(keys.to_pydatetime(), frame["close"].to_numpy(dtype="float64")):
        closes[key] = float(close)

    return PriceSeries(symbol=symbol, closes=closes)


def find_closest_prior(
    series: PriceSeries,
    target: datetime,
    *,
    lookback_days: int = 10,
) -> ClosestPrice | None:
    """target 当日、なければ 1 日ずつ遡って最初に見つかった終値を返す.

    Args:
        series: 探索対象.
        target: 探索開始日（00:00 の datetime）.
        lookback_days: 調べる日数の上限（target 当日を含む）.

    Returns:
        ClosestPrice | None: 上限内に見つからなければ None（値を捏造しない）.
    """
    current = target
    for _ in range(lookback_days):
        close = series.get(current)
        if close is not None:
            return ClosestPrice(close=close, found=current)
        current = current - timedelta(days=1)
    return None


def as_day_key(value: date) -> datetime:
    """date を PriceSeries の日付キー（00:00 の datetime）へ変換する."""
    return datetime.combine(value, time.min)
