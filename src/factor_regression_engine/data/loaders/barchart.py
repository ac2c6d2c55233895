# src/factor_regression_engine/data/loaders/barchart.py
"""Barchart 日足ローダ（ファイル I/O を局所化）。

設計意図:
- Barchart のエクスポート CSV の読み込みをこのモジュールに閉じ込める。
- 返り値は binance.py と同じ正規化済み OHLC フレーム。
- ファイル欠落・不正レコードは DataLoadError として分類し、実行全体を停止させる。

ファイル配置:
- `<directory>/<SYMBOL>.csv`
- 列: Time, Open, High, Low, Last（または Close）, ..., Volume
- 末尾の "Downloaded from Barchart.com ..." 行は無視する。
"""

from __future__ import annotations

from pathlib import Path
from typing import Final

import pandas as pd

from factor_regression_engine.exceptions import DataLoadError

_RENAME: Final[dict[str, str]] = {
    "time": "timestamp",
    "date": "timestamp",
    "open": "open",
    "high": "high",
    "low": "low",
    "last": "close",
    "close": "close",
    "volume": "volume",
}
_OHLC_COLS: Final[list[str]] = ["open", "high", "low", "close"]
_FOOTER_PREFIX: Final[str] = "downloaded from"


def load_records(directory: str | Path, symbol: str) -> pd.DataFrame:
    """Barchart の日足 OHLC を読み込む。

    Args:
        directory: Barchart エクスポートのディレクトリ。
        symbol: 銘柄シンボル（例: "$SPX"）。

    Returns:
        OHLC の DataFrame（index: DatetimeIndex, columns: open, high, low, close, volume）。
        Barchart は新しい順で出力するため、時刻昇順に並べ替えて返す。

    Raises:
        DataLoadError: ファイルが見つからない、必要な列がない、不正な行がある場合。
    """
    if not isinstance(symbol, str) or not symbol.strip():
        raise DataLoadError("symbol must be a non-empty string.")

    path = Path(directory) / f"{symbol.strip()}.csv"
    if not path.is_file():
        raise DataLoadError("Barchart file not found.", context={"symbol": symbol, "path": str(path)})

    try:
        raw = pd.read_csv(path, dtype=str, skipinitialspace=True)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise DataLoadError("Failed to read Barchart file.", context={"symbol": symbol, "path": str(path)}) from e

    df = raw.rename(columns=lambda c: _RENAME.get(str(c).strip().lower(), str(c).strip().lower()))

    missing = [c for c in ["timestamp", *_OHLC_COLS] if c not in df.columns]
    if missing:
        raise DataLoadError(
            "Barchart file is missing required columns.",
            context={"symbol": symbol, "path": str(path), "missing": missing},
        )

    footer = df["timestamp"].fillna("").str.strip().str.lower().str.startswith(_FOOTER_PREFIX)
    df = df.loc[~footer]
    if df.empty:
        raise DataLoadError("Barchart file has no records.", context={"symbol": symbol, "path": str(path)})

    timestamps = pd.to_datetime(df["timestamp"], errors="coerce")
    if "volume" not in df.columns:
        df = df.assign(volume="0")
    # 桁区切りのカンマ（"4,567.89"）を許容する
    values = df[[*_OHLC_COLS, "volume"]].apply(
        lambda s: pd.to_numeric(s.str.replace(",", "", regex=False), errors="coerce")
    )
    values["volume"] = values["volume"].fillna(0.0)

    bad = timestamps.isna() | values[_OHLC_COLS].isna().any(axis=1)
    if bool(bad.any()):
        first_bad = int(bad.to_numpy().nonzero()[0][0])
        raise DataLoadError(
            "Malformed Barchart record.",
            context={"symbol": symbol, "path": str(path), "row": first_bad},
        )

    out = values.astype("float64")
    out.index = pd.DatetimeIndex(timestamps.to_numpy(), name="timestamp")
    return out.sort_index(kind="stable")
