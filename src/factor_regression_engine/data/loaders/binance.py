# src/factor_regression_engine/data/loaders/binance.py
"""Binance 時間足ローダ（ファイル I/O を局所化）。

設計意図:
- Binance の kline CSV（公開データのダンプ形式）の読み込みをこのモジュールに閉じ込める。
- 返り値は後段（domain/series.py）が扱いやすい pandas.DataFrame（OHLC）とする。
- ファイル欠落・不正レコードは DataLoadError として分類し、実行全体を停止させる。

ファイル配置:
- `<directory>/<SYMBOL>/*.csv`、なければ `<directory>/<SYMBOL>-1h-*.csv`（名前順に連結）。
- 列: open_time, open, high, low, close, volume, ...（ヘッダ行は任意）。
"""

from __future__ import annotations

from pathlib import Path
from typing import Final

import pandas as pd

from factor_regression_engine.exceptions import DataLoadError

_KLINE_COLS: Final[list[str]] = ["open_time", "open", "high", "low", "close", "volume"]
_OHLC_COLS: Final[list[str]] = ["open", "high", "low", "close", "volume"]

# 2025 年以降の spot ダンプは open_time がマイクロ秒
_MICROSECOND_THRESHOLD: Final[int] = 10**14


def load_records(directory: str | Path, symbol: str) -> pd.DataFrame:
    """Binance の 1 時間足 OHLC を読み込む。

    Args:
        directory: Binance データのルートディレクトリ。
        symbol: 銘柄シンボル（例: "BTCUSDT"）。

    Returns:
        OHLC の DataFrame。
        - index: DatetimeIndex（tz naive, UTC）
        - columns: open, high, low, close, volume
        - ファイル内の順序を保った時刻昇順

    Raises:
        DataLoadError: ファイルが見つからない、または数値として解釈できない行がある場合。
    """
    if not isinstance(symbol, str) or not symbol.strip():
        raise DataLoadError("symbol must be a non-empty string.")

    paths = _find_files(Path(directory), symbol.strip())
    if not paths:
        raise DataLoadError("No Binance kline files found.", context={"symbol": symbol, "directory": str(directory)})

    frames = [_read_kline_file(p, symbol) for p in paths]
    out = pd.concat(frames)
    return out.sort_index(kind="stable")


def _find_files(directory: Path, symbol: str) -> list[Path]:
    nested = directory / symbol
    if nested.is_dir():
        return sorted(nested.glob("*.csv"))
    return sorted(directory.glob(f"{symbol}-1h-*.csv"))


def _read_kline_file(path: Path, symbol: str) -> pd.DataFrame:
    """kline CSV 1 ファイルを読み、timestamp index の OHLC フレームを返す。"""
    try:
        raw = pd.read_csv(path, header=None, usecols=range(len(_KLINE_COLS)), dtype=str)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise DataLoadError("Failed to read Binance kline file.", context={"symbol": symbol, "path": str(path)}) from e

    raw.columns = _KLINE_COLS
    numeric = raw.apply(pd.to_numeric, errors="coerce")

    # 先頭のヘッダ行（open_time 等）だけは許容する
    if len(numeric) and pd.isna(numeric["open_time"].iloc[0]):
        numeric = numeric.iloc[1:]

    if numeric.empty:
        raise DataLoadError("Binance kline file is empty.", context={"symbol": symbol, "path": str(path)})

    bad = numeric.isna().any(axis=1)
    if bool(bad.any()):
        first_bad = int(bad.to_numpy().nonzero()[0][0])
        raise DataLoadError(
            "Malformed Binance kline record.",
            context={"symbol": symbol, "path": str(path), "row": first_bad},
        )

    open_time = numeric["open_time"].astype("int64")
    unit = "us" if int(open_time.iloc[0]) >= _MICROSECOND_THRESHOLD else "ms"

    out = numeric[_OHLC_COLS].astype("float64")
    out.index = pd.DatetimeIndex(pd.to_datetime(open_time.to_numpy(), unit=unit), name="timestamp")
    return out
