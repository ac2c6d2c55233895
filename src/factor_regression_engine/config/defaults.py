"""デフォルト設定（最小）。

設計意図:
- 回帰・バックテストを動かすための「最低限の前提」を定義する。
- 環境依存・I/O・動的解決は行わない（resolver が責務を持つ）。
- 日付境界・ディレクトリ・銘柄リストはデフォルトを持たない（ユーザー設定で必須）。
"""

from __future__ import annotations


# ====================
# Schema
# ====================

SCHEMA_VERSION: int = 1

# ====================
# Global defaults
# ====================

GLOBAL_DEFAULTS: dict[str, object] = {
    "schema_version": SCHEMA_VERSION,
    "reference_symbol": "BTCUSDT",
    # セッション終値として採用する時刻（この時刻の時間足だけを日次観測に畳み込む）
    "session_end": "21:00",
    # 最近接過去レコード探索の上限（日数）
    "closest_lookback_days": 10,
    "holding_days": 1,
    "weekday_filter": None,
    "error_policy": "abort",
    "max_workers": None,
}

# ====================
# Feature defaults
# ====================

FEATURE_DEFAULTS: dict[str, object] = {
    "momentum": True,
    "reference": True,
    "index": True,
    "weekdays": True,
    "weekday_encoding": {
        "slots": 7,
        "origin": "MONDAY",
    },
}

# ====================
# Signal / performance defaults
# ====================

SIGNAL_DEFAULTS: dict[str, object] = {
    "long_threshold": 0.0,
    "short_threshold": 0.0,
    "risk_free_rate": 0.0,
    # 週次相当として年率化する（実際のサンプリング間隔からは推定しない）
    "periods_per_year": 52,
}

# ====================
# Model defaults
# ====================

MODEL_DEFAULTS: dict[str, object] = {
    "method": "gradient",
    "learning_rate": 0.001,
    "regularization": 0.0,
    "max_iterations": 10000,
}

# ====================
# Report defaults
# ====================

REPORT_DEFAULTS: dict[str, object] = {
    "show_scores": True,
    "show_backtest": True,
    "highlight_threshold": 0.05,
    "color": True,
    "tablefmt": "simple",
}
