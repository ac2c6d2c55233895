"""入口の I/O 境界（コマンドライン引数 → RunRequest）。

設計意図:
- 引数解釈だけを担い、設定の読み込みや実行制御は handler に委ねる。
- RunRequest は不変オブジェクトとして固定し、CLI 以外（テスト・将来の API）からも組み立てられるようにする。
"""

from __future__ import annotations

import argparse
from typing import Literal, Sequence

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CONFIG_PATH = "yaml/featured.yaml"


class RunRequest(BaseModel):
    """1 回の実行要求。"""

    model_config = ConfigDict(frozen=True)

    config_path: str = Field(DEFAULT_CONFIG_PATH, min_length=1, description="JSON/YAML config file")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("WARNING", description="Logging level")
    color: bool | None = Field(None, description="Override report.color (None keeps config)")
    error_policy: Literal["abort", "skip"] | None = Field(None, description="Override error_policy")

    def overrides(self) -> dict[str, object]:
        """設定ファイルより優先する上書き値。"""
        out: dict[str, object] = {}
        if self.color is not None:
            out["report"] = {"color": self.color}
        if self.error_policy is not None:
            out["error_policy"] = self.error_policy
        return out


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="factor-regression-engine",
        description="Fit per-asset momentum/weekday regressions and backtest threshold signals.",
    )
    parser.add_argument(
        "config",
        nargs="?",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the JSON/YAML configuration (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for diagnostics on stderr",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable colorized cells")
    parser.add_argument(
        "--error-policy",
        choices=["abort", "skip"],
        default=None,
        help="abort the run or skip the asset when one asset fails",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> RunRequest:
    """引数を RunRequest に変換する（不正な引数は argparse が終了コード 2 で終了させる）。"""
    ns = build_parser().parse_args(argv)
    return RunRequest(
        config_path=ns.config,
        log_level=ns.log_level,
        color=False if ns.no_color else None,
        error_policy=ns.error_policy,
    )
