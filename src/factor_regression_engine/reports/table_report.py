# src/factor_regression_engine/reports/table_report.py
"""表形式レポート生成（表現層）。

設計意図:
- AnalysisReport（数値）を改変せず、tabulate の表と要約行へ整形する。
- 列構成は設定（特徴量フラグ・メトリクス表示フラグ）から一意に導出し、
  ヘッダと各行は同じ列定義から作る（列数・順序のずれは ContractViolation）。
- 強調表示（係数の符号・大きさ）は見た目だけで、意味を追加しない。
- 標準出力への書き込み（I/O）はここでは行わない。呼び出し側に委譲する。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

from rich.color import ColorSystem
from rich.style import Style
from tabulate import tabulate  # type: ignore

from factor_regression_engine.domain.features import FeatureLayout
from factor_regression_engine.exceptions import ContractViolation
from factor_regression_engine.schemas.config import AnalysisConfig
from factor_regression_engine.schemas.reports import AnalysisReport, AssetResult

PLACEHOLDER = "-"

_POSITIVE = Style(color="green")
_NEGATIVE = Style(color="red")
_SYMBOL = Style(color="white", bold=True)


@dataclass(frozen=True)
class Column:
    """表の 1 列（key は行セルの取り出しに使う）。"""

    key: str
    label: str
    align: Literal["left", "right"] = "right"


def build_columns(config: AnalysisConfig) -> list[Column]:
    """設定から列定義を作る（特徴量列は FeatureLayout と同じ順序）。"""
    layout = FeatureLayout.from_config(config)

    columns = [Column(key="symbol", label="Symbol", align="left")]
    for i, label in enumerate(layout.labels()):
        columns.append(Column(key=f"weight:{i}", label=label))
    columns.append(Column(key="intercept", label="Intercept"))

    if config.report.show_scores:
        columns.append(Column(key="is_r2", label="IS R²"))
        columns.append(Column(key="oos_r2", label="OOS R²"))

    if config.report.show_backtest:
        columns.append(Column(key="long_return", label="Long"))
        columns.append(Column(key="long_sharpe", label="Long SR"))
        columns.append(Column(key="short_return", label="Short"))
        columns.append(Column(key="short_sharpe", label="Short SR"))

    return columns


def build_row(result: AssetResult, columns: list[Column], config: AnalysisConfig) -> list[str]:
    """1 銘柄分の行を columns の順に作る。

    Raises:
        ContractViolation: 係数の数が列定義と一致しない、または未知の列 key がある場合。
    """
    weight_columns = [c for c in columns if c.key.startswith("weight:")]
    if len(result.weights) != len(weight_columns):
        raise ContractViolation(
            "Coefficient count does not match the feature columns.",
            context={"symbol": result.symbol, "weights": len(result.weights), "columns": len(weight_columns)},
        )

    settings = config.report
    cells: dict[str, str] = {
        "symbol": _styled(result.symbol, _SYMBOL, settings.color),
        "intercept": format_coefficient(result.intercept, settings.highlight_threshold, color=settings.color),
        "is_r2": format_percentage(result.is_r2),
        "oos_r2": format_percentage(result.oos_r2),
        "long_return": format_percentage(result.long.total_return),
        "long_sharpe": format_ratio(result.long.sharpe_ratio),
        "short_return": format_percentage(result.short.total_return),
        "short_sharpe": format_ratio(result.short.sharpe_ratio),
    }
    for i, weight in enumerate(result.weights):
        cells[f"weight:{i}"] = format_coefficient(weight, settings.highlight_threshold, color=settings.color)

    row: list[str] = []
    for column in columns:
        if column.key not in cells:
            raise ContractViolation("Unknown report column.", context={"key": column.key})
        row.append(cells[column.key])
    return row


def render_table(report: AnalysisReport, config: AnalysisConfig) -> str:
    """ヘッダ 1 行 + 銘柄ごとの行を tabulate で整形する。"""
    columns = build_columns(config)
    headers = [c.label for c in columns]
    rows = [build_row(r, columns, config) for r in report.results]

    for row in rows:
        if len(row) != len(headers):
            raise ContractViolation(
                "Row width does not match the header.",
                context={"header": len(headers), "row": len(row)},
            )

    return tabulate(
        rows,
        headers=headers,
        tablefmt=config.report.tablefmt,
        colalign=[c.align for c in columns],
        disable_numparse=True,
    )


def render_summary(report: AnalysisReport, config: AnalysisConfig) -> list[str]:
    """表の下に出す要約行。"""
    lines = [
        f"IS time range: from {report.start_date.isoformat()} to {report.split_date.isoformat()}",
        f"OOS time range: from {report.split_date.isoformat()} to {report.end_date.isoformat()}",
        f"Median OOS R²: {format_percentage(report.median_oos_r2)}",
    ]
    if config.weekday_filter is not None:
        lines.append(f"Weekday filter: {config.weekday_filter.label}")
    if config.holding_days > 1:
        lines.append(f"Holding time: {config.holding_days} days")
    for skipped in report.skipped:
        lines.append(f"Skipped {skipped.symbol}: {skipped.reason}")
    return lines


def render_report(report: AnalysisReport, config: AnalysisConfig) -> str:
    """表と要約行を 1 つの文字列にまとめる（前後に空行）。"""
    parts = ["", render_table(report, config), ""]
    parts.extend(render_summary(report, config))
    parts.append("")
    return "\n".join(parts)


# -------------------------
# Cell formatting
# -------------------------


def format_coefficient(value: float, threshold: float, *, color: bool = False) -> str:
    """係数セル（0 は "-"、閾値以上は緑、-閾値以下は赤）。"""
    if not math.isfinite(value):
        return PLACEHOLDER
    if value == 0.0:
        return PLACEHOLDER

    cell = f"{value:.4f}"
    if value >= threshold:
        return _styled(cell, _POSITIVE, color)
    if value <= -threshold:
        return _styled(cell, _NEGATIVE, color)
    return cell


def format_percentage(value: float | None, digits: int = 2) -> str:
    if value is None or not math.isfinite(value):
        return PLACEHOLDER
    return f"{value * 100:.{digits}f}%"


def format_ratio(value: float | None, digits: int = 2) -> str:
    if value is None or not math.isfinite(value):
        return PLACEHOLDER
    return f"{value:.{digits}f}"


def _styled(text: str, style: Style, enabled: bool) -> str:
    if not enabled:
        return text
    return style.render(text, color_system=ColorSystem.STANDARD)
