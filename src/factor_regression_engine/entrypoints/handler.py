"""実行制御（RunRequest → pipeline 実行 → 終了コード）。

設計意図:
- 例外 → 終了コードの方針をここに集約する。
  - 0: 正常終了
  - 1: 致命的障害（読み込み失敗、abort 方針での銘柄失敗など）
  - 2: 設定不備
- 致命的障害では部分レポートを出さず、診断メッセージだけを stderr に出す。
- ログは stderr、レポートは stdout に分ける。
"""

from __future__ import annotations

import logging
import sys
from typing import Sequence, TextIO

from factor_regression_engine.config.loader import load_config
from factor_regression_engine.config.resolver import resolve_config
from factor_regression_engine.entrypoints.parser import RunRequest, parse_args
from factor_regression_engine.exceptions import ConfigurationError, FactorRegressionError
from factor_regression_engine.pipeline import analysis
from factor_regression_engine.reports.table_report import render_report

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def handle(
    request: RunRequest,
    *,
    services: analysis.PipelineServices | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """RunRequest を実行し、終了コードを返す。

    Args:
        request: 実行要求。
        services: パイプラインの services（テスト用。未指定なら既定のファイルローダ）。
        stdout: レポートの出力先（未指定なら sys.stdout）。
        stderr: 診断メッセージの出力先（未指定なら sys.stderr）。
    """
    out = stdout or sys.stdout
    err = stderr or sys.stderr

    try:
        config = resolve_config(load_config(request.config_path), overrides=request.overrides())
        report = analysis.run(config, services)
        text = render_report(report, config)
    except ConfigurationError as e:
        logger.debug("Configuration error", exc_info=True)
        print(f"Configuration error: {e}", file=err)
        return EXIT_CONFIGURATION
    except FactorRegressionError as e:
        logger.debug("Run aborted", exc_info=True)
        print(f"Error: {e}", file=err)
        return EXIT_FAILURE

    out.write(text)
    out.flush()
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """console script 用 main。"""
    request = parse_args(argv)
    configure_logging(request.log_level)
    return handle(request)
