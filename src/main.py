"""
src/main.py

このファイルは「リポジトリ直下（src/）での実行エントリポイント」です。

設計意図:
- CLI/バッチ前提の“入口”を 1 箇所（src/main.py）に固定する
- 入口の I/O 境界（引数→RunRequest 変換）は factor_regression_engine.entrypoints.parser に閉じる
- 実行制御（RunRequest→pipeline 実行/終了コード変換）は factor_regression_engine.entrypoints.handler に閉じる

注意:
- `python src/main.py` はスクリプト実行のため、src/ が sys.path の先頭に入り
  パッケージ import が成立する。インストール済みなら `factor-regression-engine` でもよい。
"""

from __future__ import annotations

import sys
from typing import Sequence

from factor_regression_engine.entrypoints.handler import main as handler_main


def run(argv: Sequence[str] | None = None) -> int:
    """
    共通実行関数（CLI/バッチから利用可能な薄い入口）。

    Args:
        argv: コマンドライン引数（sys.argv[1:] 相当）。None の場合は sys.argv[1:] を使用。

    Returns:
        終了コード。
        - 0: 正常終了
        - 1: 致命的障害
        - 2: 設定不備
    """
    if argv is None:
        argv = sys.argv[1:]

    exit_code = handler_main(argv)

    return int(exit_code)


def main() -> None:
    """スクリプト実行用 main。"""
    exit_code = run()
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
