"""設定ファイルローダ（I/O 境界）。

設計意図:
- ファイルの読み出しと文字コードの解釈は 1 箇所（_read_text）で行い、
  失敗はすべて ConfigurationError（終了コード 2）に寄せる。
- 書式ごとの違いはパーサ（_PARSERS）だけに閉じ込める。
- 合成・正規化・検証は resolver/schemas に寄せる。
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import yaml

from factor_regression_engine.exceptions import ConfigurationError


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON: {e}") from e


def _parse_yaml(text: str) -> Any:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML: {e}") from e
    # 空の YAML は空設定として扱う（必須キー欠落は resolver が報告する）
    return {} if data is None else data


_PARSERS: dict[str, Callable[[str], Any]] = {
    ".json": _parse_json,
    ".yml": _parse_yaml,
    ".yaml": _parse_yaml,
}


def load_config(path: str | Path) -> dict[str, Any]:
    """設定ファイル（JSON / YAML）を読み込み、ルートの辞書を返す。

    Args:
        path: 設定ファイルパス。拡張子で書式を決める。

    Returns:
        読み込まれた設定（辞書）。キー名の正規化はまだ行わない。

    Raises:
        ConfigurationError: ファイルが存在しない、UTF-8 として読めない、
            書式が壊れている、ルートが辞書でない場合。
    """
    p = Path(path)
    parser = _PARSERS.get(p.suffix.lower())
    if parser is None:
        raise ConfigurationError(f"Unsupported config format: {p.suffix or '<none>'}", context={"path": str(p)})

    data = parser(_read_text(p))
    if not isinstance(data, dict):
        raise ConfigurationError("Config root must be a mapping.", context={"path": str(p)})
    return data


def _read_text(path: Path) -> str:
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    if not path.is_file():
        raise ConfigurationError(f"Config path is not a file: {path}")
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ConfigurationError(f"Config file is not valid UTF-8: {path}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to load config: {path}") from e
