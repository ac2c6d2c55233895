"""設定リゾルバ（defaults + user config の合成・正規化・検証）。

設計意図:
- defaults（不変）と user config（可変）を合成し、パイプラインで扱いやすい形へ正規化する。
- I/O は loader に限定し、本モジュールは純粋関数として扱えるようにする。
- 型・範囲の厳密検証は schemas/config.py（pydantic）に寄せ、
  ValidationError はここで ConfigurationError へ正規化する。
- 旧来の camelCase キー（startDate, indexSymbol など）も受け付ける。
"""

from __future__ import annotations

import re
from copy import deepcopy
from typing import Any, Mapping

from pydantic import ValidationError

from factor_regression_engine.config.defaults import (
    FEATURE_DEFAULTS,
    GLOBAL_DEFAULTS,
    MODEL_DEFAULTS,
    REPORT_DEFAULTS,
    SIGNAL_DEFAULTS,
)
from factor_regression_engine.exceptions import ConfigurationError
from factor_regression_engine.schemas.config import AnalysisConfig

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def resolve_config(
    user_config: Mapping[str, Any] | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> AnalysisConfig:
    """defaults と user config を合成し、検証済みの AnalysisConfig を返す。

    Args:
        user_config: loader が読み込んだユーザー設定（dict 相当）。
        overrides: CLI 等からの上書き（user_config より優先）。

    Returns:
        AnalysisConfig: 不変の設定値（各コンポーネントへ明示的に渡す）。

    Raises:
        ConfigurationError: 型が不正、必須キー欠落、値が許容範囲外など。
    """
    if user_config is None:
        user_config_dict: dict[str, Any] = {}
    else:
        if not isinstance(user_config, Mapping):
            raise ConfigurationError("user_config must be a mapping.")
        user_config_dict = _normalize_keys(user_config)

    base: dict[str, Any] = {}
    base = _deep_merge(base, deepcopy(GLOBAL_DEFAULTS))
    base = _deep_merge(base, {"features": deepcopy(FEATURE_DEFAULTS)})
    base = _deep_merge(base, {"signals": deepcopy(SIGNAL_DEFAULTS)})
    base = _deep_merge(base, {"model": deepcopy(MODEL_DEFAULTS)})
    base = _deep_merge(base, {"report": deepcopy(REPORT_DEFAULTS)})

    merged = _deep_merge(base, user_config_dict)
    if overrides:
        merged = _deep_merge(merged, _normalize_keys(overrides))

    try:
        return AnalysisConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {_describe_errors(e)}") from e


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """辞書を deep merge する（override が優先）。

    - dict 同士は再帰的に merge
    - それ以外（list/str/int/...）は override で上書き
    """
    if not isinstance(override, Mapping):
        raise ConfigurationError("override must be a mapping.")

    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            if isinstance(value, Mapping):
                result[key] = dict(value)
            else:
                result[key] = value
    return result


def _normalize_keys(value: Any) -> Any:
    """camelCase キーを snake_case へ寄せる（list 内の dict も再帰的に）。"""
    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise ConfigurationError(f"Config keys must be strings: {k!r}")
            out[_to_snake(k)] = _normalize_keys(v)
        return out
    if isinstance(value, list):
        return [_normalize_keys(v) for v in value]
    return value


def _to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", key.strip()).lower()


def _describe_errors(error: ValidationError) -> str:
    """ValidationError を 1 行の英語メッセージへ要約する。"""
    parts: list[str] = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item.get("loc", ()))
        parts.append(f"{loc or '<root>'}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)
