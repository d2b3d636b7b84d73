from __future__ import annotations

import os
from typing import Callable, Optional, TypeVar

_T = TypeVar("_T")


def _read_env(name: str, default: _T, parse: Callable[[str], Optional[_T]]) -> _T:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = parse(raw)
    except ValueError:
        return default
    return default if value is None else value


def read_str_env(name: str, default: str) -> str:
    return _read_env(name, default, str)


def read_float_env(name: str, default: float) -> float:
    return _read_env(name, default, lambda raw: float(raw) if float(raw) > 0 else None)


def read_int_env(name: str, default: int) -> int:
    return _read_env(name, default, lambda raw: int(raw) if int(raw) > 0 else None)
