"""Lenient tool-argument coercion: bad values fall back to defaults, numbers are clamped."""

from __future__ import annotations

from typing import Any


def to_int(v: Any, *, default: int, min_v: int, max_v: int) -> int:
    try:
        if v is None or isinstance(v, bool):
            raise ValueError
        if isinstance(v, (int, float)):
            n = int(v)
        else:
            n = int(float(str(v).strip()))
    except Exception:
        n = int(default)
    return max(min_v, min(n, max_v))


def to_optional_int(v: Any, *, min_v: int, max_v: int) -> int | None:
    if v is None:
        return None
    return to_int(v, default=min_v, min_v=min_v, max_v=max_v)


def to_bool(v: Any, *, default: bool) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)) and v in (0, 1):
        return bool(v)
    if isinstance(v, str):
        s = v.strip().lower()
        if s in {"true", "1", "yes", "y", "on"}:
            return True
        if s in {"false", "0", "no", "n", "off"}:
            return False
    return default


def to_str_list(v: Any) -> list[str]:
    if v is None:
        return []
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return []
        # allow comma-separated convenience
        if "," in s:
            return [p.strip() for p in s.split(",") if p.strip()]
        return [s]
    if isinstance(v, list):
        return [it.strip() for it in v if isinstance(it, str) and it.strip()]
    return []


def to_str(v: Any) -> str | None:
    if isinstance(v, str) and v.strip():
        return v.strip()
    return None
