"""Category-gated debug output.

Categories come from the ``PY6502_DEBUG`` environment variable as a comma
separated list (``cpu,bus``), or from :func:`configure` when a host wants to
enable them programmatically. ``all`` turns every category on.
"""

from __future__ import annotations

import os
from typing import Iterable

ENV_VAR = "PY6502_DEBUG"
KNOWN_CATEGORIES = ("cpu", "bus", "loader", "trace")

_active: frozenset[str] | None = None


def _parse(value: str | Iterable[str]) -> frozenset[str]:
    items = value.split(",") if isinstance(value, str) else value
    return frozenset(item.strip().lower() for item in items if item and item.strip())


def _categories() -> frozenset[str]:
    global _active
    if _active is None:
        _active = _parse(os.environ.get(ENV_VAR, ""))
    return _active


def configure(categories: str | Iterable[str]) -> None:
    """Replace the active categories, ignoring the environment."""

    global _active
    _active = _parse(categories)


def reload_categories() -> None:
    """Drop the active categories so the next check re-reads ``PY6502_DEBUG``."""

    global _active
    _active = None


def debug_enabled(category: str | None = None) -> bool:
    active = _categories()
    if not active:
        return False
    if category is None or "all" in active:
        return True
    return category.lower() in active


def debug_log(category: str, message: str, *args) -> None:
    if not debug_enabled(category):
        return
    if args:
        try:
            message = message % args
        except (TypeError, ValueError):
            message = f"{message} {args!r}"
    print(f"[6502][{category}] {message}")
