"""
Utility functions and helpers.

This module intentionally uses lazy attribute loading to avoid importing heavier
submodules (e.g., pandas) unless they are needed.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "RunPaths",
    "Settings",
    "SettingsError",
    "clean_name_for_search",
    "clean_text",
    "extract_year",
    "fuzzy_score",
    "load_json",
    "load_settings",
    "normalize_game_name",
    "pick_best_match",
    "save_json",
    "write_csv",
]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name in {
        "RunPaths",
        "clean_name_for_search",
        "clean_text",
        "extract_year",
        "fuzzy_score",
        "load_json",
        "normalize_game_name",
        "pick_best_match",
        "save_json",
        "write_csv",
    }:
        from . import utilities as _u

        return getattr(_u, name)

    if name in {"Settings", "SettingsError", "load_settings"}:
        from . import settings as _s

        return getattr(_s, name)

    raise AttributeError(name)
