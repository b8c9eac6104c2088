"""Planner settings: limits, default parameters and UI text from ``planner.json``.

``BUDGET_PLANNER_SETTINGS`` points at an alternative settings file, e.g. a
copy with translated messages or a larger iteration cap.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

SETTINGS_PATH = Path(__file__).with_name('planner.json')


def settings_path() -> Path:
    return Path(os.getenv('BUDGET_PLANNER_SETTINGS') or SETTINGS_PATH)


@lru_cache(maxsize=None)
def _read(path: Path) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    """Parsed settings file, cached per path.

    Raises:
        FileNotFoundError: If the settings file doesn't exist
        json.JSONDecodeError: If the settings file is invalid JSON
    """
    return _read(Path(path) if path is not None else settings_path())


def get_setting(*keys: str, default: Any = None) -> Any:
    """Nested settings value, e.g. ``get_setting('constants', 'max_iterations')``.

    Missing keys, and a missing settings file, fall back to ``default``.
    """
    try:
        value: Any = load_settings()
        for key in keys:
            value = value[key]
    except (KeyError, TypeError, FileNotFoundError):
        return default
    return value


def get_message(key: str, default: str = '', **kwargs: Any) -> str:
    """Return a formatted UI message."""
    template = get_setting('ui', 'messages', key, default=default) or default
    return template.format(**kwargs) if kwargs else template


def get_label(key: str, default: str = '') -> str:
    return get_setting('ui', 'labels', key, default=default) or default
