"""Planner settings file and loaders.

Limits, default parameters and UI labels live in ``planner.json`` so they can
be tuned without code changes.
"""

from .defaults import (
    SETTINGS_PATH,
    get_label,
    get_message,
    get_setting,
    load_settings,
)

__all__ = [
    'SETTINGS_PATH',
    'get_label',
    'get_message',
    'get_setting',
    'load_settings',
]
