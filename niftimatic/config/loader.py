"""
YAML settings loader.

Search precedence (first match wins)
1. An explicit path argument (``-c/--config`` on the CLI).
2. ``$NIFTIMATIC_CONFIG``.
3. The packaged default shipped inside the wheel.

A user file only needs the keys it changes: it is merged on top of the
packaged default before validation.
"""

from __future__ import annotations

import os
from importlib.resources import files
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from niftimatic.utils.errors import ConfigurationError

from .schema import SettingsSchema

# --------------------------------------------------------------------------- #
# Wheel-internal fallback (works even from a zipped wheel)                    #
# --------------------------------------------------------------------------- #
_DEFAULT_SETTINGS = files("niftimatic.resources") / "default_settings.yaml"


# --------------------------------------------------------------------------- #
# Helper functions                                                            #
# --------------------------------------------------------------------------- #
def _load_yaml(text: str, origin: str) -> dict:
    """Parse *text* and insist on a mapping at the top level."""
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{origin} is not valid YAML – {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{origin} must contain a mapping at the top level")
    return data


def _deep_merge(base: dict, override: dict) -> dict:
    """Return *base* updated recursively with *override*.

    Nested mappings are merged key by key; every other value (lists included)
    in *override* replaces the one in *base*.
    """
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _user_settings_path(explicit: Optional[Path]) -> Optional[Path]:
    """Return the user settings file to apply, if any."""
    if explicit is not None:
        return explicit
    env = os.environ.get("NIFTIMATIC_CONFIG")
    return Path(env).expanduser() if env else None


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #
def load_settings(path: Optional[str | Path] = None) -> SettingsSchema:
    """Return a fully validated :class:`SettingsSchema`.

    Args:
        path: Explicit settings file. ``None`` triggers the search sequence
            described in the module doc-string.

    Returns:
        The merged and validated settings.

    Raises:
        ConfigurationError: When the user file is missing, unreadable or the
            merged document fails validation.
    """
    merged = _load_yaml(_DEFAULT_SETTINGS.read_text(encoding="utf-8"), "default settings")

    user_path = _user_settings_path(Path(path).expanduser().resolve() if path else None)
    if user_path is not None:
        if not user_path.is_file():
            raise ConfigurationError(f"Settings file {user_path} not found")
        user = _load_yaml(user_path.read_text(encoding="utf-8"), str(user_path))
        merged = _deep_merge(merged, user)

    try:
        return SettingsSchema(**merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings – {exc}") from exc
