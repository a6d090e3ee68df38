"""Fail-fast resolution of the directories a workflow needs.

Every helper either returns an absolute :class:`pathlib.Path` or raises a
:class:`~niftimatic.utils.errors.ConfigurationError`. Nothing here prompts;
interactive prompting is layered on top by the CLI.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from niftimatic.utils.errors import ConfigurationError, MissingInputError


def _clean(value: str | Path | None) -> Optional[Path]:
    """Return *value* as an expanded path, or ``None`` when blank."""
    if value is None or not str(value).strip():
        return None
    return Path(value).expanduser().resolve()


def resolve_input_dir(value: str | Path | None, name: str) -> Path:
    """Return an existing input directory.

    Raises:
        MissingInputError: When *value* is empty.
        ConfigurationError: When the directory does not exist.
    """
    path = _clean(value)
    if path is None:
        raise MissingInputError(name)
    if not path.is_dir():
        raise ConfigurationError(f"{name} {path} not found")
    return path


def resolve_output_dir(value: str | Path | None, name: str) -> Path:
    """Return an output directory, creating it when missing.

    Raises:
        MissingInputError: When *value* is empty.
        ConfigurationError: When the path exists but is not a directory.
    """
    path = _clean(value)
    if path is None:
        raise MissingInputError(name)
    if path.exists() and not path.is_dir():
        raise ConfigurationError(f"{name} {path} is not a directory")
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_converter_dir(value: str | Path | None) -> Optional[Path]:
    """Return the folder holding dcm2niix, or ``None`` to search ``$PATH``.

    Raises:
        ConfigurationError: When a folder is given but does not exist.
    """
    path = _clean(value)
    if path is not None and not path.is_dir():
        raise ConfigurationError(f"converter directory {path} not found")
    return path
