"""
Field extraction from the converter's text and JSON sidecars.

dcm2niix's ``-t y`` notes are free text; fields are found by a plain
whitespace tokenisation followed by a label lookup, the value being the token
right after the label. The same tokeniser reads ``SeriesNumber`` from the
BIDS JSON sidecar.

Label set and sentinels
-----------------------
* :data:`DEFAULT_FIELDS` – fields read by the sanity check.
* :data:`PARAM_FIELDS` – fields read by the parameter check.
* A missing label yields ``"<Field> not found"`` (:func:`not_found`).
* An age token too short to carry a padding digit and a unit yields
  :data:`AGE_MALFORMED`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .types import SidecarRecord

log = logging.getLogger(__name__)

DEFAULT_FIELDS: tuple[str, ...] = ("Name", "Age", "Gender")
PARAM_FIELDS: tuple[str, ...] = ("Name", "Age", "Gender", "TR", "TE")

AGE_MALFORMED = "Age malformed"
_SERIES_LABEL = '"SeriesNumber":'
_LOG_SUFFIX = "_log.txt"


def not_found(field: str) -> str:
    """Return the sentinel recorded for a label absent from the text."""
    return f"{field} not found"


# ─────────────────────────────────────────────────────────────────────────────
# Tokenisation
# ─────────────────────────────────────────────────────────────────────────────
def tokenize(text: str) -> List[str]:
    """Split *text* on any run of whitespace."""
    return text.split()


def _value_after(tokens: List[str], label: str) -> Optional[str]:
    """Return the token following the first case-insensitive *label*."""
    wanted = label.lower()
    for i, tok in enumerate(tokens):
        if tok.lower() == wanted:
            return tokens[i + 1] if i + 1 < len(tokens) else None
    return None


def _trim_age(token: str) -> str:
    """Drop the padding digit and the unit letter (``034Y`` → ``34``)."""
    if len(token) < 3:
        return AGE_MALFORMED
    return token[1:-1]


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────
def extract_fields(text: str, fields: Iterable[str] = DEFAULT_FIELDS) -> SidecarRecord:
    """Return a value for every name in *fields*.

    Args:
        text: Full content of a text sidecar.
        fields: Field names without the trailing colon, e.g. ``"Name"``.

    Returns:
        SidecarRecord: extracted tokens, with sentinels for missing labels.
    """
    tokens = tokenize(text)
    values: dict[str, str] = {}
    for field in fields:
        raw = _value_after(tokens, f"{field}:")
        if raw is None:
            values[field] = not_found(field)
        elif field == "Age":
            values[field] = _trim_age(raw)
        else:
            values[field] = raw
    return SidecarRecord(values=values)


def read_series_number(json_text: str) -> Optional[str]:
    """Return the ``SeriesNumber`` of a BIDS JSON sidecar, or ``None``.

    The value is the token after ``"SeriesNumber":`` with a trailing comma
    removed.
    """
    raw = _value_after(tokenize(json_text), _SERIES_LABEL)
    if raw is None:
        return None
    value = raw.rstrip(",").strip('"')
    return value or None


def text_sidecars(folder: Path) -> List[Path]:
    """Return the text sidecars in *folder*, sorted by name.

    Conversion logs (``*_log.txt``) are not sidecars and are left out.
    """
    return sorted(
        p for p in folder.glob("*.txt")
        if p.is_file() and not p.name.endswith(_LOG_SUFFIX)
    )


def first_sidecar(folder: Path) -> Optional[Path]:
    """Return the first text sidecar in *folder*, or ``None``.

    When dcm2niix wrote several notes files only the first one is read.
    """
    found = text_sidecars(folder)
    if len(found) > 1:
        log.info(
            "%d text sidecars in %s – reading %s", len(found), folder, found[0].name
        )
    return found[0] if found else None


def read_text(path: Path) -> str:
    """Read a sidecar, replacing undecodable bytes."""
    return path.read_text(encoding="utf-8", errors="replace")


__all__ = [
    "DEFAULT_FIELDS",
    "PARAM_FIELDS",
    "AGE_MALFORMED",
    "not_found",
    "tokenize",
    "extract_fields",
    "read_series_number",
    "text_sidecars",
    "first_sidecar",
    "read_text",
]
