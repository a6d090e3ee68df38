"""
Typed, immutable value objects that circulate between pipeline stages.

The module depends only on the Python standard library and *pydantic* so that
it can be imported early. Every class inherits from
:class:`pydantic.BaseModel` with ``frozen=True`` so results cannot be mutated
after they have been produced.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, Literal, Optional, Union

from pydantic import BaseModel, Field

# ─────────────────────────────────────────────────────────────────────────────
# Subjects
# ─────────────────────────────────────────────────────────────────────────────


class Subject(BaseModel, frozen=True):
    """One participant folder discovered under an input root.

    Attributes
    ----------
    id
        Folder name, e.g. ``"sub-0001"``.
    in_dir
        Absolute path of the subject's input folder.
    """

    id: str
    in_dir: Path


# ─────────────────────────────────────────────────────────────────────────────
# Sidecar metadata
# ─────────────────────────────────────────────────────────────────────────────


class SidecarRecord(BaseModel, frozen=True):
    """Field name → value for every label requested from a text sidecar.

    Values are either the extracted token or the ``"<Field> not found"``
    sentinel; a requested field is never missing.
    """

    values: Dict[str, str]

    def __getitem__(self, field: str) -> str:
        return self.values[field]

    def as_dict(self) -> Dict[str, str]:
        """Return a plain copy of the field mapping."""
        return dict(self.values)


# ─────────────────────────────────────────────────────────────────────────────
# Series resolution / file selection
# ─────────────────────────────────────────────────────────────────────────────


class SeriesMatch(BaseModel, frozen=True):
    """Result of looking up one series number in a raw DICOM tree.

    ``path`` is set only when ``kind == "unique"``. ``candidates`` lists the
    master containers or series entries that led to the decision.
    """

    kind: Literal[
        "unique",
        "no_master_series",
        "multiple_master_series",
        "not_found",
        "multiple_matches",
    ]
    series_number: str
    path: Optional[Path] = None
    candidates: tuple[Path, ...] = ()

    @property
    def is_unique(self) -> bool:
        return self.kind == "unique"


class Selection(BaseModel, frozen=True):
    """Result of picking the primary file out of several candidates."""

    kind: Literal["selected", "none_found", "ambiguous"]
    name: Optional[str] = None
    remaining: tuple[str, ...] = ()


# ─────────────────────────────────────────────────────────────────────────────
# Per-subject outcomes
# ─────────────────────────────────────────────────────────────────────────────


class FailureReason(str, Enum):
    """Why a processed subject produced no metadata.

    Each value is the text written into every data column of the subject's
    report row, so no two reasons share a value.
    """

    JSON_NOT_FOUND = "json sidecar not found; skipped"
    MULTIPLE_JSON = "multiple json sidecars; skipped"
    SERIES_NUMBER_NOT_FOUND = "series number not found; skipped"
    NO_MASTER_SERIES = "no master series; skipped"
    MULTIPLE_MASTER_SERIES = "multiple master series; skipped"
    SERIES_NOT_FOUND = "series not found; skipped"
    MULTIPLE_MATCHING_SERIES = "multiple matching series; skipped"
    CONVERSION_ERROR = "conversion error; skipped"
    TEXT_FILE_NOT_FOUND = "text file not found"
    SERIES_NOT_CONVERTED = "series not converted"
    IMAGE_NOT_FOUND = "image not found; skipped"
    IMAGE_UNREADABLE = "image unreadable; skipped"
    PRIMARY_NOT_FOUND = "primary file not found"
    MULTIPLE_PRIMARY = "multiple primary files; skipped"
    FILE_ERROR = "file error; skipped"


class Success(BaseModel, frozen=True):
    """Subject processed; *fields* holds the report columns it produced."""

    kind: Literal["success"] = "success"
    fields: Dict[str, str] = Field(default_factory=dict)
    steps: tuple[str, ...] = ()


class SkippedExisting(BaseModel, frozen=True):
    """Subject left untouched because its output already exists."""

    kind: Literal["skipped"] = "skipped"


class Failure(BaseModel, frozen=True):
    """Subject processed but stopped early for *reason*.

    ``message`` is the human-readable text for the summary log; it defaults to
    the reason's table text.
    """

    kind: Literal["failure"] = "failure"
    reason: FailureReason
    message: Optional[str] = None
    steps: tuple[str, ...] = ()

    @property
    def summary_text(self) -> str:
        return self.message or self.reason.value


Outcome = Union[Success, SkippedExisting, Failure]


__all__ = [
    "Subject",
    "SidecarRecord",
    "SeriesMatch",
    "Selection",
    "FailureReason",
    "Success",
    "SkippedExisting",
    "Failure",
    "Outcome",
]
