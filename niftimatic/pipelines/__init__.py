"""
Public façade for the *pipelines* sub-package.

This module exposes the high-level helpers used by the CLI:

* **Batch workflows**
    * :func:`import_subjects`
    * :func:`sanity_check`
    * :func:`param_check`
    * :func:`copy_primary`
    * :class:`Converter`, :class:`RunSummary`

* **Building blocks**
    * :func:`discover_subjects`, :func:`should_process`
    * :func:`resolve_series`, :func:`select_primary`
    * :func:`extract_fields`, :func:`read_series_number`
    * :class:`ReportAggregator`

* **Shared value objects**
    * :class:`Subject`, :class:`FailureReason` and the outcome models

Importing from ``niftimatic.pipelines`` rather than individual modules keeps
call-sites stable even when underlying filenames change.
"""

from __future__ import annotations

# ────────────────────────────────────────────────────────────────────────────
# Public helpers – ordered roughly as a subject flows through a run.
# (1) Discover → (2) Resolve → (3) Convert → (4) Report.
# ────────────────────────────────────────────────────────────────────────────
from .types import (
    Failure,
    FailureReason,
    Outcome,
    SeriesMatch,
    Selection,
    SidecarRecord,
    SkippedExisting,
    Subject,
    Success,
)
from .discovery import discover_subjects, should_process
from .series import resolve_series
from .selection import select_primary
from .sidecar import extract_fields, read_series_number
from .report import ReportAggregator, SummaryLog
from .workflows import (
    Converter,
    RunSummary,
    copy_primary,
    import_subjects,
    param_check,
    sanity_check,
)

__all__: list[str] = [
    # Workflows
    "import_subjects",
    "sanity_check",
    "param_check",
    "copy_primary",
    "Converter",
    "RunSummary",
    # Building blocks
    "discover_subjects",
    "should_process",
    "resolve_series",
    "select_primary",
    "extract_fields",
    "read_series_number",
    "ReportAggregator",
    "SummaryLog",
    # Value objects
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
