"""
Per-run reporting: the summary log and the tabular export.

Two artefacts are produced for every run:

* **Summary log** – ``<prefix>_<ddMonYYYY>.txt``. A header block of
  ``key: value`` lines, then one line per discovered subject. Same-day
  re-runs append to the same file.
* **Table** – ``<prefix>_<ddMonYYYY_HHMMSS>.csv``, one row per processed
  subject. An existing file is never overwritten; a numeric suffix is added
  instead.

Rows are rectangular: every declared column of every row holds a value,
whatever the outcome. Failures fill all data columns with the reason text
(:func:`failure_row`); successes fill columns they did not produce with the
``"<column> not found"`` sentinel (:func:`success_row`).
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pandas as pd
from pydantic import BaseModel

from .types import Failure, FailureReason, Outcome, SkippedExisting, Success

log = logging.getLogger(__name__)

ID_COLUMN = "subj_ID"
_DATE_FMT = "%d%b%Y"
_STAMP_FMT = "%d%b%Y_%H%M%S"
_TIME_FMT = "%I:%M:%S %p"
_KEY_WIDTH = 14


# ─────────────────────────────────────────────────────────────────────────────
# Column schemas
# ─────────────────────────────────────────────────────────────────────────────
class ReportSchema(BaseModel, frozen=True):
    """Ordered columns of a workflow's table; the first one is the subject id.

    ``sources`` maps a column to the outcome field that fills it when the two
    names differ (``DICOM_Name`` ← ``Name``).
    """

    columns: tuple[str, ...]
    sources: Dict[str, str] = {}

    @property
    def data_columns(self) -> tuple[str, ...]:
        return self.columns[1:]

    def source_of(self, column: str) -> str:
        return self.sources.get(column, column)


_DICOM_SOURCES = {"DICOM_Name": "Name", "DICOM_Age": "Age", "DICOM_Gender": "Gender"}

SANITY_SCHEMA = ReportSchema(
    columns=(ID_COLUMN, "DICOM_Name", "DICOM_Age", "DICOM_Gender"),
    sources=_DICOM_SOURCES,
)


def param_schema(count_volumes: bool) -> ReportSchema:
    """Return the parameter-check schema, with ``num_vols`` for EPI data."""
    cols = [ID_COLUMN, "DICOM_Name", "DICOM_Age", "DICOM_Gender", "TR", "TE",
            "image_dim", "voxel_dim"]
    if count_volumes:
        cols.append("num_vols")
    return ReportSchema(columns=tuple(cols), sources=_DICOM_SOURCES)


# ─────────────────────────────────────────────────────────────────────────────
# Row builders
# ─────────────────────────────────────────────────────────────────────────────
def failure_row(subject_id: str, reason: FailureReason, schema: ReportSchema) -> Dict[str, str]:
    """Return a row whose data columns all carry the text of *reason*."""
    row = {ID_COLUMN: subject_id}
    row.update({col: reason.value for col in schema.data_columns})
    return row


def success_row(
    subject_id: str, fields: Mapping[str, str], schema: ReportSchema
) -> Dict[str, str]:
    """Return a row filled from *fields*, with sentinels for absent columns."""
    row = {ID_COLUMN: subject_id}
    for col in schema.data_columns:
        src = schema.source_of(col)
        row[col] = str(fields[src]) if src in fields else f"{src} not found"
    return row


# ─────────────────────────────────────────────────────────────────────────────
# File naming
# ─────────────────────────────────────────────────────────────────────────────
def date_stamp(now: datetime) -> str:
    """``17Oct2026`` – granularity of summary log names."""
    return now.strftime(_DATE_FMT)


def run_stamp(now: datetime) -> str:
    """``17Oct2026_142501`` – granularity of table names."""
    return now.strftime(_STAMP_FMT)


def unique_path(path: Path) -> Path:
    """Return *path*, or ``<stem>_<n><suffix>`` when *path* already exists."""
    if not path.exists():
        return path
    i = 1
    while (path.with_name(f"{path.stem}_{i}{path.suffix}")).exists():
        i += 1
    return path.with_name(f"{path.stem}_{i}{path.suffix}")


# ─────────────────────────────────────────────────────────────────────────────
# Summary log
# ─────────────────────────────────────────────────────────────────────────────
class SummaryLog:
    """Append-only text log; every line is flushed as soon as it is written."""

    def __init__(self, path: Path) -> None:
        self.path = path
        path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = path.open("a", encoding="utf-8")

    def write(self, text: str) -> None:
        """Append one line."""
        self._fh.write(text + "\n")
        self._fh.flush()

    def header(
        self, items: Mapping[str, object], n_subjects: int, *, now: datetime
    ) -> None:
        """Write the run header: date, time, *items* and the subject count."""
        lines = {"Date": date_stamp(now), "Time": now.strftime(_TIME_FMT)}
        lines.update({k: str(v) for k, v in items.items()})
        for key, value in lines.items():
            self.write(f"{key + ':':<{_KEY_WIDTH}}{value}")
        self.write(f"{n_subjects} subjects found")

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __enter__(self) -> "SummaryLog":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# ─────────────────────────────────────────────────────────────────────────────
# Aggregator
# ─────────────────────────────────────────────────────────────────────────────
class ReportAggregator:
    """Collect one outcome per subject into the summary log and the table.

    Args:
        summary: Open summary log owned by the run.
        schema: Table columns, or ``None`` for workflows without a table.
    """

    def __init__(self, summary: SummaryLog, schema: Optional[ReportSchema] = None) -> None:
        self.summary = summary
        self.schema = schema
        self._rows: List[Dict[str, str]] = []
        self._seen: set[str] = set()
        self.processed = 0
        self.skipped = 0
        self.failed = 0

    # ------------------------------------------------------------------ record
    def record_outcome(self, subject_id: str, outcome: Outcome) -> None:
        """Record the single outcome of *subject_id*.

        Raises:
            ValueError: When *subject_id* was already recorded in this run.
            TypeError: When *outcome* is not one of the outcome models.
        """
        if subject_id in self._seen:
            raise ValueError(f"{subject_id} already recorded")
        if not isinstance(outcome, (Success, SkippedExisting, Failure)):
            raise TypeError(f"unexpected outcome for {subject_id}: {outcome!r}")
        self._seen.add(subject_id)

        if isinstance(outcome, SkippedExisting):
            self.skipped += 1
            self._line(subject_id, ("skipped",))
            return

        self.processed += 1
        if isinstance(outcome, Failure):
            self.failed += 1
            self._line(subject_id, (*outcome.steps, outcome.summary_text))
            if self.schema is not None:
                self._rows.append(failure_row(subject_id, outcome.reason, self.schema))
            return

        self._line(subject_id, outcome.steps or ("done!",))
        if self.schema is not None:
            self._rows.append(success_row(subject_id, outcome.fields, self.schema))

    def _line(self, subject_id: str, steps: tuple[str, ...]) -> None:
        text = subject_id + "".join(f"...{s}" for s in steps)
        log.info(text)
        self.summary.write(text)

    # ------------------------------------------------------------------ export
    @property
    def rows(self) -> List[Dict[str, str]]:
        return list(self._rows)

    def to_frame(self) -> pd.DataFrame:
        """Return the table as a DataFrame (empty with headers when no rows)."""
        columns = list(self.schema.columns) if self.schema else [ID_COLUMN]
        return pd.DataFrame(self._rows, columns=columns)

    def export_table(self, out_dir: Path, prefix: str, *, now: datetime) -> Optional[Path]:
        """Write ``<prefix>_<stamp>.csv`` under *out_dir*; ``None`` without schema."""
        if self.schema is None:
            return None
        path = unique_path(out_dir / f"{prefix}_{run_stamp(now)}.csv")
        self.to_frame().to_csv(path, index=False)
        log.info("Wrote %d row(s) to %s", len(self._rows), path)
        return path

    def close(self) -> None:
        self.summary.close()


__all__ = [
    "ID_COLUMN",
    "ReportSchema",
    "SANITY_SCHEMA",
    "param_schema",
    "failure_row",
    "success_row",
    "date_stamp",
    "run_stamp",
    "unique_path",
    "SummaryLog",
    "ReportAggregator",
]
