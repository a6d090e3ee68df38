"""Locate one acquisition series inside a subject's raw DICOM tree.

Layout expected under the subject's DICOM folder::

    DICOM/
    └── S12345/            ← master series container (exactly one)
        ├── 00001_localizer/
        ├── 00005_t1_mprage/
        └── ...

Resolution rules
----------------
1. The master container is the single directory matching ``master_glob``.
   None → ``no_master_series``; several → ``multiple_master_series``.
2. Inside it, every entry whose name *contains* the series number is a
   candidate. None → ``not_found``; one → ``unique``; several →
   ``multiple_matches``.

Matching is a plain substring test, so ``"5"`` also matches ``"00015"``.
Such over-matches surface as ``multiple_matches`` and are never resolved
automatically.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .types import FailureReason, SeriesMatch

log = logging.getLogger(__name__)

_FAILURE_FOR_KIND: dict[str, FailureReason] = {
    "no_master_series": FailureReason.NO_MASTER_SERIES,
    "multiple_master_series": FailureReason.MULTIPLE_MASTER_SERIES,
    "not_found": FailureReason.SERIES_NOT_FOUND,
    "multiple_matches": FailureReason.MULTIPLE_MATCHING_SERIES,
}


def master_containers(dicom_root: Path, master_glob: str = "S*") -> list[Path]:
    """Return the directories under *dicom_root* matching *master_glob*.

    A missing *dicom_root* simply has no containers.
    """
    if not dicom_root.is_dir():
        return []
    return sorted(p for p in dicom_root.glob(master_glob) if p.is_dir())


def resolve_series(
    dicom_root: Path,
    series_number: str,
    *,
    master_glob: str = "S*",
) -> SeriesMatch:
    """Return the outcome of searching *dicom_root* for *series_number*.

    Args:
        dicom_root: The subject's DICOM folder (parent of the master container).
        series_number: Series identifier taken from the JSON sidecar.
        master_glob: Pattern selecting the master container.

    Returns:
        SeriesMatch: exactly one of the five outcome kinds.
    """
    masters = master_containers(dicom_root, master_glob)
    if not masters:
        return SeriesMatch(kind="no_master_series", series_number=series_number)
    if len(masters) > 1:
        return SeriesMatch(
            kind="multiple_master_series",
            series_number=series_number,
            candidates=tuple(masters),
        )

    hits = sorted(p for p in masters[0].iterdir() if series_number in p.name)
    log.debug("series %s: %d candidate(s) in %s", series_number, len(hits), masters[0])
    if not hits:
        return SeriesMatch(kind="not_found", series_number=series_number)
    if len(hits) > 1:
        return SeriesMatch(
            kind="multiple_matches",
            series_number=series_number,
            candidates=tuple(hits),
        )
    return SeriesMatch(
        kind="unique",
        series_number=series_number,
        path=hits[0],
        candidates=tuple(hits),
    )


def failure_reason(match: SeriesMatch) -> FailureReason:
    """Map a non-unique *match* to its report reason.

    Raises:
        ValueError: When *match* is unique.
    """
    try:
        return _FAILURE_FOR_KIND[match.kind]
    except KeyError:
        raise ValueError("a unique series match is not a failure") from None


def failure_message(match: SeriesMatch) -> str:
    """Return the summary-log text for a non-unique *match*."""
    num = match.series_number
    return {
        "no_master_series": "no master series; cannot proceed",
        "multiple_master_series": "multiple master series; cannot proceed",
        "not_found": f"cannot find series {num}",
        "multiple_matches": f"multiple series matching {num} found; cannot proceed",
    }[match.kind]


__all__ = ["resolve_series", "master_containers", "failure_reason", "failure_message"]
