"""
The four batch workflows built on the shared conversion engine.

* :func:`import_subjects` – convert every new subject with user options.
* :func:`sanity_check` – convert one series per subject, tabulate name/age/
  gender from the text notes.
* :func:`param_check` – find a category's series through its JSON sidecar,
  re-convert it with text notes and tabulate acquisition parameters.
* :func:`copy_primary` – copy each subject's single primary image into a
  flat folder.

Subjects are processed one at a time in sorted order. Each discovered subject
yields exactly one outcome; subjects whose output already exists are skipped
without touching anything on disk.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from nibabel.filebasedimages import ImageFileError
from pydantic import BaseModel

from niftimatic.config.schema import (
    Category,
    ConversionOptions,
    DicomLayout,
    LogTarget,
    yes_no,
)
from niftimatic.io import dcm2niix
from niftimatic.io.dcm2niix import ConversionResult
from niftimatic.io.geometry import find_image, read_geometry

from .discovery import claim_subject_dir, discover_subjects, should_process
from .report import (
    SANITY_SCHEMA,
    ReportAggregator,
    SummaryLog,
    date_stamp,
    param_schema,
)
from .selection import select_primary
from .series import failure_message, failure_reason, resolve_series
from .sidecar import (
    DEFAULT_FIELDS,
    PARAM_FIELDS,
    extract_fields,
    first_sidecar,
    read_series_number,
    read_text,
)
from .types import Failure, FailureReason, Outcome, SkippedExisting, Subject, Success

log = logging.getLogger(__name__)

ProcessFn = Callable[[Subject, Path], Outcome]


# ─────────────────────────────────────────────────────────────────────────────
# Shared plumbing
# ─────────────────────────────────────────────────────────────────────────────
class Converter(BaseModel, frozen=True):
    """Where and how to launch dcm2niix for a whole run."""

    converter_dir: Optional[Path] = None
    executable: str = "dcm2niix"
    retries: int = 0

    def describe(self) -> str:
        """Value echoed into summary headers."""
        return str(self.converter_dir) if self.converter_dir else f"$PATH ({self.executable})"

    def check(self) -> str:
        """Return the executable path; raise before any subject is touched."""
        return dcm2niix._which_dcm2niix(self.converter_dir, self.executable)

    def run(
        self,
        options: ConversionOptions,
        src: Path,
        dst: Path,
        *,
        log_file: Path | None = None,
    ) -> ConversionResult:
        return dcm2niix.run_dcm2niix(
            options,
            src,
            dst,
            converter_dir=self.converter_dir,
            executable=self.executable,
            log_file=log_file,
            retries=self.retries,
        )


class RunSummary(BaseModel, frozen=True):
    """Counts and artefacts of one workflow run."""

    found: int
    processed: int
    skipped: int
    failed: int
    summary_path: Path
    table_path: Optional[Path] = None


def _file_failure(subject_id: str, exc: OSError) -> Failure:
    log.warning("%s: %s", subject_id, exc)
    return Failure(reason=FailureReason.FILE_ERROR, message=f"file error: {exc}")


def run_batch(
    subjects: Iterable[Subject],
    out_root: Path,
    aggregator: ReportAggregator,
    process: ProcessFn,
) -> None:
    """Gate, claim and process every subject, recording one outcome each.

    A subject whose ``<out_root>/<id>`` folder exists is recorded as skipped.
    Otherwise the folder is created atomically and handed to *process*.

    A filesystem error while processing one subject becomes that subject's
    ``file error`` failure. Any other exception aborts the run after removing
    the folder claimed for the current subject, so the next run retries it.
    """
    for subject in subjects:
        sub_out = None
        if should_process(out_root, subject.id):
            sub_out = claim_subject_dir(out_root, subject.id)
        if sub_out is None:
            aggregator.record_outcome(subject.id, SkippedExisting())
            continue
        log.debug("processing %s → %s", subject.id, sub_out)
        try:
            outcome = process(subject, sub_out)
        except OSError as exc:
            outcome = _file_failure(subject.id, exc)
        except BaseException:
            log.error("Run aborted at %s; removing %s", subject.id, sub_out)
            shutil.rmtree(sub_out, ignore_errors=True)
            raise
        aggregator.record_outcome(subject.id, outcome)


def _finish(
    aggregator: ReportAggregator,
    found: int,
    table_path: Optional[Path] = None,
) -> RunSummary:
    return RunSummary(
        found=found,
        processed=aggregator.processed,
        skipped=aggregator.skipped,
        failed=aggregator.failed,
        summary_path=aggregator.summary.path,
        table_path=table_path,
    )


# ─────────────────────────────────────────────────────────────────────────────
# 1) Subject import
# ─────────────────────────────────────────────────────────────────────────────
def import_subjects(
    in_root: Path,
    out_root: Path,
    *,
    converter: Converter,
    options: ConversionOptions,
    log_target: LogTarget = LogTarget(),
    now: datetime | None = None,
) -> RunSummary:
    """Convert every subject of *in_root* that has no folder in *out_root* yet.

    Writes ``summary_<date>.txt`` into *out_root*; no table.
    """
    now = now or datetime.now()
    converter.check()
    subjects = discover_subjects(in_root)
    log.info("%d subjects found", len(subjects))

    summary = SummaryLog(out_root / f"summary_{date_stamp(now)}.txt")
    summary.header(
        {
            "in_dir": in_root,
            "out_dir": out_root,
            "log_dir": log_target.describe(),
            "dcm2niix_dir": converter.describe(),
            "BIDS": yes_no(options.bids),
            "Compressed": yes_no(options.compress),
            "Precise": yes_no(options.precise),
            "Outname": options.name_template,
        },
        len(subjects),
        now=now,
    )
    aggregator = ReportAggregator(summary)

    def _process(subject: Subject, sub_out: Path) -> Outcome:
        res = converter.run(
            options,
            subject.in_dir,
            sub_out,
            log_file=log_target.path_for(subject.id, sub_out),
        )
        if res.ok:
            return Success(steps=("finished",))
        return Failure(reason=FailureReason.CONVERSION_ERROR, message="error")

    try:
        run_batch(subjects, out_root, aggregator, _process)
    finally:
        aggregator.close()
    return _finish(aggregator, len(subjects))


# ─────────────────────────────────────────────────────────────────────────────
# 2) Sanity check
# ─────────────────────────────────────────────────────────────────────────────
def sanity_check(
    in_root: Path,
    out_root: Path,
    *,
    converter: Converter,
    series_id: int,
    options: ConversionOptions,
    now: datetime | None = None,
) -> RunSummary:
    """Convert series *series_id* of every new subject and tabulate its notes.

    Writes ``summary_<date>.txt`` and ``subject_details_<stamp>.csv``.
    """
    now = now or datetime.now()
    converter.check()
    opts = options.for_series(series_id)
    subjects = discover_subjects(in_root)
    log.info("%d subjects found", len(subjects))

    summary = SummaryLog(out_root / f"summary_{date_stamp(now)}.txt")
    summary.header(
        {
            "in_dir": in_root,
            "out_dir": out_root,
            "dcm2niix_dir": converter.describe(),
            "series_id": series_id,
        },
        len(subjects),
        now=now,
    )
    aggregator = ReportAggregator(summary, SANITY_SCHEMA)

    def _process(subject: Subject, sub_out: Path) -> Outcome:
        res = converter.run(opts, subject.in_dir, sub_out)
        if not res.ok:
            return Failure(reason=FailureReason.CONVERSION_ERROR, message="conversion error")

        steps = ["conversion finished"]
        notes = first_sidecar(sub_out)
        if notes is None:
            return Failure(
                reason=FailureReason.SERIES_NOT_CONVERTED,
                message="series not found",
                steps=tuple(steps),
            )
        steps.append(f"reading {notes.name}")
        record = extract_fields(read_text(notes), DEFAULT_FIELDS)
        return Success(fields=record.as_dict(), steps=tuple(steps))

    try:
        run_batch(subjects, out_root, aggregator, _process)
    finally:
        aggregator.close()
        # Rows of subjects finished before an abort are still written.
        table = aggregator.export_table(out_root, "subject_details", now=now)
    return _finish(aggregator, len(subjects), table)


# ─────────────────────────────────────────────────────────────────────────────
# 3) Acquisition-parameter check
# ─────────────────────────────────────────────────────────────────────────────
def param_check(
    nifti_root: Path,
    dicom_root: Path,
    out_root: Path,
    *,
    converter: Converter,
    category_name: str,
    category: Category,
    options: ConversionOptions,
    layout: DicomLayout = DicomLayout(),
    now: datetime | None = None,
) -> RunSummary:
    """Re-convert the *category* series of every new subject and tabulate it.

    Subjects are discovered in *nifti_root*. For each, the category's JSON
    sidecar gives the series number, which is located in
    ``<dicom_root>/<sub>/<layout.subdir>`` and converted again from
    ``<dicom_root>/<sub>`` with text notes into ``<out_root>/<sub>``.

    Writes ``param_check_summary_<cat>_<date>.txt`` and
    ``param_check_<cat>_<stamp>.csv``.
    """
    now = now or datetime.now()
    converter.check()
    subjects = discover_subjects(nifti_root)
    log.info("%d subjects found", len(subjects))

    summary = SummaryLog(
        out_root / f"param_check_summary_{category_name}_{date_stamp(now)}.txt"
    )
    summary.header(
        {
            "nifti_dir": nifti_root,
            "dicom_dir": dicom_root,
            "out_dir": out_root,
            "dcm2niix_dir": converter.describe(),
            "acq_catg": category_name,
        },
        len(subjects),
        now=now,
    )
    aggregator = ReportAggregator(summary, param_schema(category.count_volumes))

    def _process(subject: Subject, sub_out: Path) -> Outcome:
        sidecars = sorted(p for p in subject.in_dir.glob(category.json_glob) if p.is_file())
        if not sidecars:
            return Failure(
                reason=FailureReason.JSON_NOT_FOUND,
                message=f"{category_name} json not found",
            )
        if len(sidecars) > 1:
            return Failure(
                reason=FailureReason.MULTIPLE_JSON,
                message=f"multiple {category_name} images; skipping",
            )

        steps = [f"reading {sidecars[0].name}"]
        series = read_series_number(read_text(sidecars[0]))
        if series is None or not series.isdigit():
            return Failure(
                reason=FailureReason.SERIES_NUMBER_NOT_FOUND,
                message="SeriesNumber not found",
                steps=tuple(steps),
            )

        match = resolve_series(
            dicom_root / subject.id / layout.subdir,
            series,
            master_glob=layout.master_series_glob,
        )
        if not match.is_unique:
            return Failure(
                reason=failure_reason(match),
                message=failure_message(match),
                steps=tuple(steps),
            )
        steps.append(f"found series {series}")

        res = converter.run(options.for_series(int(series)), dicom_root / subject.id, sub_out)
        if not res.ok:
            return Failure(
                reason=FailureReason.CONVERSION_ERROR,
                message="conversion error",
                steps=tuple(steps),
            )
        steps.append("conversion finished")

        notes = first_sidecar(sub_out)
        if notes is None:
            return Failure(
                reason=FailureReason.TEXT_FILE_NOT_FOUND,
                message="text file not created",
                steps=tuple(steps),
            )
        steps.append(f"reading {notes.name}")
        fields = extract_fields(read_text(notes), PARAM_FIELDS).as_dict()

        image = find_image(sub_out, notes.stem)
        if image is None:
            return Failure(
                reason=FailureReason.IMAGE_NOT_FOUND,
                message=f"image {notes.stem} not found",
                steps=tuple(steps),
            )
        try:
            geometry = read_geometry(image)
        except ImageFileError as exc:
            log.warning("Cannot read %s: %s", image, exc)
            return Failure(
                reason=FailureReason.IMAGE_UNREADABLE,
                message=f"cannot read {image.name}",
                steps=tuple(steps),
            )

        fields["image_dim"] = geometry.image_dim
        fields["voxel_dim"] = geometry.voxel_dim
        if category.count_volumes:
            fields["num_vols"] = str(geometry.n_vols)
        return Success(fields=fields, steps=(*steps, "done!"))

    try:
        run_batch(subjects, out_root, aggregator, _process)
    finally:
        aggregator.close()
        # Rows of subjects finished before an abort are still written.
        table = aggregator.export_table(out_root, f"param_check_{category_name}", now=now)
    return _finish(aggregator, len(subjects), table)


# ─────────────────────────────────────────────────────────────────────────────
# 4) Primary-file copy
# ─────────────────────────────────────────────────────────────────────────────
def _split_nifti_name(name: str) -> tuple[str, str]:
    """Return ``(stem, extension)`` treating ``.nii.gz`` as one extension."""
    if name.endswith(".nii.gz"):
        return name[: -len(".nii.gz")], ".nii.gz"
    path = Path(name)
    return path.stem, path.suffix


def copy_primary(
    nifti_root: Path,
    out_root: Path,
    *,
    pattern: str = "*T1*.nii",
    exclude: Iterable[str] = ("PSIR",),
    suffix: str = "T1w",
    now: datetime | None = None,
) -> RunSummary:
    """Copy each subject's single primary image to ``<out_root>/<sub>_<suffix>``.

    The matching JSON sidecar is copied alongside when present. Subjects
    whose destination image already exists are skipped; subjects with no or
    several candidates are reported and nothing is copied.
    """
    now = now or datetime.now()
    exclude = tuple(exclude)
    subjects = discover_subjects(nifti_root)
    log.info("%d subjects found", len(subjects))

    summary = SummaryLog(out_root / f"summary_copy_{suffix}_{date_stamp(now)}.txt")
    summary.header(
        {
            "nifti_dir": nifti_root,
            "out_dir": out_root,
            "pattern": pattern,
            "exclude": ", ".join(exclude) or "-",
        },
        len(subjects),
        now=now,
    )
    aggregator = ReportAggregator(summary)

    def _process(subject: Subject) -> Outcome:
        names = [p.name for p in subject.in_dir.glob(pattern) if p.is_file()]
        selection = select_primary(names, exclude)
        if selection.kind == "none_found":
            return Failure(
                reason=FailureReason.PRIMARY_NOT_FOUND,
                message=f"{suffix} file not found",
            )
        if selection.kind == "ambiguous":
            return Failure(
                reason=FailureReason.MULTIPLE_PRIMARY,
                message=f"multiple {suffix} images; skipping",
            )

        if selection.name is None:
            return Failure(
                reason=FailureReason.PRIMARY_NOT_FOUND,
                message=f"{suffix} file not found",
            )

        stem, ext = _split_nifti_name(selection.name)
        dest_image = out_root / f"{subject.id}_{suffix}{ext}"
        dest_json = out_root / f"{subject.id}_{suffix}.json"
        sidecar = subject.in_dir / f"{stem}.json"

        steps = [f"copying {selection.name}"]
        try:
            shutil.copy2(subject.in_dir / selection.name, dest_image)
            if sidecar.is_file():
                shutil.copy2(sidecar, dest_json)
            else:
                steps.append("json sidecar missing")
        except OSError:
            # A partial image would gate the subject out of the next run.
            dest_image.unlink(missing_ok=True)
            dest_json.unlink(missing_ok=True)
            raise
        return Success(steps=(*steps, "done!"))

    try:
        for subject in subjects:
            existing = list(out_root.glob(f"{subject.id}_{suffix}.nii*"))
            if existing:
                aggregator.record_outcome(subject.id, SkippedExisting())
                continue
            try:
                outcome = _process(subject)
            except OSError as exc:
                outcome = _file_failure(subject.id, exc)
            aggregator.record_outcome(subject.id, outcome)
    finally:
        aggregator.close()
    return _finish(aggregator, len(subjects))


__all__ = [
    "Converter",
    "RunSummary",
    "run_batch",
    "import_subjects",
    "sanity_check",
    "param_check",
    "copy_primary",
]
