"""
CLI wrapper around :func:`niftimatic.pipelines.import_subjects`.

Every ``sub-*`` folder under ``--in-dir`` that has no counterpart under
``--out-dir`` is converted with dcm2niix. Subjects converted by an earlier
run are skipped, so the command can be re-run as new data arrives.

Key flags
---------
* ``--bids/--no-bids``, ``--gz``, ``--precise``, ``--outname`` – converter
  options (defaults come from the settings file).
* ``--log-dir`` – where per-subject conversion logs go: a folder, ``sub``
  (inside each subject's output folder) or ``skip``.
"""

from __future__ import annotations

from pathlib import Path

import click
import structlog

from niftimatic.config import LogTarget
from niftimatic.pipelines import import_subjects
from niftimatic.utils.display import echo_banner
from niftimatic.utils.logging import attach_run_log

from ._shared import (
    click_errors,
    converter_options,
    echo_run,
    input_dir,
    make_converter,
    output_dir,
    override_options,
    prompt_option,
)

log = structlog.get_logger()


@click.command(
    name="convert",
    help="Convert every new sub-* DICOM folder to NIfTI with dcm2niix.",
)
@click.option(
    "-i",
    "--in-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Folder holding one DICOM folder per subject.",
)
@click.option(
    "-o",
    "--out-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Folder receiving one NIfTI folder per subject.",
)
@click.option(
    "--log-dir",
    "log_dir",
    default="sub",
    help="Conversion logs: a folder, 'sub' (per subject output folder) or 'skip'.",
)
# ───────── converter options ────────────────────────────────────────────────
@click.option("--bids/--no-bids", default=None, help="Write BIDS JSON sidecars.")
@click.option("--gz/--no-gz", "compress", default=None, help="Write .nii.gz.")
@click.option("--precise/--no-precise", default=None, help="Philips precise float scaling.")
@click.option("--outname", "name_template", help="dcm2niix output filename template (-f).")
@converter_options
@prompt_option
@click.pass_obj
def cli(  # noqa: D401 – Click callback name semantics
    ctx_obj,
    in_dir: Path | None,
    out_dir: Path | None,
    log_dir: str,
    bids: bool | None,
    compress: bool | None,
    precise: bool | None,
    name_template: str | None,
    converter_dir: Path | None,
    retries: int,
    prompt: bool,
) -> None:
    """Entry-point executed by *niftimatic-cli convert*."""
    settings = ctx_obj["settings"]
    options = override_options(
        settings.workflows.convert.options,
        bids=bids,
        compress=compress,
        precise=precise,
        name_template=name_template,
    )

    with click_errors():
        src = input_dir(in_dir, "in_dir", prompt=prompt)
        dst = output_dir(out_dir, "out_dir", prompt=prompt)
        attach_run_log(dst, debug=ctx_obj["debug"])
        converter = make_converter(settings, converter_dir, retries)
        target = LogTarget.parse(log_dir)

        echo_banner("Convert DICOM")
        log.info("Converting subjects", in_dir=str(src), out_dir=str(dst))
        summary = import_subjects(
            src, dst, converter=converter, options=options, log_target=target
        )

    echo_run(summary)
