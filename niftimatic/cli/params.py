"""
CLI wrapper around :func:`niftimatic.pipelines.param_check`.

For one acquisition category (``T1``/``T1w`` or ``rsf``/``rest`` by default)
the series number is read from each subject's JSON sidecar, the series is
located in the raw DICOM tree and converted again with text notes. TR, TE,
image and voxel dimensions (plus the volume count for resting-state data) are
collected into a ``param_check_<category>`` table.
"""

from __future__ import annotations

from pathlib import Path

import click
import structlog

from niftimatic.pipelines import param_check
from niftimatic.utils.display import echo_banner
from niftimatic.utils.logging import attach_run_log

from ._shared import (
    click_errors,
    converter_options,
    echo_run,
    input_dir,
    make_converter,
    output_dir,
    prompt_option,
)

log = structlog.get_logger()


@click.command(
    name="param-check",
    help="Re-convert one acquisition category per subject and tabulate its parameters.",
)
@click.option(
    "--nifti-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Folder of converted subjects (JSON sidecars are read here).",
)
@click.option(
    "--dicom-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Folder of raw DICOM subjects.",
)
@click.option(
    "-o",
    "--out-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Folder receiving the re-converted series and the reports.",
)
@click.option(
    "--category",
    "category_name",
    required=True,
    metavar="<name>",
    help="Acquisition category, e.g. T1 or rest (aliases from settings).",
)
@converter_options
@prompt_option
@click.pass_obj
def cli(  # noqa: D401 – Click callback name semantics
    ctx_obj,
    nifti_dir: Path | None,
    dicom_dir: Path | None,
    out_dir: Path | None,
    category_name: str,
    converter_dir: Path | None,
    retries: int,
    prompt: bool,
) -> None:
    """Entry-point executed by *niftimatic-cli param-check*."""
    settings = ctx_obj["settings"]

    with click_errors():
        key, category = settings.category(category_name)
        nifti_root = input_dir(nifti_dir, "nifti_dir", prompt=prompt)
        dicom_root = input_dir(dicom_dir, "dicom_dir", prompt=prompt)
        dst = output_dir(out_dir, "out_dir", prompt=prompt)
        attach_run_log(dst, debug=ctx_obj["debug"])
        converter = make_converter(settings, converter_dir, retries)

        echo_banner(f"Parameter check – {key}")
        log.info("Checking acquisition parameters", category=key, nifti_dir=str(nifti_root))
        summary = param_check(
            nifti_root,
            dicom_root,
            dst,
            converter=converter,
            category_name=key,
            category=category,
            options=settings.workflows.param_check.options,
            layout=settings.dicom,
        )

    echo_run(summary)
