"""
CLI wrapper around :func:`niftimatic.pipelines.sanity_check`.

Converts one series (``--series-id``, default from the settings file) of every
new subject with text notes enabled and writes a ``subject_details`` table
with the name, age and gender found in the notes.
"""

from __future__ import annotations

from pathlib import Path

import click
import structlog

from niftimatic.pipelines import sanity_check
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
    name="sanity-check",
    help="Convert one series per subject and tabulate Name/Age/Gender.",
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
    help="Folder receiving the converted series and the reports.",
)
@click.option(
    "--series-id",
    type=click.IntRange(min=0),
    help="Series number to convert (default from settings).",
)
@converter_options
@prompt_option
@click.pass_obj
def cli(  # noqa: D401 – Click callback name semantics
    ctx_obj,
    in_dir: Path | None,
    out_dir: Path | None,
    series_id: int | None,
    converter_dir: Path | None,
    retries: int,
    prompt: bool,
) -> None:
    """Entry-point executed by *niftimatic-cli sanity-check*."""
    settings = ctx_obj["settings"]
    workflow = settings.workflows.sanity_check
    series = workflow.series_id if series_id is None else series_id

    with click_errors():
        src = input_dir(in_dir, "in_dir", prompt=prompt)
        dst = output_dir(out_dir, "out_dir", prompt=prompt)
        attach_run_log(dst, debug=ctx_obj["debug"])
        converter = make_converter(settings, converter_dir, retries)

        echo_banner(f"Sanity check – series {series}")
        log.info("Checking subjects", in_dir=str(src), series_id=series)
        summary = sanity_check(
            src,
            dst,
            converter=converter,
            series_id=series,
            options=workflow.options,
        )

    echo_run(summary)
