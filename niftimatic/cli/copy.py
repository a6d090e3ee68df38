"""
CLI wrapper around :func:`niftimatic.pipelines.copy_primary`.

Copies the single T1-weighted image of every subject (and its JSON sidecar)
into one flat folder as ``<sub>_T1w.nii``. Alternate contrasts such as PSIR
are excluded; subjects with none or several candidates are reported and left
alone.
"""

from __future__ import annotations

from pathlib import Path

import click
import structlog

from niftimatic.pipelines import copy_primary
from niftimatic.utils.display import echo_banner
from niftimatic.utils.logging import attach_run_log

from ._shared import click_errors, echo_run, input_dir, output_dir, prompt_option

log = structlog.get_logger()


@click.command(
    name="copy-t1",
    help="Copy each subject's single T1w NIfTI (+ JSON) into a flat folder.",
)
@click.option(
    "--nifti-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Folder of converted subjects.",
)
@click.option(
    "-o",
    "--out-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Flat destination folder.",
)
@click.option("--pattern", help="Glob selecting candidates (default from settings).")
@click.option(
    "--exclude",
    multiple=True,
    metavar="<substr>",
    help="Drop candidates containing this text; repeatable (default from settings).",
)
@prompt_option
@click.pass_obj
def cli(  # noqa: D401 – Click callback name semantics
    ctx_obj,
    nifti_dir: Path | None,
    out_dir: Path | None,
    pattern: str | None,
    exclude: tuple[str, ...],
    prompt: bool,
) -> None:
    """Entry-point executed by *niftimatic-cli copy-t1*."""
    workflow = ctx_obj["settings"].workflows.copy_primary

    with click_errors():
        src = input_dir(nifti_dir, "nifti_dir", prompt=prompt)
        dst = output_dir(out_dir, "out_dir", prompt=prompt)
        attach_run_log(dst, debug=ctx_obj["debug"])

        echo_banner(f"Copy {workflow.suffix} files")
        log.info("Copying primary images", nifti_dir=str(src), out_dir=str(dst))
        summary = copy_primary(
            src,
            dst,
            pattern=pattern or workflow.pattern,
            exclude=exclude or tuple(workflow.exclude),
            suffix=workflow.suffix,
        )

    echo_run(summary)
