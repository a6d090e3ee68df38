"""Option decorators and helpers shared by the batch sub-commands."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

import click
from pydantic import ValidationError

from niftimatic.config import (
    ConversionOptions,
    resolve_converter_dir,
    resolve_input_dir,
    resolve_output_dir,
)
from niftimatic.config.schema import SettingsSchema
from niftimatic.pipelines import Converter, RunSummary
from niftimatic.utils.display import echo_counts, echo_success, echo_warning
from niftimatic.utils.errors import MissingInputError, NiftimaticError


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------
@contextmanager
def click_errors() -> Iterator[None]:
    """Re-raise run-level errors as :class:`click.ClickException` (exit 1)."""
    try:
        yield
    except NiftimaticError as exc:
        raise click.ClickException(str(exc)) from exc


# ---------------------------------------------------------------------------
# Directory resolution with optional prompting
# ---------------------------------------------------------------------------
def _with_prompt(
    resolver: Callable[[Optional[Path], str], Path],
    value: Optional[Path],
    name: str,
    prompt: bool,
) -> Path:
    try:
        return resolver(value, name)
    except MissingInputError:
        if not prompt:
            raise
    answer = click.prompt(f"Enter {name}", type=click.Path(path_type=Path))
    return resolver(answer, name)


def input_dir(value: Optional[Path], name: str, *, prompt: bool) -> Path:
    """Return an existing input folder, asking for it when allowed."""
    return _with_prompt(resolve_input_dir, value, name, prompt)


def output_dir(value: Optional[Path], name: str, *, prompt: bool) -> Path:
    """Return an output folder (created when missing), asking when allowed."""
    return _with_prompt(resolve_output_dir, value, name, prompt)


def make_converter(
    settings: SettingsSchema, converter_dir: Optional[Path], retries: int
) -> Converter:
    """Build the run's :class:`Converter` from CLI values and settings."""
    return Converter(
        converter_dir=resolve_converter_dir(converter_dir),
        executable=settings.converter.executable,
        retries=retries,
    )


def override_options(base: ConversionOptions, **overrides) -> ConversionOptions:
    """Return *base* with every non-``None`` override applied and validated."""
    changes = {k: v for k, v in overrides.items() if v is not None}
    try:
        return ConversionOptions(**{**base.model_dump(), **changes})
    except ValidationError as exc:
        raise click.BadParameter(str(exc)) from exc


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------
def converter_options(func):
    """Attach ``--converter-dir`` and ``--retries``."""
    func = click.option(
        "--retries",
        type=click.IntRange(min=0),
        default=0,
        help="Extra dcm2niix attempts after a nonzero exit status.",
    )(func)
    func = click.option(
        "--converter-dir",
        type=click.Path(file_okay=False, path_type=Path),
        help="Folder holding dcm2niix (default: search $PATH).",
    )(func)
    return func


def prompt_option(func):
    """Attach ``--prompt``."""
    return click.option(
        "--prompt",
        is_flag=True,
        help="Ask interactively for required folders that were not given.",
    )(func)


# ---------------------------------------------------------------------------
# Run report
# ---------------------------------------------------------------------------
def echo_run(summary: RunSummary) -> None:
    """Print the subject tally and where the artefacts went."""
    echo_counts(summary.found, summary.processed, summary.skipped, summary.failed)
    if summary.failed:
        echo_warning(f"{summary.failed} subject(s) failed – see the summary log")
    echo_success(f"Summary → {summary.summary_path}")
    if summary.table_path is not None:
        echo_success(f"Table → {summary.table_path}")
