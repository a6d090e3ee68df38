"""Expose the project-wide Click group for the ``niftimatic-cli`` script.

The module:

* declares a single Click *group* called :pyfunc:`main`;
* wires common global flags (settings file, verbosity, log mirror);
* sets up logging via :pyfunc:`niftimatic.utils.logging.setup_logging`;
* loads the merged YAML settings once for every sub-command;
* registers every sub-command located in sibling modules.

No state is mutated outside the Click context.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import click

from niftimatic import __version__
from niftimatic.config import load_settings
from niftimatic.utils.errors import ConfigurationError
from niftimatic.utils.logging import setup_logging


class LazyGroup(click.Group):
    """Click group that imports sub-commands lazily."""

    def __init__(self, *args, **kwargs):
        self._lazy: dict[str, str] = {}
        super().__init__(*args, **kwargs)

    def set_lazy_command(self, name: str, target: str) -> None:
        """Register *name* to be imported from ``target`` on first use."""
        self._lazy[name] = target

    def list_commands(self, ctx):  # noqa: D401 - Click signature
        return sorted({*super().list_commands(ctx), *self._lazy})

    def get_command(self, ctx, cmd_name):  # noqa: D401 - Click signature
        """Resolve *cmd_name* from the eager map or import table."""
        cmd = super().get_command(ctx, cmd_name)
        if cmd is not None:
            return cmd
        target = self._lazy.get(cmd_name)
        if not target:
            return None
        module_name, attr = target.split(":", 1)
        import importlib

        module = importlib.import_module(module_name)
        cmd = getattr(module, attr)
        self.add_command(cmd, name=cmd_name)
        return cmd


# ─────────────────────────────────────────────────────────────────────────────
# Context settings shared by the entire Click hierarchy
# ─────────────────────────────────────────────────────────────────────────────
_CTX: Dict[str, Any] = dict(
    help_option_names=["-h", "--help"],
    show_default=True,
    max_content_width=120,
)


@click.group(
    cls=LazyGroup,
    context_settings=_CTX,
    help="""\b
niftimatic-cli – batch DICOM → NIfTI conversion and acquisition checks.

""",
)
@click.version_option(__version__)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML settings merged over the packaged defaults (else $NIFTIMATIC_CONFIG).",
)
@click.option("-v", "--verbose", is_flag=True, help="INFO-level console output.")
@click.option("--debug", is_flag=True, help="DEBUG console + JSON logfile.")
@click.option(
    "--save-logfile",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="Mirror console output into this plain-text file.",
)
@click.pass_context
def main(  # noqa: D401 – Click requires the callback to be named “main”.
    ctx: click.Context,
    config_path: Path | None,
    verbose: bool,
    debug: bool,
    save_logfile: Path | None,
) -> None:
    """Root command executed by *niftimatic-cli*.

    Args:
        ctx: Click runtime context that carries objects across sub-commands.
        config_path: Explicit settings file supplied via ``--config``.
        verbose: Emit INFO-level messages on stdout.
        debug: Emit DEBUG-level messages.
        save_logfile: Optional path for a plain-text log that mirrors console
            output.

    Raises:
        click.ClickException: When the settings file is missing or invalid.
    """
    # Every sub-command is a batch run; keep the console plain unless asked.
    setup_logging(
        verbose=verbose,
        debug=debug,
        force_info=not (verbose or debug),
        extra_text_log=save_logfile,
    )

    try:
        settings = load_settings(config_path)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc

    ctx.obj = {
        "settings": settings,
        "verbose": verbose,
        "debug": debug,
    }


main.set_lazy_command("convert", "niftimatic.cli.convert:cli")
main.set_lazy_command("sanity-check", "niftimatic.cli.sanity:cli")
main.set_lazy_command("param-check", "niftimatic.cli.params:cli")
main.set_lazy_command("copy-t1", "niftimatic.cli.copy:cli")

cli = main
__all__: list[str] = ["main"]
