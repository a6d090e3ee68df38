"""
Package-level logging configuration.

* Rich console output (colourised, nicely formatted).
* Rotating **JSON** log file ``niftimatic.log`` inside ``$NIFTIMATIC_LOG_DIR``
  when set, else inside ``<out_dir>/logs`` once a sub-command has resolved its
  output folder (see :func:`attach_run_log`).
* Optional plain-text mirror controlled via ``--save-logfile`` on the CLI.

:func:`setup_logging` configures the console and is called once by the root
command; :func:`attach_run_log` adds the run's JSON file log.
"""

from __future__ import annotations

import atexit
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

import structlog
from rich.logging import RichHandler
from structlog.dev import ConsoleRenderer as StructlogConsoleRenderer
from structlog.stdlib import LoggerFactory

__all__ = ["setup_logging", "attach_run_log", "resolve_log_dir"]

_LOG_NAME = "niftimatic.log"


# --------------------------------------------------------------------------- #
# Internal helpers – file-based handlers                                      #
# --------------------------------------------------------------------------- #
def resolve_log_dir(log_dir: Path | None) -> Path | None:
    """Return the directory that receives the rotating JSON log.

    Args:
        log_dir: Directory supplied by the caller; may be ``None``.

    Returns:
        ``$NIFTIMATIC_LOG_DIR`` when set, otherwise *log_dir* (``None`` when
        neither is available; no file log is written then).
    """
    env_dir = os.environ.get("NIFTIMATIC_LOG_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    if log_dir is not None:
        return log_dir.expanduser()
    return None


def _json_file_handler(logdir: Path, level: int) -> logging.Handler:
    """Return a rotating file handler writing ``<logdir>/niftimatic.log``."""
    logdir.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=logdir / _LOG_NAME,
        maxBytes=5_000_000,  # ~5 MB before rollover
        backupCount=3,
        encoding="utf-8",
    )
    handler.setLevel(level)
    atexit.register(handler.close)
    return handler


def _plain_text_file_handler(
    path: Optional[Path], level: int
) -> logging.Handler | None:
    """Return a plain-text file handler or *None* when *path* is *None*."""
    if path is None:
        return None

    path = path.expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8", mode="a")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    atexit.register(handler.close)
    return handler


# --------------------------------------------------------------------------- #
# Public API – main entry-point                                               #
# --------------------------------------------------------------------------- #
def setup_logging(
    *,
    log_dir: Path | None = None,
    verbose: bool = False,
    debug: bool = False,
    force_info: bool = False,
    extra_text_log: Optional[Path] = None,
) -> None:
    """Configure console logging and the file mirrors.

    Args:
        log_dir: Directory for the rotating JSON log; without it (and without
            ``$NIFTIMATIC_LOG_DIR``) the file log waits for
            :func:`attach_run_log`.
        verbose: Emit INFO-level messages to the console.
        debug: Emit DEBUG-level messages plus rich tracebacks.
        force_info: Force INFO level with a minimal, markup-free console even
            when *verbose* and *debug* are *False* (batch commands).
        extra_text_log: Optional path for a plain-text mirror of console output.
    """
    console_lvl = (
        logging.DEBUG
        if debug
        else logging.INFO if verbose or force_info else logging.WARNING
    )
    file_lvl = logging.DEBUG if debug else logging.INFO

    handlers: list[logging.Handler] = []

    # --- Rich or minimal console handler ---------------------------------------
    if force_info and not (verbose or debug):
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(console_lvl)
        console.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    else:
        console = RichHandler(
            level=console_lvl,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=False,
        )
    handlers.append(console)

    logdir = resolve_log_dir(log_dir)
    if logdir is not None:
        handlers.append(_json_file_handler(logdir, file_lvl))

    txt_handler = _plain_text_file_handler(extra_text_log, console_lvl)
    if txt_handler:
        handlers.append(txt_handler)

    # Root logger stays at DEBUG; the handlers filter.
    logging.basicConfig(
        level=logging.DEBUG,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )

    structlog.configure(
        processors=[
            *(
                []
                if force_info and not (verbose or debug)
                else [
                    structlog.processors.TimeStamper(fmt="iso"),
                    structlog.processors.add_log_level,
                ]
            ),
            (
                StructlogConsoleRenderer()
                if verbose or debug or force_info
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(file_lvl),
        logger_factory=LoggerFactory(),
    )


def attach_run_log(out_dir: Path, *, debug: bool = False) -> Path:
    """Add the rotating JSON log for a run writing into *out_dir*.

    The log lands in ``$NIFTIMATIC_LOG_DIR`` when set, else in
    ``<out_dir>/logs``. Calling this twice for the same folder keeps a single
    handler.

    Returns:
        Path of the JSON log file.
    """
    logdir = resolve_log_dir(out_dir / "logs") or out_dir / "logs"
    target = Path(os.path.abspath(logdir / _LOG_NAME))

    root = logging.getLogger()
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == target:
            return target

    root.addHandler(_json_file_handler(logdir, logging.DEBUG if debug else logging.INFO))
    return target
