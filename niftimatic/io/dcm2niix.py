"""Wrapper around the *dcm2niix* command-line tool.

The helper runs *dcm2niix* synchronously in a subprocess and returns its exit
status instead of raising on failure: callers classify a nonzero status as a
per-subject outcome. Only problems with the executable itself (missing binary,
no permission to run it) raise, because they affect every subject alike.

When a log file is requested its first line is the exact command that was
executed, followed by everything the converter printed.

The implementation does not change the working directory or environment
variables. All paths are handled as :class:`pathlib.Path` objects.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from niftimatic.config.schema import ConversionOptions
from niftimatic.utils.errors import ConverterNotFoundError

log = logging.getLogger(__name__)


class ConversionResult(BaseModel, frozen=True):
    """Outcome of a single :func:`run_dcm2niix` call.

    Attributes
    ----------
    exit_status
        Return code of the last attempt. ``0`` means success.
    output_dir
        Directory the converter wrote into.
    command
        Argument vector that was executed.
    log_file
        Conversion log, when one was requested.
    """

    exit_status: int
    output_dir: Path
    command: tuple[str, ...]
    log_file: Optional[Path] = None

    @property
    def ok(self) -> bool:
        """``True`` when the converter exited with status 0."""
        return self.exit_status == 0


# ---------------------------------------------------------------------------
# internal helpers
# ---------------------------------------------------------------------------
def _executable_name(executable: str) -> str:
    """Return the platform-specific file name of the converter."""
    if os.name == "nt" and not executable.lower().endswith(".exe"):
        return f"{executable}.exe"
    return executable


def _which_dcm2niix(converter_dir: Path | None, executable: str = "dcm2niix") -> str:
    """Return the path to *dcm2niix* or raise if it cannot be found.

    Args:
        converter_dir: Folder that holds the binary. ``None`` searches *PATH*.
        executable: Binary name without the Windows ``.exe`` suffix.
    """
    name = _executable_name(executable)
    if converter_dir is not None:
        exe = converter_dir / name
        if not exe.is_file():
            raise ConverterNotFoundError(f"{name} not found in {converter_dir}")
        return str(exe)

    found = shutil.which(name)
    if not found:
        raise ConverterNotFoundError(
            f"{name} not found on $PATH – install it or pass --converter-dir."
        )
    return found


def build_command(
    options: ConversionOptions,
    src: Path,
    dst: Path,
    *,
    exe: str,
) -> List[str]:
    """Compose the *dcm2niix* argument vector.

    The grammar is ``<exe> -b y|n -z y|n -p y|n [-t y|n] [-n N] -f <tmpl>
    -o <dst> <src>``; the source directory is always the final token.
    """
    return [exe, *options.to_args(), "-o", str(dst), str(src)]


def _run_once(cmd: List[str], log_file: Path | None) -> int:
    """Execute *cmd* once and return its exit status."""
    try:
        if log_file is None:
            res = subprocess.run(cmd, capture_output=True, text=True)
            if res.stdout:
                log.debug("dcm2niix stdout:\n%s", res.stdout.rstrip())
            if res.stderr:
                log.debug("dcm2niix stderr:\n%s", res.stderr.rstrip())
            return res.returncode

        with log_file.open("a", encoding="utf-8") as fh:
            res = subprocess.run(cmd, stdout=fh, stderr=subprocess.STDOUT, text=True)
        return res.returncode
    except (FileNotFoundError, PermissionError) as exc:
        raise ConverterNotFoundError(f"Could not launch {cmd[0]}: {exc}") from exc


# ---------------------------------------------------------------------------
# public helper
# ---------------------------------------------------------------------------
def run_dcm2niix(
    options: ConversionOptions,
    src: Path,
    dst: Path,
    *,
    converter_dir: Path | None = None,
    executable: str = "dcm2niix",
    log_file: Path | None = None,
    retries: int = 0,
) -> ConversionResult:
    """Convert *src* into *dst* with the given *options*.

    Args:
        options: Typed converter options.
        src: Input directory handed to dcm2niix.
        dst: Output directory. Created with ``parents=True`` when needed.
        converter_dir: Folder holding the binary; ``None`` searches *PATH*.
        executable: Binary name (``.exe`` is appended on Windows).
        log_file: When given, the file is (re)created with the command as its
            first line and the converter output is appended to it.
        retries: Extra attempts after a nonzero exit status.

    Returns:
        ConversionResult: exit status of the last attempt plus the command.

    Raises:
        ConverterNotFoundError: When the binary is missing or not executable.
    """
    exe = _which_dcm2niix(converter_dir, executable)
    dst.mkdir(parents=True, exist_ok=True)

    cmd = build_command(options, src, dst, exe=exe)
    log.debug("dcm2niix cmd: %s", shlex.join(cmd))

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        log_file.write_text(shlex.join(cmd) + "\n", encoding="utf-8")

    status = _run_once(cmd, log_file)
    for attempt in range(1, max(0, retries) + 1):
        if status == 0:
            break
        log.warning(
            "dcm2niix exited with %d for %s – retry %d/%d", status, src, attempt, retries
        )
        status = _run_once(cmd, log_file)

    return ConversionResult(
        exit_status=status,
        output_dir=dst,
        command=tuple(cmd),
        log_file=log_file,
    )
