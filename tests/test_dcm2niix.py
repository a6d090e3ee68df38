"""Tests for the dcm2niix wrapper."""

from pathlib import Path
import shlex
import subprocess

import pytest

from niftimatic.config.schema import ConversionOptions
from niftimatic.io import dcm2niix
from niftimatic.io.dcm2niix import build_command, run_dcm2niix
from niftimatic.utils.errors import ConverterNotFoundError

from .utils import fake_converter, fake_run_factory


def test_option_grammar():
    """Verify flag order and y/n rendering of the option block."""
    opts = ConversionOptions(bids=True, compress=False, precise=True, name_template="%p")
    assert opts.to_args() == ["-b", "y", "-z", "n", "-p", "y", "-f", "%p"]

    opts = opts.for_series(101).model_copy(update={"text_notes": True})
    assert opts.to_args() == [
        "-b", "y", "-z", "n", "-p", "y", "-t", "y", "-n", "101", "-f", "%p",
    ]


def test_build_command_ends_with_source(tmp_path: Path):
    """Verify output follows -o and the source folder is the last token."""
    cmd = build_command(ConversionOptions(), tmp_path / "in", tmp_path / "out", exe="dcm2niix")
    assert cmd[0] == "dcm2niix"
    assert cmd[cmd.index("-o") + 1] == str(tmp_path / "out")
    assert cmd[-1] == str(tmp_path / "in")


def test_log_file_starts_with_command(tmp_path: Path, monkeypatch):
    """Verify the conversion log's first line is the exact command."""
    calls: list[list[str]] = []
    monkeypatch.setattr(dcm2niix.subprocess, "run", fake_run_factory(calls))
    bindir = fake_converter(tmp_path)
    log_file = tmp_path / "logs" / "sub-01_log.txt"

    res = run_dcm2niix(
        ConversionOptions(),
        tmp_path / "sub-01",
        tmp_path / "out" / "sub-01",
        converter_dir=bindir,
        log_file=log_file,
    )

    assert res.ok
    lines = log_file.read_text().splitlines()
    assert lines[0] == shlex.join(calls[0])
    assert "dcm2niiX" in lines[1]
    assert res.command[0] == str(bindir / "dcm2niix")


def test_nonzero_exit_is_returned(tmp_path: Path, monkeypatch):
    """Verify a failed conversion is reported, not raised."""
    calls: list[list[str]] = []
    monkeypatch.setattr(dcm2niix.subprocess, "run", fake_run_factory(calls, status=3))

    res = run_dcm2niix(
        ConversionOptions(), tmp_path, tmp_path / "out", converter_dir=fake_converter(tmp_path)
    )
    assert not res.ok
    assert res.exit_status == 3
    assert len(calls) == 1


def test_retries_are_bounded(tmp_path: Path, monkeypatch):
    """Verify --retries repeats a failing call exactly that many extra times."""
    calls: list[list[str]] = []
    monkeypatch.setattr(dcm2niix.subprocess, "run", fake_run_factory(calls, status=1))

    res = run_dcm2niix(
        ConversionOptions(),
        tmp_path,
        tmp_path / "out",
        converter_dir=fake_converter(tmp_path),
        retries=2,
    )
    assert res.exit_status == 1
    assert len(calls) == 3


def test_missing_executable_raises(tmp_path: Path):
    """Verify an empty converter folder is a fatal error."""
    empty = tmp_path / "bin"
    empty.mkdir()
    with pytest.raises(ConverterNotFoundError):
        run_dcm2niix(ConversionOptions(), tmp_path, tmp_path / "out", converter_dir=empty)


def test_unlaunchable_executable_raises(tmp_path: Path, monkeypatch):
    """Verify an OS-level launch failure becomes ConverterNotFoundError."""

    def _boom(cmd, **kwargs):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(dcm2niix.subprocess, "run", _boom)
    with pytest.raises(ConverterNotFoundError):
        run_dcm2niix(
            ConversionOptions(), tmp_path, tmp_path / "out", converter_dir=fake_converter(tmp_path)
        )


def test_path_lookup(monkeypatch):
    """Verify the binary is searched on PATH without a converter folder."""
    monkeypatch.setattr(dcm2niix.shutil, "which", lambda name: None)
    with pytest.raises(ConverterNotFoundError):
        dcm2niix._which_dcm2niix(None)

    monkeypatch.setattr(dcm2niix.shutil, "which", lambda name: f"/opt/bin/{name}")
    assert dcm2niix._which_dcm2niix(None).startswith("/opt/bin/dcm2niix")


def test_captured_output_without_log(tmp_path: Path, monkeypatch):
    """Verify no log file is written when none is requested."""
    seen = {}

    def _run(cmd, **kwargs):
        seen.update(kwargs)
        return subprocess.CompletedProcess(cmd, 0, "ok", "")

    monkeypatch.setattr(dcm2niix.subprocess, "run", _run)
    res = run_dcm2niix(
        ConversionOptions(), tmp_path, tmp_path / "out", converter_dir=fake_converter(tmp_path)
    )
    assert res.log_file is None
    assert seen.get("capture_output") is True
