"""Test helpers for niftimatic modules."""

from pathlib import Path
import subprocess

import numpy as np
import nibabel as nib

NOTES = "Name: JohnDoe Age: 034Y Gender: M TR: 2000 TE: 2.98\n"


def make_subjects(root: Path, ids: list[str]) -> list[Path]:
    """Create one folder per subject id under *root* and return them."""
    out = []
    for sid in ids:
        d = root / sid
        d.mkdir(parents=True, exist_ok=True)
        (d / "IM0001.dcm").write_bytes(b"0")
        out.append(d)
    return out


def write_nifti(
    path: Path,
    shape: tuple[int, ...] = (4, 4, 3),
    zooms: tuple[float, float, float] = (1.0, 1.0, 2.5),
) -> Path:
    """Write an all-zero NIfTI with the given grid and voxel spacing."""
    path.parent.mkdir(parents=True, exist_ok=True)
    affine = np.diag([*zooms, 1.0])
    nib.Nifti1Image(np.zeros(shape, dtype="float32"), affine).to_filename(path)
    return path


def fake_converter(tmp_path: Path) -> Path:
    """Create a folder holding an (inert) ``dcm2niix`` file and return it."""
    bindir = tmp_path / "bin"
    bindir.mkdir(exist_ok=True)
    exe = bindir / "dcm2niix"
    exe.write_text("#!/bin/sh\nexit 0\n")
    exe.chmod(0o755)
    return bindir


def fake_run_factory(
    calls: list[list[str]],
    *,
    status: int = 0,
    protocol: str = "T1_mprage",
    shape: tuple[int, ...] = (4, 4, 3),
    notes: str = NOTES,
    write_notes: bool = True,
):
    """Create a fake ``subprocess.run`` that mimics dcm2niix outputs.

    The fake parses ``-o``, ``-f``, ``-t`` and ``-n`` from the command and
    writes ``<name>.nii``, ``<name>.json`` and (with ``-t y``) ``<name>.txt``
    into the output folder. A nonzero *status* writes nothing.
    """

    def _fake_run(cmd: list[str], **kwargs):
        calls.append(list(cmd))
        stdout = kwargs.get("stdout")
        if hasattr(stdout, "write"):
            stdout.write("Chris Rorden's dcm2niiX version v1.0\n")

        if status == 0:
            out = Path(cmd[cmd.index("-o") + 1])
            name = cmd[cmd.index("-f") + 1].replace("%p", protocol).replace("%n", "JohnDoe")
            series = cmd[cmd.index("-n") + 1] if "-n" in cmd else "1"
            write_nifti(out / f"{name}.nii", shape=shape)
            (out / f"{name}.json").write_text(
                f'{{\n  "ProtocolName": "{protocol}",\n  "SeriesNumber": {series},\n}}\n'
            )
            if "-t" in cmd and cmd[cmd.index("-t") + 1] == "y" and write_notes:
                (out / f"{name}.txt").write_text(notes)

        captured = "" if kwargs.get("capture_output") else None
        return subprocess.CompletedProcess(cmd, status, captured, captured)

    return _fake_run
