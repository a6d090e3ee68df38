"""End-to-end tests of the batch workflows with a faked dcm2niix."""

import shutil
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

from niftimatic import load_settings
from niftimatic.config.schema import ConversionOptions, LogTarget
from niftimatic.io import dcm2niix
from niftimatic.pipelines import (
    Converter,
    copy_primary,
    import_subjects,
    param_check,
    sanity_check,
    workflows,
)
from niftimatic.utils.errors import ConverterNotFoundError

from .utils import fake_converter, fake_run_factory, make_subjects, write_nifti

NOW = datetime(2026, 10, 17, 9, 30, 0)


@pytest.fixture
def converter(tmp_path: Path) -> Converter:
    """Converter pointing at an inert dcm2niix file."""
    return Converter(converter_dir=fake_converter(tmp_path))


def _summary_lines(path: Path) -> list[str]:
    return path.read_text().splitlines()


# ---------------------------------------------------------------------------
# convert
# ---------------------------------------------------------------------------
def test_import_is_idempotent(tmp_path: Path, monkeypatch, converter):
    """Verify existing subjects are skipped untouched and re-runs do nothing."""
    calls: list[list[str]] = []
    monkeypatch.setattr(dcm2niix.subprocess, "run", fake_run_factory(calls))
    in_root = tmp_path / "dicom"
    make_subjects(in_root, ["sub-01", "sub-02"])
    out_root = tmp_path / "nifti"
    marker = out_root / "sub-02" / "old.nii"
    marker.parent.mkdir(parents=True)
    marker.write_bytes(b"old")

    res = import_subjects(
        in_root, out_root, converter=converter, options=ConversionOptions(), now=NOW
    )

    assert (res.found, res.processed, res.skipped, res.failed) == (2, 1, 1, 0)
    assert res.table_path is None
    assert len(calls) == 1
    assert calls[0][-1] == str(in_root / "sub-01")
    assert (out_root / "sub-01" / "T1_mprage.nii").is_file()
    assert marker.read_bytes() == b"old"
    assert sorted(p.name for p in marker.parent.iterdir()) == ["old.nii"]

    log_lines = (out_root / "sub-01" / "sub-01_log.txt").read_text().splitlines()
    assert log_lines[0].startswith(str(converter.converter_dir / "dcm2niix"))

    assert res.summary_path == out_root / "summary_17Oct2026.txt"
    lines = _summary_lines(res.summary_path)
    assert "Outname:      %p" in lines
    assert lines[-2:] == ["sub-01...finished", "sub-02...skipped"]

    again = import_subjects(
        in_root, out_root, converter=converter, options=ConversionOptions(), now=NOW
    )
    assert (again.processed, again.skipped) == (0, 2)
    assert len(calls) == 1
    assert _summary_lines(again.summary_path).count("2 subjects found") == 2


def test_import_conversion_error(tmp_path: Path, monkeypatch, converter):
    """Verify a nonzero exit is a per-subject failure and the run goes on."""
    calls: list[list[str]] = []
    monkeypatch.setattr(dcm2niix.subprocess, "run", fake_run_factory(calls, status=2))
    in_root = tmp_path / "dicom"
    make_subjects(in_root, ["sub-01", "sub-02"])

    res = import_subjects(
        in_root,
        tmp_path / "out",
        converter=converter,
        options=ConversionOptions(),
        log_target=LogTarget.parse("skip"),
        now=NOW,
    )
    assert (res.processed, res.failed) == (2, 2)
    assert _summary_lines(res.summary_path)[-2:] == ["sub-01...error", "sub-02...error"]
    assert not list((tmp_path / "out" / "sub-01").glob("*_log.txt"))


def test_missing_converter_is_fatal(tmp_path: Path):
    """Verify a missing binary stops the run before any subject is touched."""
    make_subjects(tmp_path / "dicom", ["sub-01"])
    empty = tmp_path / "empty"
    empty.mkdir()
    with pytest.raises(ConverterNotFoundError):
        import_subjects(
            tmp_path / "dicom",
            tmp_path / "out",
            converter=Converter(converter_dir=empty),
            options=ConversionOptions(),
        )
    assert not (tmp_path / "out").exists()


# ---------------------------------------------------------------------------
# sanity-check
# ---------------------------------------------------------------------------
def test_sanity_check_table(tmp_path: Path, monkeypatch, converter):
    """Verify the subject_details table holds the notes' name/age/gender."""
    calls: list[list[str]] = []
    monkeypatch.setattr(dcm2niix.subprocess, "run", fake_run_factory(calls))
    in_root = tmp_path / "dicom"
    make_subjects(in_root, ["sub-01"])
    opts = load_settings().workflows.sanity_check.options

    res = sanity_check(
        in_root, tmp_path / "out", converter=converter, series_id=101, options=opts, now=NOW
    )

    cmd = calls[0]
    assert cmd[cmd.index("-n") + 1] == "101"
    assert cmd[cmd.index("-t") + 1] == "y"
    assert res.table_path.name == "subject_details_17Oct2026_093000.csv"

    df = pd.read_csv(res.table_path, dtype=str)
    assert df.to_dict("records") == [
        {"subj_ID": "sub-01", "DICOM_Name": "JohnDoe", "DICOM_Age": "34", "DICOM_Gender": "M"}
    ]


def test_sanity_check_series_missing(tmp_path: Path, monkeypatch, converter):
    """Verify a conversion that yields no notes is reported as not converted."""
    calls: list[list[str]] = []
    monkeypatch.setattr(
        dcm2niix.subprocess, "run", fake_run_factory(calls, write_notes=False)
    )
    make_subjects(tmp_path / "dicom", ["sub-01"])

    res = sanity_check(
        tmp_path / "dicom",
        tmp_path / "out",
        converter=converter,
        series_id=5,
        options=ConversionOptions(text_notes=True, name_template="%n"),
        now=NOW,
    )
    df = pd.read_csv(res.table_path, dtype=str)
    assert set(df.iloc[0, 1:]) == {"series not converted"}
    assert _summary_lines(res.summary_path)[-1] == (
        "sub-01...conversion finished...series not found"
    )


def test_sanity_check_abort_keeps_finished_rows(tmp_path: Path, monkeypatch, converter):
    """Verify a fatal converter error keeps earlier rows and frees the current subject."""
    calls: list[list[str]] = []
    working = fake_run_factory(calls)

    def _fails_after_first_launch(cmd: list[str], **kwargs):
        if calls:
            raise FileNotFoundError(2, "No such file or directory", cmd[0])
        return working(cmd, **kwargs)

    monkeypatch.setattr(dcm2niix.subprocess, "run", _fails_after_first_launch)
    in_root = tmp_path / "dicom"
    make_subjects(in_root, ["sub-01", "sub-02"])
    out = tmp_path / "out"
    opts = load_settings().workflows.sanity_check.options

    with pytest.raises(ConverterNotFoundError):
        sanity_check(in_root, out, converter=converter, series_id=101, options=opts, now=NOW)

    tables = list(out.glob("subject_details_*.csv"))
    assert len(tables) == 1
    assert pd.read_csv(tables[0], dtype=str)["subj_ID"].tolist() == ["sub-01"]
    assert (out / "sub-01").is_dir()
    assert not (out / "sub-02").exists()

    monkeypatch.setattr(dcm2niix.subprocess, "run", fake_run_factory(calls))
    res = sanity_check(in_root, out, converter=converter, series_id=101, options=opts, now=NOW)

    assert (res.processed, res.skipped, res.failed) == (1, 1, 0)
    assert res.table_path != tables[0]
    assert pd.read_csv(res.table_path, dtype=str)["subj_ID"].tolist() == ["sub-02"]
    assert pd.read_csv(tables[0], dtype=str)["subj_ID"].tolist() == ["sub-01"]


def test_file_error_is_per_subject_failure(tmp_path: Path, monkeypatch, converter):
    """Verify an unreadable notes file fails only that subject."""
    calls: list[list[str]] = []
    monkeypatch.setattr(dcm2niix.subprocess, "run", fake_run_factory(calls))
    real_read = workflows.read_text

    def _read(path: Path) -> str:
        if path.parent.name == "sub-01":
            raise PermissionError(13, "Permission denied", str(path))
        return real_read(path)

    monkeypatch.setattr(workflows, "read_text", _read)
    in_root = tmp_path / "dicom"
    make_subjects(in_root, ["sub-01", "sub-02"])
    opts = load_settings().workflows.sanity_check.options

    res = sanity_check(
        in_root, tmp_path / "out", converter=converter, series_id=101, options=opts, now=NOW
    )

    assert (res.processed, res.failed) == (2, 1)
    df = pd.read_csv(res.table_path, dtype=str)
    assert set(df.iloc[0, 1:]) == {"file error; skipped"}
    assert df.loc[1, "DICOM_Name"] == "JohnDoe"
    lines = _summary_lines(res.summary_path)
    assert lines[-2].startswith("sub-01...file error: [Errno 13] Permission denied")
    assert lines[-1].startswith("sub-02...")


# ---------------------------------------------------------------------------
# param-check
# ---------------------------------------------------------------------------
def _param_dataset(tmp_path: Path, json_name: str) -> tuple[Path, Path]:
    """Build NIfTI and DICOM roots covering the main failure paths.

    * sub-01 – one sidecar, series 7 present in DICOM.
    * sub-02 – no sidecar.
    * sub-03 – sidecar for series 9, absent from DICOM.
    * sub-04 – two sidecars.
    * sub-05 – series 7 but no DICOM folder at all.
    """
    nifti = tmp_path / "nifti"
    dicom = tmp_path / "dicom"

    def _sidecar(sub: str, name: str, series: int) -> None:
        d = nifti / sub
        d.mkdir(parents=True, exist_ok=True)
        (d / name).write_text(f'{{\n  "SeriesNumber": {series},\n  "RepetitionTime": 2\n}}\n')

    _sidecar("sub-01", json_name, 7)
    (nifti / "sub-02").mkdir(parents=True)
    _sidecar("sub-03", json_name, 9)
    _sidecar("sub-04", json_name, 7)
    _sidecar("sub-04", "x_" + json_name, 8)
    _sidecar("sub-05", json_name, 7)

    for sub in ("sub-01", "sub-03", "sub-04"):
        (dicom / sub / "DICOM" / "S4410" / "0007_series").mkdir(parents=True)
        (dicom / sub / "DICOM" / "S4410" / "0003_localizer").mkdir(parents=True)
    return nifti, dicom


def test_param_check_t1(tmp_path: Path, monkeypatch, converter):
    """Verify the T1 table for a mix of good and failing subjects."""
    calls: list[list[str]] = []
    monkeypatch.setattr(dcm2niix.subprocess, "run", fake_run_factory(calls))
    nifti, dicom = _param_dataset(tmp_path, "T1_mprage.json")
    settings = load_settings()
    key, category = settings.category("T1w")

    res = param_check(
        nifti,
        dicom,
        tmp_path / "out",
        converter=converter,
        category_name=key,
        category=category,
        options=settings.workflows.param_check.options,
        layout=settings.dicom,
        now=NOW,
    )

    assert len(calls) == 1
    cmd = calls[0]
    assert cmd[cmd.index("-n") + 1] == "7"
    assert cmd[-1] == str(dicom / "sub-01")
    assert res.table_path.name == "param_check_T1_17Oct2026_093000.csv"
    assert res.summary_path.name == "param_check_summary_T1_17Oct2026.txt"

    df = pd.read_csv(res.table_path, dtype=str).set_index("subj_ID")
    assert "num_vols" not in df.columns
    assert df.loc["sub-01"].to_dict() == {
        "DICOM_Name": "JohnDoe",
        "DICOM_Age": "34",
        "DICOM_Gender": "M",
        "TR": "2000",
        "TE": "2.98",
        "image_dim": "4 x 4 x 3",
        "voxel_dim": "1 x 1 x 2.5",
    }
    assert set(df.loc["sub-02"]) == {"json sidecar not found; skipped"}
    assert set(df.loc["sub-03"]) == {"series not found; skipped"}
    assert set(df.loc["sub-04"]) == {"multiple json sidecars; skipped"}
    assert set(df.loc["sub-05"]) == {"no master series; skipped"}
    assert (res.processed, res.failed) == (5, 4)

    lines = _summary_lines(res.summary_path)
    assert "sub-03...reading T1_mprage.json...cannot find series 9" in lines
    assert lines[-5].startswith("sub-01...reading T1_mprage.json...found series 7")


def test_param_check_rest_counts_volumes(tmp_path: Path, monkeypatch, converter):
    """Verify resting-state runs get a num_vols column from the 4-D image."""
    calls: list[list[str]] = []
    monkeypatch.setattr(
        dcm2niix.subprocess,
        "run",
        fake_run_factory(calls, protocol="rest_bold", shape=(4, 4, 3, 6)),
    )
    nifti, dicom = _param_dataset(tmp_path, "rest_bold.json")
    settings = load_settings()
    key, category = settings.category("rsf")

    res = param_check(
        nifti,
        dicom,
        tmp_path / "out",
        converter=converter,
        category_name=key,
        category=category,
        options=settings.workflows.param_check.options,
        now=NOW,
    )
    df = pd.read_csv(res.table_path, dtype=str).set_index("subj_ID")
    assert df.loc["sub-01", "num_vols"] == "6"
    assert df.loc["sub-01", "image_dim"] == "4 x 4 x 3"
    assert df.loc["sub-02", "num_vols"] == "json sidecar not found; skipped"


def test_param_check_skips_existing_output(tmp_path: Path, monkeypatch, converter):
    """Verify already-checked subjects are neither converted nor tabulated."""
    calls: list[list[str]] = []
    monkeypatch.setattr(dcm2niix.subprocess, "run", fake_run_factory(calls))
    nifti, dicom = _param_dataset(tmp_path, "T1_mprage.json")
    out = tmp_path / "out"
    (out / "sub-01").mkdir(parents=True)
    _, category = load_settings().category("T1")

    res = param_check(
        nifti,
        dicom,
        out,
        converter=converter,
        category_name="T1",
        category=category,
        options=ConversionOptions(text_notes=True),
        now=NOW,
    )
    assert calls == []
    assert res.skipped == 1
    df = pd.read_csv(res.table_path, dtype=str)
    assert "sub-01" not in set(df["subj_ID"])


# ---------------------------------------------------------------------------
# copy-t1
# ---------------------------------------------------------------------------
def test_copy_primary(tmp_path: Path):
    """Verify the single T1 per subject is copied with its sidecar."""
    nifti = tmp_path / "nifti"
    s1 = nifti / "sub-01"
    write_nifti(s1 / "T1_mprage.nii")
    (s1 / "T1_mprage.json").write_text("{}")
    write_nifti(s1 / "T1_PSIR.nii")
    write_nifti(nifti / "sub-02" / "T1_a.nii")
    write_nifti(nifti / "sub-02" / "T1_b.nii")
    (nifti / "sub-03").mkdir()
    write_nifti(nifti / "sub-04" / "T1.nii")
    out = tmp_path / "t1"
    out.mkdir()
    (out / "sub-04_T1w.nii").write_bytes(b"old")

    res = copy_primary(nifti, out, now=NOW)

    assert (out / "sub-01_T1w.nii").read_bytes() == (s1 / "T1_mprage.nii").read_bytes()
    assert (out / "sub-01_T1w.json").read_text() == "{}"
    assert not list(out.glob("sub-02_*"))
    assert (out / "sub-04_T1w.nii").read_bytes() == b"old"
    assert (res.processed, res.skipped, res.failed) == (3, 1, 2)
    assert res.summary_path.name == "summary_copy_T1w_17Oct2026.txt"
    assert _summary_lines(res.summary_path)[-4:] == [
        "sub-01...copying T1_mprage.nii...done!",
        "sub-02...multiple T1w images; skipping",
        "sub-03...T1w file not found",
        "sub-04...skipped",
    ]


def test_copy_primary_file_error_leaves_no_partial_copy(tmp_path: Path, monkeypatch):
    """Verify a failed sidecar copy removes the copied image so a re-run retries."""
    nifti = tmp_path / "nifti"
    write_nifti(nifti / "sub-01" / "T1_mprage.nii")
    (nifti / "sub-01" / "T1_mprage.json").write_text("{}")
    out = tmp_path / "t1"
    out.mkdir()
    real_copy = shutil.copy2

    def _copy(src, dst, **kwargs):
        if Path(dst).suffix == ".json":
            raise OSError(28, "No space left on device")
        return real_copy(src, dst, **kwargs)

    monkeypatch.setattr(workflows.shutil, "copy2", _copy)
    res = copy_primary(nifti, out, now=NOW)

    assert (res.processed, res.failed) == (1, 1)
    assert not list(out.glob("sub-01_*"))
    assert _summary_lines(res.summary_path)[-1] == (
        "sub-01...file error: [Errno 28] No space left on device"
    )

    monkeypatch.setattr(workflows.shutil, "copy2", real_copy)
    again = copy_primary(nifti, out, now=NOW)
    assert (again.processed, again.failed) == (1, 0)
    assert (out / "sub-01_T1w.json").read_text() == "{}"
