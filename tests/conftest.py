"""Pytest configuration for niftimatic tests."""

import pytest

# Skip the entire suite when the heavy dependencies are unavailable.
pytest.importorskip("pandas")
pytest.importorskip("nibabel")


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    """Keep run logs and settings lookups inside the test's temp folder."""
    monkeypatch.setenv("NIFTIMATIC_LOG_DIR", str(tmp_path / "_logs"))
    monkeypatch.delenv("NIFTIMATIC_CONFIG", raising=False)
