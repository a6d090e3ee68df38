"""Tests for the nibabel-backed geometry reader."""

from pathlib import Path

from niftimatic.io.geometry import find_image, format_triplet, read_geometry

from .utils import write_nifti


def test_3d_geometry(tmp_path: Path):
    """Verify grid size and voxel spacing of a single volume."""
    img = write_nifti(tmp_path / "t1.nii", shape=(4, 5, 3), zooms=(1.0, 1.0, 2.5))
    geo = read_geometry(img)
    assert geo.image_dim == "4 x 5 x 3"
    assert geo.voxel_dim == "1 x 1 x 2.5"
    assert geo.n_vols == 1


def test_4d_volume_count(tmp_path: Path):
    """Verify the fourth dimension is the number of volumes."""
    img = write_nifti(tmp_path / "rest.nii.gz", shape=(4, 4, 3, 6), zooms=(3.0, 3.0, 3.0))
    geo = read_geometry(img)
    assert geo.image_dim == "4 x 4 x 3"
    assert geo.voxel_dim == "3 x 3 x 3"
    assert geo.n_vols == 6


def test_format_triplet():
    """Verify integral values drop their trailing zeros."""
    assert format_triplet((256, 256, 176)) == "256 x 256 x 176"
    assert format_triplet((0.9375, 0.9375, 1.0)) == "0.9375 x 0.9375 x 1"


def test_find_image(tmp_path: Path):
    """Verify both plain and compressed images are found."""
    assert find_image(tmp_path, "t1") is None
    write_nifti(tmp_path / "t1.nii.gz")
    assert find_image(tmp_path, "t1") == tmp_path / "t1.nii.gz"
    write_nifti(tmp_path / "t1.nii")
    assert find_image(tmp_path, "t1") == tmp_path / "t1.nii"
