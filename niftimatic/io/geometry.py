"""Image geometry of converted volumes, read through nibabel."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

import nibabel as nib
from pydantic import BaseModel

_NIFTI_SUFFIXES = (".nii", ".nii.gz")


class VolumeGeometry(BaseModel, frozen=True):
    """Grid size, voxel spacing and number of volumes of one image."""

    shape: tuple[int, int, int]
    zooms: tuple[float, float, float]
    n_vols: int

    @property
    def image_dim(self) -> str:
        """Grid size rendered as ``"X x Y x Z"``."""
        return format_triplet(self.shape)

    @property
    def voxel_dim(self) -> str:
        """Voxel spacing rendered as ``"X x Y x Z"``."""
        return format_triplet(self.zooms)


def format_triplet(values: Iterable[float]) -> str:
    """Render three numbers as ``"X x Y x Z"`` without trailing zeros."""
    return " x ".join(f"{float(v):g}" for v in values)


def read_geometry(path: Path) -> VolumeGeometry:
    """Return the geometry of the NIfTI at *path*.

    2-D images are padded to three dimensions with size 1 and spacing 1.0;
    a 3-D image counts as a single volume.
    """
    img = nib.load(str(path))
    shape = tuple(int(s) for s in img.shape)
    zooms = tuple(float(z) for z in img.header.get_zooms())

    dims = (shape + (1, 1, 1))[:3]
    spacing = (zooms + (1.0, 1.0, 1.0))[:3]
    n_vols = shape[3] if len(shape) >= 4 else 1
    return VolumeGeometry(shape=dims, zooms=spacing, n_vols=n_vols)


def find_image(folder: Path, stem: str) -> Optional[Path]:
    """Return ``<folder>/<stem>.nii`` or ``.nii.gz``, whichever exists first."""
    for suffix in _NIFTI_SUFFIXES:
        candidate = folder / f"{stem}{suffix}"
        if candidate.is_file():
            return candidate
    return None
