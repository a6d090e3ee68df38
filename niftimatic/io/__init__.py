"""Public façade for the ``io`` sub-package.

Wrappers around the external converter and the imaging library:

Attributes:
    run_dcm2niix: Run dcm2niix once for a typed set of options and return a
        :class:`ConversionResult`. See :pymod:`niftimatic.io.dcm2niix`.
    read_geometry: Return grid dimensions, voxel spacing and volume count of
        a NIfTI file. See :pymod:`niftimatic.io.geometry`.
"""

from .dcm2niix import ConversionResult, build_command, run_dcm2niix
from .geometry import VolumeGeometry, find_image, format_triplet, read_geometry

__all__ = [
    "run_dcm2niix",
    "build_command",
    "ConversionResult",
    "read_geometry",
    "find_image",
    "format_triplet",
    "VolumeGeometry",
]
