"""Custom exceptions used across niftimatic.

Only run-level problems are modelled as exceptions. Per-subject problems are
returned as :class:`niftimatic.pipelines.types.Failure` outcomes and end up in
the report instead.
"""

from __future__ import annotations


class NiftimaticError(RuntimeError):
    """Base class for unrecoverable, run-level errors."""

    pass


class ConfigurationError(NiftimaticError):
    """Raised for invalid roots, unknown categories or a broken settings file."""

    pass


class MissingInputError(ConfigurationError):
    """Raised when a required input was not supplied and prompting is off."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} must be given")
        self.name = name


class ConverterNotFoundError(NiftimaticError):
    """Raised when the dcm2niix executable is missing or cannot be launched."""

    pass
