"""Small shared helpers: logging setup, console output and exceptions."""

from .errors import (
    ConfigurationError,
    ConverterNotFoundError,
    MissingInputError,
    NiftimaticError,
)

__all__ = [
    "NiftimaticError",
    "ConfigurationError",
    "MissingInputError",
    "ConverterNotFoundError",
]
