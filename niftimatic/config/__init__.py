"""
Configuration package façade.

* :func:`load_settings` – read, merge and validate the YAML settings.
* :class:`SettingsSchema` – the validated root object.
* :class:`ConversionOptions` – typed dcm2niix options.
* :class:`LogTarget` – placement of per-subject conversion logs.
* ``resolve_*`` helpers – fail-fast directory checks.
"""

from .loader import load_settings  # noqa: F401
from .resolve import (  # noqa: F401
    resolve_converter_dir,
    resolve_input_dir,
    resolve_output_dir,
)
from .schema import (  # noqa: F401
    Category,
    ConversionOptions,
    LogTarget,
    SettingsSchema,
)

__all__: list[str] = [
    "load_settings",
    "SettingsSchema",
    "Category",
    "ConversionOptions",
    "LogTarget",
    "resolve_input_dir",
    "resolve_output_dir",
    "resolve_converter_dir",
]
