"""
niftimatic package initialisation.

The module performs two small tasks:

1. **Expose the version string**
   ``niftimatic.__version__`` is resolved at import-time from the installed
   distribution metadata so that editable installs, wheels and test runs all
   report the same value.

2. **Re-export the settings loader**
   :func:`niftimatic.config.load_settings` is available at the top level so
   call-sites can simply do::

       from niftimatic import load_settings

Module attributes
-----------------
__version__ : str
    Version derived from the installed distribution.
load_settings : Callable
    Shortcut to :pyfunc:`niftimatic.config.load_settings`.
"""

from importlib.metadata import PackageNotFoundError, version

# --------------------------------------------------------------------------- #
# Version resolution
# --------------------------------------------------------------------------- #
try:
    __version__: str = version("niftimatic")
except PackageNotFoundError:
    # Source tree without an installed distribution.
    __version__ = "0.0.0"

# --------------------------------------------------------------------------- #
# Public re-exports
# --------------------------------------------------------------------------- #
from .config import load_settings  # noqa: E402 – deliberate late import

__all__: list[str] = ["load_settings", "__version__"]
