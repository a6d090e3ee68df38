"""
Module entry-point that makes the package runnable with

    python -m niftimatic
    python -m niftimatic.cli

The behaviour is identical to the *niftimatic-cli* console script because the
Click **group** imported below performs all dispatching.
"""

from niftimatic.cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
