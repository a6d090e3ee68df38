"""Module wrapper so running ``python -m niftimatic.cli`` matches the console script."""

from niftimatic.cli import main


if __name__ == "__main__":  # pragma: no cover
    main()
