"""
Pydantic models that mirror the YAML settings consumed by *niftimatic*.

The classes define a strongly-typed representation of the settings file so
the rest of the codebase works with validated objects instead of ad-hoc
dictionaries. :class:`ConversionOptions` is the single place where the
dcm2niix flag grammar is rendered.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from niftimatic.utils.errors import ConfigurationError

# --------------------------------------------------------------------------- #
# 1.  Converter options – immutable value object                              #
# --------------------------------------------------------------------------- #


def yes_no(flag: bool | None) -> str:
    """Render a boolean the way dcm2niix expects it."""
    return "y" if flag else "n"


class ConversionOptions(BaseModel, frozen=True, extra="forbid"):
    """Options that, together with the paths, fully determine a dcm2niix call.

    Attributes:
        bids: Write BIDS JSON sidecars (``-b``).
        compress: Write ``.nii.gz`` instead of ``.nii`` (``-z``).
        precise: Use Philips precise float instead of display scaling (``-p``).
        text_notes: Write the private text notes sidecar (``-t``). ``None``
            leaves the flag out of the command line.
        name_template: Output filename template (``-f``).
        series_number: Convert only this series (``-n``).
    """

    bids: bool = True
    compress: bool = False
    precise: bool = False
    text_notes: Optional[bool] = None
    name_template: str = "%p"
    series_number: Optional[int] = None

    @field_validator("name_template")
    @classmethod
    def _template_is_single_token(cls, value: str) -> str:
        """Reject empty templates and templates containing whitespace."""
        if not value or re.search(r"\s", value):
            raise ValueError("name_template must be a non-empty token without whitespace")
        return value

    @field_validator("series_number")
    @classmethod
    def _series_number_non_negative(cls, value: Optional[int]) -> Optional[int]:
        """Series numbers are non-negative integers."""
        if value is not None and value < 0:
            raise ValueError("series_number must be >= 0")
        return value

    def for_series(self, number: int) -> "ConversionOptions":
        """Return a validated copy restricted to series *number* (``-n``)."""
        return ConversionOptions(**{**self.model_dump(), "series_number": number})

    def to_args(self) -> List[str]:
        """Return the option part of the dcm2niix command line.

        The order is fixed: ``-b -z -p [-t] [-n] -f``.
        """
        args = ["-b", yes_no(self.bids), "-z", yes_no(self.compress), "-p", yes_no(self.precise)]
        if self.text_notes is not None:
            args += ["-t", yes_no(self.text_notes)]
        if self.series_number is not None:
            args += ["-n", str(self.series_number)]
        args += ["-f", self.name_template]
        return args


# --------------------------------------------------------------------------- #
# 2.  Conversion log placement                                                #
# --------------------------------------------------------------------------- #


class LogTarget(BaseModel, frozen=True):
    """Where per-subject conversion logs are written.

    ``mode`` is ``"skip"`` (no logs), ``"sub"`` (inside each subject's output
    folder) or ``"dir"`` (``<directory>/<sub>_log.txt``).
    """

    mode: Literal["skip", "sub", "dir"] = "sub"
    directory: Optional[Path] = None

    @model_validator(mode="after")
    def _dir_mode_needs_directory(self) -> "LogTarget":
        if self.mode == "dir" and self.directory is None:
            raise ValueError("log directory is required when mode is 'dir'")
        return self

    @classmethod
    def parse(cls, value: str | Path | None) -> "LogTarget":
        """Build a target from the CLI value (``skip``, ``sub``, ``""`` or a path)."""
        if value is None:
            return cls(mode="sub")
        text = str(value).strip()
        if not text or text.lower() == "skip":
            return cls(mode="skip")
        if text.lower() == "sub":
            return cls(mode="sub")
        return cls(mode="dir", directory=Path(text).expanduser().resolve())

    def path_for(self, subject_id: str, subject_out_dir: Path) -> Optional[Path]:
        """Return the log file for *subject_id* or ``None`` when logging is off."""
        if self.mode == "skip":
            return None
        if self.mode == "sub" or self.directory is None:
            return subject_out_dir / f"{subject_id}_log.txt"
        return self.directory / f"{subject_id}_log.txt"

    def describe(self) -> str:
        """Return the value echoed into the summary header."""
        return str(self.directory) if self.mode == "dir" else self.mode


# --------------------------------------------------------------------------- #
# 3.  Settings sections                                                       #
# --------------------------------------------------------------------------- #


class ConverterSettings(BaseModel):
    """Location of the converter binary."""

    executable: str = "dcm2niix"


class DicomLayout(BaseModel):
    """Shape of each subject's raw DICOM tree."""

    subdir: str = "DICOM"
    master_series_glob: str = "S*"


class ConvertWorkflow(BaseModel):
    """Defaults for the plain subject import."""

    options: ConversionOptions = Field(default_factory=ConversionOptions)


class SanityWorkflow(BaseModel):
    """Defaults for the sanity check (one fixed series per subject)."""

    series_id: int = 101
    options: ConversionOptions = Field(
        default_factory=lambda: ConversionOptions(text_notes=True, name_template="%n")
    )


class ParamWorkflow(BaseModel):
    """Defaults for the acquisition-parameter check."""

    options: ConversionOptions = Field(
        default_factory=lambda: ConversionOptions(text_notes=True, name_template="%p")
    )


class CopyWorkflow(BaseModel):
    """Defaults for copying the primary image of every subject."""

    pattern: str = "*T1*.nii"
    exclude: List[str] = Field(default_factory=lambda: ["PSIR"])
    suffix: str = "T1w"


class Workflows(BaseModel):
    """Per-workflow defaults."""

    convert: ConvertWorkflow = Field(default_factory=ConvertWorkflow)
    sanity_check: SanityWorkflow = Field(default_factory=SanityWorkflow)
    param_check: ParamWorkflow = Field(default_factory=ParamWorkflow)
    copy_primary: CopyWorkflow = Field(default_factory=CopyWorkflow)


class Category(BaseModel):
    """Acquisition category for the parameter check.

    Attributes:
        aliases: Spellings accepted on the command line.
        json_glob: Pattern locating the category's JSON sidecar in a subject's
            NIfTI folder.
        count_volumes: Add the ``num_vols`` column (EPI acquisitions).
    """

    aliases: List[str] = Field(default_factory=list)
    json_glob: str
    count_volumes: bool = False


# --------------------------------------------------------------------------- #
# 4.  Top-level model                                                         #
# --------------------------------------------------------------------------- #


class SettingsSchema(BaseModel):
    """Root settings object consumed by the rest of *niftimatic*."""

    version: str
    converter: ConverterSettings = Field(default_factory=ConverterSettings)
    dicom: DicomLayout = Field(default_factory=DicomLayout)
    workflows: Workflows = Field(default_factory=Workflows)
    categories: Dict[str, Category] = Field(default_factory=dict)

    def category(self, name: str) -> tuple[str, Category]:
        """Resolve *name* (case-insensitive, aliases allowed) to a category.

        Raises:
            ConfigurationError: When no category or alias matches.
        """
        wanted = name.strip().lower()
        for key, cat in self.categories.items():
            spellings = {key.lower(), *(a.lower() for a in cat.aliases)}
            if wanted in spellings:
                return key, cat
        known = ", ".join(sorted(self.categories))
        raise ConfigurationError(
            f"Invalid acquisition category '{name}' (known: {known})"
        )
