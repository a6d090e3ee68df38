"""Subject discovery and the idempotency gate.

* :func:`discover_subjects` lists ``sub-*`` folders under an input root.
* :func:`should_process` answers "is this subject new for this output root?".
* :func:`claim_subject_dir` performs the check and the folder creation as one
  atomic ``mkdir`` so a subject cannot be processed twice.

All functions take explicit paths and never change the working directory.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

from .types import Subject

# ─────────────────────────────────────────────────────────────────────────────
# Regular expressions
# ─────────────────────────────────────────────────────────────────────────────
_SUB_RE = re.compile(r"^sub-[A-Za-z0-9]+$")


# ─────────────────────────────────────────────────────────────────────────────
# Discovery
# ─────────────────────────────────────────────────────────────────────────────
def is_subject_id(name: str) -> bool:
    """Return ``True`` when *name* follows the ``sub-xxxx`` convention."""
    return bool(_SUB_RE.match(name))


def discover_subjects(in_root: Path) -> List[Subject]:
    """Return every subject folder directly under *in_root*, sorted by name.

    Args:
        in_root: Directory holding one folder per subject.

    Returns:
        Sorted list of :class:`Subject` objects. Files and folders that do not
        match ``sub-<alnum>`` are ignored.
    """
    return [
        Subject(id=p.name, in_dir=p)
        for p in sorted(in_root.glob("sub-*"))
        if p.is_dir() and is_subject_id(p.name)
    ]


# ─────────────────────────────────────────────────────────────────────────────
# Idempotency gate
# ─────────────────────────────────────────────────────────────────────────────
def should_process(out_root: Path, subject_id: str) -> bool:
    """Return ``False`` iff ``<out_root>/<subject_id>`` already exists."""
    return not (out_root / subject_id).is_dir()


def claim_subject_dir(out_root: Path, subject_id: str) -> Optional[Path]:
    """Create ``<out_root>/<subject_id>`` and return it.

    Returns ``None`` when the folder (or a file of that name) already exists,
    in which case nothing on disk is modified.
    """
    target = out_root / subject_id
    try:
        target.mkdir(parents=False, exist_ok=False)
    except FileExistsError:
        return None
    return target


__all__ = ["discover_subjects", "is_subject_id", "should_process", "claim_subject_dir"]
