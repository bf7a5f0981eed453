"""Agent binary artifacts and their validation.

Both acquisition strategies write to the same destination path, so a
candidate is only trusted after it passes validate_artifact(), and a
rejected candidate is removed before the next strategy runs.
"""

import enum
import logging
import os
import stat
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("serverdock-installer")

# Anything this small is an HTML error page or an empty body, not a binary.
MIN_ARTIFACT_BYTES = 1024


class Provenance(enum.Enum):
    DOWNLOADED = "downloaded"
    BUILT = "built"


@dataclass(frozen=True)
class Artifact:
    """An agent binary that passed validation."""
    path: str
    size_bytes: int
    executable: bool
    provenance: Provenance

    @property
    def usable(self) -> bool:
        return self.executable and self.size_bytes > MIN_ARTIFACT_BYTES


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a candidate file."""
    ok: bool
    size_bytes: int = 0
    reason: Optional[str] = None


def validate_artifact(path: str, min_bytes: int = MIN_ARTIFACT_BYTES) -> ValidationResult:
    """Check that path is an executable file larger than min_bytes.

    Args:
        path: Candidate binary
        min_bytes: Size floor; the file must be strictly larger

    Returns:
        ValidationResult with the measured size and, on rejection, a reason
    """
    try:
        st = os.stat(path)
    except (FileNotFoundError, NotADirectoryError):
        return ValidationResult(ok=False, reason=f"{path} does not exist")

    if not stat.S_ISREG(st.st_mode):
        return ValidationResult(ok=False, reason=f"{path} is not a regular file")

    size = st.st_size
    if size <= min_bytes:
        return ValidationResult(ok=False, size_bytes=size, reason=f"file too small ({size} bytes)")

    if not os.access(path, os.X_OK):
        return ValidationResult(ok=False, size_bytes=size, reason=f"{path} is not executable")

    return ValidationResult(ok=True, size_bytes=size)


def make_executable(path: str) -> None:
    """Add execute permission bits (chmod +x)."""
    mode = os.stat(path).st_mode
    os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def discard(path: str) -> bool:
    """Remove a rejected or stale candidate.

    Returns:
        True if a file was removed
    """
    try:
        os.remove(path)
    except (FileNotFoundError, NotADirectoryError):
        return False
    logger.debug(f"Removed {path}")
    return True
