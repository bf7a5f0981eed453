"""Agent source discovery.

Local candidates are checked in priority order and the first tree that
contains the agent entry point wins. When none does, the repository is
shallow-cloned into a temporary directory that lives only as long as the
resolve_source() context.
"""

import contextlib
import logging
import os
import shutil
import sys
import tempfile
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

from .errors import SourceNotFound
from .utils import run_cmd

logger = logging.getLogger("serverdock-installer")

ENTRY_POINT = os.path.join("cmd", "serverdock-agent", "main.go")
REPOSITORY_URL = "https://github.com/ArnoPi/ServerDock.git"
# Agent module path inside a full repository checkout
REPOSITORY_SUBDIR = "agent"

WELL_KNOWN_ROOTS = (
    "/opt/serverdock-source/agent",
    "/usr/local/src/serverdock/agent",
    "/tmp/serverdock-agent",
)


@dataclass(frozen=True)
class SourceLocation:
    """A directory holding a buildable agent source tree."""
    root: str
    ephemeral: bool = False

    @property
    def entry_point(self) -> str:
        return os.path.join(self.root, ENTRY_POINT)


def has_entry_point(root: str) -> bool:
    return os.path.isfile(os.path.join(root, ENTRY_POINT))


def _installer_dir() -> str:
    return os.path.dirname(os.path.abspath(sys.argv[0]))


def candidate_roots(
    cwd: Optional[str] = None,
    installer_dir: Optional[str] = None,
    well_known: Iterable[str] = WELL_KNOWN_ROOTS,
) -> Iterator[str]:
    """Yield local source roots in priority order.

    Roots are computed lazily so later candidates are never touched once
    an earlier one matches.
    """
    yield cwd if cwd is not None else os.getcwd()
    yield installer_dir if installer_dir is not None else _installer_dir()
    yield from well_known


def find_local_source(roots: Iterable[str]) -> Optional[SourceLocation]:
    """Return the first root containing the entry point, or None."""
    for root in roots:
        if has_entry_point(root):
            logger.info(f"Found agent source at {root}")
            return SourceLocation(root=os.path.abspath(root))
        logger.debug(f"No agent source at {root}")
    return None


def clone_source(dest: str, repository_url: str = REPOSITORY_URL, run: Callable = run_cmd) -> bool:
    """Shallow-clone the repository into dest.

    Returns:
        True if git exited successfully
    """
    if shutil.which("git") is None:
        logger.warning("git is not installed, cannot fetch agent source")
        return False

    result = run(["git", "clone", "--depth", "1", repository_url, dest])
    if not result.ok:
        logger.warning(f"git clone failed: {result.output}")
    return result.ok


@contextlib.contextmanager
def resolve_source(
    roots: Optional[Iterable[str]] = None,
    repository_url: str = REPOSITORY_URL,
    run: Callable = run_cmd,
) -> Iterator[SourceLocation]:
    """Locate agent source, cloning it as a last resort.

    Any temporary checkout is removed when the context exits, whether the
    body succeeded or raised.

    Args:
        roots: Local candidates; defaults to candidate_roots()
        repository_url: Repository cloned when no local candidate matches
        run: Command runner, replaced in tests

    Yields:
        SourceLocation of the resolved tree

    Raises:
        SourceNotFound: no candidate, including the clone, has the entry point
    """
    location = find_local_source(candidate_roots() if roots is None else roots)
    if location is not None:
        yield location
        return

    logger.info("Agent source not found locally, attempting to download from GitHub...")
    temp_dir = tempfile.mkdtemp(prefix="serverdock-source-")
    try:
        if clone_source(temp_dir, repository_url, run=run):
            checkout = os.path.join(temp_dir, REPOSITORY_SUBDIR)
            if has_entry_point(checkout):
                logger.info("Source code downloaded from GitHub")
                yield SourceLocation(root=checkout, ephemeral=True)
                return
            logger.warning(f"Checkout of {repository_url} has no {ENTRY_POINT}")

        raise SourceNotFound("Agent source code not found")
    finally:
        logger.debug(f"Cleaning up temporary checkout {temp_dir}")
        shutil.rmtree(temp_dir, ignore_errors=True)
