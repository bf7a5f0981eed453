"""Build the agent binary from source with the Go toolchain."""

import logging
import os
import shutil
from typing import Callable

from .artifact import Artifact, Provenance, discard, make_executable, validate_artifact
from .errors import BuildFailure, ToolchainMissing
from .source import SourceLocation
from .system import PlatformProfile
from .utils import format_bytes, run_cmd

logger = logging.getLogger("serverdock-installer")

GO_PACKAGE = "./cmd/serverdock-agent"
# Strip symbol table and DWARF info
GO_LDFLAGS = "-s -w"


class BuildExecutor:
    """Cross-compiles the agent for a target platform.

    Each step is a hard gate: dependencies, compile, verify. The first one
    that fails raises BuildFailure naming it.
    """

    def __init__(self, go: str = "go", run: Callable = run_cmd):
        self.go = go
        self.run = run

    def require_toolchain(self) -> str:
        """Return the path of the go binary.

        Raises:
            ToolchainMissing: go is not on PATH
        """
        path = shutil.which(self.go)
        if path is None:
            raise ToolchainMissing(
                "Go is not installed. Cannot build agent binary. "
                "Install Go (https://golang.org/dl/) or make the binary available from the backend."
            )
        return path

    def build(self, location: SourceLocation, profile: PlatformProfile, dest: str) -> Artifact:
        """Build the agent from location into dest.

        Args:
            location: Resolved source tree
            profile: Target platform (GOOS/GOARCH)
            dest: Output path for the binary

        Returns:
            Validated Artifact with BUILT provenance
        """
        go = self.require_toolchain()
        logger.info(f"Building agent binary from source in {location.root}")

        if os.path.isfile(os.path.join(location.root, "go.mod")):
            logger.info("Downloading Go dependencies...")
            result = self.run([go, "mod", "download"], cwd=location.root)
            if not result.ok:
                raise BuildFailure("dependencies", result.output or "go mod download failed")

        try:
            os.makedirs(os.path.dirname(dest) or ".", exist_ok=True)
        except OSError as e:
            raise BuildFailure("compile", f"cannot create {os.path.dirname(dest)}: {e}") from e
        logger.info(f"Compiling agent binary for {profile}...")
        result = self.run(
            [go, "build", f"-ldflags={GO_LDFLAGS}", "-o", dest, GO_PACKAGE],
            cwd=location.root,
            env={"GOOS": profile.os, "GOARCH": profile.arch},
        )
        if not result.ok:
            discard(dest)
            raise BuildFailure("compile", result.output or "go build failed")

        if not os.path.isfile(dest):
            raise BuildFailure("verify", f"{dest} was not created")
        make_executable(dest)

        check = validate_artifact(dest)
        if not check.ok:
            discard(dest)
            raise BuildFailure("verify", check.reason or "binary rejected")

        logger.info(f"Agent binary built successfully ({format_bytes(check.size_bytes)})")
        return Artifact(
            path=dest,
            size_bytes=check.size_bytes,
            executable=True,
            provenance=Provenance.BUILT,
        )
