"""Agent binary acquisition.

Download first, build from source second. Each strategy runs at most once
per pass and both write to the same destination, so a rejected download is
removed before the build starts:

    START -> DOWNLOAD -> valid? -> Acquired
                      -> BUILD  -> source, toolchain, build, valid? -> Acquired
                                -> Exhausted
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .artifact import Artifact, Provenance, discard, make_executable, validate_artifact
from .build import GO_PACKAGE, BuildExecutor
from .config import ProvisioningConfig
from .download import DownloadResult, download_agent
from .errors import InstallerError, InvalidArtifact, TransportFailure
from .source import REPOSITORY_URL, resolve_source
from .system import PlatformProfile
from .utils import format_bytes

logger = logging.getLogger("serverdock-installer")


@dataclass(frozen=True)
class Acquired:
    """A usable binary is in place."""
    artifact: Artifact


@dataclass(frozen=True)
class Exhausted:
    """Both strategies failed; no binary is left at the destination."""
    error: InstallerError
    download: Optional[DownloadResult] = None
    download_error: Optional[InstallerError] = None


AcquisitionResult = Union[Acquired, Exhausted]


class AcquisitionOrchestrator:
    """Resolves an agent binary for one provisioning pass."""

    def __init__(
        self,
        config: ProvisioningConfig,
        profile: PlatformProfile,
        download: Callable[..., DownloadResult] = download_agent,
        builder: Optional[BuildExecutor] = None,
        resolve: Callable = resolve_source,
    ):
        self.config = config
        self.profile = profile
        self._download = download
        self._builder = builder or BuildExecutor()
        self._resolve = resolve
        self.last_download: Optional[DownloadResult] = None
        self.download_error: Optional[InstallerError] = None

    @property
    def dest(self) -> str:
        return self.config.binary_path

    def acquire(self) -> AcquisitionResult:
        """Run the download strategy, then the build strategy if needed."""
        # A binary left by an earlier run is never reused.
        if discard(self.dest):
            logger.info(f"Discarded existing binary at {self.dest}")

        artifact = self._try_download()
        if artifact is not None:
            return Acquired(artifact)

        logger.info("Download failed, attempting to build agent locally...")
        try:
            artifact = self._try_build()
        except InstallerError as e:
            discard(self.dest)
            logger.error(str(e))
            return Exhausted(error=e, download=self.last_download, download_error=self.download_error)

        return Acquired(artifact)

    def _try_download(self) -> Optional[Artifact]:
        result = self._download(self.config, self.profile)
        self.last_download = result

        if result.ok:
            if os.path.isfile(self.dest):
                make_executable(self.dest)
            check = validate_artifact(self.dest)
            if check.ok:
                logger.info(f"Agent binary downloaded ({format_bytes(check.size_bytes)})")
                return Artifact(
                    path=self.dest,
                    size_bytes=check.size_bytes,
                    executable=True,
                    provenance=Provenance.DOWNLOADED,
                )
            self.download_error = InvalidArtifact(check.reason or "rejected")
        elif result.error:
            self.download_error = TransportFailure(result.error)
        else:
            self.download_error = TransportFailure(f"Download failed (HTTP {result.status_code}) from {result.url}")

        logger.warning(f"{self.download_error}, will try to build locally...")
        discard(self.dest)
        return None

    def _try_build(self) -> Artifact:
        self._builder.require_toolchain()
        with self._resolve() as location:
            return self._builder.build(location, self.profile, self.dest)

    def remediation_hints(self) -> list[str]:
        """Manual steps for the operator once acquisition is exhausted."""
        return [
            "Build the agent binary manually:",
            f"  cd agent && go build -o {self.dest} {GO_PACKAGE}",
            f"Ensure the backend has the binary available at: {self.config.download_url(self.profile)}",
            "Clone the repository and run the installer from the agent directory:",
            f"  git clone {REPOSITORY_URL}",
            "  cd ServerDock/agent && serverdock-install --token ... --server-id ... --server-secret ...",
        ]
