"""Host platform detection.

Maps the kernel name and machine type reported by the host onto the
(os, arch) tokens used by the backend's download route and by GOOS/GOARCH.
"""

import logging
import os
import platform
from dataclasses import dataclass
from typing import Optional

from .errors import PrivilegeRequired, UnsupportedOS, UnsupportedPlatform

logger = logging.getLogger("serverdock-installer")

SUPPORTED_OS = "linux"

ARCH_ALIASES = {
    "x86_64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


@dataclass(frozen=True)
class PlatformProfile:
    """Normalized host platform."""
    os: str
    arch: str

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"


def profile_platform(kernel: str, machine: str) -> PlatformProfile:
    """Normalize raw uname values into a PlatformProfile.

    Args:
        kernel: Kernel name, e.g. "Linux"
        machine: Machine type, e.g. "x86_64" or "aarch64"

    Raises:
        UnsupportedPlatform: the machine type has no mapping
        UnsupportedOS: the kernel is not Linux
    """
    arch = ARCH_ALIASES.get(machine)
    if arch is None:
        raise UnsupportedPlatform(f"Unsupported architecture: {machine}")

    os_name = kernel.strip().lower()
    if os_name != SUPPORTED_OS:
        raise UnsupportedOS("This installer only supports Linux")

    return PlatformProfile(os=os_name, arch=arch)


def detect_platform(kernel: Optional[str] = None, machine: Optional[str] = None) -> PlatformProfile:
    """Detect the current host's platform profile."""
    profile = profile_platform(
        kernel if kernel is not None else platform.system(),
        machine if machine is not None else platform.machine(),
    )
    logger.info(f"Detected system: {profile}")
    return profile


def check_root() -> None:
    """Require root, since the installer writes to /opt and /etc/systemd."""
    if os.geteuid() != 0:
        raise PrivilegeRequired("Please run as root (use sudo)")
