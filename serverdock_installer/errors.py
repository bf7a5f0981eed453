"""Error types for the ServerDock installer.

Every failure that ends a provisioning pass is an InstallerError. The CLI
prints the message and exits with ``exit_code``; nothing is retried.
"""

from typing import Optional


class InstallerError(Exception):
    """Base class for terminal installer failures."""

    exit_code = 1


class InvalidConfig(InstallerError):
    """A setting other than a credential is malformed."""


class UnsupportedPlatform(InstallerError):
    """Host architecture is not one we ship or build for."""


class UnsupportedOS(UnsupportedPlatform):
    """Host kernel is not Linux."""


class PrivilegeRequired(InstallerError):
    """Installer is not running as root."""


class MissingCredential(InstallerError):
    """A credential needed by the agent service was not supplied."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"{field} is required")


class TransportFailure(InstallerError):
    """The download request could not be completed."""


class InvalidArtifact(InstallerError):
    """A candidate binary failed validation."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid agent binary: {reason}")


class SourceNotFound(InstallerError):
    """No buildable agent source tree could be located."""


class ToolchainMissing(InstallerError):
    """The Go toolchain is not installed."""


class BuildFailure(InstallerError):
    """A build step failed."""

    def __init__(self, step: str, detail: str = ""):
        self.step = step
        self.detail = detail
        message = f"Build failed during '{step}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SupervisorMissing(InstallerError):
    """systemd is not available on this host."""


class ServiceNotRunning(InstallerError):
    """The agent service did not reach the running state."""

    def __init__(self, service_name: str, status_output: str = ""):
        self.service_name = service_name
        self.status_output = status_output
        super().__init__(f"Failed to start {service_name}")
