"""Configuration for the ServerDock installer."""

from dataclasses import dataclass
import os
import re

from .errors import MissingCredential

DEFAULT_BACKEND_URL = "wss://api.serverdock.com"
DEFAULT_INSTALL_DIR = "/opt/serverdock"
DEFAULT_SERVICE_NAME = "serverdock-agent"
BINARY_NAME = "serverdock-agent"

# (attribute, CLI flag, environment variable), in the order they are checked
CREDENTIAL_FIELDS = (
    ("bootstrap_token", "--token", "SERVERDOCK_BOOTSTRAP_TOKEN"),
    ("server_id", "--server-id", "SERVERDOCK_SERVER_ID"),
    ("server_secret", "--server-secret", "SERVERDOCK_SERVER_SECRET"),
)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_SERVICE_NAME = re.compile(r"^[A-Za-z0-9@._:-]+$")

_CREDENTIAL_LABELS = {
    "bootstrap_token": "Bootstrap token",
    "server_id": "Server ID",
    "server_secret": "Server secret",
}


@dataclass(frozen=True)
class ProvisioningConfig:
    """Settings for a single provisioning pass.

    Matches the installer's CLI arguments:
    - --token: Bootstrap token issued by the ServerDock backend
    - --server-id: Server identifier registered in the backend
    - --server-secret: Per-server secret
    - --backend-url: Agent connection URL (ws:// or wss://)

    The instance is built once at startup and threaded through every
    component; nothing reads process state after that.
    """

    bootstrap_token: str = ""
    server_id: str = ""
    server_secret: str = ""
    backend_url: str = DEFAULT_BACKEND_URL
    install_dir: str = DEFAULT_INSTALL_DIR
    service_name: str = DEFAULT_SERVICE_NAME

    @property
    def http_base_url(self) -> str:
        """Backend URL rewritten for plain HTTP requests.

        ws://localhost:3001 -> http://localhost:3001
        wss://api.serverdock.com/agent/connect -> https://api.serverdock.com
        """
        url = re.sub(r"^ws(s?)://", r"http\1://", self.backend_url.strip())
        url = url.rstrip("/")
        if url.endswith("/agent/connect"):
            url = url[: -len("/agent/connect")]
        return url.rstrip("/")

    @property
    def binary_path(self) -> str:
        """Destination of the agent binary, shared by download and build."""
        return os.path.join(self.install_dir, BINARY_NAME)

    def download_url(self, profile) -> str:
        """URL of the prebuilt agent binary for a platform profile."""
        return f"{self.http_base_url}/api/agent/download/{profile.os}/{profile.arch}"

    def validate(self) -> list[str]:
        """Validate configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        for attr, flag, env in CREDENTIAL_FIELDS:
            value = getattr(self, attr)
            if not value:
                errors.append(
                    f"{_CREDENTIAL_LABELS[attr]} is required (use {flag} or {env} env var)"
                )
            elif _CONTROL_CHARS.search(value):
                # Values end up on single lines of the systemd unit
                errors.append(f"{_CREDENTIAL_LABELS[attr]} must not contain control characters")

        if not re.match(r"^wss?://|^https?://", self.backend_url.strip()):
            errors.append(f"backend_url must be a ws(s):// or http(s):// URL, got: {self.backend_url}")
        elif _CONTROL_CHARS.search(self.backend_url):
            errors.append("backend_url must not contain control characters")

        if not os.path.isabs(self.install_dir):
            errors.append(f"install_dir must be an absolute path, got: {self.install_dir}")
        elif re.search(r"\s|[\x00-\x1f\x7f]", self.install_dir):
            errors.append(f"install_dir must not contain whitespace, got: {self.install_dir!r}")

        if not self.service_name:
            errors.append("service_name is required")
        elif not _SERVICE_NAME.match(self.service_name):
            errors.append(f"service_name may only contain letters, digits and @._:-, got: {self.service_name!r}")

        return errors

    def require_credentials(self) -> None:
        """Fail on the first missing credential.

        Raises:
            MissingCredential: naming the field, its flag and its env var
        """
        for attr, flag, env in CREDENTIAL_FIELDS:
            if not getattr(self, attr):
                raise MissingCredential(
                    attr,
                    f"{_CREDENTIAL_LABELS[attr]} is required (use {flag} or {env} env var)",
                )
