"""systemd registration for the ServerDock agent.

Writes the unit file, reloads systemd, enables and starts the unit, then
samples its state once after a short settle delay. A unit that is not
active is reported with its `systemctl status` output; nothing is retried.
"""

import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from .artifact import Artifact
from .config import ProvisioningConfig
from .errors import InvalidConfig, ServiceNotRunning, SupervisorMissing
from .metrics import find_agent_pid
from .utils import CommandError, run_cmd

logger = logging.getLogger("serverdock-installer")

SYSTEMD_UNIT_DIR = "/etc/systemd/system"
SETTLE_SECONDS = 2.0


@dataclass
class ServiceDefinition:
    """A systemd service unit for the agent."""
    name: str
    exec_path: str
    working_dir: str
    environment: Dict[str, str] = field(default_factory=dict)
    restart_policy: str = "always"
    restart_sec: int = 5
    description: str = "ServerDock Agent"

    @classmethod
    def for_agent(cls, config: ProvisioningConfig, artifact: Artifact) -> "ServiceDefinition":
        return cls(
            name=config.service_name,
            exec_path=artifact.path,
            working_dir=config.install_dir,
            environment={
                "SERVERDOCK_BACKEND_URL": config.backend_url,
                "SERVERDOCK_BOOTSTRAP_TOKEN": config.bootstrap_token,
                "SERVERDOCK_SERVER_ID": config.server_id,
                "SERVERDOCK_SERVER_SECRET": config.server_secret,
            },
        )

    @property
    def unit_name(self) -> str:
        return f"{self.name}.service"

    def render(self) -> str:
        """Render the unit file contents."""
        lines = [
            "[Unit]",
            f"Description={self.description}",
            "After=network.target",
            "",
            "[Service]",
            "Type=simple",
            "User=root",
            f"WorkingDirectory={self.working_dir}",
            f"ExecStart={self.exec_path}",
            f"Restart={self.restart_policy}",
            f"RestartSec={self.restart_sec}",
        ]
        for key, value in self.environment.items():
            lines.append(f'Environment="{key}={_escape(value)}"')
        lines += [
            "",
            "[Install]",
            "WantedBy=multi-user.target",
            "",
        ]
        return "\n".join(lines)


def _escape(value: str) -> str:
    # systemd unquotes Environment= with C-style escapes; % starts a specifier
    value = value.replace("\\", "\\\\").replace('"', '\\"').replace("%", "%%")
    return value.replace("\n", "\\n").replace("\r", "\\r")


class ServiceProvisioner:
    """Registers and starts the agent under systemd."""

    def __init__(
        self,
        config: ProvisioningConfig,
        unit_dir: str = SYSTEMD_UNIT_DIR,
        run: Callable = run_cmd,
        sleep: Callable[[float], None] = time.sleep,
        settle_seconds: float = SETTLE_SECONDS,
        systemctl: str = "systemctl",
    ):
        self.config = config
        self.unit_dir = unit_dir
        self.run = run
        self.sleep = sleep
        self.settle_seconds = settle_seconds
        self.systemctl = systemctl

    def require_supervisor(self) -> str:
        """Return the path of systemctl.

        Raises:
            SupervisorMissing: systemctl is not on PATH
        """
        path = shutil.which(self.systemctl)
        if path is None:
            raise SupervisorMissing(
                f"{self.systemctl} not found. The ServerDock agent requires a systemd host."
            )
        return path

    def unit_path(self, definition: ServiceDefinition) -> str:
        return os.path.join(self.unit_dir, definition.unit_name)

    def write_unit(self, definition: ServiceDefinition) -> str:
        """Write (or overwrite) the unit file and reload systemd."""
        path = self.unit_path(definition)
        os.makedirs(self.unit_dir, exist_ok=True)
        # The unit carries the server secret; it is never readable by others
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(definition.render())
        logger.info(f"Wrote systemd unit {path}")

        self.run([self.systemctl, "daemon-reload"], check=True)
        logger.info("Systemd service created")
        return path

    def start(self, definition: ServiceDefinition) -> None:
        logger.info(f"Starting {definition.name} service...")
        self.run([self.systemctl, "enable", definition.name], check=True)
        self.run([self.systemctl, "start", definition.name], check=True)

    def verify_running(self, definition: ServiceDefinition) -> Optional[int]:
        """Wait, then check once that the unit is active.

        Returns:
            PID of the agent process if it can be found

        Raises:
            ServiceNotRunning: with the unit's status output
        """
        self.sleep(self.settle_seconds)

        result = self.run([self.systemctl, "is-active", "--quiet", definition.name])
        if not result.ok:
            status = self.run([self.systemctl, "status", "--no-pager", definition.name])
            raise ServiceNotRunning(definition.name, status.output)

        pid = find_agent_pid(definition.exec_path)
        if pid is not None:
            logger.info(f"{definition.name} is running (pid {pid})")
        else:
            logger.info(f"{definition.name} is running")
        return pid

    def provision(self, artifact: Artifact) -> ServiceDefinition:
        """Register, start and verify the agent service.

        Credentials, the remaining settings and the presence of systemctl
        are all checked before anything is written.
        """
        self.config.require_credentials()
        errors = self.config.validate()
        if errors:
            raise InvalidConfig("; ".join(errors))
        self.require_supervisor()

        definition = ServiceDefinition.for_agent(self.config, artifact)
        try:
            self.write_unit(definition)
            self.start(definition)
        except CommandError as e:
            raise ServiceNotRunning(definition.name, e.result.output) from e
        self.verify_running(definition)
        return definition
