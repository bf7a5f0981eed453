"""Host facts for installer diagnostics.

Collects a small snapshot of the machine the agent is being installed on:
- CPU: logical core count
- Memory: total bytes
- Disk: free bytes on the filesystem holding the install directory

Also locates the running agent process once the service has started.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import psutil

from .utils import format_bytes

logger = logging.getLogger("serverdock-installer")


@dataclass
class HostFacts:
    """Snapshot of host capacity, logged before acquisition starts."""
    cpu_count: int
    total_memory_bytes: int
    disk_free_bytes: int
    disk_path: str

    def summary(self) -> str:
        return (
            f"{self.cpu_count} CPU, {format_bytes(self.total_memory_bytes)} memory, "
            f"{format_bytes(self.disk_free_bytes)} free on {self.disk_path}"
        )


def _nearest_existing(path: str) -> str:
    """Walk up from path until an existing directory is found.

    The install directory usually does not exist yet on a fresh host.
    """
    current = os.path.abspath(path)
    while not os.path.exists(current):
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return current


def collect_host_facts(install_dir: str) -> HostFacts:
    """Collect current host facts.

    Args:
        install_dir: Directory the agent binary will be written to

    Returns:
        HostFacts for the current machine
    """
    disk_path = _nearest_existing(install_dir)
    disk = psutil.disk_usage(disk_path)

    return HostFacts(
        cpu_count=psutil.cpu_count() or 1,
        total_memory_bytes=psutil.virtual_memory().total,
        disk_free_bytes=disk.free,
        disk_path=disk_path,
    )


def find_agent_pid(exec_path: str) -> Optional[int]:
    """Find the PID of a running process started from exec_path.

    Returns:
        PID, or None if no such process is visible
    """
    target = os.path.realpath(exec_path)
    for proc in psutil.process_iter(["pid", "exe"]):
        exe = proc.info.get("exe")
        if exe and os.path.realpath(exe) == target:
            return proc.info["pid"]
    return None
