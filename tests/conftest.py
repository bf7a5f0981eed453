import logging
import os

import pytest

from serverdock_installer.config import ProvisioningConfig
from serverdock_installer.system import PlatformProfile
from serverdock_installer.utils import LOGGER_NAME, CmdResult, CommandError


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers bound to streams captured by a previous test."""
    yield
    logging.getLogger(LOGGER_NAME).handlers = []


@pytest.fixture
def config(tmp_path):
    return ProvisioningConfig(
        bootstrap_token="bootstrap-token",
        server_id="srv-42",
        server_secret="s3cret",
        backend_url="wss://api.example.test/agent/connect",
        install_dir=str(tmp_path / "opt" / "serverdock"),
        service_name="serverdock-agent",
    )


@pytest.fixture
def profile():
    return PlatformProfile(os="linux", arch="amd64")


@pytest.fixture
def write_binary():
    """Write a file of a given size and mode, creating parent dirs."""
    def _write(path, size=50000, mode=0o755):
        os.makedirs(os.path.dirname(str(path)), exist_ok=True)
        with open(path, "wb") as fh:
            fh.write((b"\x7fELF" + b"\0" * size)[:size])
        os.chmod(path, mode)
        return str(path)
    return _write


class FakeRunner:
    """Records commands and answers them from a handler."""

    def __init__(self, handler=None):
        self.calls = []
        self.handler = handler

    def __call__(self, argv, check=False, env=None, cwd=None):
        argv = list(argv)
        self.calls.append({"argv": argv, "env": env, "cwd": cwd})
        returncode, stdout = 0, ""
        if self.handler is not None:
            returncode, stdout = self.handler(argv, env=env, cwd=cwd)
        result = CmdResult(argv=argv, returncode=returncode, stdout=stdout, stderr="")
        if check and returncode != 0:
            raise CommandError(result)
        return result

    @property
    def argvs(self):
        return [c["argv"] for c in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner


def _make_source_tree(root):
    from serverdock_installer.source import ENTRY_POINT

    entry = os.path.join(str(root), ENTRY_POINT)
    os.makedirs(os.path.dirname(entry), exist_ok=True)
    with open(entry, "w") as fh:
        fh.write("package main\n")
    return str(root)


@pytest.fixture
def make_source_tree():
    """Create a directory holding the agent entry point."""
    return _make_source_tree


@pytest.fixture
def cloning_runner():
    """A FakeRunner whose `git clone` populates the destination directory."""
    from serverdock_installer.source import REPOSITORY_SUBDIR

    def _runner(with_entry_point=True, returncode=0):
        def handler(argv, env=None, cwd=None):
            if argv[:2] == ["git", "clone"] and returncode == 0 and with_entry_point:
                _make_source_tree(os.path.join(argv[-1], REPOSITORY_SUBDIR))
            return returncode, ""
        return FakeRunner(handler)
    return _runner


@pytest.fixture
def systemctl_bin(tmp_path):
    """An executable stand-in for systemctl; commands go through FakeRunner."""
    path = tmp_path / "bin" / "systemctl"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o755)
    return str(path)
