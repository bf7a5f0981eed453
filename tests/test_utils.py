import logging

import pytest

from serverdock_installer.utils import CommandError, format_bytes, run_cmd, setup_logging


def test_run_cmd_captures_output():
    result = run_cmd(["sh", "-c", "echo out; echo err >&2; exit 3"])

    assert result.returncode == 3
    assert not result.ok
    assert result.stdout.strip() == "out"
    assert result.output == "out\nerr"


def test_run_cmd_layers_env_and_cwd(tmp_path):
    result = run_cmd(["sh", "-c", 'echo "$GOOS/$GOARCH $(pwd)"'], env={"GOOS": "linux", "GOARCH": "arm64"}, cwd=str(tmp_path))

    assert result.ok
    assert result.stdout.strip() == f"linux/arm64 {tmp_path}"


def test_run_cmd_check_raises():
    with pytest.raises(CommandError) as excinfo:
        run_cmd(["sh", "-c", "exit 1"], check=True)

    assert excinfo.value.result.returncode == 1


def test_run_cmd_logs_command(caplog):
    with caplog.at_level(logging.INFO, logger="serverdock-installer"):
        run_cmd(["true"])

    assert "CMD true" in caplog.text


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 B"), (1023, "1023 B"), (1024, "1.0 KiB"), (50000, "48.8 KiB"), (5 * 1024 ** 3, "5.0 GiB")],
)
def test_format_bytes(size, expected):
    assert format_bytes(size) == expected


def test_setup_logging_is_reentrant():
    setup_logging()
    logger = setup_logging(debug=True)

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1


def test_run_cmd_missing_program(tmp_path):
    result = run_cmd([str(tmp_path / "no-such-program"), "--version"])

    assert result.returncode == 127
    assert not result.ok
    assert "no-such-program" in result.stderr


def test_run_cmd_missing_program_check_raises(tmp_path):
    with pytest.raises(CommandError) as excinfo:
        run_cmd([str(tmp_path / "no-such-program")], check=True)

    assert excinfo.value.result.returncode == 127
