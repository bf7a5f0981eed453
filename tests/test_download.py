import os
from dataclasses import replace
from unittest.mock import MagicMock

import httpx

from serverdock_installer.download import download_agent


def _transport(handler):
    return httpx.MockTransport(handler)


def test_download_writes_body(config, profile):
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, content=b"\x7fELF" + b"a" * 49996)

    result = download_agent(config, profile, transport=_transport(handler))

    assert result.ok
    assert result.status_code == 200
    assert result.bytes_written == 50000
    assert os.path.getsize(config.binary_path) == 50000
    assert seen == ["https://api.example.test/api/agent/download/linux/amd64"]


def test_download_follows_redirects(config, profile):
    def handler(request):
        if request.url.path.startswith("/api/agent/download"):
            return httpx.Response(302, headers={"Location": "https://cdn.example.test/agent-linux-amd64"})
        return httpx.Response(200, content=b"b" * 4096)

    result = download_agent(config, profile, transport=_transport(handler))

    assert result.ok
    assert result.bytes_written == 4096


def test_download_reports_http_status(config, profile):
    def handler(request):
        return httpx.Response(404, content=b"<html>not found</html>")

    result = download_agent(config, profile, transport=_transport(handler))

    assert not result.ok
    assert result.status_code == 404
    assert result.error is None
    # The error body is left for the caller to discard
    assert os.path.exists(config.binary_path)


def test_download_connection_error(config, profile):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = download_agent(config, profile, transport=_transport(handler))

    assert not result.ok
    assert result.status_code is None
    assert "Connection failed" in result.error


def test_download_timeout(config, profile):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    result = download_agent(config, profile, transport=_transport(handler))

    assert not result.ok
    assert "Timeout" in result.error


def test_download_unwritable_install_dir(config, profile, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    config = replace(config, install_dir=str(blocker / "serverdock"))
    handler = MagicMock(return_value=httpx.Response(200, content=b"a" * 4096))

    result = download_agent(config, profile, transport=_transport(handler))

    assert not result.ok
    assert result.error.startswith("Cannot write")
    handler.assert_not_called()
