"""Prebuilt agent download from the ServerDock backend.

Fetches GET {backend}/api/agent/download/{os}/{arch} into the install
directory. A single attempt is made; the caller validates the result and
falls back to building from source.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import httpx

from .config import ProvisioningConfig
from .system import PlatformProfile

logger = logging.getLogger("serverdock-installer")

CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadResult:
    """Result of a download attempt."""
    url: str
    status_code: Optional[int] = None
    bytes_written: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code == 200


def download_agent(
    config: ProvisioningConfig,
    profile: PlatformProfile,
    transport: Optional[httpx.BaseTransport] = None,
) -> DownloadResult:
    """Download the agent binary for profile to config.binary_path.

    Redirects are followed. The body is written whatever the status code,
    so a failed attempt may leave a file behind for the caller to discard.

    Args:
        config: Provisioning configuration
        profile: Target platform
        transport: Optional httpx transport (tests use httpx.MockTransport)

    Returns:
        DownloadResult with the HTTP status and bytes written; ``error`` is
        set when the request could not be completed
    """
    url = config.download_url(profile)
    dest = config.binary_path

    logger.info(f"Downloading agent from {url}")
    result = DownloadResult(url=url)

    try:
        os.makedirs(config.install_dir, exist_ok=True)
        with httpx.Client(follow_redirects=True, transport=transport) as client:
            with client.stream("GET", url) as response:
                result.status_code = response.status_code
                with open(dest, "wb") as fh:
                    for chunk in response.iter_bytes(CHUNK_SIZE):
                        fh.write(chunk)
                        result.bytes_written += len(chunk)

    except httpx.ConnectError as e:
        result.error = f"Connection failed to {config.http_base_url}: {e}"

    except httpx.TimeoutException:
        result.error = f"Timeout downloading {url}"

    except httpx.HTTPError as e:
        result.error = f"Download failed: {e}"

    except OSError as e:
        result.error = f"Cannot write {dest}: {e}"

    if result.error:
        logger.warning(result.error)
    else:
        logger.debug(f"Download finished: HTTP {result.status_code}, {result.bytes_written} bytes")

    return result
