"""ServerDock Installer - provisions the ServerDock agent on a Linux host.

Key responsibilities:
- Detect the host platform (linux/amd64 or linux/arm64)
- Download the agent binary from the backend, or build it from source
- Register the binary as a systemd service and check that it starts
"""

__version__ = "1.0.0"
