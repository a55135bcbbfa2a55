# src/devnet/bootstrap/runtime.py
from __future__ import annotations

import logging
import re
from typing import Optional

from devnet.utils.runner import CommandRunner
from .interfaces import RuntimeInstaller

log = logging.getLogger("devnet")

NODESOURCE_SETUP_URL = "https://deb.nodesource.com/setup_{major}.x"

_VERSION_RE = re.compile(r"^v?(\d+)\.")


def parse_major(version: str) -> Optional[int]:
    """``v20.11.1`` -> 20"""
    m = _VERSION_RE.match(version.strip())
    return int(m.group(1)) if m else None


class NodeRuntimeInstaller(RuntimeInstaller):
    """Node.js from NodeSource, PM2 from npm."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def installed_major(self) -> Optional[int]:
        if not self.runner.which("node"):
            return None
        res = self.runner.probe("node -v")
        return parse_major(res.stdout) if res.ok else None

    def install_runtime(self, major: int) -> None:
        url = NODESOURCE_SETUP_URL.format(major=major)
        log.info("Installing Node.js %d.x from %s", major, url)
        self.runner.run(f"set -o pipefail; curl -fsSL {url} | bash -")
        self.runner.run("apt-get install -y nodejs", env={"DEBIAN_FRONTEND": "noninteractive"})

    def supervisor_installed(self) -> bool:
        return self.runner.which("pm2") is not None

    def install_supervisor(self) -> None:
        self.runner.run("npm install -g pm2@latest")
