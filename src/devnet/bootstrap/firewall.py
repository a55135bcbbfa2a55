# src/devnet/bootstrap/firewall.py
from __future__ import annotations

import logging
import shlex
from typing import Sequence

from devnet.utils.runner import CommandRunner
from .interfaces import Firewall

log = logging.getLogger("devnet")

DEFAULT_RULES = ("OpenSSH", "Nginx Full")


class UfwFirewall(Firewall):
    """Opens SSH and HTTP/HTTPS and turns ufw on, non-interactively."""

    def __init__(self, runner: CommandRunner, rules: Sequence[str] = DEFAULT_RULES):
        self.runner = runner
        self.rules = tuple(rules)

    def _status(self) -> str:
        res = self.runner.probe("ufw status")
        return res.stdout if res.ok else ""

    def is_configured(self) -> bool:
        status = self._status()
        if "Status: active" not in status:
            return False
        return all(rule in status for rule in self.rules)

    def apply(self) -> None:
        for rule in self.rules:
            self.runner.run(f"ufw allow {shlex.quote(rule)}")
        if "Status: active" not in self._status():
            self.runner.run("ufw --force enable")
