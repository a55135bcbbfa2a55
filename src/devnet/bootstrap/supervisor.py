# src/devnet/bootstrap/supervisor.py
from __future__ import annotations

import json
import logging
import posixpath
import shlex
from typing import Dict, List, Optional, Set

from devnet.utils.runner import CommandRunner
from .interfaces import ServiceRegistration, ServiceState, ServiceSupervisor

log = logging.getLogger("devnet")
_DECODER = json.JSONDecoder()


def _parse_jlist(raw: str) -> Optional[List[dict]]:
    """
    pm2 may print banner lines such as "[PM2] Spawning PM2 daemon" before the
    JSON array, and may log after it. Parsing starts at the first line that
    opens an array and stops where the array ends.
    """
    lines = raw.splitlines()
    for i, line in enumerate(lines):
        head = line.lstrip()
        if not (head.startswith("[{") or head.rstrip() == "[]"):
            continue
        try:
            procs, _ = _DECODER.raw_decode("\n".join(lines[i:]).lstrip())
        except json.JSONDecodeError:
            continue
        if isinstance(procs, list):
            return procs
    return None


class Pm2Supervisor(ServiceSupervisor):
    """PM2 as the service registry."""

    def __init__(self, runner: CommandRunner, *, boot_user: str = "root", boot_home: str = "/root"):
        self.runner = runner
        self.boot_user = boot_user
        self.boot_home = boot_home

    @property
    def dump_path(self) -> str:
        return posixpath.join(self.boot_home, ".pm2", "dump.pm2")

    def saved_names(self) -> Set[str]:
        """Names in the dump ``pm2 save`` writes and ``pm2 resurrect`` restores on boot."""
        if not self.runner.exists(self.dump_path):
            return set()
        try:
            saved = json.loads(self.runner.read_text(self.dump_path))
        except ValueError:
            log.debug("unparseable pm2 dump at %s", self.dump_path)
            return set()
        return {p.get("name") for p in saved if isinstance(p, dict) and p.get("name")}

    def list(self) -> Dict[str, ServiceState]:
        res = self.runner.probe("pm2 jlist")
        if not res.ok:
            return {}
        procs = _parse_jlist(res.stdout)
        if procs is None:
            log.debug("unparseable pm2 jlist output: %r", res.stdout)
            return {}

        saved = self.saved_names()
        states: Dict[str, ServiceState] = {}
        for p in procs:
            env = p.get("pm2_env") or {}
            name = p.get("name")
            if not name:
                continue
            states[name] = ServiceState(
                name=name,
                status=env.get("status", "unknown"),
                pid=p.get("pid") or None,
                restarts=int(env.get("restart_time") or 0),
                persisted=name in saved,
            )
        return states

    def start(self, reg: ServiceRegistration) -> None:
        parts = [
            "pm2 start",
            shlex.quote(reg.command),
            f"--name {shlex.quote(reg.service_id)}",
            "--time",
            f"--restart-delay={reg.restart_delay_ms}",
        ]
        if reg.cwd:
            parts.append(f"--cwd {shlex.quote(reg.cwd)}")
        self.runner.run(" ".join(parts), env=reg.env or None)

    def delete(self, name: str) -> None:
        self.runner.run(f"pm2 delete {shlex.quote(name)}")

    def persist(self) -> None:
        self.runner.run(
            f"pm2 startup systemd -u {shlex.quote(self.boot_user)} --hp {shlex.quote(self.boot_home)}"
        )
        self.runner.run("pm2 save")
