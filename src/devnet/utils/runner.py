# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/devnet/utils/runner.py
from __future__ import annotations

import logging
import os
import shlex
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from devnet.errors import CommandError

log = logging.getLogger("devnet")


@dataclass(frozen=True)
class ExecutionContext:
    dry_run: bool = False
    # seconds before a single command is killed, None waits forever
    command_timeout: Optional[float] = 1800.0
    connect_timeout: float = 20.0


@dataclass(frozen=True)
class CommandResult:
    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def with_env(cmd: str, env: Optional[Dict[str, str]]) -> str:
    """Prefix a shell command with exported variables."""
    if not env:
        return cmd
    exports = " ".join(f"{k}={shlex.quote(str(v))}" for k, v in sorted(env.items()))
    return f"export {exports}; {cmd}"


class CommandRunner(ABC):
    """
    Everything the provisioning steps do to the target host goes through here:
    shell commands plus the handful of filesystem operations the steps need.

    Read-only calls (``mutates=False``) always execute. Mutating calls are only
    logged when the execution context is a dry run.
    """

    def __init__(self, ctx: Optional[ExecutionContext] = None):
        self.ctx = ctx or ExecutionContext()

    @property
    def dry_run(self) -> bool:
        return self.ctx.dry_run

    # ------------------ commands ------------------

    @abstractmethod
    def _exec(self, cmd: str) -> CommandResult:
        ...

    def run(
        self,
        cmd: str,
        *,
        check: bool = True,
        env: Optional[Dict[str, str]] = None,
        mutates: bool = True,
    ) -> CommandResult:
        cmd = with_env(cmd, env)
        if mutates and self.dry_run:
            log.info("[dry-run] %s", cmd)
            return CommandResult(cmd, 0)

        log.debug("$ %s", cmd)
        result = self._exec(cmd)
        if result.stdout.strip():
            log.debug(result.stdout.rstrip())
        if result.stderr.strip():
            log.debug(result.stderr.rstrip())
        if check and not result.ok:
            raise CommandError(cmd, result.returncode, result.stdout, result.stderr)
        return result

    def probe(self, cmd: str, *, env: Optional[Dict[str, str]] = None) -> CommandResult:
        """Run a side-effect free command and never raise on failure."""
        return self.run(cmd, check=False, env=env, mutates=False)

    def which(self, name: str) -> Optional[str]:
        res = self.probe(f"command -v {shlex.quote(name)}")
        path = res.stdout.strip()
        return path if res.ok and path else None

    # ------------------ filesystem ------------------

    @abstractmethod
    def exists(self, path: str) -> bool: ...

    @abstractmethod
    def is_dir(self, path: str) -> bool: ...

    @abstractmethod
    def is_symlink(self, path: str) -> bool: ...

    @abstractmethod
    def read_text(self, path: str) -> str: ...

    @abstractmethod
    def listdir(self, path: str) -> List[str]: ...

    @abstractmethod
    def _write_text(self, path: str, content: str, mode: int) -> None: ...

    @abstractmethod
    def _replace(self, src: str, dst: str) -> None: ...

    @abstractmethod
    def _symlink(self, target: str, link: str) -> None: ...

    @abstractmethod
    def _remove(self, path: str) -> None: ...

    @abstractmethod
    def _makedirs(self, path: str) -> None: ...

    def write_text(self, path: str, content: str, mode: int = 0o644) -> None:
        if self.dry_run:
            log.info("[dry-run] write %s (%d bytes)", path, len(content))
            return
        log.debug("write %s", path)
        self._write_text(path, content, mode)

    def replace(self, src: str, dst: str) -> None:
        """Atomically move *src* over *dst*."""
        if self.dry_run:
            log.info("[dry-run] mv %s %s", src, dst)
            return
        self._replace(src, dst)

    def symlink(self, target: str, link: str) -> None:
        """Point *link* at *target*, replacing whatever *link* was."""
        if self.dry_run:
            log.info("[dry-run] ln -s %s %s", target, link)
            return
        self._symlink(target, link)

    def remove(self, path: str) -> None:
        if self.dry_run:
            log.info("[dry-run] rm %s", path)
            return
        self._remove(path)

    def makedirs(self, path: str) -> None:
        if self.dry_run:
            log.info("[dry-run] mkdir -p %s", path)
            return
        self._makedirs(path)

    def close(self) -> None:
        pass


class LocalRunner(CommandRunner):
    """Runs against the machine this process lives on."""

    def _exec(self, cmd: str) -> CommandResult:
        try:
            cp = subprocess.run(
                ["bash", "-lc", cmd],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.ctx.command_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandError(cmd, -1, "", f"timed out after {e.timeout}s") from e
        return CommandResult(cmd, cp.returncode, cp.stdout or "", cp.stderr or "")

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def is_dir(self, path: str) -> bool:
        return Path(path).is_dir()

    def is_symlink(self, path: str) -> bool:
        return Path(path).is_symlink()

    def read_text(self, path: str) -> str:
        return Path(path).read_text()

    def listdir(self, path: str) -> List[str]:
        p = Path(path)
        if not p.is_dir():
            return []
        return sorted(e.name for e in p.iterdir())

    def _write_text(self, path: str, content: str, mode: int) -> None:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content)
        os.chmod(p, mode)

    def _replace(self, src: str, dst: str) -> None:
        os.replace(src, dst)

    def _symlink(self, target: str, link: str) -> None:
        tmp = f"{link}.devnet-tmp"
        if os.path.lexists(tmp):
            os.remove(tmp)
        os.symlink(target, tmp)
        os.replace(tmp, link)

    def _remove(self, path: str) -> None:
        if os.path.lexists(path):
            os.remove(path)

    def _makedirs(self, path: str) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)
