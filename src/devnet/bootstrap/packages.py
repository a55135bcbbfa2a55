# src/devnet/bootstrap/packages.py
from __future__ import annotations

import logging
import shlex
from typing import List, Sequence

from devnet.utils.runner import CommandRunner
from .interfaces import PackageInstaller

log = logging.getLogger("devnet")

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class AptPackageInstaller(PackageInstaller):
    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def _installed(self, package: str) -> bool:
        res = self.runner.probe(f"dpkg-query -W -f='${{Status}}' {shlex.quote(package)}")
        return res.ok and res.stdout.strip().endswith("install ok installed")

    def missing(self, packages: Sequence[str]) -> List[str]:
        return [p for p in packages if not self._installed(p)]

    def install(self, packages: Sequence[str], *, upgrade: bool = False) -> None:
        self.runner.run("apt-get update -y", env=_APT_ENV)
        if upgrade:
            self.runner.run("apt-get upgrade -y", env=_APT_ENV)
        if packages:
            log.info("Installing packages: %s", " ".join(packages))
            self.runner.run(
                "apt-get install -y " + " ".join(shlex.quote(p) for p in packages),
                env=_APT_ENV,
            )
