# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/devnet/bootstrap/storage_node.py
from __future__ import annotations

import json
import logging
import posixpath
import shlex
from typing import Dict

from devnet.config.models import ProvisionConfig
from devnet.errors import CommandError
from devnet.utils.runner import CommandRunner
from .interfaces import ServiceRegistration, StorageNode

log = logging.getLogger("devnet")

DIST_URL = "https://dist.ipfs.tech/kubo/{tag}/{tarball}"
DEFAULT_REPO_PATH = "/root/.ipfs"


def tarball_name(tag: str, arch: str) -> str:
    return f"kubo_{tag}_linux-{arch}.tar.gz"


def download_url(tag: str, arch: str) -> str:
    return DIST_URL.format(tag=tag, tarball=tarball_name(tag, arch))


class KuboStorageNode(StorageNode):
    """
    Kubo (go-ipfs) installed from dist.ipfs.tech. The control API and the
    gateway are bound to loopback; only the gateway is published through the
    reverse proxy.
    """

    def __init__(self, runner: CommandRunner, cfg: ProvisionConfig, workdir: str = "/tmp"):
        self.runner = runner
        self.cfg = cfg
        self.settings = cfg.storage_node
        self.workdir = workdir

    @property
    def _env(self) -> Dict[str, str]:
        if self.settings.repo_path == DEFAULT_REPO_PATH:
            return {}
        return {"IPFS_PATH": self.settings.repo_path}

    def binary_installed(self) -> bool:
        return self.runner.which("ipfs") is not None

    def install(self, tag: str, arch: str) -> None:
        tgz = tarball_name(tag, arch)
        url = download_url(tag, arch)
        tmp_tgz = posixpath.join(self.workdir, tgz)
        extracted = posixpath.join(self.workdir, "kubo")

        log.info("Downloading %s", url)
        self.runner.run(f"curl -fL {shlex.quote(url)} -o {shlex.quote(tmp_tgz)}")
        log.info("Extract & install")
        self.runner.run(
            f"rm -rf {shlex.quote(extracted)} && tar -xzf {shlex.quote(tmp_tgz)} -C {shlex.quote(self.workdir)}"
        )
        self.runner.run(f"cd {shlex.quote(extracted)} && bash install.sh")
        res = self.runner.probe("ipfs --version")
        if res.ok:
            log.info("Installed: %s", res.stdout.strip())

    def _bindings(self) -> Dict[str, str]:
        ports = self.cfg.ports
        return {
            "Addresses.API": f"/ip4/127.0.0.1/tcp/{ports.storage_api}",
            "Addresses.Gateway": f"/ip4/127.0.0.1/tcp/{ports.gateway}",
        }

    def bindings_applied(self) -> bool:
        for key, want in self._bindings().items():
            res = self.runner.probe(f"ipfs config {key}", env=self._env)
            if not res.ok or res.stdout.strip() != want:
                return False
        return True

    def repo_ready(self) -> bool:
        """Repo initialised with the API and gateway listening on loopback."""
        return self.runner.is_dir(self.settings.repo_path) and self.bindings_applied()

    def _config_json(self, key: str, value) -> str:
        return f"ipfs config --json {key} {shlex.quote(json.dumps(value))}"

    def init_repo(self) -> None:
        if self.runner.is_dir(self.settings.repo_path):
            log.info("IPFS repo at %s exists, re-applying bindings", self.settings.repo_path)
        else:
            log.info("Initialize IPFS repo at %s", self.settings.repo_path)
            self.runner.run(f"ipfs init --profile {shlex.quote(self.settings.profile)}", env=self._env)
        for key, addr in self._bindings().items():
            self.runner.run(self._config_json(key, addr), env=self._env)
        # path-style gateway hint for the public domain; older releases reject it
        gateways = {
            self.cfg.domain: {
                "Paths": ["/ipfs", "/ipns"],
                "UseSubdomains": False,
                "InlineDNSLink": True,
            }
        }
        try:
            self.runner.run(self._config_json("Gateway.PublicGateways", gateways), env=self._env)
        except CommandError as e:
            log.warning("Could not set Gateway.PublicGateways (continuing): %s", e)

    def registration(self) -> ServiceRegistration:
        command = "ipfs daemon --enable-gc" if self.settings.enable_gc else "ipfs daemon"
        return ServiceRegistration(
            service_id=self.settings.service_name,
            command=command,
            env=self._env,
            restart_delay_ms=self.cfg.supervisor.restart_delay_ms,
        )
