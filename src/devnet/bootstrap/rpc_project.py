# src/devnet/bootstrap/rpc_project.py
from __future__ import annotations

import logging
import posixpath
import shlex
from pathlib import Path

from devnet.config.models import ProvisionConfig
from devnet.utils.runner import CommandRunner
from .interfaces import RpcProject, ServiceRegistration
from .template_renderer import TemplateRenderer

log = logging.getLogger("devnet")

TEMPLATES_DIR = Path(__file__).parent / "templates"
DEV_DEPENDENCIES = ("hardhat", "@nomicfoundation/hardhat-toolbox")


class HardhatProject(RpcProject):
    """Hardhat project whose ``hardhat node`` serves JSON-RPC on loopback."""

    def __init__(self, runner: CommandRunner, cfg: ProvisionConfig, renderer: TemplateRenderer | None = None):
        self.runner = runner
        self.cfg = cfg
        self.root = cfg.install_root
        self.renderer = renderer or TemplateRenderer(TEMPLATES_DIR)

    def _path(self, *parts: str) -> str:
        return posixpath.join(self.root, *parts)

    @property
    def manifest(self) -> str:
        return self._path("package.json")

    @property
    def config_path(self) -> str:
        return self._path("hardhat.config.js")

    def _dependencies_installed(self) -> bool:
        return all(
            self.runner.exists(self._path("node_modules", dep, "package.json"))
            for dep in DEV_DEPENDENCIES
        )

    def _config_current(self) -> bool:
        if not self.runner.exists(self.config_path):
            return False
        return self.runner.read_text(self.config_path) == self.render_config()

    def is_ready(self) -> bool:
        """Manifest, installed dev dependencies and the current config all present."""
        return (
            self.runner.exists(self.manifest)
            and self._dependencies_installed()
            and self._config_current()
        )

    def render_config(self) -> str:
        s = self.cfg.rpc_node
        return self.renderer.render(
            "hardhat.config.js.j2",
            {"solidity": s.solidity, "chain_id": s.chain_id, "accounts": s.accounts},
        )

    def scaffold(self) -> None:
        # each piece is redone only if missing, so a run interrupted mid-install resumes
        root = shlex.quote(self.root)
        self.runner.makedirs(self.root)
        if not self.runner.exists(self.manifest):
            self.runner.run(f"cd {root} && npm init -y")
        if not self._dependencies_installed():
            self.runner.run(f"cd {root} && npm install --save-dev " + " ".join(DEV_DEPENDENCIES))
        if not self._config_current():
            self.runner.write_text(self.config_path, self.render_config())

    def registration(self) -> ServiceRegistration:
        return ServiceRegistration(
            service_id=self.cfg.rpc_node.service_name,
            command=f"npx hardhat node --hostname 127.0.0.1 --port {self.cfg.ports.rpc}",
            cwd=self.root,
            restart_delay_ms=self.cfg.supervisor.restart_delay_ms,
        )
