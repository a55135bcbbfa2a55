# src/devnet/bootstrap/proxy/nginx.py
from __future__ import annotations

import logging
import posixpath
import re
import shlex
from typing import Sequence

from devnet.config.models import ProxySettings
from devnet.errors import CommandError, ProxyConfigError
from devnet.utils.runner import CommandRunner
from devnet.bootstrap.interfaces import ProxyServer

log = logging.getLogger("devnet")

CHECK_CONFIG_NAME = ".devnet-check.conf"


class NginxProxy(ProxyServer):
    def __init__(self, runner: CommandRunner, settings: ProxySettings):
        self.runner = runner
        self.settings = settings

    def _check_config(self, main_text: str, candidate: str, replaces: Sequence[str]) -> str:
        """
        Copy of the main config where the sites-enabled wildcard include is
        spelled out, with *candidate* standing in for the *replaces* sites.
        """
        enabled_dir = self.settings.sites_enabled.rstrip("/")
        pattern = re.compile(rf"include\s+{re.escape(enabled_dir)}/\*\s*;")
        if not pattern.search(main_text):
            raise ProxyConfigError(
                f"{self.settings.main_config} has no 'include {enabled_dir}/*;' line, "
                "cannot validate the staged site in isolation"
            )
        includes = [
            f"include {posixpath.join(enabled_dir, name)};"
            for name in self.runner.listdir(enabled_dir)
            if name not in replaces and not name.startswith(".")
        ]
        includes.append(f"include {candidate};")
        return pattern.sub(lambda _: "\n    ".join(includes), main_text, count=1)

    def validate(self, candidate: str, replaces: Sequence[str] = ()) -> None:
        if self.runner.dry_run:
            log.info("[dry-run] nginx -t with %s", candidate)
            return

        main_text = self.runner.read_text(self.settings.main_config)
        check_text = self._check_config(main_text, candidate, replaces)
        check_path = posixpath.join(posixpath.dirname(self.settings.main_config), CHECK_CONFIG_NAME)

        self.runner.write_text(check_path, check_text)
        try:
            self.runner.run(f"nginx -t -c {shlex.quote(check_path)}")
        except CommandError as e:
            raise ProxyConfigError(
                "nginx rejected the synthesized site configuration:\n"
                + (e.stderr or e.stdout).strip()
            ) from e
        finally:
            self.runner.remove(check_path)

    def test(self) -> None:
        try:
            self.runner.run("nginx -t")
        except CommandError as e:
            raise ProxyConfigError("nginx configuration test failed:\n" + (e.stderr or e.stdout).strip()) from e

    def reload(self) -> None:
        self.runner.run("systemctl reload nginx")
