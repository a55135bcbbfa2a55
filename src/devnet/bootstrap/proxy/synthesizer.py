# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/devnet/bootstrap/proxy/synthesizer.py
"""
Reverse proxy site synthesis.

The site file is rendered from the route table, written to a staging path,
validated by nginx and only then swapped over the active file. A rejected
configuration never touches what nginx is currently serving.
"""
from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import urlsplit

from devnet.config.models import ProvisionConfig
from devnet.errors import ProxyConfigError
from devnet.utils.runner import CommandRunner
from devnet.bootstrap.interfaces import ProxyServer
from devnet.bootstrap.template_renderer import TemplateRenderer
from .routes import CORS_HEADERS, Route, default_routes

log = logging.getLogger("devnet")

TEMPLATES_DIR = Path(__file__).parent / "templates"
DEFAULT_SITE = "default"


def nginx_string(value: str) -> str:
    """Escape text for a double-quoted nginx string."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
    )


def _renderer() -> TemplateRenderer:
    r = TemplateRenderer(TEMPLATES_DIR)
    r.env.filters["nginx_string"] = nginx_string
    return r


def _check_routes(routes: Sequence[Route], cfg: ProvisionConfig) -> None:
    seen = set()
    for route in routes:
        if not route.path_prefix.startswith("/"):
            raise ProxyConfigError(f"route prefix must start with '/': {route.path_prefix!r}")
        if route.path_prefix in seen:
            raise ProxyConfigError(f"duplicate route prefix: {route.path_prefix}")
        seen.add(route.path_prefix)

        if route.is_static:
            if route.static_status is None:
                raise ProxyConfigError(f"route {route.path_prefix} has neither upstream nor static status")
            continue

        # the storage node control API is loopback-only, never published
        if urlsplit(route.upstream).port == cfg.ports.storage_api:
            raise ProxyConfigError(
                f"route {route.path_prefix} targets the storage node control API "
                f"(port {cfg.ports.storage_api}), which must stay private"
            )


def render_site(routes: Sequence[Route], cfg: ProvisionConfig) -> str:
    """Same routes and domain in, byte-identical text out."""
    _check_routes(routes, cfg)
    return _renderer().render(
        "site.conf.j2",
        {
            "domain": cfg.domain,
            "client_max_body_size": cfg.proxy.client_max_body_size,
            "routes": list(routes),
            "cors_headers": CORS_HEADERS,
        },
    )


class ProxySite:
    """The nginx site for the configured domain."""

    def __init__(
        self,
        runner: CommandRunner,
        proxy: ProxyServer,
        cfg: ProvisionConfig,
        routes: Optional[Sequence[Route]] = None,
    ):
        self.runner = runner
        self.proxy = proxy
        self.cfg = cfg
        self.routes = tuple(routes) if routes is not None else default_routes(cfg)

        settings = cfg.proxy
        self.site_path = posixpath.join(settings.sites_available, cfg.domain)
        self.staged_path = posixpath.join(settings.sites_available, f".{cfg.domain}.staged")
        self.link_path = posixpath.join(settings.sites_enabled, cfg.domain)
        self.default_link = posixpath.join(settings.sites_enabled, DEFAULT_SITE)

    def render(self) -> str:
        return render_site(self.routes, self.cfg)

    def is_active(self) -> bool:
        return self.runner.exists(self.site_path) and self.runner.is_symlink(self.link_path)

    def apply(self) -> None:
        text = self.render()
        self.runner.makedirs(self.cfg.proxy.sites_available)
        self.runner.makedirs(self.cfg.proxy.sites_enabled)

        self.runner.write_text(self.staged_path, text)
        try:
            self.proxy.validate(self.staged_path, replaces=(self.cfg.domain, DEFAULT_SITE))
        except Exception:
            self.runner.remove(self.staged_path)
            raise

        self.runner.replace(self.staged_path, self.site_path)
        self.runner.symlink(self.site_path, self.link_path)
        if self.runner.exists(self.default_link):
            log.info("Removing default site %s", self.default_link)
            self.runner.remove(self.default_link)

        self.proxy.test()
        self.proxy.reload()
        log.info("Proxy site %s active with %d routes", self.site_path, len(self.routes))
