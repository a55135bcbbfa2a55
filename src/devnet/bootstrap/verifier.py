# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/devnet/bootstrap/verifier.py
from __future__ import annotations

import json
import logging
import shlex
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import requests

from devnet.config.models import ProvisionConfig
from devnet.utils.runner import CommandRunner
from .interfaces import ServiceState, ServiceSupervisor
from .proxy.routes import Route, default_routes

log = logging.getLogger("devnet")


@dataclass(frozen=True)
class ProbeResult:
    name: str
    target: str
    ok: bool
    detail: str = ""


@dataclass(frozen=True)
class Endpoint:
    name: str
    local: str
    public: Optional[str]


@dataclass
class VerificationReport:
    services: Dict[str, Optional[ServiceState]] = field(default_factory=dict)
    probes: List[ProbeResult] = field(default_factory=list)
    endpoints: List[Endpoint] = field(default_factory=list)
    routes: List[Route] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        services_up = all(s is not None and s.status == "online" for s in self.services.values())
        return services_up and all(p.ok for p in self.probes)


class Verifier:
    """
    Reports what the host looks like after provisioning. Everything here is
    advisory: failures are collected into the report, never raised.
    """

    def __init__(
        self,
        runner: CommandRunner,
        supervisor: ServiceSupervisor,
        cfg: ProvisionConfig,
        *,
        session: Optional[requests.Session] = None,
        probe_timeout: float = 5.0,
    ):
        self.runner = runner
        self.supervisor = supervisor
        self.cfg = cfg
        self.session = session or requests.Session()
        self.probe_timeout = probe_timeout
        self.last_report: Optional[VerificationReport] = None

    def endpoints(self) -> List[Endpoint]:
        p = self.cfg.ports
        scheme = "https" if self.cfg.certificate.enabled else "http"
        base = f"{scheme}://{self.cfg.domain}"
        return [
            Endpoint("rpc", f"127.0.0.1:{p.rpc}", f"{base}/rpc"),
            Endpoint("gateway", f"127.0.0.1:{p.gateway}", f"{base}/ipfs, {base}/ipns"),
            Endpoint("storage-api", f"127.0.0.1:{p.storage_api}", None),
            Endpoint("health", "-", f"{base}/healthz"),
        ]

    # ------------------ probes ------------------

    def _curl(self, name: str, url: str, *, method: str = "GET", data: Optional[str] = None) -> ProbeResult:
        m = int(self.probe_timeout)
        cmd = f"curl -sS -m {max(m, 1)} -o /dev/null -w '%{{http_code}}' -X {method} {shlex.quote(url)}"
        if data is not None:
            cmd += f" -H 'Content-Type: application/json' --data {shlex.quote(data)}"
        res = self.runner.probe(cmd)
        code = res.stdout.strip()
        ok = res.ok and code.startswith("2")
        detail = f"HTTP {code}" if code and code != "000" else (res.stderr.strip() or f"rc={res.returncode}")
        return ProbeResult(name, url, ok, detail)

    def _public_health(self) -> ProbeResult:
        scheme = "https" if self.cfg.certificate.enabled else "http"
        url = f"{scheme}://{self.cfg.domain}/healthz"
        try:
            resp = self.session.get(url, timeout=self.probe_timeout)
            ok = resp.status_code == 200 and resp.text.strip() == "ok"
            return ProbeResult("public-health", url, ok, f"HTTP {resp.status_code}")
        except requests.RequestException as e:
            return ProbeResult("public-health", url, False, type(e).__name__)

    def probes(self) -> List[ProbeResult]:
        p = self.cfg.ports
        rpc_body = json.dumps({"jsonrpc": "2.0", "id": 1, "method": "web3_clientVersion", "params": []})
        return [
            self._curl("rpc", f"http://127.0.0.1:{p.rpc}/", method="POST", data=rpc_body),
            self._curl("storage-api", f"http://127.0.0.1:{p.storage_api}/api/v0/version", method="POST"),
            self._curl("gateway", f"http://127.0.0.1:{p.gateway}/ipfs/bafkqaaa"),
            self._public_health(),
        ]

    # ------------------ report ------------------

    def run(self) -> VerificationReport:
        report = VerificationReport(endpoints=self.endpoints(), routes=list(default_routes(self.cfg)))

        registry = self.supervisor.list()
        for name in (self.cfg.storage_node.service_name, self.cfg.rpc_node.service_name):
            state = registry.get(name)
            report.services[name] = state
            log.info("service %s: %s", name, state.status if state else "not registered")

        for result in self.probes():
            report.probes.append(result)
            level = logging.INFO if result.ok else logging.WARNING
            log.log(level, "probe %s %s: %s", result.name, result.target, result.detail)

        self.last_report = report
        return report
