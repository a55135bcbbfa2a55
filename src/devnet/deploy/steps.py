# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/devnet/deploy/steps.py
"""
The provisioning steps, in the order they have to run.

Every step pairs a side-effect free ``check`` ("is the end state already
there?") with an ``action`` that is only invoked when the check is false, and
an optional ``verify`` post-condition evaluated right after the action.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from devnet.bootstrap.interfaces import ServiceRegistration, ServiceSupervisor
from devnet.bootstrap.toolbox import Toolbox
from devnet.config.models import ProvisionConfig
from devnet.observers.dispatcher import EventBus
from devnet.observers.events import ProbeReported, VersionResolved

log = logging.getLogger("devnet")


class StepPolicy(str, Enum):
    FATAL = "fatal"                # abort the run on failure
    BEST_EFFORT = "best_effort"    # log and continue
    ADVISORY = "advisory"          # reporting only, never affects the exit code


def _never() -> bool:
    return False


@dataclass(frozen=True)
class Step:
    name: str
    description: str
    action: Callable[[], None]
    check: Callable[[], bool] = _never
    verify: Optional[Callable[[], bool]] = None
    policy: StepPolicy = StepPolicy.FATAL
    after: Tuple[str, ...] = ()


def replace_registration(supervisor: ServiceSupervisor, reg: ServiceRegistration) -> None:
    """
    Drop any registration under the same name, then register fresh. A stale
    entry may still carry an old command line, so it is never reused.
    """
    if supervisor.contains(reg.service_id):
        log.info("Removing stale registration %s", reg.service_id)
        supervisor.delete(reg.service_id)
    supervisor.start(reg)


def build_steps(
    cfg: ProvisionConfig,
    tools: Toolbox,
    *,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
) -> List[Step]:
    bus = bus or EventBus()
    run_ctx = run_ctx or {"run_id": "-", "host": "local"}

    # ---- preflight ----
    def preflight() -> None:
        tools.prober.require_root()
        arch = tools.prober.architecture()
        log.info("Target architecture: %s", arch)

    # ---- packages ----
    baseline = list(cfg.packages.baseline)

    def install_packages() -> None:
        missing = tools.packages.missing(baseline)
        tools.packages.install(missing, upgrade=cfg.packages.upgrade)

    # ---- runtime + supervisor ----
    def runtime_ready() -> bool:
        return (
            tools.runtime.installed_major() == cfg.runtime_major_version
            and tools.runtime.supervisor_installed()
        )

    def install_runtime() -> None:
        current = tools.runtime.installed_major()
        if current != cfg.runtime_major_version:
            log.info("Runtime major version %s, want %d", current, cfg.runtime_major_version)
            tools.runtime.install_runtime(cfg.runtime_major_version)
        if not tools.runtime.supervisor_installed():
            tools.runtime.install_supervisor()

    # ---- storage node ----
    def install_storage_node() -> None:
        arch = tools.prober.architecture()
        tag, fallback = tools.prober.version_tag(cfg.storage_node_version)
        bus.emit(VersionResolved(requested=cfg.storage_node_version, resolved=tag, fallback=fallback, **run_ctx))
        tools.storage_node.install(tag, arch)

    # ---- supervised services ----
    def register_storage_node() -> None:
        replace_registration(tools.supervisor, tools.storage_node.registration())

    def register_rpc_node() -> None:
        replace_registration(tools.supervisor, tools.rpc_project.registration())

    # ---- certificate ----
    def issue_certificate() -> None:
        tools.certificates.issue(cfg.domain, cfg.contact_email)

    # ---- verification ----
    def verify_host() -> None:
        report = tools.verifier.run()
        for probe in report.probes:
            bus.emit(ProbeReported(name=probe.name, target=probe.target, ok=probe.ok, detail=probe.detail, **run_ctx))
        missing = [name for name, state in report.services.items() if state is None]
        if missing:
            raise RuntimeError(f"services not registered: {', '.join(missing)}")

    storage_name = cfg.storage_node.service_name
    rpc_name = cfg.rpc_node.service_name

    steps = [
        Step(
            name="preflight",
            description="Preflight: root privileges & CPU architecture",
            action=preflight,
        ),
        Step(
            name="packages",
            description="System update & base packages",
            check=lambda: not tools.packages.missing(baseline),
            action=install_packages,
            verify=lambda: not tools.packages.missing(baseline),
            after=("preflight",),
        ),
        Step(
            name="runtime",
            description=f"Node.js {cfg.runtime_major_version}.x & PM2",
            check=runtime_ready,
            action=install_runtime,
            verify=runtime_ready,
            after=("packages",),
        ),
        Step(
            name="firewall",
            description="Firewall: allow SSH + HTTP/HTTPS",
            check=tools.firewall.is_configured,
            action=tools.firewall.apply,
            policy=StepPolicy.BEST_EFFORT,
            after=("packages",),
        ),
        Step(
            name="storage-node-binary",
            description="Install Kubo (IPFS) from dist.ipfs.tech",
            check=tools.storage_node.binary_installed,
            action=install_storage_node,
            verify=tools.storage_node.binary_installed,
            after=("packages",),
        ),
        Step(
            name="storage-node-repo",
            description="Initialize IPFS repo with loopback API/gateway bindings",
            check=tools.storage_node.repo_ready,
            action=tools.storage_node.init_repo,
            verify=tools.storage_node.repo_ready,
            after=("storage-node-binary",),
        ),
        Step(
            name="storage-node-service",
            description=f"PM2 process for the IPFS daemon ({storage_name})",
            action=register_storage_node,
            verify=lambda: tools.supervisor.contains(storage_name),
            after=("runtime", "storage-node-repo"),
        ),
        Step(
            name="rpc-project",
            description=f"Hardhat devnet project in {cfg.install_root}",
            check=tools.rpc_project.is_ready,
            action=tools.rpc_project.scaffold,
            verify=tools.rpc_project.is_ready,
            after=("runtime",),
        ),
        Step(
            name="rpc-node-service",
            description=f"PM2 process for the Hardhat node ({rpc_name})",
            action=register_rpc_node,
            verify=lambda: tools.supervisor.contains(rpc_name),
            after=("rpc-project",),
        ),
        Step(
            name="supervisor-boot",
            description="PM2 startup & save",
            action=tools.supervisor.persist,
            verify=lambda: all(tools.supervisor.persisted(n) for n in (storage_name, rpc_name)),
            after=("storage-node-service", "rpc-node-service"),
        ),
        Step(
            name="proxy",
            description=f"Nginx site for {cfg.domain}",
            action=tools.proxy_site.apply,
            verify=tools.proxy_site.is_active,
            after=("packages", "storage-node-service", "rpc-node-service"),
        ),
    ]

    if cfg.certificate.enabled:
        steps.append(
            Step(
                name="certificate",
                description=f"Issue/renew Let's Encrypt certificate for {cfg.domain}",
                action=issue_certificate,
                verify=lambda: tools.certificates.has_certificate(cfg.domain),
                after=("proxy",),
            )
        )

    steps.append(
        Step(
            name="verify",
            description="Status & summary",
            action=verify_host,
            policy=StepPolicy.ADVISORY,
            after=("proxy",),
        )
    )
    return steps
