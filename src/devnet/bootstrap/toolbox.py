# src/devnet/bootstrap/toolbox.py
from __future__ import annotations

from dataclasses import dataclass

from devnet.config.models import ProvisionConfig
from devnet.utils.runner import CommandRunner
from .certificates import CertbotIssuer
from .firewall import UfwFirewall
from .interfaces import (
    CertificateIssuer,
    Firewall,
    PackageInstaller,
    RpcProject,
    RuntimeInstaller,
    ServiceSupervisor,
    StorageNode,
)
from .packages import AptPackageInstaller
from .probe import EnvironmentProber, GithubReleaseLookup, ReleaseLookup
from .proxy.nginx import NginxProxy
from .proxy.synthesizer import ProxySite
from .rpc_project import HardhatProject
from .runtime import NodeRuntimeInstaller
from .storage_node import KuboStorageNode
from .supervisor import Pm2Supervisor
from .verifier import Verifier


@dataclass
class Toolbox:
    """The collaborators one provisioning run talks to."""
    prober: EnvironmentProber
    packages: PackageInstaller
    runtime: RuntimeInstaller
    firewall: Firewall
    storage_node: StorageNode
    rpc_project: RpcProject
    supervisor: ServiceSupervisor
    proxy_site: ProxySite
    certificates: CertificateIssuer
    verifier: Verifier


def build_toolbox(
    cfg: ProvisionConfig,
    runner: CommandRunner,
    *,
    lookup: ReleaseLookup | None = None,
) -> Toolbox:
    supervisor = Pm2Supervisor(
        runner,
        boot_user=cfg.supervisor.boot_user,
        boot_home=cfg.supervisor.boot_home,
    )
    return Toolbox(
        prober=EnvironmentProber(runner, lookup or GithubReleaseLookup()),
        packages=AptPackageInstaller(runner),
        runtime=NodeRuntimeInstaller(runner),
        firewall=UfwFirewall(runner),
        storage_node=KuboStorageNode(runner, cfg),
        rpc_project=HardhatProject(runner, cfg),
        supervisor=supervisor,
        proxy_site=ProxySite(runner, NginxProxy(runner, cfg.proxy), cfg),
        certificates=CertbotIssuer(
            runner,
            live_dir=cfg.certificate.live_dir,
            staging=cfg.certificate.staging,
        ),
        verifier=Verifier(runner, supervisor, cfg),
    )
