# tests/fakes.py
"""
Test doubles: an in-memory CommandRunner and stateful stand-ins for the
external tools, each counting how often its mutating calls ran.
"""
from __future__ import annotations

import posixpath
import re
import types
from typing import Dict, List, Optional, Sequence

from devnet.bootstrap.interfaces import (
    CertificateIssuer,
    Firewall,
    PackageInstaller,
    ProxyServer,
    RpcProject,
    RuntimeInstaller,
    ServiceRegistration,
    ServiceState,
    ServiceSupervisor,
    StorageNode,
)
from devnet.bootstrap.probe import EnvironmentProber, StaticReleaseLookup
from devnet.bootstrap.proxy.synthesizer import ProxySite
from devnet.bootstrap.toolbox import Toolbox
from devnet.bootstrap.verifier import Verifier
from devnet.config.models import ProvisionConfig
from devnet.errors import ProxyConfigError
from devnet.utils.runner import CommandResult, CommandRunner, ExecutionContext


# ----------------- Runner -----------------

class FakeRunner(CommandRunner):
    """
    ``responses`` is a list of ``(regex, (rc, stdout, stderr))``; the first
    pattern found in the command wins, anything else succeeds silently.
    """

    def __init__(self, responses=None, files=None, ctx: Optional[ExecutionContext] = None):
        super().__init__(ctx)
        self.responses = list(responses or [])
        self.files: Dict[str, str] = dict(files or {})
        self.dirs = set()
        self.links: Dict[str, str] = {}
        self.commands: List[str] = []
        self.ops: List[tuple] = []

    def respond(self, pattern: str, rc: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.responses.insert(0, (pattern, (rc, stdout, stderr)))

    def _exec(self, cmd):
        self.commands.append(cmd)
        self.ops.append(("exec", cmd))
        for pattern, (rc, out, err) in self.responses:
            if re.search(pattern, cmd):
                return CommandResult(cmd, rc, out, err)
        return CommandResult(cmd, 0, "", "")

    def ran(self, pattern: str) -> List[str]:
        return [c for c in self.commands if re.search(pattern, c)]

    def exists(self, path):
        return path in self.files or path in self.links or path in self.dirs

    def is_dir(self, path):
        return path in self.dirs

    def is_symlink(self, path):
        return path in self.links

    def read_text(self, path):
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path)

    def listdir(self, path):
        path = path.rstrip("/")
        names = {
            posixpath.basename(p)
            for p in list(self.files) + list(self.links)
            if posixpath.dirname(p) == path
        }
        return sorted(names)

    def _write_text(self, path, content, mode):
        self.ops.append(("write", path))
        self.files[path] = content

    def _replace(self, src, dst):
        self.ops.append(("replace", src, dst))
        self.files[dst] = self.files.pop(src)

    def _symlink(self, target, link):
        self.ops.append(("symlink", target, link))
        self.links[link] = target

    def _remove(self, path):
        self.ops.append(("remove", path))
        self.files.pop(path, None)
        self.links.pop(path, None)

    def _makedirs(self, path):
        self.dirs.add(path)


# ----------------- Collaborators -----------------

class FakePackages(PackageInstaller):
    def __init__(self, installed=()):
        self.installed = set(installed)
        self.install_calls = 0

    def missing(self, packages: Sequence[str]) -> List[str]:
        return [p for p in packages if p not in self.installed]

    def install(self, packages, *, upgrade=False):
        self.install_calls += 1
        self.installed.update(packages)


class FakeRuntime(RuntimeInstaller):
    def __init__(self, major=None, pm2=False):
        self.major = major
        self.pm2 = pm2
        self.install_calls = 0

    def installed_major(self):
        return self.major

    def install_runtime(self, major):
        self.install_calls += 1
        self.major = major

    def supervisor_installed(self):
        return self.pm2

    def install_supervisor(self):
        self.install_calls += 1
        self.pm2 = True


class FakeFirewall(Firewall):
    def __init__(self, fail=False):
        self.fail = fail
        self.configured = False
        self.apply_calls = 0

    def is_configured(self):
        return self.configured

    def apply(self):
        self.apply_calls += 1
        if self.fail:
            raise RuntimeError("ERROR: problem running iptables")
        self.configured = True


class FakeStorageNode(StorageNode):
    def __init__(self, service_name="ipfs", fail_install=False):
        self.service_name = service_name
        self.fail_install = fail_install
        self.installed = False
        self.repo = False
        self.installs: List[tuple] = []
        self.init_calls = 0

    def binary_installed(self):
        return self.installed

    def install(self, tag, arch):
        self.installs.append((tag, arch))
        if self.fail_install:
            raise RuntimeError("curl: (22) The requested URL returned error: 404")
        self.installed = True

    def repo_ready(self):
        return self.repo

    def init_repo(self):
        self.init_calls += 1
        self.repo = True

    def registration(self):
        return ServiceRegistration(service_id=self.service_name, command="ipfs daemon --enable-gc")


class FakeRpcProject(RpcProject):
    def __init__(self, service_name="hardhat-devnet"):
        self.service_name = service_name
        self.scaffolded = False
        self.scaffold_calls = 0

    def is_ready(self):
        return self.scaffolded

    def scaffold(self):
        self.scaffold_calls += 1
        self.scaffolded = True

    def registration(self):
        return ServiceRegistration(
            service_id=self.service_name,
            command="npx hardhat node --hostname 127.0.0.1 --port 8545",
            cwd="/opt/hardhat-devnet",
        )


class FakeSupervisor(ServiceSupervisor):
    def __init__(self):
        self.procs: Dict[str, ServiceRegistration] = {}
        self.started: List[str] = []
        self.deleted: List[str] = []
        self.saved: set = set()
        self.persist_calls = 0

    def list(self):
        return {
            n: ServiceState(name=n, status="online", pid=100 + i, persisted=n in self.saved)
            for i, n in enumerate(self.procs)
        }

    def start(self, reg):
        if reg.service_id in self.procs:
            raise RuntimeError(f"duplicate process {reg.service_id}")
        self.procs[reg.service_id] = reg
        self.started.append(reg.service_id)

    def delete(self, name):
        self.deleted.append(name)
        del self.procs[name]

    def persist(self):
        self.persist_calls += 1
        self.saved = set(self.procs)


class FakeProxy(ProxyServer):
    def __init__(self, reject: Optional[str] = None):
        self.reject = reject
        self.validated: List[tuple] = []
        self.tests = 0
        self.reloads = 0

    def validate(self, candidate, replaces=()):
        self.validated.append((candidate, tuple(replaces)))
        if self.reject:
            raise ProxyConfigError(self.reject)

    def test(self):
        self.tests += 1

    def reload(self):
        self.reloads += 1


class FakeCertificates(CertificateIssuer):
    def __init__(self):
        self.issued: List[tuple] = []

    def issue(self, domain, email):
        self.issued.append((domain, email))

    def has_certificate(self, domain):
        return any(d == domain for d, _ in self.issued)


class FakeSession:
    """Enough of requests.Session for the public health probe."""

    def __init__(self, status_code=200, text="ok\n", error: Optional[Exception] = None):
        self.status_code = status_code
        self.text = text
        self.error = error
        self.urls: List[str] = []

    def get(self, url, timeout=None, **kw):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return types.SimpleNamespace(status_code=self.status_code, text=self.text)


def host_runner(**kw) -> FakeRunner:
    """A runner for a root shell on an x86_64 box whose loopback services answer."""
    runner = FakeRunner(**kw)
    runner.respond(r"^id -u$", stdout="0\n")
    runner.respond(r"^uname -m$", stdout="x86_64\n")
    runner.respond(r"^curl -sS", stdout="200")
    return runner


def fake_toolbox(
    cfg: ProvisionConfig,
    *,
    runner: Optional[FakeRunner] = None,
    lookup=None,
    firewall: Optional[Firewall] = None,
    storage_node: Optional[FakeStorageNode] = None,
    proxy: Optional[FakeProxy] = None,
) -> Toolbox:
    runner = runner or host_runner()
    supervisor = FakeSupervisor()
    return Toolbox(
        prober=EnvironmentProber(runner, lookup or StaticReleaseLookup(tag="v0.29.0")),
        packages=FakePackages(),
        runtime=FakeRuntime(),
        firewall=firewall or FakeFirewall(),
        storage_node=storage_node or FakeStorageNode(cfg.storage_node.service_name),
        rpc_project=FakeRpcProject(cfg.rpc_node.service_name),
        supervisor=supervisor,
        proxy_site=ProxySite(runner, proxy or FakeProxy(), cfg),
        certificates=FakeCertificates(),
        verifier=Verifier(runner, supervisor, cfg, session=FakeSession()),
    )
