import requests

from devnet.bootstrap.probe import StaticReleaseLookup
from devnet.deploy.executor import run_steps
from devnet.deploy.steps import StepPolicy, build_steps
from devnet.observers.dispatcher import EventBus
from devnet.observers.events import ProbeReported, VersionResolved

from fakes import FakeFirewall, FakeStorageNode, fake_toolbox, host_runner


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


def _install_counts(tools):
    return (
        tools.packages.install_calls,
        tools.runtime.install_calls,
        tools.firewall.apply_calls,
        len(tools.storage_node.installs),
        tools.storage_node.init_calls,
        tools.rpc_project.scaffold_calls,
    )


def test_step_catalog_order(cfg):
    names = [s.name for s in build_steps(cfg, fake_toolbox(cfg))]
    assert names == [
        "preflight",
        "packages",
        "runtime",
        "firewall",
        "storage-node-binary",
        "storage-node-repo",
        "storage-node-service",
        "rpc-project",
        "rpc-node-service",
        "supervisor-boot",
        "proxy",
        "certificate",
        "verify",
    ]


def test_certificate_step_dropped_when_disabled(cfg):
    cfg = cfg.model_copy(update={"certificate": cfg.certificate.model_copy(update={"enabled": False})})
    steps = build_steps(cfg, fake_toolbox(cfg))
    assert "certificate" not in [s.name for s in steps]
    policies = {s.name: s.policy for s in steps}
    assert policies["firewall"] is StepPolicy.BEST_EFFORT
    assert policies["verify"] is StepPolicy.ADVISORY


def test_fresh_host_then_rerun(cfg):
    runner = host_runner()
    lookup = StaticReleaseLookup(error=requests.ConnectionError("unreachable"))
    tools = fake_toolbox(cfg, runner=runner, lookup=lookup)

    first = run_steps(build_steps(cfg, tools))
    assert first.ok, first.outcomes
    assert sorted(tools.supervisor.procs) == ["hardhat-devnet", "ipfs"]
    assert tools.storage_node.installs == [("v0.28.0", "amd64")]
    assert all(s.persisted for s in tools.supervisor.list().values())
    # a pinned version never touches the release index
    assert lookup.calls == 0

    site = runner.files["/etc/nginx/sites-available/example.test"]
    assert site.count("location ") == 4
    assert runner.links["/etc/nginx/sites-enabled/example.test"] == "/etc/nginx/sites-available/example.test"
    assert tools.certificates.issued == [("example.test", "ops@example.test")]

    counts = _install_counts(tools)
    second = run_steps(build_steps(cfg, tools))
    assert second.ok
    assert _install_counts(tools) == counts
    assert sorted(tools.supervisor.procs) == ["hardhat-devnet", "ipfs"]
    assert runner.files["/etc/nginx/sites-available/example.test"] == site
    skipped = {o.name for o in second.outcomes if o.status == "SKIPPED"}
    assert {"packages", "runtime", "firewall", "storage-node-binary", "storage-node-repo", "rpc-project"} <= skipped


def test_stale_registration_is_replaced(cfg):
    tools = fake_toolbox(cfg)
    tools.supervisor.start(tools.storage_node.registration())
    report = run_steps(build_steps(cfg, tools))
    assert report.ok
    assert tools.supervisor.deleted == ["ipfs"]
    assert list(tools.supervisor.procs).count("ipfs") == 1


def test_firewall_failure_is_not_fatal(cfg):
    tools = fake_toolbox(cfg, firewall=FakeFirewall(fail=True))
    report = run_steps(build_steps(cfg, tools))
    status = {o.name: o.status for o in report.outcomes}
    assert status["firewall"] == "WARNED"
    assert status["proxy"] == "OK"
    assert report.ok


def test_storage_install_failure_stops_the_run(cfg):
    tools = fake_toolbox(cfg, storage_node=FakeStorageNode(fail_install=True))
    report = run_steps(build_steps(cfg, tools))
    assert report.failed_step == "storage-node-binary"
    assert "404" in report.outcomes[-1].error
    assert tools.rpc_project.scaffold_calls == 0
    assert tools.supervisor.started == []
    assert tools.certificates.issued == []


def test_non_root_session_fails_preflight(cfg):
    runner = host_runner()
    runner.respond(r"^id -u$", stdout="1000\n")
    tools = fake_toolbox(cfg, runner=runner)
    report = run_steps(build_steps(cfg, tools))
    assert report.failed_step == "preflight"
    assert "root" in report.outcomes[0].error
    assert tools.packages.install_calls == 0


def test_latest_version_falls_back_when_lookup_fails(cfg):
    cfg = cfg.model_copy(update={"storage_node_version": "latest"})
    tools = fake_toolbox(cfg, lookup=StaticReleaseLookup(error=requests.Timeout("slow")))
    cap = Capture()
    report = run_steps(build_steps(cfg, tools, bus=EventBus([cap])))
    assert report.ok
    assert tools.storage_node.installs == [("v0.28.0", "amd64")]
    resolved = next(e for e in cap.events if isinstance(e, VersionResolved))
    assert resolved.fallback is True
    assert resolved.requested == "latest"


def test_verify_reports_probes(cfg):
    tools = fake_toolbox(cfg)
    cap = Capture()
    run_steps(build_steps(cfg, tools, bus=EventBus([cap])))
    probes = {e.name: e.ok for e in cap.events if isinstance(e, ProbeReported)}
    assert probes == {"rpc": True, "storage-api": True, "gateway": True, "public-health": True}


def test_boot_step_fails_when_save_does_not_stick(cfg):
    tools = fake_toolbox(cfg)
    tools.supervisor.persist = lambda: None   # pm2 save wrote nothing
    report = run_steps(build_steps(cfg, tools))
    assert not report.ok
    assert report.failed_step == "supervisor-boot"
