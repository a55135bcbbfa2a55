# src/devnet/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

import paramiko
import typer
from pydantic import ValidationError

from devnet.config.loader import load_config
from devnet.config.models import ProvisionConfig

from devnet.bootstrap.probe import GithubReleaseLookup, resolve_version_tag
from devnet.bootstrap.proxy.synthesizer import render_site
from devnet.bootstrap.proxy.routes import default_routes
from devnet.bootstrap.toolbox import Toolbox, build_toolbox
from devnet.bootstrap.verifier import VerificationReport

from devnet.deploy.executor import RunOptions, run_steps
from devnet.deploy.planner import plan
from devnet.deploy.steps import build_steps

from devnet.utils.runner import CommandRunner, ExecutionContext, LocalRunner
from devnet.utils.ssh import open_ssh

from devnet.logging.log import init_logging
from devnet.observers.console import ConsoleObserver
from devnet.observers.dispatcher import EventBus
from devnet.observers.logger import LoggerObserver
from devnet.observers.jsonfile import JsonFileObserver
from devnet.observers.events import StepFailed, new_ctx


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Devnet host provisioning CLI", no_args_is_help=True)


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _cli_overrides(
    ssh_host: Optional[str],
    ssh_user: Optional[str],
    ssh_key: Optional[Path],
    skip_certificate: bool,
) -> dict:
    overrides: dict = {}
    target = {}
    if ssh_host:
        target["host"] = ssh_host
    if ssh_user:
        target["username"] = ssh_user
    if ssh_key:
        target["key_path"] = str(ssh_key)
    if target:
        overrides["target"] = target
    if skip_certificate:
        overrides["certificate"] = {"enabled": False}
    return overrides


def read_config(config: Path, overrides: Optional[dict] = None) -> ProvisionConfig:
    try:
        return load_config(config, overrides)
    except FileNotFoundError as e:
        raise typer.BadParameter(f"config file not found: {e.filename}") from e
    except ValidationError as e:
        raise typer.BadParameter(f"invalid config {config}:\n{e}") from e


def connect(cfg: ProvisionConfig, ctx: ExecutionContext) -> CommandRunner:
    """Runner for the configured target: SSH when a host is set, else local."""
    if cfg.target.is_local:
        return LocalRunner(ctx)
    return open_ssh(cfg.target, ctx=ctx)


def print_verification(report: VerificationReport) -> None:
    typer.echo("")
    typer.secho("Services:", bold=True)
    for name, state in report.services.items():
        status = state.status if state else "not registered"
        if state and not state.persisted:
            status += " (not saved for boot)"
        color = typer.colors.GREEN if state and state.status == "online" else typer.colors.YELLOW
        typer.secho(f"  {name:<16} {status}", fg=color)

    typer.secho("Endpoints:", bold=True)
    for ep in report.endpoints:
        public = ep.public or "(local only, not exposed)"
        typer.echo(f"  {ep.name:<12} {ep.local:<18} {public}")

    typer.secho("Routes:", bold=True)
    for route in report.routes:
        target = route.upstream or f"static {route.static_status}"
        flags = " [cors]" if route.cors else ""
        typer.echo(f"  {route.path_prefix:<10} -> {target}{flags}")

    if report.probes:
        typer.secho("Probes (advisory):", bold=True)
        for p in report.probes:
            mark = "ok" if p.ok else "FAIL"
            typer.echo(f"  {p.name:<14} {mark:<5} {p.target} {p.detail}".rstrip())


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def provision(
    config: Path = typer.Argument(..., help="Provisioning config YAML"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log mutating commands instead of running them"),
    debug: bool = typer.Option(False, "--debug"),
    ssh_host: Optional[str] = typer.Option(None, "--ssh-host", help="Provision this host over SSH"),
    ssh_user: Optional[str] = typer.Option(None, "--ssh-user"),
    ssh_key: Optional[Path] = typer.Option(None, "--ssh-key"),
    skip_certificate: bool = typer.Option(False, "--skip-certificate"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Defaults to ~/.devnet/logs"),
):
    """Run the whole provisioning pipeline against one host."""
    cfg = read_config(config, _cli_overrides(ssh_host, ssh_user, ssh_key, skip_certificate))

    run_log = init_logging(base_dir=log_dir, verbose=debug)
    logger, run_id = run_log.logger, run_log.run_id

    typer.echo("")
    typer.secho("Devnet Provisioning Started", bold=True)
    typer.echo(f"  Domain   : {cfg.domain}")
    typer.echo(f"  Target   : {cfg.target.host or 'local'}")
    typer.echo(f"  Run ID   : {run_id}")
    typer.echo(f"  Logs     : {run_log.log_path}")

    observers = [
        ConsoleObserver(),
        LoggerObserver(logger),
        JsonFileObserver(run_log.events_path),
    ]
    run_ctx = new_ctx(host=cfg.target.host, run_id=run_id)

    bus = EventBus(observers)
    ctx = ExecutionContext(dry_run=dry_run)
    try:
        runner = connect(cfg, ctx)
    except (paramiko.SSHException, OSError) as e:
        bus.emit(StepFailed(name="connect", error=f"{cfg.target.host or 'local'}: {e}", **run_ctx))
        typer.secho("\nProvisioning failed at step 'connect'", fg=typer.colors.RED, bold=True, err=True)
        raise typer.Exit(code=1)

    try:
        tools = build_toolbox(cfg, runner)
        step_list = build_steps(cfg, tools, bus=bus, run_ctx=run_ctx)
        report = run_steps(
            step_list,
            options=RunOptions(enforce_postconditions=not dry_run),
            observers=observers,
            run_ctx=run_ctx,
        )
    finally:
        runner.close()

    if tools.verifier.last_report is not None:
        print_verification(tools.verifier.last_report)

    logger.info("summary: %s", report.summary())
    if not report.ok:
        typer.secho(f"\nProvisioning failed at step '{report.failed_step}'", fg=typer.colors.RED, bold=True, err=True)
        raise typer.Exit(code=1)

    typer.secho("\nSUCCESS!", fg=typer.colors.GREEN, bold=True)
    scheme = "https" if cfg.certificate.enabled else "http"
    typer.echo(f"  Quick test: curl -I {scheme}://{cfg.domain}/healthz")
    typer.echo("  Ensure the DNS A record for the domain points at this host before issuing certificates.")


@app.command("render-proxy")
def render_proxy(config: Path = typer.Argument(..., help="Provisioning config YAML")):
    """Print the synthesized nginx site configuration."""
    cfg = read_config(config)
    typer.echo(render_site(default_routes(cfg), cfg), nl=False)


@app.command("resolve-version")
def resolve_version(
    config: Path = typer.Argument(..., help="Provisioning config YAML"),
    timeout: float = typer.Option(10.0, "--timeout"),
):
    """Print the storage-node release tag a run would install."""
    cfg = read_config(config)
    tag, fallback = resolve_version_tag(cfg.storage_node_version, GithubReleaseLookup(timeout=timeout))
    typer.echo(tag)
    if fallback:
        typer.secho("(release lookup failed, pinned fallback)", fg=typer.colors.YELLOW, err=True)


@app.command()
def steps(config: Path = typer.Argument(..., help="Provisioning config YAML")):
    """List the ordered provisioning steps."""
    cfg = read_config(config)
    runner = LocalRunner(ExecutionContext(dry_run=True))
    tools: Toolbox = build_toolbox(cfg, runner)
    for i, step in enumerate(plan(build_steps(cfg, tools)), 1):
        policy = "" if step.policy.value == "fatal" else f"  [{step.policy.value}]"
        typer.echo(f"{i:>2}. {step.name:<22} {step.description}{policy}")


@app.command()
def verify(
    config: Path = typer.Argument(..., help="Provisioning config YAML"),
    ssh_host: Optional[str] = typer.Option(None, "--ssh-host"),
    ssh_user: Optional[str] = typer.Option(None, "--ssh-user"),
    ssh_key: Optional[Path] = typer.Option(None, "--ssh-key"),
):
    """Report service state, endpoints and reachability without changing anything."""
    cfg = read_config(config, _cli_overrides(ssh_host, ssh_user, ssh_key, False))
    try:
        runner = connect(cfg, ExecutionContext())
    except (paramiko.SSHException, OSError) as e:
        typer.secho(f"Could not connect to {cfg.target.host}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    try:
        report = build_toolbox(cfg, runner).verifier.run()
    finally:
        runner.close()
    print_verification(report)


if __name__ == "__main__":
    app()
