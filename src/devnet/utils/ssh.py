# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
import posixpath
import socket
from typing import List, Optional

import paramiko

from devnet.config.models import TargetSettings
from devnet.errors import CommandError
from devnet.utils.runner import CommandResult, CommandRunner, ExecutionContext

log = logging.getLogger("devnet")


def _q(s: str) -> str:
    """
    Quote for bash -lc.
    """
    return "'" + s.replace("'", "'\"'\"'") + "'"


class SshRunner(CommandRunner):
    """
    Runs against a remote host over an established paramiko client.
    Non-root logins are elevated with passwordless ``sudo -n``.
    """

    def __init__(
        self,
        client: paramiko.SSHClient,
        *,
        sudo: bool = False,
        ctx: Optional[ExecutionContext] = None,
    ):
        super().__init__(ctx)
        self.client = client
        self.sudo = sudo
        self._sftp: Optional[paramiko.SFTPClient] = None
        self._tmp_counter = 0

    def _exec(self, cmd: str) -> CommandResult:
        wrapped = f"bash -lc {_q(cmd)}"
        if self.sudo:
            wrapped = f"sudo -n {wrapped}"
        try:
            stdin, stdout, stderr = self.client.exec_command(
                wrapped, timeout=self.ctx.command_timeout
            )
            # nothing is fed to remote commands; EOF keeps readers from blocking
            stdin.close()
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            rc = stdout.channel.recv_exit_status()
        except socket.timeout as e:
            raise CommandError(cmd, -1, "", f"timed out after {self.ctx.command_timeout}s") from e
        return CommandResult(cmd, rc, out, err)

    def _test(self, flag: str, path: str) -> bool:
        return self.probe(f"test {flag} {_q(path)}").ok

    def exists(self, path: str) -> bool:
        return self._test("-e", path) or self._test("-L", path)

    def is_dir(self, path: str) -> bool:
        return self._test("-d", path)

    def is_symlink(self, path: str) -> bool:
        return self._test("-L", path)

    def read_text(self, path: str) -> str:
        return self.run(f"cat {_q(path)}", mutates=False).stdout

    def listdir(self, path: str) -> List[str]:
        res = self.probe(f"ls -1A {_q(path)}")
        if not res.ok:
            return []
        return sorted(ln for ln in res.stdout.splitlines() if ln.strip())

    def _sftp_client(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            self._sftp = self.client.open_sftp()
        return self._sftp

    def _write_text(self, path: str, content: str, mode: int) -> None:
        """
        Upload content to a temp path then install it so root-owned targets work
        for sudo sessions too.
        """
        self._tmp_counter += 1
        tmp_remote = f"/tmp/.devnet_tmp_{os.getpid()}_{self._tmp_counter}"
        with self._sftp_client().file(tmp_remote, "w") as f:
            f.write(content)
        self.run(
            f"install -D -m {oct(mode)[2:]} {_q(tmp_remote)} {_q(path)} ; rm -f {_q(tmp_remote)}"
        )

    def _replace(self, src: str, dst: str) -> None:
        self.run(f"mv -f {_q(src)} {_q(dst)}")

    def _symlink(self, target: str, link: str) -> None:
        tmp = f"{link}.devnet-tmp"
        self.run(
            f"ln -sfn {_q(target)} {_q(tmp)} && mv -Tf {_q(tmp)} {_q(link)}"
        )

    def _remove(self, path: str) -> None:
        self.run(f"rm -f {_q(path)}")

    def _makedirs(self, path: str) -> None:
        self.run(f"install -d {_q(posixpath.normpath(path))}")

    def close(self) -> None:
        try:
            if self._sftp is not None:
                self._sftp.close()
        finally:
            self.client.close()


def _load_pkey(key_path: str) -> Optional[paramiko.PKey]:
    for key_cls in (
        paramiko.Ed25519Key,
        paramiko.RSAKey,
        paramiko.ECDSAKey,
    ):
        try:
            return key_cls.from_private_key_file(key_path)
        except paramiko.SSHException:
            continue
    raise ValueError(f"Unsupported private key format for {key_path}")


def open_ssh(
    target: TargetSettings,
    *,
    ctx: Optional[ExecutionContext] = None,
) -> SshRunner:
    ctx = ctx or ExecutionContext()
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    pkey = _load_pkey(str(target.key_path.expanduser())) if target.key_path else None

    log.info("Connecting to %s@%s:%d", target.username, target.host, target.port)
    client.connect(
        hostname=target.host,
        port=target.port,
        username=target.username,
        password=target.password if not pkey else None,
        pkey=pkey,
        timeout=ctx.connect_timeout,
        allow_agent=True,
        look_for_keys=pkey is None,
    )

    return SshRunner(client, sudo=target.username != "root", ctx=ctx)
