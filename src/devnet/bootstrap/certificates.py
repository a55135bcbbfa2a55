# src/devnet/bootstrap/certificates.py
from __future__ import annotations

import logging
import posixpath
import shlex

from devnet.utils.runner import CommandRunner
from .interfaces import CertificateIssuer

log = logging.getLogger("devnet")


class CertbotIssuer(CertificateIssuer):
    """
    Let's Encrypt through certbot's nginx plugin, which also inserts the HTTPS
    server block and the HTTP->HTTPS redirect. Renewal is left to certbot's
    own timer.
    """

    def __init__(self, runner: CommandRunner, *, live_dir: str = "/etc/letsencrypt/live", staging: bool = False):
        self.runner = runner
        self.live_dir = live_dir
        self.staging = staging

    def certificate_path(self, domain: str) -> str:
        return posixpath.join(self.live_dir, domain, "fullchain.pem")

    def has_certificate(self, domain: str) -> bool:
        return self.runner.exists(self.certificate_path(domain))

    def issue(self, domain: str, email: str) -> None:
        argv = [
            "certbot", "--nginx",
            "-d", domain,
            "--email", email,
            "--non-interactive",
            "--agree-tos",
            "--redirect",
            "--keep-until-expiring",
        ]
        if self.staging:
            argv.append("--staging")
        self.runner.run(" ".join(shlex.quote(a) for a in argv))
