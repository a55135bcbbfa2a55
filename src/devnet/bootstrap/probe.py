# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/devnet/bootstrap/probe.py
"""
Host environment probing: CPU architecture and the storage-node release tag.

Version resolution favours availability over freshness. When ``latest`` is
requested and the release index cannot be reached or returns something
unusable, the run continues with ``FALLBACK_STORAGE_NODE_VERSION`` instead of
failing.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from devnet.errors import PermissionDenied, UnsupportedPlatform
from devnet.utils.runner import CommandRunner

log = logging.getLogger("devnet")

FALLBACK_STORAGE_NODE_VERSION = "v0.28.0"
RELEASE_INDEX_URL = "https://api.github.com/repos/ipfs/kubo/releases/latest"

_ARCH_MAP = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def resolve_architecture(machine: str) -> str:
    """Map a raw ``uname -m`` string to ``amd64`` or ``arm64``."""
    arch = _ARCH_MAP.get(machine.strip().lower())
    if arch is None:
        raise UnsupportedPlatform(f"Unsupported architecture: {machine.strip()!r}")
    return arch


class ReleaseLookup(ABC):
    @abstractmethod
    def latest_tag(self) -> str:
        """Return the newest release tag or raise."""


class GithubReleaseLookup(ReleaseLookup):
    """Asks the GitHub releases API once, with a bounded timeout."""

    def __init__(self, url: str = RELEASE_INDEX_URL, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def latest_tag(self) -> str:
        resp = self.session.get(
            self.url,
            timeout=self.timeout,
            headers={"Accept": "application/vnd.github+json"},
        )
        resp.raise_for_status()
        tag = resp.json().get("tag_name")
        if not isinstance(tag, str) or not tag.strip() or tag == "null":
            raise ValueError(f"release index returned no usable tag_name: {tag!r}")
        return tag.strip()


class StaticReleaseLookup(ReleaseLookup):
    """Deterministic lookup for offline runs and tests."""

    def __init__(self, tag: Optional[str] = None, error: Optional[Exception] = None):
        self.tag = tag
        self.error = error
        self.calls = 0

    def latest_tag(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        if not self.tag:
            raise ValueError("no tag configured")
        return self.tag


def resolve_version_tag(
    pinned: str,
    lookup: ReleaseLookup,
    fallback: str = FALLBACK_STORAGE_NODE_VERSION,
) -> tuple[str, bool]:
    """
    Returns ``(tag, used_fallback)``. Pins come back unchanged; ``latest`` is
    looked up once and any failure yields *fallback*.
    """
    if pinned != "latest":
        return pinned, False
    try:
        return lookup.latest_tag(), False
    except Exception as e:
        log.warning("Release lookup failed (%s: %s), using %s", type(e).__name__, e, fallback)
        return fallback, True


class EnvironmentProber:
    """Reads facts about the target host once per run."""

    def __init__(self, runner: CommandRunner, lookup: ReleaseLookup):
        self.runner = runner
        self.lookup = lookup
        self._arch: Optional[str] = None

    def require_root(self) -> None:
        uid = self.runner.run("id -u", mutates=False).stdout.strip()
        if uid != "0":
            raise PermissionDenied(f"Please run as root (effective uid is {uid or 'unknown'})")

    def architecture(self) -> str:
        if self._arch is None:
            machine = self.runner.run("uname -m", mutates=False).stdout
            self._arch = resolve_architecture(machine)
            log.debug("architecture: %s -> %s", machine.strip(), self._arch)
        return self._arch

    def version_tag(self, pinned: str) -> tuple[str, bool]:
        return resolve_version_tag(pinned, self.lookup)
