# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/devnet/bootstrap/interfaces.py
"""
Narrow interfaces to the external tools the provisioning steps drive.
The steps only depend on these, so they can be exercised with fakes.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence


@dataclass(frozen=True)
class ServiceRegistration:
    service_id: str
    command: str
    cwd: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    restart_delay_ms: int = 2000


@dataclass(frozen=True)
class ServiceState:
    name: str
    status: str
    pid: Optional[int] = None
    restarts: int = 0
    # present in the saved process list that is resurrected on boot
    persisted: bool = False


class PackageInstaller(ABC):
    @abstractmethod
    def missing(self, packages: Sequence[str]) -> List[str]: ...

    @abstractmethod
    def install(self, packages: Sequence[str], *, upgrade: bool = False) -> None: ...


class RuntimeInstaller(ABC):
    """JavaScript runtime plus the process supervisor that ships through its package manager."""

    @abstractmethod
    def installed_major(self) -> Optional[int]: ...

    @abstractmethod
    def install_runtime(self, major: int) -> None: ...

    @abstractmethod
    def supervisor_installed(self) -> bool: ...

    @abstractmethod
    def install_supervisor(self) -> None: ...


class Firewall(ABC):
    @abstractmethod
    def is_configured(self) -> bool: ...

    @abstractmethod
    def apply(self) -> None: ...


class StorageNode(ABC):
    @abstractmethod
    def binary_installed(self) -> bool: ...

    @abstractmethod
    def install(self, tag: str, arch: str) -> None: ...

    @abstractmethod
    def repo_ready(self) -> bool: ...

    @abstractmethod
    def init_repo(self) -> None: ...

    @abstractmethod
    def registration(self) -> ServiceRegistration: ...


class RpcProject(ABC):
    @abstractmethod
    def is_ready(self) -> bool: ...

    @abstractmethod
    def scaffold(self) -> None: ...

    @abstractmethod
    def registration(self) -> ServiceRegistration: ...


class ServiceSupervisor(ABC):
    @abstractmethod
    def list(self) -> Dict[str, ServiceState]: ...

    @abstractmethod
    def start(self, reg: ServiceRegistration) -> None: ...

    @abstractmethod
    def delete(self, name: str) -> None: ...

    @abstractmethod
    def persist(self) -> None:
        """Save the current process list and register relaunch on boot."""

    def contains(self, name: str) -> bool:
        return name in self.list()

    def persisted(self, name: str) -> bool:
        state = self.list().get(name)
        return bool(state and state.persisted)


class ProxyServer(ABC):
    @abstractmethod
    def validate(self, candidate: str, replaces: Sequence[str] = ()) -> None:
        """Syntax-check the live configuration with *candidate* swapped in for *replaces*."""

    @abstractmethod
    def test(self) -> None: ...

    @abstractmethod
    def reload(self) -> None: ...


class CertificateIssuer(ABC):
    @abstractmethod
    def issue(self, domain: str, email: str) -> None: ...

    @abstractmethod
    def has_certificate(self, domain: str) -> bool: ...
