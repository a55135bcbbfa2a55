# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/devnet/config/models.py
from __future__ import annotations

import re
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


_VERSION_RE = re.compile(r"^v\d")
_DOMAIN_RE = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?(\.[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?)*$")

DEFAULT_PACKAGES = (
    "nginx",
    "python3-certbot-nginx",
    "ufw",
    "curl",
    "ca-certificates",
    "gnupg",
    "git",
    "jq",
    "unzip",
)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Ports(_Frozen):
    """Loopback ports of the local services."""
    rpc: int = 8545
    gateway: int = 8080
    storage_api: int = 5001

    @model_validator(mode="after")
    def _unique(self) -> "Ports":
        values = [self.rpc, self.gateway, self.storage_api]
        if len(set(values)) != len(values):
            raise ValueError(f"ports must be distinct, got {values}")
        for v in values:
            if not 0 < v < 65536:
                raise ValueError(f"port out of range: {v}")
        return self


class PackageSettings(_Frozen):
    baseline: Tuple[str, ...] = DEFAULT_PACKAGES
    upgrade: bool = True


class StorageNodeSettings(_Frozen):
    repo_path: str = "/root/.ipfs"
    profile: str = "server"
    service_name: str = "ipfs"
    enable_gc: bool = True


class RpcNodeSettings(_Frozen):
    service_name: str = "hardhat-devnet"
    chain_id: int = 31337
    accounts: int = 20
    solidity: str = "0.8.24"


class SupervisorSettings(_Frozen):
    restart_delay_ms: int = 2000
    boot_user: str = "root"
    boot_home: str = "/root"


class ProxySettings(_Frozen):
    main_config: str = "/etc/nginx/nginx.conf"
    sites_available: str = "/etc/nginx/sites-available"
    sites_enabled: str = "/etc/nginx/sites-enabled"
    client_max_body_size: str = "100m"


class CertificateSettings(_Frozen):
    enabled: bool = True
    staging: bool = False
    live_dir: str = "/etc/letsencrypt/live"


class TargetSettings(_Frozen):
    """SSH target. Without a host the run provisions the local machine."""
    host: Optional[str] = None
    port: int = 22
    username: str = "root"
    key_path: Optional[Path] = None
    password: Optional[str] = None

    @property
    def is_local(self) -> bool:
        return not self.host


class ProvisionConfig(_Frozen):
    """
    Everything a run needs, supplied before orchestration starts and never
    mutated afterwards.
    """

    domain: str
    contact_email: str
    install_root: str = "/opt/hardhat-devnet"
    runtime_major_version: int = 20
    # "latest" resolves against the upstream release index; anything else is a pin
    storage_node_version: str = "latest"

    ports: Ports = Field(default_factory=Ports)
    packages: PackageSettings = Field(default_factory=PackageSettings)
    storage_node: StorageNodeSettings = Field(default_factory=StorageNodeSettings)
    rpc_node: RpcNodeSettings = Field(default_factory=RpcNodeSettings)
    supervisor: SupervisorSettings = Field(default_factory=SupervisorSettings)
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    certificate: CertificateSettings = Field(default_factory=CertificateSettings)
    target: TargetSettings = Field(default_factory=TargetSettings)

    @field_validator("domain")
    @classmethod
    def _check_domain(cls, v: str) -> str:
        v = v.strip().lower()
        if not v or not _DOMAIN_RE.match(v):
            raise ValueError(f"invalid domain name: {v!r} (use a bare host name, no scheme or path)")
        return v

    @field_validator("contact_email")
    @classmethod
    def _check_email(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError(f"invalid contact email: {v!r}")
        return v

    @field_validator("storage_node_version")
    @classmethod
    def _check_version(cls, v: str) -> str:
        v = v.strip()
        if v != "latest" and not _VERSION_RE.match(v):
            raise ValueError(f"storage_node_version must be 'latest' or a tag like v0.28.0, got {v!r}")
        return v

    @field_validator("runtime_major_version")
    @classmethod
    def _check_major(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("runtime_major_version must be positive")
        return v
