# src/devnet/bootstrap/proxy/routes.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from devnet.config.models import ProvisionConfig

Header = Tuple[str, str]

CORS_HEADERS: Tuple[Header, ...] = (
    ("Access-Control-Allow-Origin", '"*"'),
    ("Access-Control-Allow-Methods", '"GET, POST, OPTIONS"'),
    ("Access-Control-Allow-Headers", '"Content-Type, Authorization"'),
)


@dataclass(frozen=True)
class Route:
    """
    One public path prefix. Either proxied to a loopback ``upstream`` or
    answered statically by the proxy itself.
    """
    path_prefix: str
    upstream: Optional[str] = None
    extra_headers: Tuple[Header, ...] = ()
    # only routes called from browsers get CORS headers and the OPTIONS short-circuit
    cors: bool = False
    keep_alive: bool = False
    static_status: Optional[int] = None
    static_body: str = ""
    content_type: str = "text/plain"
    comment: str = ""

    @property
    def is_static(self) -> bool:
        return self.upstream is None


def default_routes(cfg: ProvisionConfig) -> Tuple[Route, ...]:
    """The four public routes: RPC, gateway /ipfs and /ipns, health."""
    ports = cfg.ports
    gateway = f"http://127.0.0.1:{ports.gateway}"
    gateway_headers = (
        ("Host", "$host"),
        ("X-Forwarded-Proto", "$scheme"),
    )
    return (
        Route(
            path_prefix="/rpc",
            upstream=f"http://127.0.0.1:{ports.rpc}/",
            extra_headers=(
                ("Host", "$host"),
                ("X-Real-IP", "$remote_addr"),
                ("X-Forwarded-For", "$proxy_add_x_forwarded_for"),
            ),
            cors=True,
            keep_alive=True,
            comment="JSON-RPC node on /rpc",
        ),
        Route(
            path_prefix="/ipfs",
            upstream=f"{gateway}/ipfs",
            extra_headers=gateway_headers,
            comment="IPFS gateway on /ipfs",
        ),
        Route(
            path_prefix="/ipns",
            upstream=f"{gateway}/ipns",
            extra_headers=gateway_headers,
            comment="IPFS gateway on /ipns",
        ),
        Route(
            path_prefix="/healthz",
            static_status=200,
            static_body="ok\n",
            comment="Health",
        ),
    )
