"""
Settings — startup configuration for the proxy and the frontend.

Both settings objects are built once (from YAML or defaults) and passed
into each component's constructor. Nothing reads them as ambient globals.

Server spec syntax for the frontend:
  plain          "fra1"          → display "fra1", actual "fra1.<domain>"
  display name   "East<fra1>"    → display "East", actual "fra1.<domain>"
"""

from __future__ import annotations

import ipaddress
import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


def _load_yaml(path: str | Path) -> dict:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    with open(path) as f:
        raw = yaml.safe_load(f)
    return raw or {}


def parse_allow_list(entries: list[str]) -> list[IPNetwork]:
    """Parse IPs or CIDR networks. A bare address becomes a /32 or /128."""
    nets: list[IPNetwork] = []
    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        try:
            nets.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            raise ValueError(f"Invalid IP address or network: {entry}")
    return nets


def listen_kwargs(listen: str) -> dict:
    """uvicorn.run() arguments for a port, host:port or Unix socket path."""
    if listen.startswith("/"):
        return {"uds": listen}
    if ":" in listen:
        host, _, port = listen.rpartition(":")
        return {"host": host.strip("[]") or "0.0.0.0", "port": int(port)}
    return {"host": "0.0.0.0", "port": int(listen)}


class ProxySettings(BaseModel):
    bird_socket: str = "/var/run/bird/bird.ctl"
    listen: str = "8000"
    allowed: list[str] = Field(default_factory=list)
    traceroute_bin: Optional[str] = None
    traceroute_flags: list[str] = Field(default_factory=list)
    traceroute_raw: bool = False
    traceroute_max_concurrent: int = Field(default=10, ge=1)
    bird_timeout: float = 10.0
    auth_enabled: bool = False
    auth_token: Optional[str] = None
    log_level: str = "INFO"

    @field_validator("traceroute_flags", mode="before")
    @classmethod
    def _split_flags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return shlex.split(v)
        return v

    @field_validator("allowed", mode="before")
    @classmethod
    def _split_allowed(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        # Fail at load time rather than on the first request
        parse_allow_list(v)
        return [s.strip() for s in v if s.strip()]

    @property
    def allowed_nets(self) -> list[IPNetwork]:
        return parse_allow_list(self.allowed)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ProxySettings":
        return cls.model_validate(_load_yaml(path))


class FrontendSettings(BaseModel):
    servers: list[str] = Field(default_factory=list)
    domain: str = ""
    proxy_port: int = 8000
    whois: str = "whois.verisign-grs.com"
    listen: str = "5000"
    timeout: float = 120.0
    title_brand: str = "Bird-lg"
    navbar_brand: str = "Bird-lg"
    navbar_brand_url: str = "/"
    navbar_all_servers: str = "ALL Servers"
    protocol_filter: list[str] = Field(default_factory=list)
    name_filter: str = ""
    proxy_token: Optional[str] = None
    log_level: str = "INFO"

    @field_validator("servers", "protocol_filter", mode="before")
    @classmethod
    def _split_csv(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @classmethod
    def from_yaml(cls, path: str | Path) -> "FrontendSettings":
        return cls.model_validate(_load_yaml(path))

    def server_table(self) -> "ServerTable":
        return ServerTable.from_specs(self.servers, self.domain)


def _is_ip_literal(name: str) -> bool:
    try:
        ipaddress.ip_address(name)
    except ValueError:
        return False
    return True


@dataclass
class ServerTable:
    """Display name ↔ actual host address, in configuration order."""
    display: list[str] = field(default_factory=list)
    actual: list[str] = field(default_factory=list)

    @classmethod
    def from_specs(cls, specs: list[str], domain: str = "") -> "ServerTable":
        table = cls()
        for spec in specs:
            lt = spec.find("<")
            if lt != -1 and spec.endswith(">"):
                table.display.append(spec[:lt])
                table.actual.append(spec[lt + 1:-1])
            else:
                table.display.append(spec)
                table.actual.append(spec)

        if domain:
            suffix = f".{domain}"
            for i, name in enumerate(table.actual):
                if "." not in name and not _is_ip_literal(name):
                    table.actual[i] = name + suffix
                elif name.endswith(suffix):
                    table.display[i] = name[: -len(suffix)]

        logger.info("Servers: %s", list(zip(table.display, table.actual)))
        return table

    def actual_for(self, display_name: str) -> Optional[str]:
        for i, d in enumerate(self.display):
            if d == display_name:
                return self.actual[i]
        return None

    def display_name(self, server: str) -> str:
        for i, s in enumerate(self.actual):
            if s == server:
                return self.display[i]
        return server

    def resolve(self, display_names: str) -> list[str]:
        """Resolve a '+'-delimited set; unknown tokens are dropped."""
        servers: list[str] = []
        for token in display_names.split("+"):
            server = self.actual_for(token)
            if server is None and token in self.actual:
                server = token
            if server is not None:
                servers.append(server)
        return servers

    def all_display_string(self) -> str:
        return "+".join(self.display)
