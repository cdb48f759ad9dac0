"""
Access Gate — admission control in front of every proxy endpoint.

The source address always comes from the transport connection.
X-Forwarded-For / X-Real-IP are client-controlled and ignored here.
"""

from __future__ import annotations

import hmac
import ipaddress
import logging
from typing import Optional

from errors import AuthMisconfigured, Forbidden, Unauthorized
from settings import IPNetwork

logger = logging.getLogger(__name__)


class AccessGate:
    def __init__(
        self,
        allowed_nets: list[IPNetwork] | None = None,
        auth_enabled: bool = False,
        auth_token: Optional[str] = None,
    ):
        self.allowed_nets = list(allowed_nets or [])
        self.auth_enabled = auth_enabled
        self.auth_token = auth_token

    def ip_allowed(self, source_ip: Optional[str]) -> bool:
        if not self.allowed_nets:
            return True
        if not source_ip:
            return False
        try:
            ip = ipaddress.ip_address(source_ip.strip("[]"))
        except ValueError:
            return False
        # IPv4-mapped IPv6 peers on dual-stack sockets
        if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped:
            ip = ip.ipv4_mapped
        for net in self.allowed_nets:
            if ip.version == net.version and ip in net:
                logger.debug("allowed ip: %s", ip)
                return True
        return False

    def token_valid(self, authorization: Optional[str]) -> bool:
        if not authorization:
            return False
        scheme, _, token = authorization.partition(" ")
        if scheme != "Bearer" or not token:
            return False
        return hmac.compare_digest(token.encode(), self.auth_token.encode())

    def check(self, source_ip: Optional[str], authorization: Optional[str] = None):
        """Raise Forbidden, Unauthorized or AuthMisconfigured; return None if admitted."""
        if not self.ip_allowed(source_ip):
            logger.warning("Rejected request from %s", source_ip)
            raise Forbidden("Access denied")

        if self.auth_enabled:
            if not self.auth_token:
                logger.error("Authentication is enabled but no token is configured")
                raise AuthMisconfigured("Authentication misconfigured")
            if not self.token_valid(authorization):
                raise Unauthorized("Unauthorized")
