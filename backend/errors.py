"""Error taxonomy shared by the proxy and the frontend.

Every error carries the HTTP status the proxy answers with. The frontend
never lets one of these escape a per-server call; it stores ``str(exc)``
as that server's error instead.
"""

from __future__ import annotations


class LookingGlassError(Exception):
    status_code = 500


class InvalidQuery(LookingGlassError):
    status_code = 400


class UpstreamConnectionError(LookingGlassError):
    """Socket, proxy or process could not be reached."""
    status_code = 502


class ProtocolError(LookingGlassError):
    """The routing daemon answered something we refuse to trust."""
    status_code = 502


class QueryTimeout(LookingGlassError):
    status_code = 504


class BinaryUnavailable(LookingGlassError):
    status_code = 500

    def __init__(self, message: str = "Traceroute not supported on this node"):
        super().__init__(message)


class ExecutionError(LookingGlassError):
    status_code = 500

    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode


class AccessDenied(LookingGlassError):
    status_code = 403


class Forbidden(AccessDenied):
    status_code = 403


class Unauthorized(AccessDenied):
    status_code = 401


class AuthMisconfigured(LookingGlassError):
    status_code = 500


class ParseError(LookingGlassError):
    status_code = 500
