"""
API Dependencies
================
Request-scoped accessors for the relay runtime.
"""

from fastapi import Request

from relay_core.pipeline import RelayRuntime


def get_runtime(request: Request) -> RelayRuntime:
    return request.app.state.runtime


def client_identity(request: Request, trust_proxy: bool, trusted_hops: int = 1) -> str:
    """
    Rate-limit identity for a request.

    Each trusted proxy appends the address it received the request from, so
    the client is the ``trusted_hops``-th ``X-Forwarded-For`` entry counted
    from the right. Entries further left are written by the caller and are
    never used.
    """
    if trust_proxy and trusted_hops > 0:
        forwarded = request.headers.get("x-forwarded-for", "")
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        if hops:
            return hops[-min(trusted_hops, len(hops))]
    if request.client is not None:
        return request.client.host
    return "unknown"
