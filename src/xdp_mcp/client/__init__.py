"""
HTTP clients for the remote XDP platform.

    - `XdpApiClient`: the XDP control-plane API (data stores, dataplanes, Trino queries).
    - `JobRunnerClient`: the job runner service (ad-hoc run submission and log streaming).

Both clients use aiohttp, create their HTTP session lazily and must be closed with `close()`.
"""

from ._runner import JobRunnerClient, parse_sse_line
from ._xdp_client import XdpApiClient, quote_literal, validate_identifier

__all__ = [
    "JobRunnerClient",
    "XdpApiClient",
    "parse_sse_line",
    "quote_literal",
    "validate_identifier",
]
