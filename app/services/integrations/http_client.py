"""
HTTP client helper with standardized timeout configuration.

Every outbound call to a collaborator (calendar service) goes through a client built
here so a slow or hanging dependency cannot block a lifecycle request.
"""

import httpx


def get_httpx_timeout() -> httpx.Timeout:
    """Default timeout plus tighter connect/write/pool limits."""
    return httpx.Timeout(
        10.0,
        connect=5.0,
        read=10.0,
        write=5.0,
        pool=5.0,
    )


def create_httpx_client(
    base_url: str = "",
    headers: dict[str, str] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """
    Create a synchronous httpx.Client with standardized timeouts.

    Args:
        base_url: Collaborator base URL
        headers: Default headers (e.g. Authorization)
        transport: Optional transport override (tests use httpx.MockTransport)
    """
    return httpx.Client(
        base_url=base_url,
        headers=headers or {},
        timeout=get_httpx_timeout(),
        transport=transport,
    )
