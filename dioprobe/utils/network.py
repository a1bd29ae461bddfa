"""Listen address parsing for the metrics endpoint."""

from __future__ import annotations


def parse_listen_address(address: str) -> tuple[str | None, int]:
    """Split a listen address into host and port.

    Accepts ``:9172``, ``host:9172`` and ``[::1]:9172``. An empty host
    means "all interfaces" and is returned as ``None``.

    Raises:
        ValueError: If the address has no port or the port is out of range.

    """
    address = address.strip()
    if address.startswith("["):
        end = address.find("]")
        if end == -1 or address[end + 1 : end + 2] != ":":
            msg = f"Invalid listen address: {address!r}"
            raise ValueError(msg)
        host: str | None = address[1:end]
        port_str = address[end + 2 :]
    else:
        host, sep, port_str = address.rpartition(":")
        if not sep:
            msg = f"Listen address {address!r} is missing a port"
            raise ValueError(msg)
        if ":" in host:
            msg = f"IPv6 listen address {address!r} must be bracketed"
            raise ValueError(msg)

    try:
        port = int(port_str)
    except ValueError:
        msg = f"Invalid port in listen address: {address!r}"
        raise ValueError(msg) from None
    if not 0 <= port <= 65535:
        msg = f"Port {port} out of range in listen address {address!r}"
        raise ValueError(msg)

    return (host or None), port
