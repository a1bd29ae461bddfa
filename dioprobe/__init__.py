"""dioprobe - direct I/O disk latency probe with a Prometheus endpoint."""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
