"""
Small helpers for transport logging.
"""
import json
import logging
import socket
from typing import Any, Mapping

transport_logger = logging.getLogger("actual_mcp.transport")

REDACTED_HEADERS = {"authorization", "cookie", "proxy-authorization"}


def get_local_ip() -> str:
    """
    Best-effort lookup of this host's outbound IP address.

    No packets are sent; connecting a UDP socket only selects a route.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("10.255.255.255", 1))
        return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        sock.close()


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {
        key: ("<redacted>" if key.lower() in REDACTED_HEADERS else value)
        for key, value in headers.items()
    }


def log_transport(prefix: str, payload: Any) -> None:
    """Log one transport event as a JSON line at DEBUG level."""
    if not transport_logger.isEnabledFor(logging.DEBUG):
        return
    transport_logger.debug(f"{prefix} {json.dumps(payload, default=str)}")
