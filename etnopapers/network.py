"""Internet connectivity check used before cloud AI calls"""
import logging
import socket

from .config import DEFAULT_NETWORK_TIMEOUT_MS, NETWORK_PROBE_HOST, NETWORK_PROBE_PORT

logger = logging.getLogger(__name__)


class NetworkProbe:
    """Opens a TCP connection to a public DNS server to test connectivity"""

    def __init__(self, host: str = NETWORK_PROBE_HOST, port: int = NETWORK_PROBE_PORT):
        self.host = host
        self.port = port

    def is_reachable(self, timeout_ms: int = DEFAULT_NETWORK_TIMEOUT_MS) -> bool:
        try:
            with socket.create_connection((self.host, self.port), timeout=timeout_ms / 1000.0):
                return True
        except OSError as e:
            # Firewalls and offline machines both land here
            logger.debug("Network probe to %s:%d failed: %s", self.host, self.port, e)
            return False
