"""Port negotiation for bridge instances.

Each bridge (one per browser profile) needs its own HTTP port. Candidates in
a fixed range are probed in ascending order by binding a throwaway listener.
"""

import socket

import structlog

from .errors import NoAvailablePortError

logger = structlog.get_logger(__name__)

PORT_RANGE_START = 8765
PORT_RANGE_END = 8774
DEFAULT_HOST = "127.0.0.1"


def is_port_free(port: int, host: str = DEFAULT_HOST) -> bool:
    """Check whether a listener can bind ``host:port`` right now."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host, port))
        sock.listen(1)
    except OSError:
        return False
    finally:
        sock.close()
    return True


def find_available_port(
    start: int = PORT_RANGE_START,
    end: int = PORT_RANGE_END,
    host: str = DEFAULT_HOST,
) -> int:
    """Return the first port in ``[start, end]`` that binds successfully.

    Args:
        start: First candidate port (inclusive)
        end: Last candidate port (inclusive)
        host: Interface to bind

    Returns:
        The first free port

    Raises:
        NoAvailablePortError: If every port in the range is occupied
    """
    for port in range(start, end + 1):
        if is_port_free(port, host):
            logger.info(f"Using port {port}")
            return port
        logger.debug(f"Port {port} occupied, trying next")

    raise NoAvailablePortError(
        message=f"No available ports in range {start}-{end}",
        start=start,
        end=end,
    )
