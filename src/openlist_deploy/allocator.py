"""
Address and port allocation for client containers.

Both allocators read live Docker state at call time and keep no
reservation table, so two deployments racing against the same network can
be handed the same address or port. The deployer detects that clash when
`docker run` fails and the orchestrator re-allocates (see
AllocationConflictError).
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Set

from .config import NetworkConfig
from .docker_cli import DockerCLI
from .errors import AddressExhaustedError

logger = logging.getLogger(__name__)

MAX_HOST_OCTET = 254
DEFAULT_PORT_START = 3000

# Host side of a published port: "0.0.0.0:3000->5244/tcp"
HOST_PORT_RE = re.compile(r"(\d+)(?=->)")


def subnet_prefix(subnet: str) -> str:
    """First three octets of the subnet address ("10.0.0.1/16" -> "10.0.0")."""
    address = subnet.split("/", 1)[0]
    return ".".join(address.split(".")[:3])


def used_host_octets(inspect_data: List[Dict[str, Any]]) -> Set[int]:
    """Final octet of every member address in `docker network inspect` output."""
    used = set()
    for network in inspect_data or []:
        containers = network.get("Containers") or {}
        for info in containers.values():
            address = (info or {}).get("IPv4Address", "")
            if not address:
                continue
            last = address.split("/", 1)[0].rsplit(".", 1)[-1]
            if last.isdigit():
                used.add(int(last))
    return used


def pick_host_octet(used: Set[int], start: int = 10) -> Optional[int]:
    """First value in [start, 254] not in used, or None."""
    if not 1 <= start <= MAX_HOST_OCTET:
        raise ValueError(f"start offset must be between 1 and {MAX_HOST_OCTET}, got {start}")
    for candidate in range(start, MAX_HOST_OCTET + 1):
        if candidate not in used:
            return candidate
    return None


def find_available_ip(
    docker: DockerCLI,
    network: NetworkConfig,
    start: Optional[int] = None,
    exclude: Iterable[str] = (),
) -> str:
    """Find an unused address on the network, scanning upward from start.

    Addresses in exclude count as used even if docker does not report them.
    """
    start = network.ip_start if start is None else start
    used = used_host_octets(docker.network_inspect(network.name))
    used.update(int(a.rsplit(".", 1)[-1]) for a in exclude if a.rsplit(".", 1)[-1].isdigit())
    logger.debug("Used host octets on %s: %s", network.name, sorted(used))

    octet = pick_host_octet(used, start)
    if octet is None:
        raise AddressExhaustedError(network.name, network.subnet)
    return f"{subnet_prefix(network.subnet)}.{octet}"


def published_host_ports(port_lines: Iterable[str]) -> List[int]:
    """Every host-side port in a list of `docker ps` Ports columns."""
    ports = []
    for line in port_lines:
        ports.extend(int(p) for p in HOST_PORT_RE.findall(line or ""))
    return ports


def next_port(ports: Iterable[int], default: int = DEFAULT_PORT_START) -> int:
    """One above the highest published port, or default when there are none."""
    ports = list(ports)
    if not ports:
        return default
    return max(ports) + 1


def find_available_port(docker: DockerCLI, default: int = DEFAULT_PORT_START, exclude: Iterable[int] = ()) -> int:
    """Pick the next host port above those published by running containers.

    Ports in exclude are skipped, e.g. one docker already refused to bind.
    """
    ports = published_host_ports(docker.running_port_lines())
    logger.debug("Published host ports: %s", sorted(set(ports)))
    excluded = set(exclude)
    port = next_port(ports, default)
    while port in excluded:
        port += 1
    return port
