"""
Docker network provisioning.
"""

from .config import NetworkConfig
from .docker_cli import DockerCLI
from .errors import NetworkError
from .output import log_info


def ensure_network(docker: DockerCLI, network: NetworkConfig) -> bool:
    """Ensure the client network exists, creating it with the configured subnet.

    Idempotent: an existing network of the same name is reused as-is, even if
    its subnet differs. Returns True when the network was created.
    """
    if docker.network_exists(network.name):
        log_info(f"Docker network '{network.name}' already exists")
        return False

    log_info(f"Creating Docker network '{network.name}' (subnet: {network.subnet})")
    result = docker.network_create(network.name, network.subnet)
    if result.returncode != 0:
        error_msg = (result.stderr or "").strip()[:200] or "Unknown error"
        raise NetworkError(f"Failed to create network '{network.name}': {error_msg}")
    return True
