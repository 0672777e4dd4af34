"""
OpenList Deploy errors.

Everything derived from DeployError is fatal: the CLI prints it as an
[ERROR] line and exits 1. Soft failures are logged as warnings and never
raised.
"""

from typing import List, Optional


class DeployError(RuntimeError):
    """Base class for fatal deployment errors."""


class ConfigError(DeployError):
    """Invalid configuration file or value."""


class DockerNotFoundError(DeployError):
    """The docker binary is not on PATH."""

    def __init__(self):
        super().__init__("Docker is not installed, please install Docker first")


class DockerCommandError(DeployError):
    """A docker command exited non-zero."""

    def __init__(self, cmd: List[str], returncode: int, stderr: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        detail = self.stderr[:200] if self.stderr else f"exit status {returncode}"
        super().__init__(f"'{' '.join(cmd[:3])}' failed: {detail}")


class NetworkError(DeployError):
    """The Docker network could not be created."""


class AddressExhaustedError(DeployError):
    """No free host address left in the subnet."""

    def __init__(self, network: str, subnet: str):
        self.network = network
        self.subnet = subnet
        super().__init__(f"No available address in subnet {subnet} (network {network})")


class ContainerStartError(DeployError):
    """docker run failed."""


class AllocationConflictError(ContainerStartError):
    """The allocated address or port was taken before the container started."""

    def __init__(self, resource: str, value: str, stderr: Optional[str] = None):
        self.resource = resource
        self.value = value
        self.stderr = stderr or ""
        super().__init__(f"Allocated {resource} {value} is already in use")


class DeploymentCancelled(Exception):
    """The user declined to replace an existing container."""

    def __init__(self, container_name: str):
        self.container_name = container_name
        super().__init__(f"Deployment of '{container_name}' cancelled")
