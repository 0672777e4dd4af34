"""
OpenList Deploy - per-client OpenList containers on one Docker host

Each client gets:
- its own container (alist-<client>) on a shared Docker network
- a free static IP on that network and a free published host port
- a data directory under ~/docker/alist/<client>/data
- the standard admin settings applied through the OpenList API

Quick Start:
    pip install openlist-deploy
    openlist-deploy john
"""

__version__ = "1.0.0"

# Export main classes for programmatic use
from .config import DeployConfig, NetworkConfig, AdminCredentials, ContainerConfig, ApiConfig, ClientTarget
from .docker_cli import DockerCLI
from .orchestrator import Orchestrator, DeploymentResult
from .configurator import RemoteConfigurator, ConfigureResult

__all__ = [
    "DeployConfig",
    "NetworkConfig",
    "AdminCredentials",
    "ContainerConfig",
    "ApiConfig",
    "ClientTarget",
    "DockerCLI",
    "Orchestrator",
    "DeploymentResult",
    "RemoteConfigurator",
    "ConfigureResult",
]
