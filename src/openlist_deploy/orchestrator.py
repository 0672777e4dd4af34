"""
OpenList Deploy orchestrator.
Runs the deployment steps in order using a prepared DeployConfig.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Set, Tuple

from rich.panel import Panel
from rich.table import Table

from .allocator import find_available_ip, find_available_port
from .config import ClientTarget, DeployConfig
from .configurator import ConfigureResult, RemoteConfigurator
from .deployer import ContainerDeployer
from .docker_cli import DockerCLI
from .errors import AllocationConflictError, DeploymentCancelled
from .network import ensure_network
from .output import console, log_info, log_warn
from .prerequisites import PrerequisitesChecker

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]


@dataclass
class DeploymentResult:
    """What a finished run produced."""
    target: ClientTarget
    address: str
    port: int
    password_set: bool
    configure: Optional[ConfigureResult] = None

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}"


class Orchestrator:
    """
    Deploys one client container end to end.
    Fatal problems raise DeployError; soft ones are logged and reported in
    the returned DeploymentResult.
    """

    def __init__(
        self,
        config: DeployConfig,
        docker: Optional[DockerCLI] = None,
        confirm: Optional[ConfirmFn] = None,
        configurator_factory: Optional[Callable[..., RemoteConfigurator]] = None,
    ):
        self.config = config
        self.docker = docker or DockerCLI()
        self.confirm = confirm
        self.prerequisites = PrerequisitesChecker(self.docker)
        self.deployer = ContainerDeployer(
            self.docker, config.network, config.container, config.admin, api=config.api
        )
        self.configurator_factory = configurator_factory or RemoteConfigurator

    def run(self, client_id: str) -> DeploymentResult:
        target = self.config.target_for(client_id)
        self.config.validate()

        log_info(f"Client: {target.client_id}")
        log_info(f"Container name: {target.container_name}")
        log_info(f"Data path: {target.data_path}")
        log_info(f"Image tag: {self.config.container.tag}")

        log_info("Checking Docker environment...")
        self.prerequisites.ensure_docker()

        log_info("Setting up Docker network...")
        ensure_network(self.docker, self.config.network)

        address, port = self._allocate()

        if self.docker.container_exists(target.container_name):
            log_warn(f"Container '{target.container_name}' already exists")
            if not self._confirm_redeploy(target.container_name):
                raise DeploymentCancelled(target.container_name)
            self.docker.remove(target.container_name)

        address, port, password_set = self._deploy(target, address, port)
        result = DeploymentResult(target=target, address=address, port=port, password_set=password_set)

        if self.config.configure:
            result.configure = self.configurator_factory(
                port, self.config.admin, self.config.api
            ).configure()
            if result.configure.success:
                log_info("Automatic configuration succeeded")
            else:
                log_warn("Automatic configuration failed or was skipped, finish the settings manually")
        else:
            log_info("Skipping automatic configuration")

        self.show_summary(result)
        return result

    def _allocate(self, refused_addresses: Iterable[str] = (), refused_ports: Iterable[int] = ()) -> Tuple[str, int]:
        log_info("Looking for a free IP address...")
        address = find_available_ip(self.docker, self.config.network, exclude=refused_addresses)
        log_info(f"Allocated IP: {address}")

        log_info("Looking for a free port...")
        port = find_available_port(self.docker, self.config.container.port_start, exclude=refused_ports)
        log_info(f"Allocated port: {port}")
        return address, port

    def _confirm_redeploy(self, container_name: str) -> bool:
        if self.config.auto_confirm:
            return True
        if self.confirm is None:
            return False
        return bool(self.confirm(container_name))

    def _deploy(self, target: ClientTarget, address: str, port: int) -> Tuple[str, int, bool]:
        """Deploy, re-allocating when the address or port was taken meanwhile."""
        attempts = self.config.max_allocation_attempts
        refused_addresses: Set[str] = set()
        refused_ports: Set[int] = set()
        for attempt in range(1, attempts + 1):
            try:
                return address, port, self.deployer.deploy(target, address, port)
            except AllocationConflictError as e:
                if attempt >= attempts:
                    raise
                log_warn(f"{e}, allocating again ({attempt}/{attempts - 1})")
                # docker run leaves a created-but-not-started container behind
                self.docker.remove(target.container_name)
                if e.resource == "port":
                    refused_ports.add(int(e.value))
                else:
                    refused_addresses.add(e.value)
                address, port = self._allocate(refused_addresses, refused_ports)

    def show_summary(self, result: DeploymentResult):
        table = Table(show_header=False, box=None)
        table.add_column("Key", style="dim")
        table.add_column("Value")
        table.add_row("URL", result.url)
        table.add_row("Container", result.target.container_name)
        table.add_row("IP", result.address)
        table.add_row("Admin user", self.config.admin.username)
        table.add_row("Admin password", self.config.admin.password)

        console.print()
        console.print(Panel(table, title="[bold green]Deployment complete[/bold green]", border_style="green"))
        if not result.password_set:
            log_warn("Admin password may not have been set, run 'openlist admin set' inside the container")
