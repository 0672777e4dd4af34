"""
OpenList container deployment.
Pulls the image, creates the data directory, starts the container, waits
for the web service and sets the admin password from inside it.
"""

import logging
import time
from typing import List, Optional

try:
    import requests
    HAS_REQUESTS = True
except ImportError:
    HAS_REQUESTS = False

from .config import AdminCredentials, ApiConfig, ContainerConfig, ClientTarget, NetworkConfig
from .docker_cli import DockerCLI
from .errors import AllocationConflictError, ContainerStartError
from .output import log_info, log_warn

logger = logging.getLogger(__name__)

PORT_CONFLICT_MARKERS = ("port is already allocated",)
ADDRESS_CONFLICT_MARKERS = ("address already in use",)
READY_CHECK_TIMEOUT = 2


class ContainerDeployer:
    """Launch one client container with its allocated address and port."""

    def __init__(
        self,
        docker: DockerCLI,
        network: NetworkConfig,
        container: ContainerConfig,
        admin: AdminCredentials,
        api: Optional[ApiConfig] = None,
        session=None,
        has_http_client: bool = HAS_REQUESTS,
    ):
        self.docker = docker
        self.network = network
        self.container = container
        self.admin = admin
        self.api = api or ApiConfig()
        self.has_http_client = has_http_client
        self._session = session

    @property
    def session(self):
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def build_run_args(self, target: ClientTarget, address: str, port: int) -> List[str]:
        """Arguments for `docker run`, without the binary."""
        args = [
            "run", "-d",
            "--name", target.container_name,
            "--network", self.network.name,
            "--ip", address,
            "-p", f"{port}:{self.container.internal_port}",
            "-v", f"{target.data_path}:{self.container.internal_data_path}",
        ]
        for key, value in self.container.environment.items():
            args.extend(["-e", f"{key}={value}"])
        args.extend([
            "--restart", self.container.restart_policy,
            self.container.image_ref,
        ])
        return args

    def deploy(self, target: ClientTarget, address: str, port: int) -> bool:
        """Start the container; returns True if the admin password was set."""
        log_info("Deploying OpenList container...")
        log_info(f"  Container: {target.container_name}")
        log_info(f"  Network:   {self.network.name}")
        log_info(f"  IP:        {address}")
        log_info(f"  Port:      {port}")
        log_info(f"  Data path: {target.data_path}")
        log_info(f"  Image:     {self.container.image_ref}")

        target.data_path.mkdir(parents=True, exist_ok=True)

        log_info(f"Pulling image {self.container.image_ref}...")
        pulled = self.docker.pull(self.container.image_ref)
        if pulled.returncode != 0:
            # A locally available image still lets docker run succeed
            log_warn(f"Failed to pull {self.container.image_ref}: {(pulled.stderr or '').strip()[:200]}")

        result = self.docker.run(*self.build_run_args(target, address, port), timeout=None)
        if result.returncode != 0:
            self._raise_start_error(result.stderr or "", address, port)

        log_info("Container started, waiting for the service to become ready...")
        if not self.wait_until_ready(target.container_name, port):
            log_warn(f"OpenList in '{target.container_name}' not answering after {self.container.settle_seconds}s")

        password_set = self.set_admin_password(target.container_name)
        log_info("Container deployment finished")
        return password_set

    def _raise_start_error(self, stderr: str, address: str, port: int):
        lowered = stderr.lower()
        if any(marker in lowered for marker in PORT_CONFLICT_MARKERS):
            raise AllocationConflictError("port", str(port), stderr)
        if any(marker in lowered for marker in ADDRESS_CONFLICT_MARKERS):
            raise AllocationConflictError("address", address, stderr)
        error_msg = stderr.strip()[:200] or "Unknown error"
        raise ContainerStartError(f"Failed to start container: {error_msg}")

    def wait_until_ready(self, name: str, port: int) -> bool:
        """
        Wait up to settle_seconds for the container to run and its web
        service to answer on the published port, checking once a second.
        Without an HTTP client the full settle time is slept out instead.
        """
        settle = self.container.settle_seconds
        if not self.has_http_client:
            time.sleep(settle)
            return self.docker.is_running(name)

        url = f"http://{self.api.host}:{port}/api/public/settings"
        for _ in range(max(1, settle)):
            if self.docker.is_running(name) and self._service_answers(url):
                return True
            time.sleep(1)
        return False

    def _service_answers(self, url: str) -> bool:
        try:
            return self.session.get(url, timeout=READY_CHECK_TIMEOUT).ok
        except requests.exceptions.RequestException as e:
            logger.debug("Service not answering yet: %s", e)
            return False

    def set_admin_password(self, name: str) -> bool:
        """Set the admin password inside the container. Failure is only a warning."""
        log_info(f"Setting admin password to: {self.admin.password}")
        attempts = max(1, self.container.admin_set_attempts)
        for attempt in range(attempts):
            result = self.docker.exec(name, self.container.admin_binary, "admin", "set", self.admin.password)
            if result.returncode == 0:
                return True
            logger.debug("admin set attempt %d: %s", attempt + 1, (result.stdout + result.stderr).strip()[:200])
            # The data directory may still be initialising right after start
            if attempt + 1 < attempts:
                time.sleep(2)
        log_warn("Failed to set admin password")
        return False
