"""
Thin wrapper around the docker command line.

Every docker invocation in the tool goes through DockerCLI so that the
exact argv is logged in one place and tests can swap in a fake runner.
"""

import json
import logging
import subprocess
from typing import Any, Callable, Dict, List, Optional, Union

from .errors import DockerCommandError

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]

# Marker for "use the instance timeout"; an explicit None waits forever
DEFAULT_TIMEOUT = object()


class DockerCLI:
    """Run docker subcommands and return captured text output."""

    def __init__(self, binary: str = "docker", timeout: int = 120, runner: Optional[Runner] = None):
        self.binary = binary
        self.timeout = timeout
        self._runner = runner or subprocess.run

    def run(self, *args: str, timeout: Union[int, None, object] = DEFAULT_TIMEOUT) -> subprocess.CompletedProcess:
        """Run a docker command; never raises on a non-zero exit."""
        cmd = [self.binary, *args]
        if timeout is DEFAULT_TIMEOUT:
            timeout = self.timeout
        logger.debug("docker: %s", " ".join(cmd))
        try:
            result = self._runner(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return subprocess.CompletedProcess(cmd, 124, "", "Command timed out")
        except FileNotFoundError as e:
            return subprocess.CompletedProcess(cmd, 127, "", str(e))
        if result.returncode != 0:
            logger.debug("docker exited %s: %s", result.returncode, (result.stderr or "").strip()[:200])
        return result

    def check(self, *args: str, timeout: Union[int, None, object] = DEFAULT_TIMEOUT) -> str:
        """Run a docker command and return stdout, raising on failure."""
        result = self.run(*args, timeout=timeout)
        if result.returncode != 0:
            raise DockerCommandError([self.binary, *args], result.returncode, result.stderr)
        return result.stdout

    # ============ Engine ============

    def version(self) -> str:
        return self.check("--version").strip()

    # ============ Images ============

    def pull(self, image: str) -> subprocess.CompletedProcess:
        """Pull an image, waiting as long as the download takes."""
        return self.run("pull", image, timeout=None)

    # ============ Networks ============

    def network_exists(self, name: str) -> bool:
        return self.run("network", "inspect", name).returncode == 0

    def network_inspect(self, name: str) -> List[Dict[str, Any]]:
        """Parsed `docker network inspect` output (empty list if unreadable)."""
        result = self.run("network", "inspect", name)
        if result.returncode != 0:
            return []
        try:
            data = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            logger.warning("Cannot parse docker network inspect output for %s", name)
            return []
        return data if isinstance(data, list) else [data]

    def network_create(self, name: str, subnet: str) -> subprocess.CompletedProcess:
        return self.run("network", "create", f"--subnet={subnet}", name)

    # ============ Containers ============

    def running_port_lines(self) -> List[str]:
        """The Ports column of every running container (empty if docker ps fails)."""
        result = self.run("ps", "--format", "{{.Ports}}")
        if result.returncode != 0:
            logger.warning("docker ps failed, assuming no published ports: %s", (result.stderr or "").strip()[:200])
            return []
        return result.stdout.splitlines()

    def container_names(self) -> List[str]:
        """Names of all containers, running or not."""
        return [line.strip() for line in self.check("ps", "-a", "--format", "{{.Names}}").splitlines() if line.strip()]

    def container_exists(self, name: str) -> bool:
        return name in self.container_names()

    def is_running(self, name: str) -> bool:
        result = self.run("inspect", "-f", "{{.State.Running}}", name)
        return result.returncode == 0 and result.stdout.strip() == "true"

    def remove(self, name: str) -> subprocess.CompletedProcess:
        """Force-remove a container, running or not."""
        return self.run("rm", "-f", name)

    def exec(self, name: str, *command: str) -> subprocess.CompletedProcess:
        return self.run("exec", name, *command)
