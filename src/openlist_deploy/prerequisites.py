"""
OpenList Deploy prerequisites.
Checks the external tools the deployment depends on.
"""

import shutil
from typing import Optional

from .docker_cli import DockerCLI
from .errors import DockerCommandError, DockerNotFoundError
from .output import log_info


class PrerequisitesChecker:
    """Verify required system dependencies before touching anything."""

    def __init__(self, docker: Optional[DockerCLI] = None):
        self.docker = docker or DockerCLI()

    def is_docker_installed(self) -> bool:
        """Check if the docker binary is on PATH."""
        return shutil.which(self.docker.binary) is not None

    def ensure_docker(self) -> str:
        """Abort the run if Docker is missing; return its version string."""
        if not self.is_docker_installed():
            raise DockerNotFoundError()
        try:
            version = self.docker.version()
        except DockerCommandError:
            version = "unknown version"
        log_info(f"Docker installed: {version}")
        return version
