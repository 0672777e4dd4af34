"""
OpenList Deploy configuration.
Data classes that hold every tunable of a deployment, with the defaults
the tool has always used. One DeployConfig is built per run and handed to
each component explicitly.
"""

import ipaddress
import os
import re
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

NETWORK_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


@dataclass
class NetworkConfig:
    """Docker network shared by all client containers."""
    name: str = "xifan"
    subnet: str = "10.0.0.1/16"
    ip_start: int = 10  # First host octet handed out to clients

    def validate(self) -> None:
        if not NETWORK_NAME_RE.match(self.name or ""):
            raise ConfigError(f"Invalid network name: {self.name!r}")
        try:
            net = ipaddress.ip_network(self.subnet, strict=False)
        except ValueError as e:
            raise ConfigError(f"Invalid subnet {self.subnet!r}: {e}")
        if net.version != 4:
            raise ConfigError(f"Subnet must be IPv4: {self.subnet}")
        if not 1 <= self.ip_start <= 254:
            raise ConfigError(f"ip_start must be between 1 and 254, got {self.ip_start}")


@dataclass
class AdminCredentials:
    """OpenList administrator account set up on every container."""
    username: str = "admin"
    password: str = "password"


@dataclass
class ContainerConfig:
    """How each client container is launched."""
    image: str = "openlistteam/openlist"
    tag: str = "latest"
    name_prefix: str = "alist-"
    internal_port: int = 5244
    internal_data_path: str = "/opt/alist/data"
    admin_binary: str = "/opt/openlist/openlist"
    restart_policy: str = "unless-stopped"
    environment: Dict[str, str] = field(default_factory=lambda: {
        "PUID": "0",
        "PGID": "0",
        "UMASK": "022",
    })
    port_start: int = 3000  # Used when no container publishes a port yet
    settle_seconds: int = 8  # Upper bound for the post-start readiness wait
    admin_set_attempts: int = 3

    @property
    def image_ref(self) -> str:
        return f"{self.image}:{self.tag}"


@dataclass
class ApiConfig:
    """Remote configuration of the deployed service."""
    host: str = "localhost"
    ready_attempts: int = 30
    ready_interval: float = 2.0
    request_timeout: float = 10.0
    guest_user_id: int = 2


@dataclass
class ClientTarget:
    """Names and paths derived from a client identifier."""
    client_id: str
    container_name: str
    data_path: Path


@dataclass
class DeployConfig:
    """
    Master configuration object.
    Built once from defaults, an optional YAML file and CLI arguments.
    """
    network: NetworkConfig = field(default_factory=NetworkConfig)
    admin: AdminCredentials = field(default_factory=AdminCredentials)
    container: ContainerConfig = field(default_factory=ContainerConfig)
    api: ApiConfig = field(default_factory=ApiConfig)

    # Root for per-client data, defaults to the caller's home directory
    home: Optional[Path] = None

    auto_confirm: bool = False  # Replace existing containers without asking (-y)
    configure: bool = True  # Run the remote API configuration phase
    max_allocation_attempts: int = 3

    @property
    def home_dir(self) -> Path:
        return Path(self.home) if self.home else Path.home()

    def target_for(self, client_id: str) -> ClientTarget:
        """Derive container name and data path for a client."""
        if client_id is None or not client_id.strip():
            raise ValueError("Client identifier must not be empty")
        return ClientTarget(
            client_id=client_id,
            container_name=f"{self.container.name_prefix}{client_id}",
            data_path=self.home_dir / "docker" / "alist" / client_id / "data",
        )

    def validate(self) -> None:
        self.network.validate()
        container, api = self.container, self.api
        for name, port in (("port_start", container.port_start), ("internal_port", container.internal_port)):
            if not 1 <= port <= 65535:
                raise ConfigError(f"container.{name} must be between 1 and 65535, got {port}")
        if container.settle_seconds < 0:
            raise ConfigError("container.settle_seconds must not be negative")
        if container.admin_set_attempts < 1:
            raise ConfigError("container.admin_set_attempts must be at least 1")
        if api.ready_attempts < 1:
            raise ConfigError("api.ready_attempts must be at least 1")
        if api.ready_interval < 0:
            raise ConfigError("api.ready_interval must not be negative")
        if api.request_timeout <= 0:
            raise ConfigError("api.request_timeout must be positive")
        if self.max_allocation_attempts < 1:
            raise ConfigError("max_allocation_attempts must be at least 1")

    @classmethod
    def load(cls, path: Path) -> "DeployConfig":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeployConfig":
        config = cls()
        _apply(config, data, "")
        if config.home is not None:
            config.home = Path(os.path.expanduser(str(config.home)))
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "network": {
                "name": self.network.name,
                "subnet": self.network.subnet,
                "ip_start": self.network.ip_start,
            },
            "admin": {
                "username": self.admin.username,
                "password": self.admin.password,
            },
            "container": {
                "image": self.container.image,
                "tag": self.container.tag,
                "name_prefix": self.container.name_prefix,
                "internal_port": self.container.internal_port,
                "internal_data_path": self.container.internal_data_path,
                "admin_binary": self.container.admin_binary,
                "restart_policy": self.container.restart_policy,
                "environment": dict(self.container.environment),
                "port_start": self.container.port_start,
                "settle_seconds": self.container.settle_seconds,
                "admin_set_attempts": self.container.admin_set_attempts,
            },
            "api": {
                "host": self.api.host,
                "ready_attempts": self.api.ready_attempts,
                "ready_interval": self.api.ready_interval,
                "request_timeout": self.api.request_timeout,
                "guest_user_id": self.api.guest_user_id,
            },
            "home": str(self.home) if self.home else None,
            "auto_confirm": self.auto_confirm,
            "configure": self.configure,
            "max_allocation_attempts": self.max_allocation_attempts,
        }

    def save(self, path: Path) -> Path:
        """Save configuration to a YAML file (contains the admin password)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        os.chmod(path, 0o600)
        return path


def _apply(obj: Any, data: Dict[str, Any], prefix: str) -> None:
    """Copy a nested mapping onto a dataclass tree, rejecting unknown keys."""
    known = {f.name for f in fields(obj)}
    for key, value in data.items():
        if key not in known:
            raise ConfigError(f"Unknown config key: {prefix}{key}")
        current = getattr(obj, key)
        if is_dataclass(current):
            if not isinstance(value, dict):
                raise ConfigError(f"Config key {prefix}{key} must be a mapping")
            _apply(current, value, f"{prefix}{key}.")
        elif isinstance(current, dict):
            if not isinstance(value, dict):
                raise ConfigError(f"Config key {prefix}{key} must be a mapping")
            setattr(obj, key, {str(k): str(v) for k, v in value.items()})
        else:
            setattr(obj, key, _coerce(f"{prefix}{key}", current, value))


def _coerce(key: str, current: Any, value: Any) -> Any:
    """Check a YAML scalar against the type of the default it replaces."""
    # bool is a subclass of int, test it first
    if isinstance(current, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"Config key {key} must be true or false, got {value!r}")
        return value
    if isinstance(current, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"Config key {key} must be an integer, got {value!r}")
        return value
    if isinstance(current, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"Config key {key} must be a number, got {value!r}")
        return float(value)
    if value is None:
        if current is not None:
            raise ConfigError(f"Config key {key} must not be empty")
        return None
    # Unquoted tags such as 4.1 arrive as numbers
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    raise ConfigError(f"Config key {key} must be a string, got {value!r}")
