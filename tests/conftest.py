"""Shared pytest fixtures and fakes for openlist-deploy tests."""

import json
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

from openlist_deploy.config import DeployConfig
from openlist_deploy.docker_cli import DockerCLI


class FakeDocker:
    """In-memory stand-in for the docker CLI, used as DockerCLI's runner.

    Understands the handful of subcommands the tool issues and records every
    argv in `calls`.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.timeouts: List[Optional[float]] = []
        self.networks: Dict[str, Dict[str, Any]] = {}
        self.containers: Dict[str, Dict[str, Any]] = {}
        self.run_failures: List[str] = []
        self.exec_returncodes: List[int] = []
        self.network_create_error: Optional[str] = None
        self.pull_error: Optional[str] = None
        self.ps_error: Optional[str] = None

    # ---- setup helpers ----

    def add_network(self, name: str = "xifan", subnet: str = "10.0.0.1/16"):
        self.networks[name] = {"Name": name, "IPAM": {"Config": [{"Subnet": subnet}]}, "Containers": {}}

    def add_container(self, name: str, ip: Optional[str] = None, port: Optional[int] = None,
                      running: bool = True, network: str = "xifan", ports: Optional[str] = None):
        if ports is None:
            ports = f"0.0.0.0:{port}->5244/tcp, :::{port}->5244/tcp" if port else ""
        self.containers[name] = {"running": running, "ports": ports}
        if ip:
            self.networks[network]["Containers"][f"id-{name}"] = {
                "Name": name,
                "IPv4Address": f"{ip}/16",
            }

    def commands(self, *prefix: str) -> List[List[str]]:
        """Recorded calls whose arguments start with prefix."""
        return [c for c in self.calls if c[1:1 + len(prefix)] == list(prefix)]

    # ---- runner ----

    def __call__(self, cmd, capture_output=True, text=True, timeout=None):
        self.calls.append(list(cmd))
        self.timeouts.append(timeout)
        args = list(cmd[1:])

        if args == ["--version"]:
            return self._ok(cmd, "Docker version 24.0.7, build afdd53b\n")

        if args[:2] == ["network", "inspect"]:
            network = self.networks.get(args[2])
            if network is None:
                return self._fail(cmd, f"Error response from daemon: network {args[2]} not found")
            return self._ok(cmd, json.dumps([network]))

        if args[:2] == ["network", "create"]:
            if self.network_create_error:
                return self._fail(cmd, self.network_create_error)
            subnet = args[2].split("=", 1)[1]
            self.add_network(args[3], subnet)
            return self._ok(cmd, "f00dfeed\n")

        if args[0] == "pull":
            if self.pull_error:
                return self._fail(cmd, self.pull_error)
            return self._ok(cmd, f"Status: Image is up to date for {args[1]}\n")

        if args == ["ps", "--format", "{{.Ports}}"]:
            if self.ps_error:
                return self._fail(cmd, self.ps_error)
            lines = [c["ports"] for c in self.containers.values() if c["running"]]
            return self._ok(cmd, "".join(f"{line}\n" for line in lines))

        if args == ["ps", "-a", "--format", "{{.Names}}"]:
            return self._ok(cmd, "".join(f"{name}\n" for name in self.containers))

        if args[:3] == ["inspect", "-f", "{{.State.Running}}"]:
            container = self.containers.get(args[3])
            if container is None:
                return self._fail(cmd, f"Error: No such object: {args[3]}")
            return self._ok(cmd, "true\n" if container["running"] else "false\n")

        if args[:2] == ["run", "-d"]:
            return self._docker_run(cmd, args)

        if args[:2] == ["rm", "-f"]:
            name = args[2]
            self.containers.pop(name, None)
            for network in self.networks.values():
                network["Containers"] = {
                    k: v for k, v in network["Containers"].items() if v.get("Name") != name
                }
            return self._ok(cmd, f"{name}\n")

        if args[0] == "exec":
            rc = self.exec_returncodes.pop(0) if self.exec_returncodes else 0
            if rc:
                return subprocess.CompletedProcess(cmd, rc, "", "exec failed")
            return self._ok(cmd, "")

        return self._fail(cmd, f"unexpected docker call: {args}")

    def _docker_run(self, cmd, args):
        name = args[args.index("--name") + 1]
        network = args[args.index("--network") + 1]
        ip = args[args.index("--ip") + 1]
        port = int(args[args.index("-p") + 1].split(":")[0])
        if self.run_failures:
            # docker run creates the container even when start fails
            self.containers[name] = {"running": False, "ports": ""}
            return self._fail(cmd, self.run_failures.pop(0), returncode=125)
        self.add_container(name, ip=ip, port=port, network=network)
        return self._ok(cmd, "c0ffee\n")

    @staticmethod
    def _ok(cmd, stdout):
        return subprocess.CompletedProcess(cmd, 0, stdout, "")

    @staticmethod
    def _fail(cmd, stderr, returncode=1):
        return subprocess.CompletedProcess(cmd, returncode, "", stderr)


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: str = ""):
        self.status_code = status_code
        self._body = body
        self.text = text or (json.dumps(body) if body is not None else "")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    """Minimal requests.Session replacement for the OpenList API."""

    def __init__(self, ready_after: int = 0, login_body: Any = None, step_responses: Optional[list] = None):
        self.ready_after = ready_after
        self.login_body = login_body if login_body is not None else {
            "code": 200, "message": "success", "data": {"token": "tok-123"},
        }
        self.step_responses = list(step_responses or [])
        self.gets: List[str] = []
        self.posts: List[Dict[str, Any]] = []

    def get(self, url, timeout=None):
        self.gets.append(url)
        if len(self.gets) <= self.ready_after:
            raise requests.exceptions.ConnectionError("connection refused")
        return FakeResponse(200, {"code": 200, "data": {}})

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers or {}})
        if url.endswith("/api/auth/login"):
            return FakeResponse(200, self.login_body)
        if self.step_responses:
            return self.step_responses.pop(0)
        return FakeResponse(200, {"code": 200, "message": "success", "data": None})


@pytest.fixture
def fake_docker() -> FakeDocker:
    return FakeDocker()


@pytest.fixture
def docker(fake_docker: FakeDocker) -> DockerCLI:
    return DockerCLI(runner=fake_docker)


@pytest.fixture
def config(tmp_path: Path) -> DeployConfig:
    """Default configuration rooted in a temporary home directory."""
    return DeployConfig(home=tmp_path)


@pytest.fixture
def docker_on_path(monkeypatch):
    monkeypatch.setattr("openlist_deploy.prerequisites.shutil.which", lambda name: f"/usr/bin/{name}")


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Polling loops must not slow the suite down."""
    sleeps: List[float] = []
    monkeypatch.setattr("time.sleep", lambda seconds: sleeps.append(seconds))
    return sleeps


@pytest.fixture(autouse=True)
def http_session(monkeypatch) -> FakeSession:
    """Every requests.Session() created during a test is this fake."""
    session = FakeSession()
    monkeypatch.setattr("requests.Session", lambda: session)
    return session
