"""Tests for the container deployer."""

import pytest

from openlist_deploy.config import AdminCredentials, ContainerConfig, NetworkConfig
from openlist_deploy.deployer import ContainerDeployer
from openlist_deploy.errors import AllocationConflictError, ContainerStartError


@pytest.fixture
def deployer(docker, fake_docker):
    fake_docker.add_network()
    return ContainerDeployer(docker, NetworkConfig(), ContainerConfig(), AdminCredentials())


def test_build_run_args(deployer, config):
    target = config.target_for("alice")
    args = deployer.build_run_args(target, "10.0.0.10", 3000)
    assert args == [
        "run", "-d",
        "--name", "alist-alice",
        "--network", "xifan",
        "--ip", "10.0.0.10",
        "-p", "3000:5244",
        "-v", f"{target.data_path}:/opt/alist/data",
        "-e", "PUID=0",
        "-e", "PGID=0",
        "-e", "UMASK=022",
        "--restart", "unless-stopped",
        "openlistteam/openlist:latest",
    ]


def test_deploy_creates_data_dir_and_sets_password(deployer, fake_docker, config):
    target = config.target_for("alice")
    assert deployer.deploy(target, "10.0.0.10", 3000) is True

    assert target.data_path.is_dir()
    assert fake_docker.containers["alist-alice"]["running"] is True
    assert fake_docker.commands("exec") == [
        ["docker", "exec", "alist-alice", "/opt/openlist/openlist", "admin", "set", "password"]
    ]


def test_existing_data_dir_is_fine(deployer, config):
    target = config.target_for("alice")
    target.data_path.mkdir(parents=True)
    (target.data_path / "data.db").write_text("keep")
    deployer.deploy(target, "10.0.0.10", 3000)
    assert (target.data_path / "data.db").read_text() == "keep"


def test_password_failure_is_only_a_warning(deployer, fake_docker, config, capsys):
    fake_docker.exec_returncodes = [1, 1, 1]
    assert deployer.deploy(config.target_for("bob"), "10.0.0.10", 3000) is False
    assert "Failed to set admin password" in capsys.readouterr().out
    assert len(fake_docker.commands("exec")) == 3


def test_password_retried_until_it_succeeds(deployer, fake_docker, config):
    fake_docker.exec_returncodes = [1, 0]
    assert deployer.deploy(config.target_for("bob"), "10.0.0.10", 3000) is True
    assert len(fake_docker.commands("exec")) == 2


def test_port_conflict_raises_allocation_conflict(deployer, fake_docker, config):
    fake_docker.run_failures = [
        "docker: Error response from daemon: driver failed programming external connectivity: "
        "Bind for 0.0.0.0:3000 failed: port is already allocated."
    ]
    with pytest.raises(AllocationConflictError) as exc:
        deployer.deploy(config.target_for("carol"), "10.0.0.10", 3000)
    assert exc.value.resource == "port"
    assert exc.value.value == "3000"


def test_address_conflict_raises_allocation_conflict(deployer, fake_docker, config):
    fake_docker.run_failures = ["docker: Error response from daemon: Address already in use."]
    with pytest.raises(AllocationConflictError) as exc:
        deployer.deploy(config.target_for("carol"), "10.0.0.10", 3000)
    assert exc.value.resource == "address"


def test_other_run_failure_is_fatal(deployer, fake_docker, config):
    fake_docker.run_failures = ['docker: Error response from daemon: manifest for openlistteam/openlist:nope not found']
    with pytest.raises(ContainerStartError, match="manifest") as exc:
        deployer.deploy(config.target_for("carol"), "10.0.0.10", 3000)
    assert not isinstance(exc.value, AllocationConflictError)


def test_wait_until_ready_gives_up_after_settle_time(deployer, fake_docker, no_sleep):
    fake_docker.add_container("alist-slow", running=False)
    assert deployer.wait_until_ready("alist-slow", 3000) is False
    assert no_sleep == [1] * 8


def test_admin_password_waits_for_service_not_just_container(deployer, fake_docker, config, http_session, no_sleep):
    # The container reports running at once, the web service answers on the fourth try
    http_session.ready_after = 3
    calls_before_exec = []
    original_exec = deployer.docker.exec

    def exec_after_ready(name, *command):
        calls_before_exec.append(len(http_session.gets))
        return original_exec(name, *command)

    deployer.docker.exec = exec_after_ready
    assert deployer.deploy(config.target_for("alice"), "10.0.0.10", 3000) is True

    assert http_session.gets == ["http://localhost:3000/api/public/settings"] * 4
    assert calls_before_exec == [4]
    assert no_sleep == [1, 1, 1]


def test_service_never_ready_warns_and_still_sets_password(deployer, fake_docker, config, http_session, no_sleep, capsys):
    http_session.ready_after = 1000
    assert deployer.deploy(config.target_for("alice"), "10.0.0.10", 3000) is True
    assert len(http_session.gets) == 8
    assert no_sleep == [1] * 8
    assert "not answering after 8s" in capsys.readouterr().out


def test_without_http_client_settle_time_is_slept_out(docker, fake_docker, config, http_session, no_sleep):
    fake_docker.add_network()
    deployer = ContainerDeployer(
        docker, NetworkConfig(), ContainerConfig(), AdminCredentials(), has_http_client=False
    )
    assert deployer.deploy(config.target_for("alice"), "10.0.0.10", 3000) is True
    assert no_sleep == [8]
    assert http_session.gets == []


def test_image_pulled_without_timeout_before_run(deployer, fake_docker, config):
    deployer.deploy(config.target_for("alice"), "10.0.0.10", 3000)

    verbs = [call[1] for call in fake_docker.calls]
    assert verbs.index("pull") < verbs.index("run")
    assert fake_docker.commands("pull") == [["docker", "pull", "openlistteam/openlist:latest"]]
    assert fake_docker.timeouts[verbs.index("pull")] is None
    assert fake_docker.timeouts[verbs.index("run")] is None


def test_pull_failure_is_only_a_warning(deployer, fake_docker, config, capsys):
    fake_docker.pull_error = "Error response from daemon: Get https://registry-1.docker.io/v2/: timeout"
    assert deployer.deploy(config.target_for("alice"), "10.0.0.10", 3000) is True
    assert fake_docker.containers["alist-alice"]["running"] is True
    assert "Failed to pull openlistteam/openlist:latest" in capsys.readouterr().out
