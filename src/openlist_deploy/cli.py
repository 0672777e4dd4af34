"""
OpenList Deploy CLI - deploy one OpenList container per client
"""

from pathlib import Path
from typing import Optional

import click
import questionary
from questionary import Style
from rich.panel import Panel

from . import __version__
from .config import DeployConfig
from .errors import DeployError, DeploymentCancelled
from .orchestrator import Orchestrator
from .output import configure_logging, console, log_error, log_info

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

custom_style = Style([
    ('qmark', 'fg:cyan bold'),
    ('question', 'bold'),
    ('answer', 'fg:cyan'),
])

EXAMPLES = """\b
Creates for each client:
  - container name: alist-<client-id>
  - data path:      ~/docker/alist/<client-id>/data
  - admin account:  admin
  - a free IP on the network and a free host port

\b
Examples:
  openlist-deploy john              # deploy the latest image
  openlist-deploy john v4.0.5       # pin a stable release
  openlist-deploy company1 latest   # explicit latest
  openlist-deploy test v4.1.0 xifan # tag and network
"""


def prompt_redeploy(container_name: str) -> bool:
    """Ask whether an existing container should be replaced (default: no)."""
    answer = questionary.confirm(
        f"Remove '{container_name}' and redeploy?",
        default=False,
        style=custom_style,
    ).ask()
    return bool(answer)


@click.command(context_settings=CONTEXT_SETTINGS, epilog=EXAMPLES)
@click.argument("client_id", required=False)
@click.argument("image_tag", required=False)
@click.argument("network_name", required=False)
@click.argument("subnet", required=False)
@click.option("-y", "--yes", "auto_confirm", is_flag=True,
              help="Replace an existing container without asking")
@click.option("-c", "--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              help="YAML configuration file")
@click.option("--skip-configure", is_flag=True, help="Do not configure the service through its API")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.version_option(version=__version__, prog_name="openlist-deploy")
@click.pass_context
def main(
    ctx: click.Context,
    client_id: Optional[str],
    image_tag: Optional[str],
    network_name: Optional[str],
    subnet: Optional[str],
    auto_confirm: bool,
    config_path: Optional[Path],
    skip_configure: bool,
    verbose: bool,
):
    """
    Deploy OpenList for a client into its own Docker container.

    \b
    CLIENT_ID     identifier of the client (required)
    IMAGE_TAG     openlistteam/openlist image tag (default: latest)
    NETWORK_NAME  Docker network name (default: xifan)
    SUBNET        Docker network subnet (default: 10.0.0.1/16)
    """
    configure_logging(verbose)

    console.print(Panel.fit("[bold cyan]OpenList Deploy[/bold cyan]", border_style="cyan"))

    if not client_id or not client_id.strip():
        log_error("Please provide a client identifier")
        click.echo(ctx.get_usage())
        click.echo(f"Run '{ctx.info_name} --help' for examples.")
        ctx.exit(1)

    try:
        config = DeployConfig.load(config_path) if config_path else DeployConfig()
    except DeployError as e:
        log_error(str(e))
        ctx.exit(1)

    if image_tag:
        config.container.tag = image_tag
    if network_name:
        config.network.name = network_name
    if subnet:
        config.network.subnet = subnet
    if auto_confirm:
        config.auto_confirm = True
    if skip_configure:
        config.configure = False

    orchestrator = Orchestrator(config, confirm=prompt_redeploy)
    try:
        orchestrator.run(client_id)
    except DeploymentCancelled:
        log_info("Deployment cancelled")
        ctx.exit(0)
    except DeployError as e:
        log_error(str(e))
        ctx.exit(1)


if __name__ == "__main__":
    main()
