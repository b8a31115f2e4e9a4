# cli.py
import asyncio
import sys

import click

from application.orchestrators.build_orchestrator import BuildOrchestrator
from domain.exceptions import OrchestrationError
from domain.models.build_request import PlanningMode
from shared.config import OrchestratorConfig
from shared.logging import setup_logging


@click.group()
def cli():
    """Build-request orchestration engine"""


@cli.command()
@click.argument("build_request_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--mode",
    type=click.Choice([m.value for m in PlanningMode]),
    default=PlanningMode.ENHANCED.value,
    show_default=True,
    help="Planning mode",
)
def run(build_request_path: str, mode: str):
    """Run a build request file through every phase."""
    config = OrchestratorConfig.from_env()
    setup_logging(level=config.log_level, json_logs=config.json_logs)
    orchestrator = BuildOrchestrator(config)

    try:
        build = asyncio.run(orchestrator.run(build_request_path, PlanningMode(mode)))
    except OrchestrationError as e:
        click.echo(f"Build failed: {e}", err=True)
        sys.exit(1)

    state = build.state
    click.echo(f"Request ID: {state.request_id}")
    click.echo(f"Phase: {state.current_phase.value}")
    for task in state.tasks:
        click.echo(f"  {task.status.value:<20} {task.id} ({task.assigned_role.value})")
    if state.deployment_message:
        click.echo(f"Deployment: {state.deployment_message}")
    if build.manifest_path:
        click.echo(f"Manifest: {build.manifest_path}")


@cli.command()
def serve():
    """Start the HTTP trigger surface."""
    from main import serve as serve_app

    serve_app()


if __name__ == "__main__":
    cli()
