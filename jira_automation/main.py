"""CLI entry point for the Jira automation pipeline."""

import asyncio
import sys
from contextlib import AsyncExitStack
from pathlib import Path

import click
import structlog

from jira_automation.config.settings import AutomationSettings
from jira_automation.engine.orchestrator import PipelineOrchestrator
from jira_automation.engine.stages.testing import TestRunnerDetector
from jira_automation.engine.stages.workspace import branch_name as derive_branch_name
from jira_automation.exceptions import AutomationError
from jira_automation.models.domain import PipelineResult, RunSummary, Task
from jira_automation.providers.factory import (
    create_agent,
    create_notifier,
    create_review_provider,
    create_tracker,
)
from jira_automation.providers.jira_rest import JiraRestProvider
from jira_automation.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)

COMMANDS_WITHOUT_CONFIG = ["detect-tests", "branch-name"]


@click.group()
@click.option("--env-file", default=None, help="Path to .env file (default: ./.env)")
@click.option("--log-level", default=None, help="Logging level (overrides LOG_LEVEL)")
@click.pass_context
def cli(ctx: click.Context, env_file: str | None, log_level: str | None) -> None:
    """jira-automation: hand labelled Jira tasks to a coding agent."""
    if ctx.invoked_subcommand in COMMANDS_WITHOUT_CONFIG:
        configure_logging(log_level or "INFO")
        ctx.obj = {"settings": None}
        return

    try:
        settings = AutomationSettings.load(env_file=env_file)
        configure_logging(log_level or settings.log_level, settings.log_file)
    except AutomationError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    ctx.obj = {"settings": settings}


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Process every task waiting in the intake query."""
    try:
        summary = asyncio.run(_run_all(ctx.obj["settings"]))
    except AutomationError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("run_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    _print_summary(summary)
    if summary.failed:
        sys.exit(1)


@cli.command()
@click.argument("task_key")
@click.pass_context
def process_task(ctx: click.Context, task_key: str) -> None:
    """Process a single task by key."""
    try:
        result = asyncio.run(_run_single(ctx.obj["settings"], task_key))
    except AutomationError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("process_task_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    _print_result(result)
    if not result.success:
        sys.exit(1)


@cli.command()
@click.pass_context
def list_tasks(ctx: click.Context) -> None:
    """Show the tasks the intake query currently returns."""
    try:
        tasks = asyncio.run(_list_tasks(ctx.obj["settings"]))
    except AutomationError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("list_tasks_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    if not tasks:
        click.echo("No tasks to process.")
        return

    click.echo(f"Tasks ({len(tasks)}):\n")
    for task in tasks:
        click.echo(f"  • {task.key} [{task.priority or '-'}] {task.summary}")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--execute", is_flag=True, help="Run the detected test command")
@click.option("--timeout", type=float, default=None, help="Test timeout in seconds")
def detect_tests(path: Path, execute: bool, timeout: float | None) -> None:
    """Detect (and optionally run) the test command for a project directory."""
    detector = TestRunnerDetector(timeout=timeout)
    command = detector.detect(path)

    if command is None:
        click.echo("none: no automated test runner detected")
    else:
        click.echo(f"{command.kind}: {command}")

    if not execute:
        return

    try:
        outcome = asyncio.run(detector.run(path))
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    if outcome.output:
        click.echo(outcome.output)
    click.echo(f"Tests {'passed' if outcome.success else 'failed'} ({outcome.runner})")
    if not outcome.success:
        sys.exit(1)


@cli.command()
@click.argument("task_key")
@click.argument("summary")
def branch_name(task_key: str, summary: str) -> None:
    """Print the feature branch name derived for a task."""
    click.echo(derive_branch_name(Task(key=task_key, summary=summary)))


async def _run_all(settings: AutomationSettings) -> RunSummary:
    async with AsyncExitStack() as stack:
        orchestrator = await _create_orchestrator(settings, stack)
        return await orchestrator.run()


async def _run_single(settings: AutomationSettings, task_key: str) -> PipelineResult:
    async with AsyncExitStack() as stack:
        orchestrator = await _create_orchestrator(settings, stack)
        return await orchestrator.run_single(task_key)


async def _list_tasks(settings: AutomationSettings) -> list[Task]:
    async with AsyncExitStack() as stack:
        orchestrator = await _create_orchestrator(settings, stack)
        log.info(
            "intake_query",
            jql=JiraRestProvider.build_intake_query(
                settings.jira_project_key, settings.intake_status, settings.target_labels
            ),
        )
        return await orchestrator.fetch_tasks()


async def _create_orchestrator(settings: AutomationSettings, stack: AsyncExitStack) -> PipelineOrchestrator:
    """Create the orchestrator, registering every HTTP provider for cleanup.

    Args:
        settings: Automation settings
        stack: Exit stack closing the providers when the command ends

    Returns:
        PipelineOrchestrator wired to Jira, GitLab, Teams and the coding agent
    """
    tracker = await stack.enter_async_context(create_tracker(settings))

    review_provider = create_review_provider(settings)
    if review_provider is not None:
        await stack.enter_async_context(review_provider)

    notifier = create_notifier(settings)
    if notifier is not None:
        await stack.enter_async_context(notifier)

    return PipelineOrchestrator(
        settings,
        tracker=tracker,
        agent=create_agent(settings),
        review_provider=review_provider,
        notifier=notifier,
    )


def _print_result(result: PipelineResult) -> None:
    status = "OK" if result.success else "FAILED"
    click.echo(f"{result.task.key}: {status} (tests: {result.runner})")
    if result.review_requested:
        click.echo(f"  merge request: {result.review_request.url}")
    elif result.review_request is not None:
        click.echo(f"  merge request: {result.review_request.detail}")
    if result.error:
        click.echo(f"  error: {result.error}")


def _print_summary(summary: RunSummary) -> None:
    for result in summary.results:
        _print_result(result)
    click.echo(f"\nProcessed {summary.total} task(s): {summary.succeeded} succeeded, {summary.failed} failed")


if __name__ == "__main__":
    cli()
