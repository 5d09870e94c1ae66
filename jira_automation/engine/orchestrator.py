"""
Pipeline orchestrator driving each task from intake to status sync.

The orchestrator owns the sequencing of the stages and the failure
boundary around each task. A task moves through:

    intake -> workspace_ready -> delegated -> tested -> published -> synced

Stages are awaited one after another and tasks are processed one at a
time, so no two git operations ever touch the filesystem concurrently.
Any failure before the test stage ends the task with a failed result;
test and merge request outcomes are reported but never stop the task
from being synchronized.

Example:
    >>> orchestrator = PipelineOrchestrator(settings, tracker, agent, gitlab, teams)
    >>> summary = await orchestrator.run()
    >>> print(summary.succeeded, summary.failed)
"""

import asyncio

import httpx
import structlog

from jira_automation.config.settings import AutomationSettings
from jira_automation.engine.stages.execution import DelegatedExecutionStage
from jira_automation.engine.stages.publish import ReviewRequestPublisher
from jira_automation.engine.stages.sync import StatusSynchronizer
from jira_automation.engine.stages.testing import TestRunnerDetector
from jira_automation.engine.stages.workspace import WorkspaceManager
from jira_automation.enums import PipelineStage
from jira_automation.exceptions import (
    ConfigurationError,
    DelegatedExecutionError,
    ExternalServiceError,
    GitOperationError,
)
from jira_automation.models.domain import PipelineResult, RunSummary, Task
from jira_automation.providers.base import (
    IssueTrackerProvider,
    NotificationProvider,
    ReviewRequestProvider,
)
from jira_automation.providers.external_agent import ExternalAgentProvider
from jira_automation.providers.jira_rest import JiraRestProvider
from jira_automation.rendering.engine import SecureTemplateEngine
from jira_automation.utils.logging_config import bind_task_context, clear_task_context

log = structlog.get_logger(__name__)


class PipelineOrchestrator:
    """Run the automation pipeline over the tasks waiting in Jira.

    Attributes:
        settings: Run configuration
        tracker: Issue tracker used for intake and status updates
        agent: Coding agent invoked on each workspace
        workspace: Workspace preparation stage
        execution: Delegated execution stage
        tests: Test detection and execution stage
        publisher: Commit, push and merge request stage
        synchronizer: Jira comment, transition and Teams notification stage
    """

    def __init__(
        self,
        settings: AutomationSettings,
        tracker: IssueTrackerProvider,
        agent: ExternalAgentProvider,
        review_provider: ReviewRequestProvider | None = None,
        notifier: NotificationProvider | None = None,
        templates: SecureTemplateEngine | None = None,
    ) -> None:
        self.settings = settings
        self.tracker = tracker
        self.agent = agent

        templates = templates or SecureTemplateEngine()
        self.workspace = WorkspaceManager(settings, templates)
        self.execution = DelegatedExecutionStage(settings, agent, templates)
        self.tests = TestRunnerDetector(settings, templates)
        self.publisher = ReviewRequestPublisher(settings, review_provider, templates)
        self.synchronizer = StatusSynchronizer(settings, tracker, notifier, templates)

    def initialize(self) -> None:
        """Prepare the working directory and verify the agent CLI.

        Raises:
            ConfigurationError: If the coding agent is not installed
        """
        self.settings.working_dir.mkdir(parents=True, exist_ok=True)
        self.agent.check_available()
        log.info("orchestrator_initialized", working_dir=str(self.settings.working_dir))

    async def fetch_tasks(self) -> list[Task]:
        """Fetch the tasks waiting for automation, highest priority first.

        Raises:
            ExternalServiceError: If the Jira search fails
        """
        query = JiraRestProvider.build_intake_query(
            self.settings.jira_project_key,
            self.settings.intake_status,
            self.settings.target_labels,
        )
        try:
            tasks = await self.tracker.search_tasks(query, max_results=self.settings.max_tasks)
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                "Jira search failed", e.response.status_code, e.response.text
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Jira search failed: {e}") from e

        log.info("tasks_fetched", count=len(tasks))
        return tasks

    async def run(self) -> RunSummary:
        """Process every task returned by intake, one at a time."""
        self.initialize()
        tasks = await self.fetch_tasks()
        summary = RunSummary()

        if not tasks:
            log.info("no_tasks_to_process")
            return summary

        for index, task in enumerate(tasks):
            summary.record(await self._run_task(task))

            if index < len(tasks) - 1 and self.settings.task_cooldown_seconds > 0:
                await asyncio.sleep(self.settings.task_cooldown_seconds)

        log.info(
            "run_completed",
            total=summary.total,
            succeeded=summary.succeeded,
            failed=summary.failed,
        )
        return summary

    async def run_single(self, task_key: str) -> PipelineResult:
        """Process one task fetched by key, regardless of its labels or status."""
        self.initialize()
        try:
            task = await self.tracker.get_task(task_key)
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                f"Cannot fetch {task_key}", e.response.status_code, e.response.text
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Cannot fetch {task_key}: {e}") from e
        return await self._run_task(task)

    async def _run_task(self, task: Task) -> PipelineResult:
        bind_task_context(task.key)
        try:
            log.info("task_started", summary=task.summary)
            await self.synchronizer.notify_started(task)

            result = await self.process_task(task)

            delivery = await self.synchronizer.sync(task, result)
            if delivery.success:
                result.stage = PipelineStage.SYNCED
            log.info("task_finished", success=result.success, stage=str(result.stage))
            return result
        finally:
            clear_task_context()

    async def process_task(self, task: Task) -> PipelineResult:
        """Run a task through workspace, agent, tests and publish.

        Never raises: every failure is captured on the returned result.
        """
        result = PipelineResult(
            task=task,
            success=False,
            workspace_dir=self.workspace.task_directory(task),
        )

        try:
            workspace = await self.workspace.prepare(task)
            result.branch_name = workspace.branch_name
            result.stage = PipelineStage.WORKSPACE_READY

            run = await self.execution.execute(task, workspace)
            result.agent_output = run.stdout
            result.stage = PipelineStage.DELEGATED

            test_outcome = await self.tests.run(workspace.directory)
            result.test_outcome = test_outcome
            result.stage = PipelineStage.TESTED

            if not test_outcome.success and not self.settings.publish_on_test_failure:
                result.error = f"Tests {test_outcome.runner} failed: {test_outcome.stderr.strip()}"
                log.warning("tests_failed_publish_skipped", runner=str(test_outcome.runner))
                return result

            result.review_request = await self.publisher.publish(task, workspace, test_outcome)
            result.stage = PipelineStage.PUBLISHED
            result.success = True

        except (GitOperationError, ConfigurationError, DelegatedExecutionError) as e:
            log.error("task_failed", stage=str(result.stage), error=e.message)
            result.error = e.message
        except Exception as e:
            log.error("task_failed", stage=str(result.stage), error=str(e), exc_info=True)
            result.error = str(e)

        return result
