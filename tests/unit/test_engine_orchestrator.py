"""Tests for jira_automation/engine/orchestrator.py."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from jira_automation.engine.orchestrator import PipelineOrchestrator
from jira_automation.enums import PipelineStage, RunnerKind
from jira_automation.exceptions import ConfigurationError, ExternalServiceError
from jira_automation.models.domain import ReviewRequestOutcome, Task, Transition
from jira_automation.providers.base import (
    IssueTrackerProvider,
    NotificationProvider,
    ReviewRequestProvider,
)
from jira_automation.providers.external_agent import AgentRun, ExternalAgentProvider

GIT_RUN_COMMAND = "jira_automation.engine.stages.base.run_command"
TEST_RUN_COMMAND = "jira_automation.engine.stages.testing.run_command"
MR_URL = "https://gitlab.com/group/project/-/merge_requests/7"


@pytest.fixture
def mock_tracker(sample_task) -> AsyncMock:
    tracker = AsyncMock(spec=IssueTrackerProvider)
    tracker.search_tasks.return_value = [sample_task]
    tracker.get_task.return_value = sample_task
    tracker.list_transitions.return_value = [Transition(id="31", name="Code Review", to_name="Code Review")]
    return tracker


@pytest.fixture
def mock_agent() -> MagicMock:
    agent = MagicMock(spec=ExternalAgentProvider)
    agent.timeout = None
    agent.run = AsyncMock(return_value=AgentRun(exit_code=0, stdout="done", stderr=""))
    return agent


@pytest.fixture
def mock_review_provider() -> AsyncMock:
    provider = AsyncMock(spec=ReviewRequestProvider)
    provider.create_review_request.return_value = ReviewRequestOutcome(success=True, url=MR_URL, iid=7)
    return provider


@pytest.fixture
def mock_notifier() -> AsyncMock:
    notifier = AsyncMock(spec=NotificationProvider)
    notifier.send.return_value = 200
    return notifier


@pytest.fixture
def orchestrator(settings, mock_tracker, mock_agent, mock_review_provider, mock_notifier) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        settings,
        tracker=mock_tracker,
        agent=mock_agent,
        review_provider=mock_review_provider,
        notifier=mock_notifier,
    )


def npm_checkout(settings, key="PROJ-1"):
    """Existing checkout of an npm project with a test script."""
    directory = settings.working_dir / key
    (directory / ".git").mkdir(parents=True)
    (directory / "package.json").write_text(json.dumps({"scripts": {"test": "jest"}}))
    return directory


class TestFetchTasks:
    @pytest.mark.asyncio
    async def test_intake_query(self, orchestrator, mock_tracker, sample_task):
        tasks = await orchestrator.fetch_tasks()

        assert tasks == [sample_task]
        mock_tracker.search_tasks.assert_awaited_once_with(
            'project = "PROJ" AND status = "To Do" AND labels IN ("claude-automation") '
            "ORDER BY priority DESC, created ASC",
            max_results=10,
        )

    @pytest.mark.asyncio
    async def test_search_failure(self, orchestrator, mock_tracker):
        request = httpx.Request("POST", "https://company.atlassian.net/rest/api/2/search")
        mock_tracker.search_tasks.side_effect = httpx.HTTPStatusError(
            "unauthorized", request=request, response=httpx.Response(401, text="Unauthorized", request=request)
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await orchestrator.fetch_tasks()

        assert exc_info.value.status_code == 401


class TestProcessTask:
    @pytest.mark.asyncio
    async def test_end_to_end_npm(self, orchestrator, settings, mock_tracker, sample_task):
        npm_checkout(settings)

        with (
            patch(GIT_RUN_COMMAND, new=AsyncMock(return_value=("", "", 0))),
            patch(TEST_RUN_COMMAND, new=AsyncMock(return_value=("Tests: 3 passed", "", 0))),
        ):
            summary = await orchestrator.run()

        assert summary.total == 1
        result = summary.results[0]
        assert result.success is True
        assert result.test_outcome.runner is RunnerKind.NPM
        assert result.review_request.url == MR_URL
        assert result.branch_name == "feature/proj-1-fix-login-bug"
        assert result.stage is PipelineStage.SYNCED
        mock_tracker.list_transitions.assert_awaited_once_with("PROJ-1")
        mock_tracker.transition.assert_awaited_once_with("PROJ-1", "31", fields=None)

    @pytest.mark.asyncio
    async def test_agent_failure_stops_pipeline(
        self, orchestrator, settings, mock_agent, mock_review_provider, mock_tracker, sample_task
    ):
        npm_checkout(settings)
        mock_agent.run.return_value = AgentRun(exit_code=3, stdout="", stderr="model overloaded")

        with (
            patch(GIT_RUN_COMMAND, new=AsyncMock(return_value=("", "", 0))),
            patch(TEST_RUN_COMMAND, new=AsyncMock()) as mock_tests,
        ):
            result = await orchestrator.process_task(sample_task)

        assert result.success is False
        assert "exit code 3" in result.error
        assert result.stage is PipelineStage.WORKSPACE_READY
        assert result.test_outcome is None
        mock_tests.assert_not_called()
        mock_review_provider.create_review_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_workspace_failure(self, orchestrator, settings, mock_agent, sample_task):
        with patch(GIT_RUN_COMMAND, new=AsyncMock(return_value=("", "fatal: auth failed", 128))):
            result = await orchestrator.process_task(sample_task)

        assert result.success is False
        assert "Clone failed" in result.error
        assert result.workspace_dir == settings.working_dir / "PROJ-1"
        assert result.branch_name is None
        mock_agent.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_tests_still_publish_when_enabled(
        self, settings, mock_tracker, mock_agent, mock_review_provider, sample_task
    ):
        lenient = settings.model_copy(update={"publish_on_test_failure": True})
        orchestrator = PipelineOrchestrator(lenient, mock_tracker, mock_agent, mock_review_provider)
        npm_checkout(settings)

        with (
            patch(GIT_RUN_COMMAND, new=AsyncMock(return_value=("", "", 0))),
            patch(TEST_RUN_COMMAND, new=AsyncMock(return_value=("", "1 failed", 1))),
        ):
            result = await orchestrator.process_task(sample_task)

        assert result.success is True
        assert result.tests_passed is False
        assert result.notification_status.value == "partial"
        mock_review_provider.create_review_request.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_tests_block_publish_by_default(
        self, orchestrator, settings, mock_review_provider, sample_task
    ):
        npm_checkout(settings)

        with (
            patch(GIT_RUN_COMMAND, new=AsyncMock(return_value=("", "", 0))) as mock_git,
            patch(TEST_RUN_COMMAND, new=AsyncMock(return_value=("", "1 failed", 1))),
        ):
            result = await orchestrator.process_task(sample_task)

        assert result.success is False
        assert result.error == "Tests npm failed: 1 failed"
        assert result.stage is PipelineStage.TESTED
        mock_review_provider.create_review_request.assert_not_awaited()
        assert not [c for c in mock_git.await_args_list if c.args[:2] == ("git", "push")]

    @pytest.mark.asyncio
    async def test_failing_tests_fail_the_run(self, orchestrator, settings, mock_tracker, sample_task):
        npm_checkout(settings)

        with (
            patch(GIT_RUN_COMMAND, new=AsyncMock(return_value=("", "", 0))),
            patch(TEST_RUN_COMMAND, new=AsyncMock(return_value=("", "1 failed", 1))),
        ):
            summary = await orchestrator.run()

        assert summary.failed == 1
        comment = mock_tracker.add_comment.await_args.args[1]
        assert "Automation failed" in comment
        assert "1 failed" in comment
        mock_tracker.transition.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_gitlab_configuration(self, bare_settings, mock_tracker, mock_agent, sample_task):
        orchestrator = PipelineOrchestrator(bare_settings, mock_tracker, mock_agent)
        npm_checkout(bare_settings)

        with (
            patch(GIT_RUN_COMMAND, new=AsyncMock(return_value=("", "", 0))),
            patch(TEST_RUN_COMMAND, new=AsyncMock(return_value=("ok", "", 0))),
        ):
            summary = await orchestrator.run()

        result = summary.results[0]
        assert result.success is True
        assert result.review_request.skipped is True
        assert result.review_request.message == "GitLab configuration missing"
        mock_tracker.transition.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_captured(self, orchestrator, settings, mock_agent, sample_task):
        npm_checkout(settings)
        mock_agent.run.side_effect = RuntimeError("boom")

        with patch(GIT_RUN_COMMAND, new=AsyncMock(return_value=("", "", 0))):
            result = await orchestrator.process_task(sample_task)

        assert result.success is False
        assert result.error == "boom"


class TestRun:
    @pytest.mark.asyncio
    async def test_agent_missing_aborts_run(self, orchestrator, mock_agent, mock_tracker):
        mock_agent.check_available.side_effect = ConfigurationError("Coding agent CLI 'claude' not found in PATH")

        with pytest.raises(ConfigurationError):
            await orchestrator.run()

        mock_tracker.search_tasks.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_tasks(self, orchestrator, mock_tracker):
        mock_tracker.search_tasks.return_value = []

        summary = await orchestrator.run()

        assert summary.total == 0

    @pytest.mark.asyncio
    async def test_failed_task_does_not_abort_run(self, orchestrator, settings, mock_tracker, mock_notifier):
        tasks = [Task(key="PROJ-1", summary="First"), Task(key="PROJ-2", summary="Second")]
        mock_tracker.search_tasks.return_value = tasks
        npm_checkout(settings, "PROJ-2")

        async def fake_git(*args, cwd=None, check=True):
            if args[1] == "clone":
                return "", "fatal: repository not found", 128
            return "", "", 0

        with (
            patch(GIT_RUN_COMMAND, new=AsyncMock(side_effect=fake_git)),
            patch(TEST_RUN_COMMAND, new=AsyncMock(return_value=("ok", "", 0))),
        ):
            summary = await orchestrator.run()

        assert [r.task.key for r in summary.results] == ["PROJ-1", "PROJ-2"]
        assert (summary.succeeded, summary.failed) == (1, 1)
        assert mock_tracker.add_comment.await_count == 2
        # started + result card per task
        assert mock_notifier.send.await_count == 4

    @pytest.mark.asyncio
    async def test_cooldown_between_tasks_only(self, orchestrator, settings, mock_tracker):
        orchestrator.settings = settings.model_copy(update={"task_cooldown_seconds": 2.0})
        mock_tracker.search_tasks.return_value = [
            Task(key="PROJ-1", summary="a"),
            Task(key="PROJ-2", summary="b"),
            Task(key="PROJ-3", summary="c"),
        ]
        orchestrator.process_task = AsyncMock(side_effect=lambda task: MagicMock(success=True, stage=None))
        orchestrator.synchronizer.sync = AsyncMock(return_value=MagicMock(success=True))
        orchestrator.synchronizer.notify_started = AsyncMock()

        with patch("jira_automation.engine.orchestrator.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await orchestrator.run()

        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(2.0)


@pytest.mark.asyncio
async def test_run_single(orchestrator, settings, mock_tracker):
    npm_checkout(settings)

    with (
        patch(GIT_RUN_COMMAND, new=AsyncMock(return_value=("", "", 0))),
        patch(TEST_RUN_COMMAND, new=AsyncMock(return_value=("ok", "", 0))),
    ):
        result = await orchestrator.run_single("PROJ-1")

    assert result.success is True
    mock_tracker.get_task.assert_awaited_once_with("PROJ-1")
    mock_tracker.search_tasks.assert_not_awaited()
