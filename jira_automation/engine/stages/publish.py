"""Publish stage - commit, push and open a merge request for the feature branch."""

import httpx
import structlog

from jira_automation.config.settings import AutomationSettings
from jira_automation.engine.stages.base import Stage
from jira_automation.enums import PipelineStage
from jira_automation.exceptions import PublishError
from jira_automation.models.domain import ReviewRequestOutcome, Task, TestOutcome, Workspace
from jira_automation.providers.base import ReviewRequestProvider
from jira_automation.rendering.engine import SecureTemplateEngine

log = structlog.get_logger(__name__)

DEFAULT_LABELS = ("automation", "claude-generated")
MISSING_CONFIGURATION = "GitLab configuration missing"


def commit_message(task: Task) -> str:
    """Conventional commit message for the agent's changes."""
    message = f"feat({task.key}): {task.summary}"
    if task.description:
        message += f"\n\n{task.description}"
    return message


def review_labels(task: Task) -> list[str]:
    labels = list(DEFAULT_LABELS)
    if task.priority:
        labels.append(task.priority.lower())
    return labels


class ReviewRequestPublisher(Stage):
    """Commit everything in the workspace, push, and request review.

    Commit and push always happen. The review request is skipped when no
    code host is configured. Nothing here is fatal: a failed API call
    leaves the pushed branch in place and is reported on the outcome.
    """

    stage = PipelineStage.PUBLISHED

    def __init__(
        self,
        settings: AutomationSettings,
        review_provider: ReviewRequestProvider | None = None,
        templates: SecureTemplateEngine | None = None,
    ) -> None:
        super().__init__(settings, templates)
        self.review_provider = review_provider

    async def publish(
        self,
        task: Task,
        workspace: Workspace,
        test_outcome: TestOutcome | None = None,
    ) -> ReviewRequestOutcome:
        await self._commit_and_push(task, workspace)

        if self.review_provider is None:
            log.warning("review_request_skipped", reason=MISSING_CONFIGURATION)
            return ReviewRequestOutcome(success=False, skipped=True, message=MISSING_CONFIGURATION)

        try:
            return await self._request_review(task, workspace, test_outcome)
        except PublishError as e:
            log.error("review_request_failed", error=e.message)
            return ReviewRequestOutcome(success=False, error=e.message)

    async def _commit_and_push(self, task: Task, workspace: Workspace) -> None:
        directory = workspace.directory

        _, stderr, code = await self._git(directory, "add", ".")
        if code != 0:
            log.warning("git_add_failed", error=stderr.strip())

        stdout, stderr, code = await self._git(directory, "commit", "-m", commit_message(task))
        if code != 0:
            # "nothing to commit" lands here too
            log.info("git_commit_skipped", output=(stdout or stderr).strip())

        _, stderr, code = await self._git(directory, "push", "origin", workspace.branch_name)
        if code != 0:
            log.warning("git_push_failed", branch=workspace.branch_name, error=stderr.strip())
        else:
            log.info("branch_pushed", branch=workspace.branch_name)

    async def _request_review(
        self,
        task: Task,
        workspace: Workspace,
        test_outcome: TestOutcome | None,
    ) -> ReviewRequestOutcome:
        description = self.templates.render(
            "merge_request.md.j2",
            {
                "task": task,
                "jira_url": self.settings.browse_url(task.key),
                "runner": str(test_outcome.runner) if test_outcome else "unknown",
            },
        )

        try:
            outcome = await self.review_provider.create_review_request(
                source_branch=workspace.branch_name,
                target_branch=workspace.base_branch,
                title=f"[{task.key}] {task.summary}",
                description=description,
                labels=review_labels(task),
                assignee=task.assignee,
            )
        except httpx.HTTPStatusError as e:
            raise PublishError(
                f"Merge request creation failed: HTTP {e.response.status_code} {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise PublishError(f"Merge request creation failed: {e}") from e

        log.info("review_requested", url=outcome.url, iid=outcome.iid)
        return outcome
