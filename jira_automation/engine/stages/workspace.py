"""Workspace stage - prepare a per-task git checkout on a feature branch."""

import re
from pathlib import Path

import structlog

from jira_automation.engine.stages.base import Stage
from jira_automation.enums import PipelineStage
from jira_automation.exceptions import ConfigurationError, GitOperationError
from jira_automation.models.domain import Task, Workspace

log = structlog.get_logger(__name__)

BRANCH_PREFIX = "feature/"
SLUG_MAX_LENGTH = 50


def branch_name(task: Task, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Derive the deterministic feature branch name for a task.

    The summary is lower-cased, runs of non-alphanumerics collapse to a
    single ``-``, and the result is capped at ``max_length`` characters.

    Example:
        >>> branch_name(Task(key="PROJ-1", summary="Fix Login Bug!!"))
        'feature/proj-1-fix-login-bug'
    """
    key = re.sub(r"[^a-z0-9]+", "-", task.key.lower()).strip("-")
    slug = re.sub(r"[^a-z0-9]+", "-", task.summary.lower())[:max_length].strip("-")
    return f"{BRANCH_PREFIX}{key}-{slug}" if slug else f"{BRANCH_PREFIX}{key}"


class WorkspaceManager(Stage):
    """Ensure a reusable local clone for a task, checked out on its branch.

    Re-entry is idempotent: an existing clone is reused and an existing
    branch is checked out instead of created.
    """

    stage = PipelineStage.WORKSPACE_READY

    def task_directory(self, task: Task) -> Path:
        """Workspace directory for a task; a pure function of its key."""
        return Path(self.settings.working_dir) / task.key

    async def prepare(self, task: Task) -> Workspace:
        """Prepare the workspace for a task.

        Args:
            task: Task being processed

        Returns:
            Workspace with directory, feature branch and base branch

        Raises:
            ConfigurationError: No repository URL and no existing checkout
            GitOperationError: Clone failed, or the branch cannot be checked out
        """
        directory = self.task_directory(task)
        directory.mkdir(parents=True, exist_ok=True)
        base_branch = self.settings.default_branch

        log.info("workspace_setup", directory=str(directory))

        if not (directory / ".git").exists():
            await self._clone(directory)

        await self._configure_identity(directory)
        await self._refresh_base_branch(directory, base_branch)

        branch = branch_name(task)
        await self._checkout_feature_branch(directory, branch)

        log.info("workspace_ready", directory=str(directory), branch=branch, base=base_branch)
        return Workspace(directory=directory, branch_name=branch, base_branch=base_branch)

    async def _clone(self, directory: Path) -> None:
        repository_url = self.settings.repository_url
        if not repository_url:
            raise ConfigurationError(
                f"REPOSITORY_URL is not configured and no checkout exists in {directory}"
            )

        log.info("cloning_repository", directory=str(directory))
        _, stderr, code = await self._git(directory, "clone", repository_url, ".")
        if code != 0:
            raise GitOperationError(f"Clone failed: {stderr.strip()}")

    async def _configure_identity(self, directory: Path) -> None:
        for key, value in (
            ("user.email", self.settings.git_user_email),
            ("user.name", self.settings.git_user_name),
        ):
            _, stderr, code = await self._git(directory, "config", key, value)
            if code != 0:
                log.warning("git_config_failed", key=key, error=stderr.strip())

    async def _refresh_base_branch(self, directory: Path, base_branch: str) -> None:
        """Check out and pull the base branch; failures only reduce freshness."""
        _, stderr, code = await self._git(directory, "checkout", base_branch)
        if code != 0:
            log.warning("base_checkout_failed", branch=base_branch, error=stderr.strip())

        _, stderr, code = await self._git(directory, "pull", "origin", base_branch)
        if code != 0:
            log.warning("base_pull_failed", branch=base_branch, error=stderr.strip())

    async def _checkout_feature_branch(self, directory: Path, branch: str) -> None:
        _, _, code = await self._git(directory, "checkout", "-b", branch)
        if code == 0:
            return

        log.warning("branch_exists", branch=branch)
        _, stderr, code = await self._git(directory, "checkout", branch)
        if code != 0:
            raise GitOperationError(f"Cannot check out branch {branch}: {stderr.strip()}")
