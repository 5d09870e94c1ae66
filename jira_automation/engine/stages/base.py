"""
Base class for pipeline stages.

Stages are instantiated once by the orchestrator and reused for every
task in the run. They hold no task-specific state: everything a stage
needs arrives as arguments and everything it produces is returned, so the
orchestrator alone decides sequencing and failure handling.

Stage order:
    WorkspaceManager -> DelegatedExecutionStage -> TestRunnerDetector
    -> ReviewRequestPublisher -> StatusSynchronizer
"""

from abc import ABC
from pathlib import Path
from typing import ClassVar

import structlog

from jira_automation.config.settings import AutomationSettings
from jira_automation.enums import PipelineStage
from jira_automation.rendering.engine import SecureTemplateEngine
from jira_automation.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)


class Stage(ABC):
    """Common dependencies and helpers for all pipeline stages.

    Attributes:
        settings: Run configuration
        templates: Template engine for prompts, descriptions and comments
        stage: The pipeline state reached once this stage completes
    """

    stage: ClassVar[PipelineStage]

    def __init__(
        self,
        settings: AutomationSettings,
        templates: SecureTemplateEngine | None = None,
    ) -> None:
        self.settings = settings
        self.templates = templates or SecureTemplateEngine()

    async def _git(self, directory: Path, *args: str) -> tuple[str, str, int]:
        """Run a git command in ``directory`` without raising on failure.

        Returns:
            Tuple of (stdout, stderr, exit_code)
        """
        stdout, stderr, code = await run_command("git", *args, cwd=directory, check=False)
        if code != 0:
            log.debug("git_command_failed", args=list(args), exit_code=code, stderr=stderr.strip())
        return stdout, stderr, code
