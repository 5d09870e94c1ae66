"""Delegated execution stage - hand the task to the external coding agent."""

import structlog

from jira_automation.config.settings import AutomationSettings
from jira_automation.engine.stages.base import Stage
from jira_automation.enums import PipelineStage
from jira_automation.exceptions import DelegatedExecutionError
from jira_automation.models.domain import Task, Workspace
from jira_automation.providers.external_agent import AgentRun, ExternalAgentProvider
from jira_automation.rendering.engine import SecureTemplateEngine

log = structlog.get_logger(__name__)

PROMPT_FILE = "task-prompt.md"
OUTPUT_FILE = "agent-output.txt"
AUDIT_FILES = (PROMPT_FILE, OUTPUT_FILE)


class DelegatedExecutionStage(Stage):
    """Build the instruction payload and run the coding agent on a workspace.

    Both the payload and the agent's stdout are written into the workspace
    for auditing. They are excluded from git so the publisher never
    commits them.
    """

    stage = PipelineStage.DELEGATED

    def __init__(
        self,
        settings: AutomationSettings,
        agent: ExternalAgentProvider,
        templates: SecureTemplateEngine | None = None,
    ) -> None:
        super().__init__(settings, templates)
        self.agent = agent

    def build_prompt(self, task: Task, workspace: Workspace) -> str:
        """Render the natural-language instruction payload for a task."""
        return self.templates.render(
            "task_prompt.md.j2",
            {
                "task": task,
                "branch_name": workspace.branch_name,
                "repository_url": self.settings.repository_url,
                "default_branch": workspace.base_branch,
                "review_transition_name": self.settings.review_transition_name,
            },
        )

    async def execute(self, task: Task, workspace: Workspace) -> AgentRun:
        """Run the coding agent for a task.

        Returns:
            The agent run (exit code zero)

        Raises:
            DelegatedExecutionError: The agent exited non-zero, timed out,
                or could not be started
        """
        prompt = self.build_prompt(task, workspace)
        self._exclude_audit_files(workspace)
        (workspace.directory / PROMPT_FILE).write_text(prompt, encoding="utf-8")

        try:
            run = await self.agent.run(prompt, cwd=workspace.directory)
        except FileNotFoundError as e:
            raise DelegatedExecutionError(f"Coding agent could not be started: {e}") from e
        except TimeoutError as e:
            raise DelegatedExecutionError(
                f"Coding agent timed out after {self.agent.timeout}s"
            ) from e

        (workspace.directory / OUTPUT_FILE).write_text(run.stdout, encoding="utf-8")

        if not run.success:
            log.error("agent_failed", exit_code=run.exit_code)
            raise DelegatedExecutionError(
                f"Coding agent failed with exit code {run.exit_code}: {run.stderr.strip()}",
                exit_code=run.exit_code,
                stderr=run.stderr,
            )

        log.info("agent_succeeded", output_length=len(run.stdout))
        return run

    def _exclude_audit_files(self, workspace: Workspace) -> None:
        info_dir = workspace.directory / ".git" / "info"
        if not info_dir.parent.is_dir():
            return

        info_dir.mkdir(exist_ok=True)
        exclude = info_dir / "exclude"
        existing = exclude.read_text(encoding="utf-8").splitlines() if exclude.exists() else []
        missing = [name for name in AUDIT_FILES if name not in existing]
        if missing:
            with exclude.open("a", encoding="utf-8") as f:
                if existing and existing[-1] != "":
                    f.write("\n")
                f.write("\n".join(missing) + "\n")
