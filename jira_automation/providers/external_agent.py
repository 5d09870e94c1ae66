"""External agent provider that runs a coding agent CLI (Claude Code by default)."""

import shutil
from dataclasses import dataclass
from pathlib import Path

import structlog

from jira_automation.exceptions import ConfigurationError
from jira_automation.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)


@dataclass
class AgentRun:
    """Captured result of one agent invocation."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class ExternalAgentProvider:
    """Runs the coding agent as a black-box subprocess.

    The agent receives the whole instruction payload as its final argument
    and edits the working tree in place. Only the exit status is
    interpreted; stdout is kept for auditing.
    """

    def __init__(
        self,
        command: str = "claude",
        args: list[str] | None = None,
        timeout: float | None = None,
    ):
        """Initialize external agent provider.

        Args:
            command: Agent executable name or path
            args: Arguments placed before the prompt
            timeout: Optional per-invocation timeout in seconds
        """
        self.command = command
        self.args = list(args or [])
        self.timeout = timeout

    def check_available(self) -> str:
        """Verify the agent CLI is installed.

        Returns:
            Resolved executable path

        Raises:
            ConfigurationError: If the executable is not on PATH
        """
        resolved = shutil.which(self.command)
        if resolved is None:
            log.error("agent_cli_not_found", command=self.command)
            raise ConfigurationError(f"Coding agent CLI '{self.command}' not found in PATH")
        log.info("agent_cli_available", command=self.command, path=resolved)
        return resolved

    async def run(self, prompt: str, cwd: Path) -> AgentRun:
        """Invoke the agent with the prompt in the given working directory.

        Raises:
            FileNotFoundError: If the executable disappears between checks
            TimeoutError: If the configured timeout is exceeded
        """
        log.info("agent_started", command=self.command, cwd=str(cwd), prompt_length=len(prompt))

        stdout, stderr, code = await run_command(
            self.command,
            *self.args,
            prompt,
            cwd=cwd,
            check=False,
            timeout=self.timeout,
        )

        log.info("agent_finished", exit_code=code, output_length=len(stdout))
        return AgentRun(exit_code=code, stdout=stdout, stderr=stderr)
