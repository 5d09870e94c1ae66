"""Custom exception hierarchy for the jira-automation pipeline.

Exception Hierarchy:
    AutomationError (base)
    ├── ConfigurationError
    ├── GitOperationError
    ├── DelegatedExecutionError
    ├── PublishError
    ├── SyncError
    └── ExternalServiceError

Errors raised before any task is attempted (``ConfigurationError`` from
settings loading, a missing agent CLI) are fatal to the whole run. Every
other error is caught at the task boundary by the orchestrator and turned
into a failed ``PipelineResult``.

Example Usage:
    >>> from jira_automation.exceptions import GitOperationError
    >>> try:
    ...     await manager.prepare(task)
    ... except GitOperationError as e:
    ...     log.error("workspace_failed", error=e.message)
"""


class AutomationError(Exception):
    """Base exception for all jira-automation errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(AutomationError):
    """Configuration-related errors.

    Examples:
        - Required environment variable missing (JIRA_HOST, JIRA_PROJECT_KEY, ...)
        - Setting with an invalid value (negative MAX_TASKS, ...)
        - Coding agent CLI not installed
        - No repository URL and no existing checkout for a task
    """

    pass


class GitOperationError(AutomationError):
    """Git operation errors.

    Raised when a workspace cannot be cloned or its feature branch cannot
    be checked out. Fatal to the task only.
    """

    pass


class DelegatedExecutionError(AutomationError):
    """The external coding agent exited with a non-zero status.

    Attributes:
        exit_code: Exit status of the agent process (None if it never started)
        stderr: Captured standard error of the agent process
    """

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        stderr: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            exit_code: Agent process exit status
            stderr: Captured standard error
        """
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)


class PublishError(AutomationError):
    """Review request creation failed.

    Never fatal: the publisher converts it into a failed
    ``ReviewRequestOutcome`` and the prior commit/push stands.
    """

    pass


class SyncError(AutomationError):
    """Issue tracker or notification delivery failed.

    Always swallowed and logged by the status synchronizer.
    """

    pass


class ExternalServiceError(AutomationError):
    """External service communication errors.

    Raised when communication with Jira, GitLab or the chat webhook fails
    (HTTP errors, API failures, timeouts, etc.).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            status_code: HTTP status code (if applicable)
            response_text: Response body text (if applicable)
        """
        self.message = message
        self.status_code = status_code
        self.response_text = response_text

        full_message = message
        if status_code:
            full_message = f"{message} (HTTP {status_code})"

        super().__init__(full_message)
