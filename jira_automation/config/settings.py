"""
Configuration system using Pydantic for type-safe settings management.

Settings are sourced from environment variables and an optional ``.env``
file. A single ``AutomationSettings`` instance is built at startup and
passed explicitly to every component.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from jira_automation.exceptions import ConfigurationError


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class AutomationSettings(BaseSettings):
    """Main automation settings.

    Field names map to upper-cased environment variables, e.g.
    ``jira_host`` is read from ``JIRA_HOST``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Issue tracker
    jira_host: str = Field(..., description="Jira host, e.g. company.atlassian.net")
    jira_username: str = Field(..., description="Jira account e-mail / username")
    jira_api_token: SecretStr = Field(..., description="Jira API token")
    jira_project_key: str = Field(..., description="Project key used in the intake query")
    jira_cloud: bool | None = Field(
        default=None, description="Force the Jira Cloud search endpoint (detected from the host when unset)"
    )
    target_labels: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["claude-automation"],
        description="Label filter for intake (comma-separated in the environment)",
    )
    intake_status: str = Field(default="To Do", description="Status of tasks eligible for intake")
    max_tasks: int = Field(default=10, ge=1, le=100, description="Maximum tasks fetched per run")
    review_transition_name: str = Field(
        default="Code Review", description="Phrase matched against transition names after success"
    )
    review_url_field: str | None = Field(
        default=None, description="Custom field receiving the merge request URL on transition"
    )

    # Workspaces
    working_dir: Path = Field(default=Path("/workspace"), description="Root of per-task workspaces")
    repository_url: str | None = Field(default=None, description="Repository cloned into each workspace")
    default_branch: str = Field(default="main", description="Base branch for feature branches")
    git_user_name: str = Field(default="Jira Claude Automation")
    git_user_email: str = Field(default="jira-automation@company.com")

    # Coding agent
    agent_command: str = Field(default="claude", description="Coding agent executable")
    agent_args: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["--print", "--dangerously-skip-permissions"],
        description="Arguments placed before the prompt (space-separated in the environment)",
    )
    agent_timeout_seconds: float | None = Field(default=None, gt=0)

    # Tests
    test_timeout_seconds: float | None = Field(default=None, gt=0)
    publish_on_test_failure: bool = Field(
        default=False, description="Open the merge request even when tests fail"
    )

    # Code host
    gitlab_url: str = Field(default="https://gitlab.com")
    gitlab_access_token: SecretStr | None = None
    gitlab_project_id: str | None = None

    # Notifications
    teams_webhook_url: str | None = None
    ci_pipeline_url: str | None = None

    # Run behaviour
    task_cooldown_seconds: float = Field(default=2.0, ge=0.0)
    log_level: str = Field(default="INFO")
    log_file: str | None = Field(default="logs/automation.log")

    @field_validator("target_labels", mode="before")
    @classmethod
    def _parse_labels(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("agent_args", mode="before")
    @classmethod
    def _parse_agent_args(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.split()
        return value

    @field_validator("repository_url", "gitlab_project_id", "teams_webhook_url", "ci_pipeline_url", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("jira_cloud", mode="before")
    @classmethod
    def _blank_flag_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def jira_base_url(self) -> str:
        """Jira base URL, defaulting to https when the host has no scheme."""
        host = self.jira_host.rstrip("/")
        if host.startswith(("http://", "https://")):
            return host
        return f"https://{host}"

    def browse_url(self, task_key: str) -> str:
        """Browsable tracker URL for a task."""
        return f"{self.jira_base_url}/browse/{task_key}"

    @property
    def gitlab_configured(self) -> bool:
        """Whether merge request creation credentials are present."""
        token = self.gitlab_access_token.get_secret_value() if self.gitlab_access_token else ""
        return bool(token and self.gitlab_project_id)

    @classmethod
    def load(cls, env_file: str | None = None, **overrides: Any) -> AutomationSettings:
        """Build settings from the environment.

        Args:
            env_file: Optional dotenv file (defaults to ``.env`` if present)
            **overrides: Explicit values taking precedence over the environment

        Returns:
            AutomationSettings instance

        Raises:
            ConfigurationError: If required values are missing or invalid
        """
        try:
            if env_file is not None:
                return cls(_env_file=env_file, **overrides)
            return cls(**overrides)
        except ValidationError as e:
            raise ConfigurationError(cls._describe_validation_error(e)) from e

    @staticmethod
    def _describe_validation_error(error: ValidationError) -> str:
        missing = [
            str(err["loc"][0]).upper() for err in error.errors() if err["type"] == "missing" and err["loc"]
        ]
        if missing:
            return f"Missing required configuration: {', '.join(missing)}"
        first = error.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "settings"
        return f"Invalid configuration for {location}: {first['msg']}"

