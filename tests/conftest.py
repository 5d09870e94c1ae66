"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from jira_automation.config.settings import AutomationSettings
from jira_automation.models.domain import Task, Workspace

SETTINGS_ENV_VARS = (
    "JIRA_HOST",
    "JIRA_USERNAME",
    "JIRA_API_TOKEN",
    "JIRA_PROJECT_KEY",
    "JIRA_CLOUD",
    "PUBLISH_ON_TEST_FAILURE",
    "TARGET_LABELS",
    "WORKING_DIR",
    "REPOSITORY_URL",
    "GITLAB_ACCESS_TOKEN",
    "GITLAB_PROJECT_ID",
    "TEAMS_WEBHOOK_URL",
    "CI_PIPELINE_URL",
    "AGENT_ARGS",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of settings-based tests."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path: Path) -> AutomationSettings:
    """Fully configured settings rooted in a temp working directory."""
    return AutomationSettings(
        _env_file=None,
        jira_host="company.atlassian.net",
        jira_username="bot@company.com",
        jira_api_token="jira-token",
        jira_project_key="PROJ",
        working_dir=tmp_path / "workspaces",
        repository_url="https://gitlab.com/group/project.git",
        gitlab_access_token="glpat-test",
        gitlab_project_id="group/project",
        teams_webhook_url="https://outlook.office.com/webhook/test",
        task_cooldown_seconds=0,
        log_file=None,
    )


@pytest.fixture
def bare_settings(tmp_path: Path) -> AutomationSettings:
    """Settings with only the required values: no GitLab, no Teams."""
    return AutomationSettings(
        _env_file=None,
        jira_host="company.atlassian.net",
        jira_username="bot@company.com",
        jira_api_token="jira-token",
        jira_project_key="PROJ",
        working_dir=tmp_path / "workspaces",
        repository_url="https://gitlab.com/group/project.git",
        task_cooldown_seconds=0,
        log_file=None,
    )


@pytest.fixture
def sample_task() -> Task:
    """Sample task for testing."""
    return Task(
        key="PROJ-1",
        summary="Fix login bug",
        description="Users cannot log in with SSO",
        priority="High",
        labels=["claude-automation"],
        assignee="Jane Doe",
    )


@pytest.fixture
def workspace(tmp_path: Path, sample_task: Task) -> Workspace:
    """A prepared workspace with an initialized .git directory."""
    directory = tmp_path / "workspaces" / sample_task.key
    (directory / ".git").mkdir(parents=True)
    return Workspace(directory=directory, branch_name="feature/proj-1-fix-login-bug", base_branch="main")
