"""Factory for creating provider instances based on configuration."""

import structlog

from jira_automation.config.settings import AutomationSettings
from jira_automation.providers.external_agent import ExternalAgentProvider
from jira_automation.providers.gitlab_rest import GitLabRestProvider
from jira_automation.providers.jira_rest import JiraRestProvider
from jira_automation.providers.teams_webhook import TeamsWebhookNotifier

log = structlog.get_logger(__name__)


def create_tracker(settings: AutomationSettings) -> JiraRestProvider:
    """Create the Jira provider.

    Example:
        >>> settings = AutomationSettings.load()
        >>> async with create_tracker(settings) as jira:
        ...     tasks = await jira.search_tasks('project = "PROJ"')
    """
    log.info("creating_jira_provider", base_url=settings.jira_base_url)
    return JiraRestProvider(
        base_url=settings.jira_base_url,
        username=settings.jira_username,
        api_token=settings.jira_api_token.get_secret_value(),
        cloud=settings.jira_cloud,
    )


def create_review_provider(settings: AutomationSettings) -> GitLabRestProvider | None:
    """Create the GitLab provider, or None when its credentials are missing.

    A missing provider is not an error: the publisher still commits and
    pushes, and reports the merge request as skipped.
    """
    if not settings.gitlab_configured:
        log.warning("gitlab_not_configured")
        return None

    log.info("creating_gitlab_provider", base_url=settings.gitlab_url)
    return GitLabRestProvider(
        base_url=settings.gitlab_url,
        token=settings.gitlab_access_token.get_secret_value(),
        project_id=settings.gitlab_project_id,
    )


def create_notifier(settings: AutomationSettings) -> TeamsWebhookNotifier | None:
    """Create the Teams notifier, or None when no webhook is configured."""
    if not settings.teams_webhook_url:
        return None
    return TeamsWebhookNotifier(settings.teams_webhook_url)


def create_agent(settings: AutomationSettings) -> ExternalAgentProvider:
    return ExternalAgentProvider(
        command=settings.agent_command,
        args=settings.agent_args,
        timeout=settings.agent_timeout_seconds,
    )
