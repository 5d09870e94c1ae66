"""Adapters for the issue tracker, code host, chat channel and coding agent."""

from jira_automation.providers.base import (
    IssueTrackerProvider,
    NotificationProvider,
    ReviewRequestProvider,
)
from jira_automation.providers.external_agent import AgentRun, ExternalAgentProvider
from jira_automation.providers.gitlab_rest import GitLabRestProvider
from jira_automation.providers.jira_rest import JiraRestProvider
from jira_automation.providers.teams_webhook import TeamsWebhookNotifier

__all__ = [
    "AgentRun",
    "ExternalAgentProvider",
    "GitLabRestProvider",
    "IssueTrackerProvider",
    "JiraRestProvider",
    "NotificationProvider",
    "ReviewRequestProvider",
    "TeamsWebhookNotifier",
]
