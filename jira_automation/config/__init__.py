"""Configuration for the automation pipeline."""

from jira_automation.config.settings import AutomationSettings

__all__ = ["AutomationSettings"]
