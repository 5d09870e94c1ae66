"""Template rendering for prompts, merge requests and tracker comments."""

from jira_automation.rendering.engine import SecureTemplateEngine

__all__ = ["SecureTemplateEngine"]
