"""jira-automation: hand labelled Jira tasks to a coding agent and ship the result as a merge request."""

__version__ = "1.0.0"
