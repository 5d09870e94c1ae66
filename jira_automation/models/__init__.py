"""Domain models for the automation pipeline."""

from jira_automation.models.domain import (
    DeliveryResult,
    PipelineResult,
    ReviewRequestOutcome,
    RunSummary,
    Task,
    TestOutcome,
    Transition,
    Workspace,
)

__all__ = [
    "DeliveryResult",
    "PipelineResult",
    "ReviewRequestOutcome",
    "RunSummary",
    "Task",
    "TestOutcome",
    "Transition",
    "Workspace",
]
