"""
Abstract interfaces for the external collaborators of the pipeline.

The orchestrator and stages depend only on these interfaces, which keeps
the issue tracker, code host and chat channel swappable and lets tests
substitute ``AsyncMock(spec=...)`` doubles.

Provider Types:
    IssueTrackerProvider: Intake queries, comments and status transitions
    ReviewRequestProvider: Merge/pull request creation on a code host
    NotificationProvider: Chat channel delivery
"""

from abc import ABC, abstractmethod
from typing import Any

from jira_automation.models.domain import ReviewRequestOutcome, Task, Transition


class IssueTrackerProvider(ABC):
    """Abstract interface for the issue tracker holding the work items."""

    @abstractmethod
    async def search_tasks(self, query: str, max_results: int = 10) -> list[Task]:
        """Fetch candidate tasks matching a tracker query.

        Args:
            query: Tracker-native filter (JQL for Jira)
            max_results: Page size bound

        Returns:
            Tasks in the order returned by the tracker
        """
        pass

    @abstractmethod
    async def get_task(self, task_key: str) -> Task:
        """Fetch a single task by key."""
        pass

    @abstractmethod
    async def add_comment(self, task_key: str, body: str) -> None:
        """Post a comment on a task."""
        pass

    @abstractmethod
    async def list_transitions(self, task_key: str) -> list[Transition]:
        """List the transitions currently available for a task."""
        pass

    @abstractmethod
    async def transition(
        self,
        task_key: str,
        transition_id: str,
        fields: dict[str, Any] | None = None,
    ) -> None:
        """Execute a transition, optionally setting fields."""
        pass


class ReviewRequestProvider(ABC):
    """Abstract interface for a code host that accepts review requests."""

    @abstractmethod
    async def create_review_request(
        self,
        source_branch: str,
        target_branch: str,
        title: str,
        description: str,
        labels: list[str] | None = None,
        assignee: str | None = None,
    ) -> ReviewRequestOutcome:
        """Open (or update) a review request from source into target.

        Raises:
            httpx.HTTPError: On API or transport failure
        """
        pass


class NotificationProvider(ABC):
    """Abstract interface for chat channel notifications."""

    @abstractmethod
    async def send(self, payload: dict[str, Any]) -> int:
        """Deliver a structured card payload.

        Returns:
            HTTP status code of the delivery
        """
        pass
