"""
Domain models for the automation pipeline.

This module contains the data classes flowing between pipeline stages: the
task pulled from Jira, the prepared workspace, the normalized test outcome,
the review request outcome and the per-task and per-run results. None of
these are persisted; they live for the duration of one run.

Example:
    Building a task from a Jira search hit::

        task = Task(
            key="PROJ-1",
            summary="Fix login bug",
            description="Users cannot log in with SSO",
            priority="High",
            labels=["claude-automation"],
            assignee="Jane Doe",
        )
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jira_automation.enums import NotificationStatus, PipelineStage, RunnerKind


@dataclass(frozen=True)
class Task:
    """A unit of work pulled from the issue tracker.

    Immutable for the duration of one pipeline run. Ownership stays with
    the tracker; the pipeline never writes it back except through comments
    and transitions.
    """

    key: str
    """Unique, stable tracker identifier (e.g. ``PROJ-1``)."""

    summary: str
    """One-line task title."""

    description: str | None = None
    """Full task description, if any."""

    priority: str | None = None
    """Priority name as shown in the tracker (e.g. ``High``)."""

    labels: list[str] = field(default_factory=list)
    """Label names attached to the task."""

    assignee: str | None = None
    """Display name of the assignee."""

    @classmethod
    def from_jira(cls, data: dict[str, Any]) -> "Task":
        """Build a task from a Jira REST v2 issue payload.

        Args:
            data: Issue JSON with ``key`` and ``fields``

        Returns:
            Task instance
        """
        fields = data.get("fields") or {}
        priority = fields.get("priority") or {}
        assignee = fields.get("assignee") or {}
        labels = [
            label["name"] if isinstance(label, dict) else str(label)
            for label in fields.get("labels") or []
        ]
        return cls(
            key=data["key"],
            summary=fields.get("summary") or "",
            description=fields.get("description") or None,
            priority=priority.get("name"),
            labels=labels,
            assignee=assignee.get("displayName"),
        )


@dataclass(frozen=True)
class Workspace:
    """A local git checkout bound 1:1 to a task key."""

    directory: Path
    branch_name: str
    base_branch: str


@dataclass
class TestOutcome:
    """Normalized result of auto-detected test execution.

    Exactly one runner kind is selected per invocation. ``RunnerKind.NONE``
    with ``success=True`` means no test tooling was found.
    """

    __test__ = False

    success: bool
    runner: RunnerKind
    stdout: str = ""
    stderr: str = ""
    command: str | None = None
    exit_code: int | None = None

    @property
    def output(self) -> str:
        """Best available textual output, preferring stdout."""
        return self.stdout or self.stderr


@dataclass
class ReviewRequestOutcome:
    """Result of committing, pushing and opening a merge request."""

    success: bool
    url: str | None = None
    iid: int | None = None
    message: str | None = None
    error: str | None = None
    skipped: bool = False

    @property
    def detail(self) -> str:
        """Error or skip message for reporting."""
        return self.error or self.message or "unknown error"


@dataclass
class PipelineResult:
    """Aggregate outcome for one task.

    Constructed once per task by the orchestrator, consumed by status
    synchronization, then discarded.
    """

    task: Task
    success: bool
    workspace_dir: Path | None = None
    branch_name: str | None = None
    test_outcome: TestOutcome | None = None
    review_request: ReviewRequestOutcome | None = None
    error: str | None = None
    agent_output: str | None = None
    stage: PipelineStage = PipelineStage.INTAKE

    @property
    def tests_passed(self) -> bool:
        return self.test_outcome is not None and self.test_outcome.success

    @property
    def review_requested(self) -> bool:
        return self.review_request is not None and self.review_request.success

    @property
    def runner(self) -> str:
        """Runner kind used, or ``unknown`` when tests never ran."""
        return str(self.test_outcome.runner) if self.test_outcome else "unknown"

    @property
    def notification_status(self) -> NotificationStatus:
        """Tri-state status for chat notifications."""
        if not self.success:
            return NotificationStatus.FAILURE
        if self.tests_passed and self.review_requested:
            return NotificationStatus.SUCCESS
        return NotificationStatus.PARTIAL


@dataclass(frozen=True)
class Transition:
    """A tracker-defined status change available for a task."""

    id: str
    name: str
    to_name: str = ""

    def matches(self, target: str) -> bool:
        """Case-insensitive containment match on name or destination state."""
        needle = target.lower()
        return needle in self.name.lower() or needle in self.to_name.lower()


@dataclass
class DeliveryResult:
    """Outcome of a fire-and-forget side effect (comment, transition, webhook).

    Inspected only for logging; never used for control flow.
    """

    success: bool
    detail: str | None = None
    error: str | None = None
    skipped: bool = False


@dataclass
class RunSummary:
    """Counts of successful vs. failed tasks across one run."""

    results: list[PipelineResult] = field(default_factory=list)

    def record(self, result: PipelineResult) -> None:
        self.results.append(result)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded
