"""Sync stage - report a task's outcome back to Jira and the chat channel.

Everything here is fire-and-forget. A failed comment, transition or card
is logged and reported on the returned ``DeliveryResult``; it never
changes the task's result or stops the run.
"""

from datetime import datetime
from typing import Any

import httpx
import structlog

from jira_automation.config.settings import AutomationSettings
from jira_automation.engine.stages.base import Stage
from jira_automation.enums import PipelineStage
from jira_automation.exceptions import AutomationError, SyncError
from jira_automation.models.domain import DeliveryResult, PipelineResult, Task, Transition
from jira_automation.providers.base import IssueTrackerProvider, NotificationProvider
from jira_automation.rendering.engine import SecureTemplateEngine

log = structlog.get_logger(__name__)

CARD_CONTEXT = "https://schema.org/extensions"
STARTED_COLOR = "0078D4"


def _open_uri(name: str, uri: str) -> dict[str, Any]:
    return {"@type": "OpenUri", "name": name, "targets": [{"os": "default", "uri": uri}]}


def build_result_card(task: Task, result: PipelineResult, settings: AutomationSettings) -> dict[str, Any]:
    """Build the MessageCard summarizing a finished task.

    The theme colour follows the tri-state notification status: green for
    full success, orange when tests or the merge request did not go
    through, red when the pipeline failed.
    """
    status = result.notification_status
    jira_url = settings.browse_url(task.key)
    runner = result.runner.upper()

    if result.review_requested:
        merge_request = "Created"
    elif result.review_request is not None and result.review_request.skipped:
        merge_request = "Skipped"
    else:
        merge_request = "Error"

    actions = [_open_uri("View Jira task", jira_url)]
    if result.review_requested and result.review_request.url:
        actions.append(_open_uri("View merge request", result.review_request.url))
    if settings.ci_pipeline_url:
        actions.append(_open_uri("View CI/CD logs", settings.ci_pipeline_url))

    return {
        "@type": "MessageCard",
        "@context": CARD_CONTEXT,
        "themeColor": status.theme_color,
        "summary": f"Automated task: {task.key}",
        "sections": [
            {
                "activityTitle": "**Jira coding automation**",
                "activitySubtitle": f"Task {task.key} - {status.label}",
                "facts": [
                    {"name": "Task", "value": f"[{task.key}]({jira_url}) - {task.summary}"},
                    {"name": "Priority", "value": task.priority or "Not set"},
                    {"name": "Assignee", "value": task.assignee or "Unassigned"},
                    {"name": "Branch", "value": result.branch_name or "N/A"},
                    {
                        "name": "Tests",
                        "value": f"{runner} passed" if result.tests_passed else f"{runner} failed",
                    },
                    {"name": "Merge Request", "value": merge_request},
                ],
                "markdown": True,
            }
        ],
        "potentialAction": actions,
    }


def build_started_card(task: Task, settings: AutomationSettings) -> dict[str, Any]:
    """Build the blue "work started" MessageCard."""
    jira_url = settings.browse_url(task.key)
    return {
        "@type": "MessageCard",
        "@context": CARD_CONTEXT,
        "themeColor": STARTED_COLOR,
        "summary": f"Task {task.key} started",
        "sections": [
            {
                "activityTitle": "**Automation in progress**",
                "activitySubtitle": f"Task {task.key} - Started",
                "facts": [
                    {"name": "Task", "value": f"[{task.key}]({jira_url}) - {task.summary}"},
                    {"name": "Started at", "value": datetime.now().strftime("%Y-%m-%d %H:%M:%S")},
                    {"name": "Process", "value": "Coding agent at work..."},
                ],
                "markdown": True,
            }
        ],
    }


def find_transition(transitions: list[Transition], target: str) -> Transition | None:
    """First transition whose name or destination contains ``target`` (case-insensitive)."""
    for transition in transitions:
        if transition.matches(target):
            return transition
    return None


class StatusSynchronizer(Stage):
    """Post the outcome comment, move the task forward, and notify the channel."""

    stage = PipelineStage.SYNCED

    def __init__(
        self,
        settings: AutomationSettings,
        tracker: IssueTrackerProvider,
        notifier: NotificationProvider | None = None,
        templates: SecureTemplateEngine | None = None,
    ) -> None:
        super().__init__(settings, templates)
        self.tracker = tracker
        self.notifier = notifier

    async def sync(self, task: Task, result: PipelineResult) -> DeliveryResult:
        """Update Jira and the chat channel for a finished task.

        Returns:
            Delivery result of the tracker update; never raises
        """
        try:
            delivery = await self._update_tracker(task, result)
        except (AutomationError, httpx.HTTPError) as e:
            log.error("jira_update_failed", task=task.key, error=str(e))
            delivery = DeliveryResult(success=False, error=str(e))
        except Exception as e:
            log.error("jira_update_failed", task=task.key, error=str(e), exc_info=True)
            delivery = DeliveryResult(success=False, error=str(e))

        await self.notify_result(task, result)
        return delivery

    async def notify_started(self, task: Task) -> DeliveryResult:
        return await self._notify(task, build_started_card(task, self.settings))

    async def notify_result(self, task: Task, result: PipelineResult) -> DeliveryResult:
        return await self._notify(task, build_result_card(task, result, self.settings))

    async def _update_tracker(self, task: Task, result: PipelineResult) -> DeliveryResult:
        template = "jira_comment_success.md.j2" if result.success else "jira_comment_failure.md.j2"
        comment = self.templates.render(template, {"result": result})
        await self.tracker.add_comment(task.key, comment)
        log.info("jira_comment_posted", task=task.key, success=result.success)

        if not (result.success and result.tests_passed and result.review_requested):
            return DeliveryResult(success=True, detail="comment posted")

        target = self.settings.review_transition_name
        transition = find_transition(await self.tracker.list_transitions(task.key), target)
        if transition is None:
            log.warning("transition_not_found", task=task.key, target=target)
            return DeliveryResult(success=True, detail=f"comment posted; no '{target}' transition")

        fields = None
        if self.settings.review_url_field:
            fields = {self.settings.review_url_field: result.review_request.url}

        try:
            await self.tracker.transition(task.key, transition.id, fields=fields)
        except httpx.HTTPError as e:
            raise SyncError(f"Transition '{transition.name}' failed for {task.key}: {e}") from e

        log.info("jira_transitioned", task=task.key, transition=transition.name)
        return DeliveryResult(success=True, detail=f"moved to {transition.to_name or transition.name}")

    async def _notify(self, task: Task, card: dict[str, Any]) -> DeliveryResult:
        if self.notifier is None:
            log.debug("teams_notification_skipped", task=task.key)
            return DeliveryResult(success=False, skipped=True, detail="TEAMS_WEBHOOK_URL not configured")

        try:
            status_code = await self.notifier.send(card)
        except httpx.HTTPError as e:
            log.error("teams_notification_failed", task=task.key, error=str(e))
            return DeliveryResult(success=False, error=str(e))

        return DeliveryResult(success=True, detail=f"HTTP {status_code}")
