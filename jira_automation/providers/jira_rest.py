"""Jira provider implementation using direct REST API v2 calls."""

from typing import Any
from urllib.parse import urlparse

import httpx
import structlog

from jira_automation.models.domain import Task, Transition
from jira_automation.providers.base import IssueTrackerProvider
from jira_automation.utils.connection_pool import HTTPConnectionPool
from jira_automation.utils.retry import async_retry

log = structlog.get_logger(__name__)

SEARCH_FIELDS = ["summary", "description", "priority", "labels", "assignee"]
CLOUD_HOST_SUFFIX = ".atlassian.net"


class JiraRestProvider(IssueTrackerProvider):
    """Jira implementation using REST API v2 with Basic authentication.

    Reads are retried on transport failures. Comments and transitions are
    not retried, so a flaky connection never produces duplicate comments.
    """

    def __init__(self, base_url: str, username: str, api_token: str, cloud: bool | None = None):
        """Initialize Jira provider.

        Args:
            base_url: Jira base URL (e.g., https://company.atlassian.net)
            username: Account e-mail or username
            api_token: API token used as the Basic auth password
            cloud: Use the Jira Cloud search endpoint. Detected from the
                host name when not given.
        """
        self.base_url = base_url.rstrip("/")
        if cloud is None:
            cloud = (urlparse(self.base_url).hostname or "").endswith(CLOUD_HOST_SUFFIX)
        self.cloud = cloud
        self.api_base = f"{self.base_url}/rest/api/2"
        self._pool = HTTPConnectionPool(
            base_url=self.api_base,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            auth=(username, api_token),
        )

    async def close(self) -> None:
        await self._pool.close()

    async def __aenter__(self) -> "JiraRestProvider":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @staticmethod
    def build_intake_query(
        project_key: str,
        status: str,
        labels: list[str],
    ) -> str:
        """Build the intake JQL.

        Example:
            >>> JiraRestProvider.build_intake_query("PROJ", "To Do", ["a", "b"])
            'project = "PROJ" AND status = "To Do" AND labels IN ("a","b") ORDER BY priority DESC, created ASC'
        """
        clauses = [f'project = "{project_key}"', f'status = "{status}"']
        if labels:
            quoted = ",".join(f'"{label}"' for label in labels)
            clauses.append(f"labels IN ({quoted})")
        return " AND ".join(clauses) + " ORDER BY priority DESC, created ASC"

    @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=(httpx.TransportError,))
    async def search_tasks(self, query: str, max_results: int = 10) -> list[Task]:
        log.info("jira_search", jql=query, max_results=max_results)

        payload: dict[str, Any] = {"jql": query, "maxResults": max_results, "fields": SEARCH_FIELDS}
        if self.cloud:
            # Cloud retired /search; /search/jql pages by token, not startAt
            response = await self._pool.post("/search/jql", json=payload)
        else:
            response = await self._pool.post("/search", json={**payload, "startAt": 0})
        response.raise_for_status()

        issues = response.json().get("issues", [])
        return [Task.from_jira(issue) for issue in issues]

    @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=(httpx.TransportError,))
    async def get_task(self, task_key: str) -> Task:
        log.info("jira_get_issue", task=task_key)

        response = await self._pool.get(f"/issue/{task_key}", params={"fields": ",".join(SEARCH_FIELDS)})
        response.raise_for_status()

        return Task.from_jira(response.json())

    async def add_comment(self, task_key: str, body: str) -> None:
        log.info("jira_add_comment", task=task_key)

        response = await self._pool.post(f"/issue/{task_key}/comment", json={"body": body})
        response.raise_for_status()

    @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=(httpx.TransportError,))
    async def list_transitions(self, task_key: str) -> list[Transition]:
        response = await self._pool.get(f"/issue/{task_key}/transitions")
        response.raise_for_status()

        return [
            Transition(
                id=str(item["id"]),
                name=item.get("name", ""),
                to_name=(item.get("to") or {}).get("name", ""),
            )
            for item in response.json().get("transitions", [])
        ]

    async def transition(
        self,
        task_key: str,
        transition_id: str,
        fields: dict[str, Any] | None = None,
    ) -> None:
        log.info("jira_transition", task=task_key, transition=transition_id)

        payload: dict[str, Any] = {"transition": {"id": transition_id}}
        if fields:
            payload["fields"] = fields

        response = await self._pool.post(f"/issue/{task_key}/transitions", json=payload)
        response.raise_for_status()
