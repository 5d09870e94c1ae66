"""GitLab provider implementation using direct REST API calls."""

import urllib.parse
from typing import Any

import httpx
import structlog

from jira_automation.models.domain import ReviewRequestOutcome
from jira_automation.providers.base import ReviewRequestProvider
from jira_automation.utils.connection_pool import HTTPConnectionPool
from jira_automation.utils.retry import async_retry

log = structlog.get_logger(__name__)


class GitLabRestProvider(ReviewRequestProvider):
    """GitLab implementation of merge request creation using REST API v4.

    GitLab API notes:
    - Uses 'iid' (internal ID) for project-scoped MR numbers
    - Uses 'description' for the MR body
    - Labels are a comma-separated string
    - The project may be addressed by numeric id or URL-encoded path
    """

    def __init__(self, base_url: str, token: str, project_id: str):
        """Initialize GitLab provider.

        Args:
            base_url: GitLab base URL (e.g., https://gitlab.com)
            token: Personal/project access token with api scope
            project_id: Numeric project id or 'group/project' path
        """
        self.base_url = base_url.rstrip("/")
        self.api_base = f"{self.base_url}/api/v4"
        self.project_id = str(project_id)
        self.project_path = urllib.parse.quote(self.project_id, safe="")
        self._pool = HTTPConnectionPool(
            base_url=self.api_base,
            headers={
                "PRIVATE-TOKEN": token,
                "Content-Type": "application/json",
            },
        )

    async def close(self) -> None:
        await self._pool.close()

    async def __aenter__(self) -> "GitLabRestProvider":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=(httpx.TransportError,))
    async def find_user_id(self, display_name: str) -> int | None:
        """Resolve a display name to a GitLab user id.

        Only an unambiguous (single) match is returned; anything else is None.
        """
        response = await self._pool.get("/users", params={"search": display_name})
        response.raise_for_status()

        users = response.json()
        if len(users) == 1:
            return users[0]["id"]
        log.debug("gitlab_user_not_resolved", name=display_name, matches=len(users))
        return None

    async def create_review_request(
        self,
        source_branch: str,
        target_branch: str,
        title: str,
        description: str,
        labels: list[str] | None = None,
        assignee: str | None = None,
    ) -> ReviewRequestOutcome:
        """Create a merge request, or update the open one for the same branches."""
        log.info("create_merge_request", title=title, head=source_branch, base=target_branch)

        mrs_path = f"/projects/{self.project_path}/merge_requests"

        data: dict[str, Any] = {
            "source_branch": source_branch,
            "target_branch": target_branch,
            "title": title,
            "description": description,
        }
        if labels:
            data["labels"] = ",".join(labels)
        if assignee:
            assignee_id = await self._resolve_assignee(assignee)
            if assignee_id is not None:
                data["assignee_ids"] = [assignee_id]

        existing = await self._find_open_merge_request(source_branch, target_branch)
        if existing is not None:
            log.info("merge_request_exists", mr=existing["iid"], head=source_branch)
            update_data = {key: value for key, value in data.items() if key not in ("source_branch", "target_branch")}
            response = await self._pool.put(f"{mrs_path}/{existing['iid']}", json=update_data)
        else:
            response = await self._pool.post(mrs_path, json=data)
        response.raise_for_status()

        mr = response.json()
        log.info("merge_request_ready", url=mr["web_url"], mr=mr["iid"])
        return ReviewRequestOutcome(success=True, url=mr["web_url"], iid=mr["iid"])

    @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=(httpx.TransportError,))
    async def _find_open_merge_request(self, source_branch: str, target_branch: str) -> dict[str, Any] | None:
        response = await self._pool.get(
            f"/projects/{self.project_path}/merge_requests",
            params={
                "state": "opened",
                "source_branch": source_branch,
                "target_branch": target_branch,
            },
        )
        response.raise_for_status()

        for mr in response.json():
            if mr["source_branch"] == source_branch and mr["target_branch"] == target_branch:
                return mr
        return None

    async def _resolve_assignee(self, display_name: str) -> int | None:
        try:
            return await self.find_user_id(display_name)
        except httpx.HTTPError as e:
            log.warning("gitlab_user_lookup_failed", name=display_name, error=str(e))
            return None
