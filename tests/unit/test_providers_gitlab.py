"""Tests for jira_automation/providers/gitlab_rest.py - GitLab merge request provider.

GitLab specifics covered:
- Project addressed by URL-encoded path or numeric id
- Labels as a comma-separated string
- 'iid' as the project-scoped merge request number
- Reuse of an open merge request for the same branches
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from jira_automation.providers.gitlab_rest import GitLabRestProvider
from jira_automation.utils.connection_pool import HTTPConnectionPool

MRS_PATH = "/projects/group%2Fproject/merge_requests"

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def provider() -> GitLabRestProvider:
    return GitLabRestProvider(
        base_url="https://gitlab.example.com/",
        token="glpat-test",
        project_id="group/project",
    )


@pytest.fixture
def mock_pool(provider) -> AsyncMock:
    pool = AsyncMock(spec=HTTPConnectionPool)
    provider._pool = pool
    return pool


def response(payload=None) -> MagicMock:
    mock_response = MagicMock()
    mock_response.json.return_value = payload
    mock_response.raise_for_status = MagicMock()
    return mock_response


@pytest.fixture
def sample_mr_data() -> dict:
    return {
        "id": 9001,
        "iid": 7,
        "title": "[PROJ-1] Fix login bug",
        "source_branch": "feature/proj-1-fix-login-bug",
        "target_branch": "main",
        "web_url": "https://gitlab.example.com/group/project/-/merge_requests/7",
    }


# =============================================================================
# Tests
# =============================================================================


class TestInit:
    def test_path_project_is_encoded(self, provider):
        assert provider.api_base == "https://gitlab.example.com/api/v4"
        assert provider.project_path == "group%2Fproject"
        assert provider._pool.headers["PRIVATE-TOKEN"] == "glpat-test"

    def test_numeric_project(self):
        provider = GitLabRestProvider("https://gitlab.com", "t", project_id=1234)
        assert provider.project_path == "1234"


class TestCreateReviewRequest:
    @pytest.mark.asyncio
    async def test_creates_new_merge_request(self, provider, mock_pool, sample_mr_data):
        mock_pool.get.return_value = response([])
        mock_pool.post.return_value = response(sample_mr_data)

        outcome = await provider.create_review_request(
            source_branch="feature/proj-1-fix-login-bug",
            target_branch="main",
            title="[PROJ-1] Fix login bug",
            description="body",
            labels=["automation", "claude-generated", "high"],
        )

        assert outcome.success
        assert outcome.iid == 7
        assert outcome.url == sample_mr_data["web_url"]
        mock_pool.post.assert_awaited_once_with(
            MRS_PATH,
            json={
                "source_branch": "feature/proj-1-fix-login-bug",
                "target_branch": "main",
                "title": "[PROJ-1] Fix login bug",
                "description": "body",
                "labels": "automation,claude-generated,high",
            },
        )

    @pytest.mark.asyncio
    async def test_updates_existing_merge_request(self, provider, mock_pool, sample_mr_data):
        mock_pool.get.return_value = response([sample_mr_data])
        mock_pool.put.return_value = response(sample_mr_data)

        outcome = await provider.create_review_request(
            source_branch="feature/proj-1-fix-login-bug",
            target_branch="main",
            title="[PROJ-1] Fix login bug",
            description="updated body",
        )

        assert outcome.iid == 7
        mock_pool.post.assert_not_awaited()
        path = mock_pool.put.call_args.args[0]
        payload = mock_pool.put.call_args.kwargs["json"]
        assert path == f"{MRS_PATH}/7"
        assert payload == {"title": "[PROJ-1] Fix login bug", "description": "updated body"}

    @pytest.mark.asyncio
    async def test_assignee_resolved_when_unambiguous(self, provider, mock_pool, sample_mr_data):
        users = response([{"id": 42, "name": "Jane Doe"}])
        mock_pool.get.side_effect = [users, response([])]
        mock_pool.post.return_value = response(sample_mr_data)

        await provider.create_review_request("feature/x", "main", "t", "d", assignee="Jane Doe")

        assert mock_pool.post.call_args.kwargs["json"]["assignee_ids"] == [42]
        assert mock_pool.get.call_args_list[0].kwargs["params"] == {"search": "Jane Doe"}

    @pytest.mark.asyncio
    async def test_assignee_skipped_when_ambiguous(self, provider, mock_pool, sample_mr_data):
        users = response([{"id": 1}, {"id": 2}])
        mock_pool.get.side_effect = [users, response([])]
        mock_pool.post.return_value = response(sample_mr_data)

        await provider.create_review_request("feature/x", "main", "t", "d", assignee="Jane")

        assert "assignee_ids" not in mock_pool.post.call_args.kwargs["json"]

    @pytest.mark.asyncio
    async def test_assignee_lookup_failure_is_ignored(self, provider, mock_pool, sample_mr_data):
        request = httpx.Request("GET", "https://gitlab.example.com/api/v4/users")
        forbidden = response()
        forbidden.raise_for_status.side_effect = httpx.HTTPStatusError(
            "forbidden", request=request, response=httpx.Response(403, request=request)
        )
        mock_pool.get.side_effect = [forbidden, response([])]
        mock_pool.post.return_value = response(sample_mr_data)

        outcome = await provider.create_review_request("feature/x", "main", "t", "d", assignee="Jane")

        assert outcome.success

    @pytest.mark.asyncio
    async def test_create_failure_raises(self, provider, mock_pool):
        request = httpx.Request("POST", "https://gitlab.example.com/api/v4/projects/1/merge_requests")
        failing = response()
        failing.raise_for_status.side_effect = httpx.HTTPStatusError(
            "unprocessable", request=request, response=httpx.Response(422, request=request)
        )
        mock_pool.get.return_value = response([])
        mock_pool.post.return_value = failing

        with pytest.raises(httpx.HTTPStatusError):
            await provider.create_review_request("feature/x", "main", "t", "d")

        assert mock_pool.post.await_count == 1


@pytest.mark.asyncio
async def test_close(provider, mock_pool):
    await provider.close()
    mock_pool.close.assert_awaited_once()
