"""
Pytest configuration and fixtures for staging deploy checklist tests.
"""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from deploy_checklist.config import ChecklistLayout, Settings
from deploy_checklist.github_client import GitHubClient
from deploy_checklist.models import PullRequestRecord, TrackingTicket

REPO_URL = "https://github.com/Org/Repo"


def pr_url(number: int) -> str:
    return f"{REPO_URL}/pull/{number}"


def issue_url(number: int) -> str:
    return f"{REPO_URL}/issues/{number}"


def make_label(name: str) -> MagicMock:
    label = MagicMock()
    label.name = name
    return label


def make_pull(number: int, title: str = "", labels: tuple[str, ...] = (), merged_by: str | None = None) -> MagicMock:
    """PyGithub-shaped pull request mock."""
    pull = MagicMock()
    pull.number = number
    pull.html_url = pr_url(number)
    pull.title = title or f"Change #{number}"
    pull.labels = [make_label(name) for name in labels]
    pull.body = f"Body of #{number}"
    if merged_by is None:
        pull.merged_by = None
    else:
        pull.merged_by.login = merged_by
    return pull


@pytest.fixture
def mock_settings() -> Settings:
    """Settings for testing."""
    return Settings(
        _env_file=None,
        github_owner="Org",
        github_repository="Repo",
        github_personal_access_token="test-token",
        log_level="DEBUG",
        log_format="console",
    )


@pytest.fixture
def layout(mock_settings: Settings) -> ChecklistLayout:
    return mock_settings.checklist_layout


@pytest.fixture
def record_factory() -> Callable[..., PullRequestRecord]:
    def _make(
        number: int,
        title: str = "",
        labels: tuple[str, ...] = (),
        merged_by: str | None = None,
    ) -> PullRequestRecord:
        return PullRequestRecord(
            number=number,
            html_url=pr_url(number),
            title=title or f"Change #{number}",
            labels=set(labels),
            merged_by=merged_by,
        )

    return _make


@pytest.fixture
def ticket_factory() -> Callable[..., TrackingTicket]:
    def _make(number: int = 1, body: str = "") -> TrackingTicket:
        return TrackingTicket(
            title="Deploy Checklist: New Expensify 2026-10-18",
            url=issue_url(number),
            number=number,
            labels={"StagingDeployCash"},
            body=body,
        )

    return _make


@pytest.fixture
def mock_github_client() -> AsyncMock:
    """Mock GitHub client for testing."""
    client = AsyncMock(spec=GitHubClient)
    client.list_issues_by_label.return_value = []
    client.fetch_pull_requests.return_value = []
    return client


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Replacement for asyncio.sleep that records backoff delays."""
    return AsyncMock(return_value=None)
