"""
Tests for the HTTP surface of the checklist service.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from deploy_checklist.exceptions import (
    AmbiguousStateError,
    DeployChecklistError,
    MalformedTicketError,
    NotFoundError,
    RateLimitExceededError,
    TransportFailureError,
)
from deploy_checklist.main import create_app, main, status_code_for
from deploy_checklist.models import ChecklistDocument, PREntry, RenderedChecklist
from deploy_checklist.orchestrator import ChecklistOrchestrator

from conftest import issue_url, pr_url


@pytest.fixture
def orchestrator() -> AsyncMock:
    return AsyncMock(spec=ChecklistOrchestrator)


@pytest.fixture
def http_client(mock_settings, orchestrator):
    app = create_app(mock_settings, orchestrator=orchestrator)
    with TestClient(app) as client:
        yield client


def test_health(http_client):
    response = http_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_get_checklist(http_client, orchestrator, ticket_factory):
    ticket = ticket_factory(number=7)
    document = ChecklistDocument(
        tag="1.2.3-4",
        pull_requests=[PREntry(url=pr_url(100), number=100, verified=False)],
    )
    orchestrator.get_active_checklist.return_value = (ticket, document)

    response = http_client.get("/checklist")

    assert response.status_code == 200
    payload = response.json()
    assert payload["issue_number"] == 7
    assert payload["tag"] == "1.2.3-4"
    assert payload["pull_requests"] == [
        {"url": pr_url(100), "number": 100, "verified": False}
    ]


def test_refresh_checklist(http_client, orchestrator, ticket_factory):
    orchestrator.find_deploy_blockers.return_value = [issue_url(9)]
    orchestrator.refresh_active_ticket.return_value = (
        ticket_factory(number=7),
        RenderedChecklist(body="body", assignees=["alice"]),
    )

    response = http_client.post(
        "/checklist/refresh",
        json={
            "pull_requests": [pr_url(1)],
            "deploy_blockers": [issue_url(2)],
            "include_labelled_blockers": True,
        },
    )

    assert response.status_code == 200
    assert response.json() == {"issue_number": 7, "assignees": ["alice"]}
    orchestrator.refresh_active_ticket.assert_awaited_once_with(
        new_pull_requests=[pr_url(1)],
        new_deploy_blockers=[issue_url(2), issue_url(9)],
    )


def test_refresh_without_labelled_blockers(http_client, orchestrator, ticket_factory):
    orchestrator.refresh_active_ticket.return_value = (
        ticket_factory(number=7),
        RenderedChecklist(body="body"),
    )

    response = http_client.post("/checklist/refresh", json={})

    assert response.status_code == 200
    orchestrator.find_deploy_blockers.assert_not_called()


def test_generate_checklist(http_client, orchestrator, ticket_factory):
    orchestrator.generate_ticket.return_value = ticket_factory(number=12)

    response = http_client.post(
        "/checklist", json={"tag": "1.3.0-0", "pull_requests": [pr_url(1)]}
    )

    assert response.status_code == 201
    assert response.json()["issue_number"] == 12
    orchestrator.generate_ticket.assert_awaited_once_with("1.3.0-0", [pr_url(1)], [])


@pytest.mark.parametrize(
    ("error", "status", "code"),
    [
        (NotFoundError("Unable to find StagingDeployCash issue."), 404, "NOT_FOUND"),
        (AmbiguousStateError("Found more than one", issue_numbers=[1, 2]), 409, "AMBIGUOUS_STATE"),
        (MalformedTicketError("no tag"), 422, "MALFORMED_TICKET"),
        (RateLimitExceededError("quota", attempts=6), 429, "RATE_LIMIT_EXCEEDED"),
        (TransportFailureError("boom", status_code=500), 502, "TRANSPORT_FAILURE"),
    ],
)
def test_error_mapping(http_client, orchestrator, error, status, code):
    orchestrator.get_active_checklist.side_effect = error

    response = http_client.get("/checklist")

    assert response.status_code == status
    assert response.json() == {"error": code, "message": error.message}


def test_unknown_error_is_server_error():
    assert status_code_for(DeployChecklistError("unexpected")) == 500


def test_main_runs_server_from_settings(mock_settings):
    mock_settings.host = "127.0.0.1"
    mock_settings.port = 9000

    with patch("deploy_checklist.main.get_settings", return_value=mock_settings), patch(
        "uvicorn.run"
    ) as run:
        main()

    kwargs = run.call_args.kwargs
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 9000
    assert kwargs["log_config"] is None
