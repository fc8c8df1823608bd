"""
Staging deploy checklist orchestration.

This module locates the single open tracking issue, merges newly observed
pull requests and deploy blockers into its checklist, and writes the
re-rendered body back in one update call.
"""

from collections.abc import Iterable, Mapping
from datetime import date

import structlog

from .checklist.parser import parse_tag, parse_ticket
from .checklist.serializer import build_checklist_body
from .config import Settings
from .exceptions import AmbiguousStateError, MalformedTicketError, NotFoundError
from .github_client import GitHubClient
from .models import (
    ChecklistDocument,
    PullRequestRecord,
    RenderedChecklist,
    TrackingTicket,
    VerificationChecks,
)
from .urls import get_pull_request_number_from_url

logger = structlog.get_logger(__name__)


class ChecklistOrchestrator:
    """
    Manager for the staging deploy tracking issue.

    Every operation works on a fresh snapshot of the issue body. On any
    failure nothing is written, so the previous body stays authoritative.
    """

    def __init__(self, github_client: GitHubClient, settings: Settings):
        """
        Initialize the checklist orchestrator.

        Args:
            github_client: GitHub API client
            settings: Application settings
        """
        self.github_client = github_client
        self.settings = settings
        self.layout = settings.checklist_layout
        self.staging_deploy_label = settings.staging_deploy_label

    async def find_active_ticket(self) -> TrackingTicket:
        """
        Find the one open issue carrying the staging deploy label.

        Raises:
            NotFoundError: If no such issue is open
            AmbiguousStateError: If more than one such issue is open
        """
        tickets = await self.github_client.list_issues_by_label(
            self.staging_deploy_label, state="open"
        )

        if not tickets:
            raise NotFoundError(f"Unable to find {self.staging_deploy_label} issue.")

        if len(tickets) > 1:
            numbers = sorted(ticket.number for ticket in tickets)
            logger.error(
                "Found more than one open staging deploy issue",
                label=self.staging_deploy_label,
                issue_numbers=numbers,
            )
            raise AmbiguousStateError(
                f"Found more than one {self.staging_deploy_label} issue.",
                issue_numbers=numbers,
            )

        return tickets[0]

    async def get_active_checklist(self) -> tuple[TrackingTicket, ChecklistDocument]:
        """Find the active tracking issue and parse its checklist."""
        ticket = await self.find_active_ticket()
        return ticket, parse_ticket(ticket)

    async def find_deploy_blockers(self) -> list[str]:
        """URLs of open issues and pull requests labelled as deploy blockers."""
        blockers = await self.github_client.list_issues_by_label(
            self.settings.deploy_blocker_label,
            state="open",
            include_pull_requests=True,
        )
        return [blocker.url for blocker in blockers]

    async def _fetch_records(self, pull_requests: list[str]) -> list[PullRequestRecord]:
        numbers = [get_pull_request_number_from_url(url) for url in pull_requests]
        records = await self.github_client.fetch_pull_requests(numbers)

        # Listing payloads carry no merge actor; internal QA needs one.
        resolved = []
        for record in records:
            if record.has_label(self.layout.internal_qa_label) and not record.merged_by:
                record = await self.github_client.get_pull_request(record.number)
            resolved.append(record)
        return resolved

    async def refresh(
        self,
        ticket: TrackingTicket,
        pull_requests: Iterable[str],
        verified: Iterable[str] = (),
        deploy_blockers: Iterable[str] = (),
        resolved_deploy_blockers: Iterable[str] = (),
        resolved_internal_qa: Iterable[str] = (),
        checks: VerificationChecks | None = None,
        known_internal_qa: Mapping[str, str | None] | None = None,
    ) -> RenderedChecklist:
        """
        Render an updated body for a tracking issue.

        Args:
            ticket: Tracking issue whose release tag is kept
            pull_requests: URLs of every pull request in the release
            verified: Pull request URLs that passed QA
            deploy_blockers: Deploy blocker URLs
            resolved_deploy_blockers: Deploy blocker URLs already resolved
            resolved_internal_qa: Internal QA pull request URLs already verified
            checks: Deployer verification checkboxes
            known_internal_qa: Internal QA URL to assignee mapping already on
                the checklist, kept for pull requests the fetch did not return

        Returns:
            The rendered body and the internal QA assignees to notify
        """
        tag = parse_ticket(ticket).tag
        pull_requests = list(pull_requests)

        records = await self._fetch_records(pull_requests)

        return build_checklist_body(
            tag,
            pull_requests,
            layout=self.layout,
            verified=verified,
            deploy_blockers=deploy_blockers,
            resolved_deploy_blockers=resolved_deploy_blockers,
            resolved_internal_qa=resolved_internal_qa,
            checks=checks,
            records=records,
            known_internal_qa=known_internal_qa,
        )

    async def refresh_active_ticket(
        self,
        new_pull_requests: Iterable[str] = (),
        new_deploy_blockers: Iterable[str] = (),
    ) -> tuple[TrackingTicket, RenderedChecklist]:
        """
        Merge new pull requests and deploy blockers into the active checklist.

        Checked boxes already on the checklist are kept. The body is written
        back in a single update once rendering has succeeded.

        Returns:
            The tracking issue and its new rendered checklist
        """
        ticket, document = await self.get_active_checklist()

        rendered = await self.refresh(
            ticket,
            document.pull_request_urls + list(new_pull_requests),
            verified=document.verified_urls,
            deploy_blockers=document.deploy_blocker_urls + list(new_deploy_blockers),
            resolved_deploy_blockers=document.resolved_deploy_blocker_urls,
            resolved_internal_qa=document.resolved_internal_qa_urls,
            checks=document.checks,
            known_internal_qa=document.internal_qa_assignees,
        )

        await self.github_client.update_issue_body(ticket.number, rendered.body)
        logger.info(
            "Staging deploy checklist refreshed",
            issue_number=ticket.number,
            tag=document.tag,
            assignees=rendered.assignees,
        )
        return ticket, rendered

    async def generate_ticket(
        self,
        tag: str,
        pull_requests: Iterable[str],
        deploy_blockers: Iterable[str] = (),
    ) -> TrackingTicket:
        """
        Create the tracking issue for a new release from an empty checklist.

        Raises:
            MalformedTicketError: If ``tag`` is not a release version
            AmbiguousStateError: If a tracking issue is already open
        """
        if parse_tag(tag) != tag:
            raise MalformedTicketError(f"Invalid release tag: {tag}")

        try:
            existing = await self.find_active_ticket()
        except NotFoundError:
            existing = None
        if existing is not None:
            raise AmbiguousStateError(
                f"A {self.staging_deploy_label} issue is already open.",
                issue_numbers=[existing.number],
            )

        pull_requests = list(pull_requests)
        records = await self._fetch_records(pull_requests)
        rendered = build_checklist_body(
            tag,
            pull_requests,
            layout=self.layout,
            deploy_blockers=deploy_blockers,
            records=records,
        )

        ticket = await self.github_client.create_issue(
            title=f"{self.settings.checklist_title_prefix} {date.today().isoformat()}",
            body=rendered.body,
            labels=[self.staging_deploy_label],
            assignees=rendered.assignees,
        )
        logger.info(
            "Created staging deploy checklist", issue_number=ticket.number, tag=tag
        )
        return ticket
