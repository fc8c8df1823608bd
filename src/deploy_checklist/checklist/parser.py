"""
Parser for staging deploy checklist issue bodies.

The body is a sequence of optional sections, each introduced by a fixed
heading and holding checklist lines up to the next blank line. A missing
section parses to an empty list; only a missing release tag is an error.
"""

from collections.abc import Callable
from typing import TypeVar

import structlog

from ..exceptions import InvalidURLError, MalformedTicketError
from ..models import (
    ChecklistDocument,
    InternalQAEntry,
    IssueEntry,
    PREntry,
    TrackingTicket,
    VerificationChecks,
)
from ..urls import (
    get_issue_or_pull_request_number_from_url,
    get_pull_request_number_from_url,
)
from .template import (
    CHECKLIST_ITEM_REGEX,
    DEPLOY_BLOCKERS_SENTINEL,
    FIREBASE_MARKER,
    GITHUB_STATUS_MARKER,
    INTERNAL_QA_SENTINEL,
    PULL_REQUESTS_SENTINEL,
    TAG_REGEX,
    TIMING_DASHBOARD_MARKER,
    checked_marker_regex,
)

logger = structlog.get_logger(__name__)

EntryT = TypeVar("EntryT", PREntry, IssueEntry, InternalQAEntry)

_TIMING_DASHBOARD_CHECKED = checked_marker_regex(TIMING_DASHBOARD_MARKER)
_FIREBASE_CHECKED = checked_marker_regex(FIREBASE_MARKER)
_GITHUB_STATUS_CHECKED = checked_marker_regex(GITHUB_STATUS_MARKER)


def _is_list_line(line: str) -> bool:
    return line.startswith("-")


def _is_checkbox_line(line: str) -> bool:
    return line.startswith("- [ ]") or line.startswith("- [x]")


def _section_lines(
    lines: list[str], sentinel: str, belongs: Callable[[str], bool]
) -> list[str]:
    """
    Return the block of lines following the first heading ending in ``sentinel``.

    The block ends at the first line ``belongs`` rejects, normally the blank
    line terminating the section.
    """
    for index, line in enumerate(lines):
        if not line.rstrip().endswith(sentinel):
            continue
        block = []
        for candidate in lines[index + 1 :]:
            if not belongs(candidate):
                break
            block.append(candidate)
        return block
    return []


def _parse_entries(
    block: list[str],
    number_from_url: Callable[[str], int],
    build: Callable[[str, int, bool, str | None], EntryT],
) -> list[EntryT]:
    entries: dict[int, EntryT] = {}
    for line in block:
        match = CHECKLIST_ITEM_REGEX.match(line)
        if match is None:
            continue
        state, url, mention = match.groups()
        try:
            number = number_from_url(url)
        except InvalidURLError:
            logger.debug("Skipping checklist line without a GitHub URL", line=line)
            continue
        entries.setdefault(number, build(url, number, state == "x", mention))
    return [entries[number] for number in sorted(entries)]


def parse_pull_requests(lines: list[str]) -> list[PREntry]:
    block = _section_lines(lines, PULL_REQUESTS_SENTINEL, _is_list_line)
    if not block:
        logger.info(
            "The open staging deploy checklist does not list any pull requests"
        )
    return _parse_entries(
        block,
        get_pull_request_number_from_url,
        lambda url, number, checked, _: PREntry(
            url=url, number=number, verified=checked
        ),
    )


def parse_deploy_blockers(lines: list[str]) -> list[IssueEntry]:
    block = _section_lines(lines, DEPLOY_BLOCKERS_SENTINEL, _is_list_line)
    return _parse_entries(
        block,
        get_issue_or_pull_request_number_from_url,
        lambda url, number, checked, _: IssueEntry(
            url=url, number=number, resolved=checked
        ),
    )


def parse_internal_qa(lines: list[str]) -> list[InternalQAEntry]:
    block = _section_lines(lines, INTERNAL_QA_SENTINEL, _is_checkbox_line)
    return _parse_entries(
        block,
        get_pull_request_number_from_url,
        lambda url, number, checked, mention: InternalQAEntry(
            url=url, number=number, resolved=checked, assignee=mention
        ),
    )


def parse_tag(body: str) -> str:
    """
    Find the release tag: the first ``MAJOR.MINOR.PATCH[-BUILD]`` token in the body.

    Raises:
        MalformedTicketError: If the body holds no version token
    """
    match = TAG_REGEX.search(body or "")
    if match is None:
        raise MalformedTicketError("Unable to find a release tag in the checklist body")
    return match.group(0)


def parse_checks(body: str) -> VerificationChecks:
    return VerificationChecks(
        timing_dashboard=bool(_TIMING_DASHBOARD_CHECKED.search(body)),
        firebase=bool(_FIREBASE_CHECKED.search(body)),
        github_status=bool(_GITHUB_STATUS_CHECKED.search(body)),
    )


def parse_checklist(body: str | None, issue_number: int | None = None) -> ChecklistDocument:
    """
    Parse a staging deploy checklist body into a structured document.

    Args:
        body: Raw issue body
        issue_number: Issue the body belongs to, for error reporting

    Returns:
        Parsed checklist document

    Raises:
        MalformedTicketError: If the release tag cannot be located
    """
    try:
        tag = parse_tag(body or "")
    except Exception as e:
        logger.error(
            "Staging deploy checklist has no release tag", issue_number=issue_number
        )
        raise MalformedTicketError(
            "Unable to find staging deploy checklist with correct data",
            issue_number=issue_number,
        ) from e

    lines = (body or "").splitlines()

    return ChecklistDocument(
        tag=tag,
        pull_requests=parse_pull_requests(lines),
        deploy_blockers=parse_deploy_blockers(lines),
        internal_qa=parse_internal_qa(lines),
        checks=parse_checks(body or ""),
    )


def parse_ticket(ticket: TrackingTicket) -> ChecklistDocument:
    """Parse the body of a tracking ticket."""
    return parse_checklist(ticket.body, issue_number=ticket.number)
