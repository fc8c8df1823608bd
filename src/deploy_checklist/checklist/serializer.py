"""
Serializer for staging deploy checklist issue bodies.

Rendering is a pure function of its inputs: every list is deduplicated and
sorted by the number in its URLs, so the same inputs always produce the same
bytes, and a rendered body parses back to the same document.
"""

from collections.abc import Callable, Iterable, Mapping

import structlog

from ..config import ChecklistLayout
from ..models import (
    ChecklistDocument,
    PullRequestRecord,
    RenderedChecklist,
    VerificationChecks,
)
from ..urls import (
    get_issue_or_pull_request_number_from_url,
    get_pull_request_number_from_url,
)
from .template import (
    COMPARE_CHANGES_LABEL,
    DEPLOY_BLOCKERS_HEADER,
    FIREBASE_CHECK,
    GITHUB_STATUS_CHECK,
    INTERNAL_QA_HEADER,
    LINE_BREAK,
    NO_QA_REGEX,
    PULL_REQUESTS_HEADER,
    RELEASE_VERSION_LABEL,
    TIMING_DASHBOARD_CHECK,
    VERIFICATIONS_HEADER,
    checkbox,
)

logger = structlog.get_logger(__name__)


def _unique_by_number(
    urls: Iterable[str], number_from_url: Callable[[str], int]
) -> dict[int, str]:
    """Map each number to the first URL seen for it, in ascending number order."""
    unique: dict[int, str] = {}
    for url in urls:
        unique.setdefault(number_from_url(url), url)
    return dict(sorted(unique.items()))


def _numbers(urls: Iterable[str], number_from_url: Callable[[str], int]) -> set[int]:
    return {number_from_url(url) for url in urls}


def classify_internal_qa(
    records: Iterable[PullRequestRecord], label: str
) -> dict[int, str | None]:
    """Map the number of every record carrying ``label`` to the login that merged it."""
    return {
        record.number: record.merged_by for record in records if record.has_label(label)
    }


def find_no_qa_numbers(records: Iterable[PullRequestRecord]) -> set[int]:
    """Numbers of pull requests whose title opts out of QA, e.g. ``[No QA]``."""
    return {record.number for record in records if NO_QA_REGEX.search(record.title)}


def build_checklist_body(
    tag: str,
    pull_requests: Iterable[str],
    *,
    layout: ChecklistLayout,
    verified: Iterable[str] = (),
    deploy_blockers: Iterable[str] = (),
    resolved_deploy_blockers: Iterable[str] = (),
    resolved_internal_qa: Iterable[str] = (),
    checks: VerificationChecks | None = None,
    records: Iterable[PullRequestRecord] = (),
    known_internal_qa: Mapping[str, str | None] | None = None,
) -> RenderedChecklist:
    """
    Render a staging deploy checklist body.

    Entries are identified by the number in their URL. When several URLs
    carry the same number, the first one is rendered.

    Args:
        tag: Release version
        pull_requests: URLs of every pull request in the release
        layout: Fixed text of the checklist
        verified: Pull request URLs that passed QA
        deploy_blockers: Deploy blocker issue or pull request URLs
        resolved_deploy_blockers: Deploy blocker URLs already resolved
        resolved_internal_qa: Internal QA pull request URLs already verified
        checks: Deployer verification checkboxes
        records: Fetched metadata for the pull requests
        known_internal_qa: Internal QA URL to assignee mapping already on the
            checklist; kept for pull requests that have no fetched record

    Returns:
        The rendered body and the internal QA assignees

    Raises:
        InvalidURLError: If a URL is not a GitHub issue or pull request URL
    """
    records = list(records)
    checks = checks or VerificationChecks()
    release = _unique_by_number(pull_requests, get_pull_request_number_from_url)
    fetched = {record.number for record in records}

    known = {
        get_pull_request_number_from_url(url): assignee
        for url, assignee in (known_internal_qa or {}).items()
    }
    internal_qa = {
        number: assignee
        for number, assignee in known.items()
        if number in release and number not in fetched
    }
    for number, merged_by in classify_internal_qa(
        records, layout.internal_qa_label
    ).items():
        if number in release:
            internal_qa[number] = merged_by or known.get(number)
    internal_qa = dict(sorted(internal_qa.items()))
    logger.info("Found internal QA pull requests", pull_requests=list(internal_qa))

    no_qa = find_no_qa_numbers(records)
    logger.info("Found no QA pull requests", pull_requests=sorted(no_qa))
    verified_or_no_qa = _numbers(verified, get_pull_request_number_from_url) | no_qa

    main_pull_requests = {
        number: url for number, url in release.items() if number not in internal_qa
    }
    blockers = _unique_by_number(
        deploy_blockers, get_issue_or_pull_request_number_from_url
    )
    resolved_internal_qa_numbers = _numbers(
        resolved_internal_qa, get_pull_request_number_from_url
    )
    resolved_blocker_numbers = _numbers(
        resolved_deploy_blockers, get_issue_or_pull_request_number_from_url
    )

    body = (
        f"{RELEASE_VERSION_LABEL} `{tag}`{LINE_BREAK}"
        f"{COMPARE_CHANGES_LABEL} {layout.compare_url}{LINE_BREAK}"
    )

    if main_pull_requests:
        body += f"{LINE_BREAK}{PULL_REQUESTS_HEADER}{LINE_BREAK}"
        for number, url in main_pull_requests.items():
            body += f"{checkbox(number in verified_or_no_qa)} {url}{LINE_BREAK}"
        body += LINE_BREAK * 2

    if internal_qa:
        body += f"{INTERNAL_QA_HEADER}{LINE_BREAK}"
        for number, assignee in internal_qa.items():
            body += f"{checkbox(number in resolved_internal_qa_numbers)} {release[number]}"
            if assignee:
                body += f" - @{assignee}"
            body += LINE_BREAK
        body += LINE_BREAK * 2

    if blockers:
        body += f"{DEPLOY_BLOCKERS_HEADER}{LINE_BREAK}"
        for number, url in blockers.items():
            body += f"{checkbox(number in resolved_blocker_numbers)} {url}{LINE_BREAK}"
        body += LINE_BREAK * 2

    links = layout.model_dump()
    body += VERIFICATIONS_HEADER
    body += f"{LINE_BREAK}{checkbox(checks.timing_dashboard)} {TIMING_DASHBOARD_CHECK.format(**links)}"
    body += f"{LINE_BREAK}{checkbox(checks.firebase)} {FIREBASE_CHECK.format(**links)}"
    body += f"{LINE_BREAK}{checkbox(checks.github_status)} {GITHUB_STATUS_CHECK.format(**links)}"
    body += f"{LINE_BREAK}{LINE_BREAK}cc {layout.release_team_mention}{LINE_BREAK}"

    assignees = list(dict.fromkeys(assignee for assignee in internal_qa.values() if assignee))
    return RenderedChecklist(body=body, assignees=assignees)


def render_document(
    document: ChecklistDocument,
    records: Iterable[PullRequestRecord] = (),
    *,
    layout: ChecklistLayout,
) -> RenderedChecklist:
    """Render a parsed checklist document, merging in fetched pull request metadata."""
    return build_checklist_body(
        document.tag,
        document.pull_request_urls,
        layout=layout,
        verified=document.verified_urls,
        deploy_blockers=document.deploy_blocker_urls,
        resolved_deploy_blockers=document.resolved_deploy_blocker_urls,
        resolved_internal_qa=document.resolved_internal_qa_urls,
        checks=document.checks,
        records=records,
        known_internal_qa=document.internal_qa_assignees,
    )
