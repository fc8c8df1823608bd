"""
Tests for the staging deploy checklist parser.
"""

import pytest

from deploy_checklist.checklist.parser import parse_checklist, parse_tag, parse_ticket
from deploy_checklist.exceptions import MalformedTicketError

from conftest import issue_url, pr_url

CRLF = "\r\n"

BODY = CRLF.join(
    [
        "**Release Version:** `1.2.3-4`",
        "**Compare Changes:** https://github.com/Org/Repo/compare/production...staging",
        "",
        "**This release contains changes from the following pull requests:**",
        f"- [x] {pr_url(101)}",
        f"- [ ] {pr_url(100)}",
        f"- [ ] {pr_url(100)}",
        "",
        "",
        "**Internal QA:**",
        f"- [x] {pr_url(105)} - @alice",
        f"- [ ] {pr_url(104)} - @bob",
        f"- [ ] {pr_url(106)}",
        "",
        "",
        "**Deploy Blockers:**",
        f"- [ ] {issue_url(300)}",
        f"- [x] {pr_url(200)}",
        "",
        "",
        "**Deployer verifications:**",
        "- [x] I checked the [App Timing Dashboard](https://example.com/timing) and verified.",
        "- [ ] I checked [Firebase Crashlytics](https://example.com/firebase) and verified.",
        "- [x] I checked [GitHub Status](https://www.githubstatus.com/) and verified.",
        "",
        "cc @Expensify/applauseleads",
        "",
    ]
)


class TestParseChecklist:
    """Test parsing full checklist bodies."""

    def test_minimal_checklist(self):
        body = (
            "**Release Version:** `1.2.3-4`\r\n"
            "\r\n"
            "**This release contains changes from the following pull requests:**\r\n"
            f"- [ ] {pr_url(100)}\r\n"
            "\r\n"
        )

        document = parse_checklist(body)

        assert document.tag == "1.2.3-4"
        assert len(document.pull_requests) == 1
        assert document.pull_requests[0].number == 100
        assert document.pull_requests[0].verified is False
        assert document.deploy_blockers == []
        assert document.internal_qa == []

    def test_pull_requests_sorted_and_deduplicated(self):
        document = parse_checklist(BODY)

        assert [(entry.number, entry.verified) for entry in document.pull_requests] == [
            (100, False),
            (101, True),
        ]

    def test_internal_qa_with_assignees(self):
        document = parse_checklist(BODY)

        assert [
            (entry.number, entry.resolved, entry.assignee) for entry in document.internal_qa
        ] == [(104, False, "bob"), (105, True, "alice"), (106, False, None)]

    def test_deploy_blockers_mix_issues_and_pull_requests(self):
        document = parse_checklist(BODY)

        assert [(entry.url, entry.resolved) for entry in document.deploy_blockers] == [
            (pr_url(200), True),
            (issue_url(300), False),
        ]

    def test_verification_checks(self):
        checks = parse_checklist(BODY).checks

        assert checks.timing_dashboard is True
        assert checks.firebase is False
        assert checks.github_status is True

    def test_document_url_views(self):
        document = parse_checklist(BODY)

        assert document.pull_request_urls == [
            pr_url(100),
            pr_url(101),
            pr_url(104),
            pr_url(105),
            pr_url(106),
        ]
        assert document.verified_urls == [pr_url(101)]
        assert document.resolved_internal_qa_urls == [pr_url(105)]
        assert document.resolved_deploy_blocker_urls == [pr_url(200)]

    def test_lf_line_endings(self):
        document = parse_checklist(BODY.replace(CRLF, "\n"))

        assert document.tag == "1.2.3-4"
        assert len(document.pull_requests) == 2
        assert len(document.deploy_blockers) == 2

    def test_missing_sections_are_empty(self):
        document = parse_checklist("**Release Version:** `2.0.0`\r\n")

        assert document.tag == "2.0.0"
        assert document.pull_requests == []
        assert document.internal_qa == []
        assert document.deploy_blockers == []
        assert document.checks.timing_dashboard is False

    def test_section_ends_at_blank_line(self):
        body = (
            "`1.0.0-1`\r\n"
            "**Deploy Blockers:**\r\n"
            f"- [ ] {issue_url(1)}\r\n"
            "\r\n"
            f"- [ ] {issue_url(2)}\r\n"
        )

        document = parse_checklist(body)

        assert [entry.number for entry in document.deploy_blockers] == [1]

    def test_headings_are_case_sensitive(self):
        body = (
            "`1.0.0-1`\r\n"
            "**deploy blockers:**\r\n"
            f"- [ ] {issue_url(1)}\r\n"
        )

        assert parse_checklist(body).deploy_blockers == []

    def test_lines_without_urls_are_skipped(self):
        body = (
            "`1.0.0-1`\r\n"
            "**This release contains changes from the following pull requests:**\r\n"
            "- [ ] not a link\r\n"
            f"- [ ] {pr_url(7)}\r\n"
        )

        assert [entry.number for entry in parse_checklist(body).pull_requests] == [7]

    def test_url_variants_of_one_number(self):
        body = (
            "`1.0.0-1`\r\n"
            "**This release contains changes from the following pull requests:**\r\n"
            f"- [x] {pr_url(100)}/files\r\n"
            f"- [ ] {pr_url(100)}\r\n"
            "- [ ] http://github.com/Org/Repo/pull/100\r\n"
            f"- [ ] {pr_url(99)}\r\n"
        )

        document = parse_checklist(body)

        assert [(e.number, e.url, e.verified) for e in document.pull_requests] == [
            (99, pr_url(99), False),
            (100, f"{pr_url(100)}/files", True),
        ]

    def test_missing_tag_raises(self):
        body = (
            "**This release contains changes from the following pull requests:**\r\n"
            f"- [ ] {pr_url(100)}\r\n"
        )

        with pytest.raises(MalformedTicketError) as exc_info:
            parse_checklist(body, issue_number=42)

        assert exc_info.value.issue_number == 42
        assert "correct data" in exc_info.value.message

    def test_empty_body_raises(self):
        with pytest.raises(MalformedTicketError):
            parse_checklist(None)

    def test_parse_ticket(self, ticket_factory):
        document = parse_ticket(ticket_factory(number=3, body=BODY))

        assert document.tag == "1.2.3-4"


class TestParseTag:
    @pytest.mark.parametrize(
        ("body", "tag"),
        [
            ("**Release Version:** `1.2.3-4`", "1.2.3-4"),
            ("Version 10.20.30 shipped", "10.20.30"),
            ("1.0.0-1 then 2.0.0-2", "1.0.0-1"),
        ],
    )
    def test_first_version_token(self, body, tag):
        assert parse_tag(body) == tag

    def test_no_version(self):
        with pytest.raises(MalformedTicketError):
            parse_tag("no release here")
