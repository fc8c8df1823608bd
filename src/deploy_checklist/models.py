"""
Data models for the staging deploy checklist.

The checklist document is rebuilt from the tracking issue body on every run;
none of these models is persisted anywhere except as rendered issue text.
"""

from pydantic import BaseModel, Field


class TrackingTicket(BaseModel):
    """The open issue that carries the staging deploy label."""

    title: str
    url: str
    number: int
    labels: set[str] = Field(default_factory=set)
    body: str = ""


class PullRequestRecord(BaseModel):
    """Pull request metadata fetched from GitHub."""

    number: int
    html_url: str
    title: str = ""
    labels: set[str] = Field(default_factory=set)
    merged_by: str | None = None

    def has_label(self, label: str) -> bool:
        return label in self.labels


class PREntry(BaseModel):
    url: str
    number: int
    verified: bool = False


class IssueEntry(BaseModel):
    """A deploy blocker; either an issue or a pull request."""

    url: str
    number: int
    resolved: bool = False


class InternalQAEntry(BaseModel):
    url: str
    number: int
    resolved: bool = False
    assignee: str | None = None


class VerificationChecks(BaseModel):
    """The three deployer verification checkboxes."""

    timing_dashboard: bool = False
    firebase: bool = False
    github_status: bool = False


class ChecklistDocument(BaseModel):
    """Structured form of a tracking issue body."""

    tag: str
    pull_requests: list[PREntry] = Field(default_factory=list)
    deploy_blockers: list[IssueEntry] = Field(default_factory=list)
    internal_qa: list[InternalQAEntry] = Field(default_factory=list)
    checks: VerificationChecks = Field(default_factory=VerificationChecks)

    @property
    def pull_request_urls(self) -> list[str]:
        """URLs of every pull request in the release, internal QA included."""
        return [entry.url for entry in self.pull_requests] + [
            entry.url for entry in self.internal_qa
        ]

    @property
    def verified_urls(self) -> list[str]:
        return [entry.url for entry in self.pull_requests if entry.verified]

    @property
    def deploy_blocker_urls(self) -> list[str]:
        return [entry.url for entry in self.deploy_blockers]

    @property
    def resolved_deploy_blocker_urls(self) -> list[str]:
        return [entry.url for entry in self.deploy_blockers if entry.resolved]

    @property
    def resolved_internal_qa_urls(self) -> list[str]:
        return [entry.url for entry in self.internal_qa if entry.resolved]

    @property
    def internal_qa_assignees(self) -> dict[str, str | None]:
        return {entry.url: entry.assignee for entry in self.internal_qa}


class RenderedChecklist(BaseModel):
    """A serialized checklist and the internal QA verifiers it mentions."""

    body: str
    assignees: list[str] = Field(default_factory=list)
