"""
GitHub API client for the staging deploy checklist.

This module provides the issue store and pull request listing used by the
checklist orchestrator. Every request goes through the rate limited client;
PyGithub's own retry is disabled so quota handling lives in one place.
"""

import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Union, cast

import httpx
import jwt
import structlog
from github import Auth, Github, GithubException
from github.Issue import Issue
from github.PullRequest import PullRequest
from github.Repository import Repository

from .config import Settings
from .exceptions import AuthenticationError, TransportFailureError
from .models import PullRequestRecord, TrackingTicket
from .pagination import PaginatedFetcher
from .rate_limiter import RateLimitedClient

logger = structlog.get_logger(__name__)


def _ticket_from_issue(issue: Issue) -> TrackingTicket:
    return TrackingTicket(
        title=issue.title,
        url=issue.html_url,
        number=issue.number,
        labels={label.name for label in issue.labels},
        body=issue.body or "",
    )


def _record_from_pull(pr: PullRequest, include_merger: bool = False) -> PullRequestRecord:
    """
    Convert a PyGithub pull request to a record.

    ``merged_by`` is absent from listing payloads and reading it would make
    PyGithub fetch the full pull request, so it is only read on request.
    """
    merged_by = None
    if include_merger and pr.merged_by is not None:
        merged_by = pr.merged_by.login
    return PullRequestRecord(
        number=pr.number,
        html_url=pr.html_url,
        title=pr.title or "",
        labels={label.name for label in pr.labels},
        merged_by=merged_by,
    )


class GitHubClient:
    """
    GitHub API client with authentication and rate limiting.

    The client authenticates lazily on first use, is shared by every
    component of one run, and talks to a single app repository.
    """

    def __init__(
        self,
        settings: Settings,
        rate_limiter: RateLimitedClient | None = None,
        github: Github | None = None,
    ) -> None:
        """
        Initialize the GitHub client.

        Args:
            settings: Application settings
            rate_limiter: Rate limited executor for every request
            github: Pre-authenticated PyGithub instance
        """
        self.settings = settings
        self.rate_limiter = rate_limiter or RateLimitedClient(settings.rate_limit_config)
        self._github: Github | None = github
        self._repos: dict[str, Repository] = {}
        self._installation_id: int | None = None

    async def _get_github_instance(self) -> Github:
        """Get authenticated GitHub instance."""
        if self._github is None:
            await self._authenticate()
        if self._github is None:
            raise AuthenticationError("Failed to authenticate with GitHub")
        return self._github

    def _build_github(self, token: str) -> Github:
        return Github(
            auth=Auth.Token(token),
            base_url=self.settings.github_api_url,
            per_page=self.settings.pull_request_page_size,
            retry=None,
        )

    async def _authenticate(self) -> None:
        """Authenticate with GitHub using a personal access token or App authentication."""
        try:
            if self.settings.github_personal_access_token:
                self._github = self._build_github(
                    self.settings.github_personal_access_token
                )
                logger.info("GitHub authentication successful (PAT mode)")
                return

            if not self.settings.is_app_mode:
                raise AuthenticationError(
                    "No GitHub credentials configured. Set "
                    "GITHUB_PERSONAL_ACCESS_TOKEN or GITHUB_APP_ID."
                )

            app_config = self.settings.github_app_config
            private_key_path = Path(app_config.private_key_path)
            if not private_key_path.exists():
                raise AuthenticationError(f"Private key not found: {private_key_path}")

            private_key = private_key_path.read_text()
            jwt_token = self._create_jwt_token(private_key, app_config.app_id)

            installation_id = await self._get_installation_id(
                jwt_token, app_config.installation_owner
            )
            access_token = await self._get_installation_access_token(
                jwt_token, installation_id
            )

            self._github = self._build_github(access_token)
            self._installation_id = installation_id

            logger.info(
                "GitHub authentication successful (GitHub App mode)",
                installation_id=installation_id,
            )

        except AuthenticationError:
            logger.error("GitHub authentication failed")
            raise
        except Exception as e:
            logger.error("GitHub authentication failed", error=str(e))
            raise AuthenticationError(f"Failed to authenticate with GitHub: {e}") from e

    def _create_jwt_token(self, private_key: str, app_id: int) -> str:
        """Create JWT token for GitHub App authentication."""
        now = int(time.time())
        payload = {
            "iat": now - 60,
            "exp": now + 600,  # 10 minutes
            "iss": str(app_id),
        }

        token = cast(
            Union[str, bytes], jwt.encode(payload, private_key, algorithm="RS256")
        )
        if isinstance(token, bytes):
            return token.decode("utf-8")
        return token

    def _app_headers(self, jwt_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {jwt_token}",
            "Accept": "application/vnd.github+json",
        }

    async def _get_installation_id(self, jwt_token: str, owner: str) -> int:
        """Get installation ID for the account owning the app repository."""
        async with httpx.AsyncClient(base_url=self.settings.github_api_url) as client:
            response = await client.get(
                "/app/installations", headers=self._app_headers(jwt_token)
            )

            if response.status_code != 200:
                raise AuthenticationError(
                    f"Failed to get installations: {response.text}"
                )

            for installation in response.json():
                if installation.get("account", {}).get("login") == owner:
                    installation_id = installation["id"]
                    if isinstance(installation_id, int):
                        return installation_id
                    raise AuthenticationError(
                        f"Invalid installation ID type: {type(installation_id)}"
                    )

            raise AuthenticationError(f"No installation found for account: {owner}")

    async def _get_installation_access_token(
        self, jwt_token: str, installation_id: int
    ) -> str:
        """Get installation access token."""
        async with httpx.AsyncClient(base_url=self.settings.github_api_url) as client:
            response = await client.post(
                f"/app/installations/{installation_id}/access_tokens",
                headers=self._app_headers(jwt_token),
            )

            if response.status_code != 201:
                raise AuthenticationError(
                    f"Failed to get access token: {response.text}"
                )

            token = response.json()["token"]
            if isinstance(token, str):
                return token
            raise AuthenticationError(f"Invalid token type: {type(token)}")

    async def _request(self, operation: str, func: Any, *args: Any, **kwargs: Any) -> Any:
        """
        Run one GitHub request through the rate limiter.

        Rate limit and abuse errors pass through untouched; any other API or
        network failure becomes a TransportFailureError.
        """
        try:
            return await self.rate_limiter.call(func, *args, operation=operation, **kwargs)
        except GithubException as e:
            logger.error(
                "GitHub request failed",
                operation=operation,
                status=e.status,
                error=str(e),
            )
            raise TransportFailureError(
                f"GitHub request {operation} failed: {e}",
                status_code=e.status,
                context={"operation": operation},
            ) from e
        except OSError as e:
            logger.error("GitHub request failed", operation=operation, error=str(e))
            raise TransportFailureError(
                f"GitHub request {operation} failed: {e}",
                context={"operation": operation},
            ) from e

    async def get_repo(self, full_name: str | None = None) -> Repository:
        """
        Get repository by full name.

        Args:
            full_name: Repository full name (owner/repo); defaults to the app repository

        Returns:
            Repository object
        """
        full_name = full_name or self.settings.repository_full_name
        if full_name not in self._repos:
            github_instance = await self._get_github_instance()
            self._repos[full_name] = await self._request(
                "repos.get", github_instance.get_repo, full_name
            )
        return self._repos[full_name]

    async def list_issues_by_label(
        self, label: str, state: str = "open", include_pull_requests: bool = False
    ) -> list[TrackingTicket]:
        """
        List issues carrying a label.

        Args:
            label: Label name
            state: Issue state filter (open, closed, all)
            include_pull_requests: Keep pull requests the issues API also returns

        Returns:
            Matching issues
        """
        repo = await self.get_repo()
        issues = await self._request(
            "issues.list_for_repo",
            lambda: list(repo.get_issues(state=state, labels=[label])),
        )
        tickets = [
            _ticket_from_issue(issue)
            for issue in issues
            if include_pull_requests or issue.pull_request is None
        ]
        logger.info("Listed issues by label", label=label, state=state, count=len(tickets))
        return tickets

    async def get_issue(self, number: int) -> TrackingTicket:
        repo = await self.get_repo()
        issue = await self._request("issues.get", repo.get_issue, number)
        return _ticket_from_issue(issue)

    async def get_issue_body(self, number: int) -> str:
        ticket = await self.get_issue(number)
        return ticket.body

    async def update_issue_body(self, number: int, body: str) -> None:
        """
        Replace the body of an issue in a single update call.

        Args:
            number: Issue number
            body: New issue body
        """
        repo = await self.get_repo()

        def _edit() -> None:
            repo.get_issue(number).edit(body=body)

        await self._request("issues.update", _edit)
        logger.info("Issue updated successfully", issue_number=number)

    async def create_issue(
        self,
        title: str,
        body: str,
        labels: list[str] | None = None,
        assignees: list[str] | None = None,
    ) -> TrackingTicket:
        """
        Create a new issue in the app repository.

        Args:
            title: Issue title
            body: Issue body
            labels: Optional list of labels
            assignees: Optional list of assignee logins

        Returns:
            The created issue
        """
        repo = await self.get_repo()
        issue = await self._request(
            "issues.create",
            repo.create_issue,
            title=title,
            body=body,
            labels=labels or [],
            assignees=assignees or [],
        )
        logger.info("Issue created successfully", issue_number=issue.number, title=title)
        return _ticket_from_issue(issue)

    async def create_comment(
        self, number: int, body: str, repo_name: str | None = None
    ) -> None:
        """
        Create a comment on an issue or pull request.

        Args:
            number: Issue or pull request number
            body: Comment text
            repo_name: Repository name within the owner; defaults to the app repository
        """
        full_name = (
            f"{self.settings.github_owner}/{repo_name}" if repo_name else None
        )
        repo = await self.get_repo(full_name)
        logger.info("Writing comment", issue_number=number, repository=repo.full_name)

        def _comment() -> None:
            repo.get_issue(number).create_comment(body)

        await self._request("issues.create_comment", _comment)

    async def list_pull_requests_page(
        self,
        page: int,
        sort: str = "created",
        direction: str = "desc",
        state: str = "all",
    ) -> list[PullRequestRecord]:
        """
        Fetch one page of the pull request listing.

        Args:
            page: Zero-based page index
            sort: Sort field
            direction: Sort direction
            state: Pull request state filter

        Returns:
            Records on the page; empty once the listing is exhausted
        """
        repo = await self.get_repo()
        listing = repo.get_pulls(state=state, sort=sort, direction=direction)
        pulls = await self._request("pulls.list", listing.get_page, page)
        return [_record_from_pull(pr) for pr in pulls]

    async def get_pull_request(self, number: int) -> PullRequestRecord:
        repo = await self.get_repo()
        pr = await self._request("pulls.get", repo.get_pull, number)
        return _record_from_pull(pr, include_merger=True)

    async def get_pull_request_body(self, number: int) -> str:
        repo = await self.get_repo()
        pr = await self._request("pulls.get", repo.get_pull, number)
        return pr.body or ""

    async def fetch_pull_requests(
        self, numbers: Iterable[int]
    ) -> list[PullRequestRecord]:
        """
        Fetch the pull requests with the given numbers.

        Walks the listing newest first and stops after the page holding the
        oldest requested number. This assumes pull request numbers grow with
        creation time; a number never seen in the walked window is simply
        missing from the result.

        Args:
            numbers: Pull request numbers to fetch

        Returns:
            Records of the requested pull requests that were found, in listing order
        """
        requested = set(numbers)
        if not requested:
            return []

        oldest_requested = min(requested)
        fetcher: PaginatedFetcher[PullRequestRecord] = PaginatedFetcher()

        pulls = await fetcher.fetch_until(
            self.list_pull_requests_page,
            lambda page: any(pr.number == oldest_requested for pr in page),
        )

        records = [pr for pr in pulls if pr.number in requested]
        missing = requested - {pr.number for pr in records}
        if missing:
            logger.warning(
                "Some requested pull requests were not found",
                missing=sorted(missing),
                pages=fetcher.pages_requested,
            )

        logger.info(
            "Fetched pull requests",
            requested=len(requested),
            found=len(records),
            pages=fetcher.pages_requested,
        )
        return records

    async def list_issue_events(self, number: int) -> list[dict[str, Any]]:
        """
        List the events of an issue or pull request.

        Returns:
            Event dictionaries with ``event``, ``actor`` and ``created_at`` keys
        """
        repo = await self.get_repo()
        events = await self._request(
            "issues.list_events", lambda: list(repo.get_issue(number).get_events())
        )
        return [
            {
                "event": event.event,
                "actor": event.actor.login if event.actor else None,
                "created_at": event.created_at,
            }
            for event in events
        ]

    async def get_actor_who_closed_issue(self, number: int) -> str:
        """Login of the actor who last closed an issue, or an empty string."""
        events = await self.list_issue_events(number)
        closed_events = [event for event in events if event["event"] == "closed"]
        if not closed_events:
            return ""
        return closed_events[-1]["actor"] or ""

    async def get_issue_comments(self, number: int) -> list[str]:
        repo = await self.get_repo()
        comments = await self._request(
            "issues.list_comments",
            lambda: list(repo.get_issue(number).get_comments()),
        )
        return [comment.body for comment in comments]

    async def get_review_comments(self, number: int) -> list[str]:
        repo = await self.get_repo()
        reviews = await self._request(
            "pulls.list_reviews", lambda: list(repo.get_pull(number).get_reviews())
        )
        return [review.body for review in reviews]

