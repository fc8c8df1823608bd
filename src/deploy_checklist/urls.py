"""
GitHub URL helpers.

Every checklist entry is identified by the number embedded in its GitHub URL;
these helpers extract that number and build URLs back from numbers.
"""

import re
from collections.abc import Iterable

from .exceptions import InvalidURLError

GITHUB_BASE_URL_PATTERN = r"https?://(?:github\.com|api\.github\.com)"

PULL_REQUEST_REGEX = re.compile(rf"{GITHUB_BASE_URL_PATTERN}/\S+/\S+/pull/([0-9]+)")
ISSUE_REGEX = re.compile(rf"{GITHUB_BASE_URL_PATTERN}/\S+/\S+/issues/([0-9]+)")
ISSUE_OR_PULL_REQUEST_REGEX = re.compile(
    rf"{GITHUB_BASE_URL_PATTERN}/\S+/\S+/(?:pull|issues)/([0-9]+)"
)


def _number_from_url(url: str, regex: re.Pattern[str], kind: str) -> int:
    match = regex.search(url or "")
    if match is None:
        raise InvalidURLError(f"Provided URL {url} is not {kind}!", url=url)
    return int(match.group(1))


def get_pull_request_number_from_url(url: str) -> int:
    """
    Parse the pull request number from a URL.

    Raises:
        InvalidURLError: If the URL is not a GitHub pull request URL
    """
    return _number_from_url(url, PULL_REQUEST_REGEX, "a GitHub Pull Request")


def get_issue_number_from_url(url: str) -> int:
    """
    Parse the issue number from a URL.

    Raises:
        InvalidURLError: If the URL is not a GitHub issue URL
    """
    return _number_from_url(url, ISSUE_REGEX, "a GitHub Issue")


def get_issue_or_pull_request_number_from_url(url: str) -> int:
    """
    Parse the issue or pull request number from a URL.

    Raises:
        InvalidURLError: If the URL is neither an issue nor a pull request URL
    """
    return _number_from_url(
        url, ISSUE_OR_PULL_REQUEST_REGEX, "a valid GitHub Issue or Pull Request"
    )


def get_pull_request_url_from_number(repository_url: str, number: int) -> str:
    return f"{repository_url.rstrip('/')}/pull/{number}"


def get_release_body(repository_url: str, pull_request_numbers: Iterable[int]) -> str:
    """Format the body of a production release: one `- <url>` line per PR."""
    return "\r\n".join(
        f"- {get_pull_request_url_from_number(repository_url, number)}"
        for number in pull_request_numbers
    )
