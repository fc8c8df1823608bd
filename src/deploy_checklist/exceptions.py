"""
Custom exceptions for the staging deploy checklist.

This module defines the error taxonomy shared by the GitHub client, the
checklist parser and the orchestrator.
"""

from typing import Any


class DeployChecklistError(Exception):
    """Base exception for staging deploy checklist errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "DEPLOY_CHECKLIST_ERROR"
        self.context = context or {}


class NotFoundError(DeployChecklistError):
    """No open issue carries the staging deploy label."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "NOT_FOUND", context)


class AmbiguousStateError(DeployChecklistError):
    """More than one open issue carries the staging deploy label."""

    def __init__(
        self,
        message: str,
        issue_numbers: list[int] | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "AMBIGUOUS_STATE", context)
        self.issue_numbers = issue_numbers or []


class MalformedTicketError(DeployChecklistError):
    """The tracking issue body does not contain a release tag."""

    def __init__(
        self,
        message: str,
        issue_number: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "MALFORMED_TICKET", context)
        self.issue_number = issue_number


class InvalidURLError(DeployChecklistError):
    """A URL is not a GitHub issue or pull request URL."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message, "INVALID_URL", {"url": url})
        self.url = url


class RateLimitExceededError(DeployChecklistError):
    """The request quota stayed exhausted after every retry."""

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        retry_after: float | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "RATE_LIMIT_EXCEEDED", context)
        self.attempts = attempts
        self.retry_after = retry_after


class AbuseDetectedError(DeployChecklistError):
    """GitHub flagged the request with its abuse (secondary rate) limit."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "ABUSE_DETECTED", context)
        self.retry_after = retry_after


class TransportFailureError(DeployChecklistError):
    """Exception for GitHub API and network failures."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "TRANSPORT_FAILURE", context)
        self.status_code = status_code


class AuthenticationError(DeployChecklistError):
    """Exception for authentication related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "AUTHENTICATION_ERROR", context)


class ConfigurationError(DeployChecklistError):
    """Exception for configuration related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "CONFIGURATION_ERROR", context)
