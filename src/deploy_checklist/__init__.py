"""
Staging Deploy Checklist

Maintains the staging deploy tracking issue of a GitHub repository: parses
its checklist, merges in pull request data and writes it back.
"""

__version__ = "0.1.0"

from .checklist import build_checklist_body, parse_checklist, render_document
from .config import Settings
from .exceptions import DeployChecklistError
from .github_client import GitHubClient
from .orchestrator import ChecklistOrchestrator
from .pagination import PaginatedFetcher
from .rate_limiter import RateLimitedClient

__all__ = [
    "Settings",
    "GitHubClient",
    "RateLimitedClient",
    "PaginatedFetcher",
    "ChecklistOrchestrator",
    "DeployChecklistError",
    "parse_checklist",
    "build_checklist_body",
    "render_document",
]
