"""
Configuration management for the staging deploy checklist.

This module handles environment variables, settings validation, and configuration
management using Pydantic Settings for type safety and validation.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GitHubAppConfig(BaseModel):
    """GitHub App configuration settings."""

    app_id: int = Field(..., description="GitHub App ID")
    private_key_path: str = Field(..., description="Path to GitHub App private key")
    installation_owner: str = Field(
        ..., description="Account the App installation belongs to"
    )


class ServerConfig(BaseModel):
    """Web server configuration settings."""

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


class RateLimitConfig(BaseModel):
    """Retry policy applied when GitHub reports an exhausted quota."""

    max_retries: int = Field(
        default=5, description="Retries after the first rate limited attempt"
    )
    default_delay_seconds: float = Field(
        default=60.0, description="Delay used when GitHub suggests none"
    )
    max_delay_seconds: float = Field(
        default=900.0, description="Upper bound for a single backoff sleep"
    )


class ChecklistLayout(BaseModel):
    """Fixed text embedded in every rendered checklist."""

    repository_url: str = Field(..., description="HTML URL of the app repository")
    compare_base: str = Field(default="production")
    compare_head: str = Field(default="staging")
    internal_qa_label: str = Field(default="InternalQA")
    timing_dashboard_url: str = Field(
        default="https://graphs.expensify.com/grafana/d/yj2EobAGz/app-timing?orgId=1"
    )
    firebase_crashlytics_url: str = Field(
        default=(
            "https://console.firebase.google.com/u/0/project/expensify-chat/"
            "crashlytics/app/android:com.expensify.chat/issues"
            "?state=open&time=last-seven-days&tag=all"
        )
    )
    firebase_instructions_url: str = Field(
        default="https://stackoverflowteams.com/c/expensify/questions/15095/15096"
    )
    github_status_url: str = Field(default="https://www.githubstatus.com/")
    release_team_mention: str = Field(default="@Expensify/applauseleads")

    @property
    def compare_url(self) -> str:
        """Link comparing the production and staging branches."""
        return f"{self.repository_url}/compare/{self.compare_base}...{self.compare_head}"


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # GitHub configuration
    github_app_id: int = Field(default=0, description="GitHub App ID (0 for PAT mode)")
    github_app_private_key_path: str = Field(
        default="", description="GitHub App private key path"
    )
    github_personal_access_token: str = Field(
        default="", description="GitHub Personal Access Token"
    )
    github_api_url: str = Field(
        default="https://api.github.com", description="GitHub API URL"
    )
    github_owner: str = Field(..., description="Owner of the app repository")
    github_repository: str = Field(..., description="App repository name")
    github_installation_owner: str = Field(
        default="", description="GitHub App installation account (defaults to owner)"
    )

    # Labels
    staging_deploy_label: str = Field(
        default="StagingDeployCash", description="Label of the tracking issue"
    )
    internal_qa_label: str = Field(
        default="InternalQA", description="Label of internally verified PRs"
    )
    deploy_blocker_label: str = Field(
        default="DeployBlockerCash", description="Label of deploy blocker issues"
    )

    # Checklist text
    checklist_title_prefix: str = Field(
        default="Deploy Checklist: New Expensify",
        description="Title of new tracking issues, followed by the creation date",
    )
    compare_base: str = Field(default="production", description="Compare base branch")
    compare_head: str = Field(default="staging", description="Compare head branch")
    timing_dashboard_url: str = Field(
        default=ChecklistLayout.model_fields["timing_dashboard_url"].default
    )
    firebase_crashlytics_url: str = Field(
        default=ChecklistLayout.model_fields["firebase_crashlytics_url"].default
    )
    firebase_instructions_url: str = Field(
        default=ChecklistLayout.model_fields["firebase_instructions_url"].default
    )
    github_status_url: str = Field(
        default=ChecklistLayout.model_fields["github_status_url"].default
    )
    release_team_mention: str = Field(
        default="@Expensify/applauseleads", description="Footer mention"
    )

    # Fetching and rate limiting
    pull_request_page_size: int = Field(
        default=100, description="Pull requests requested per listing page"
    )
    rate_limit_max_retries: int = Field(
        default=5, description="Retries after a rate limited attempt"
    )
    rate_limit_default_delay_seconds: float = Field(
        default=60.0, description="Backoff when GitHub suggests no delay"
    )
    rate_limit_max_delay_seconds: float = Field(
        default=900.0, description="Maximum single backoff sleep"
    )

    # Logging configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format")

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")
    enable_cors: bool = Field(default=False, description="Enable CORS")
    allowed_origins: str | list[str] = Field(
        default="https://github.com",
        description="Allowed CORS origins (comma-separated)",
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v: Any) -> list[str]:
        """Parse allowed origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        elif isinstance(v, list):
            return v
        else:
            error_msg = f"allowed_origins must be a string or list, got {type(v)}"
            raise ValueError(error_msg)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v.lower() not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}")
        return v.lower()

    @field_validator("pull_request_page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        """GitHub caps listing pages at 100 items."""
        if not 1 <= v <= 100:
            raise ValueError(f"pull_request_page_size must be within 1..100, got {v}")
        return v

    @field_validator("rate_limit_max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        """Validate retry budget."""
        if v < 0:
            raise ValueError("rate_limit_max_retries cannot be negative")
        return v

    @property
    def repository_full_name(self) -> str:
        """Full name (owner/repo) of the app repository."""
        return f"{self.github_owner}/{self.github_repository}"

    @property
    def repository_url(self) -> str:
        """HTML URL of the app repository."""
        return f"https://github.com/{self.repository_full_name}"

    @property
    def is_app_mode(self) -> bool:
        """Check if GitHub App authentication is configured."""
        return self.github_app_id != 0 and not self.github_personal_access_token

    @property
    def github_app_config(self) -> GitHubAppConfig:
        """Get GitHub App configuration."""
        return GitHubAppConfig(
            app_id=self.github_app_id,
            private_key_path=self.github_app_private_key_path,
            installation_owner=self.github_installation_owner or self.github_owner,
        )

    @property
    def server_config(self) -> ServerConfig:
        """Get server configuration."""
        return ServerConfig(host=self.host, port=self.port, debug=self.debug)

    @property
    def rate_limit_config(self) -> RateLimitConfig:
        """Get rate limit retry configuration."""
        return RateLimitConfig(
            max_retries=self.rate_limit_max_retries,
            default_delay_seconds=self.rate_limit_default_delay_seconds,
            max_delay_seconds=self.rate_limit_max_delay_seconds,
        )

    @property
    def checklist_layout(self) -> ChecklistLayout:
        """Get the fixed checklist text for this repository."""
        return ChecklistLayout(
            repository_url=self.repository_url,
            compare_base=self.compare_base,
            compare_head=self.compare_head,
            internal_qa_label=self.internal_qa_label,
            timing_dashboard_url=self.timing_dashboard_url,
            firebase_crashlytics_url=self.firebase_crashlytics_url,
            firebase_instructions_url=self.firebase_instructions_url,
            github_status_url=self.github_status_url,
            release_team_mention=self.release_team_mention,
        )


# Global settings instance - initialized lazily to avoid import-time errors
_settings_instance = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings_instance
    if _settings_instance is None:
        try:
            _settings_instance = Settings()  # type: ignore[call-arg,unused-ignore]
        except ValueError as e:
            missing = [
                name
                for name in ("github_owner", "github_repository")
                if name in str(e)
            ]
            if missing:
                raise ValueError(
                    f"{', '.join(name.upper() for name in missing)} environment "
                    "variable(s) required. Please set them to the repository that "
                    "hosts the staging deploy checklist."
                ) from e
            raise
    return _settings_instance
