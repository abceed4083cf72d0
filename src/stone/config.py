"""Stone configuration using pydantic-settings.

This module defines the StoneSettings class that reads configuration
from environment variables with the STONE_ prefix. Repository coordinates
and the GitHub token must be set via environment variables; everything
else has a default suitable for a Node.js project.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoneSettings(BaseSettings):
    """Stone configuration from environment variables.

    All environment variables are prefixed with STONE_ (e.g., STONE_GITHUB_TOKEN).

    Required fields (must be set via environment variables):
    - github_token: GitHub API token for comments, labels and statuses
    - github_owner: Owner (user or organization) of the managed repository
    - github_repo: Name of the managed repository
    """

    model_config = SettingsConfigDict(
        env_prefix="STONE_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    github_token: str

    github_owner: str

    github_repo: str

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    # Only used by the HTTP receiver; signature checks are optional
    github_webhook_secret: Optional[str] = None

    # -------------------------------------------------------------------------
    # Pipeline Commands
    # -------------------------------------------------------------------------
    test_command: str = "npm test"

    build_command: str = "npm run build"

    # Formatted with {environment} and {branch}
    deploy_command: str = 'echo "Deploying {branch} to {environment}..."'

    # Ordered test stages; each name doubles as its test path pattern
    test_stages: List[str] = ["unit", "integration", "e2e"]

    # Maximum runtime for a single command before it is killed
    command_timeout_seconds: int = 1800

    # -------------------------------------------------------------------------
    # Workflow Definitions
    # -------------------------------------------------------------------------
    actions_directory: str = ".github/workflows"

    use_webhooks: bool = True

    # pip requirement the generated jobs install Stone from
    actions_install_spec: str = "stone-actions"

    # -------------------------------------------------------------------------
    # Retry Configuration
    # -------------------------------------------------------------------------
    retry_max_attempts: int = 3

    retry_initial_delay_ms: int = 1000

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"

    port: int = 8080

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_token")
    @classmethod
    def validate_github_token(cls, v: str) -> str:
        """Validate that GitHub token is not empty."""
        if not v or not v.strip():
            raise ValueError("github_token cannot be empty")
        return v

    @field_validator("github_owner", "github_repo")
    @classmethod
    def validate_repository_part(cls, v: str) -> str:
        """Validate that repository coordinates are not empty."""
        if not v or not v.strip():
            raise ValueError("repository owner and name cannot be empty")
        return v.strip()

    @field_validator("github_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate that the API base URL is an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_base_url must start with http:// or https://")
        return v

    @field_validator(
        "test_command", "build_command", "deploy_command", "actions_install_spec"
    )
    @classmethod
    def validate_command(cls, v: str, info: ValidationInfo) -> str:
        """Validate that commands and the install spec are not blank."""
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty")
        return v

    @field_validator("test_stages")
    @classmethod
    def validate_test_stages(cls, v: List[str]) -> List[str]:
        """Validate that at least one named test stage is configured."""
        stages = [stage.strip() for stage in v if stage and stage.strip()]
        if not stages:
            raise ValueError("test_stages must contain at least one stage")
        return stages

    @field_validator("actions_directory")
    @classmethod
    def validate_actions_directory(cls, v: str) -> str:
        """Validate that the actions directory is relative to the repository."""
        if Path(v).is_absolute():
            raise ValueError("actions_directory must be a relative path")
        return v

    @field_validator("retry_max_attempts", "command_timeout_seconds")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate that attempt counts and timeouts are positive."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("retry_initial_delay_ms")
    @classmethod
    def validate_initial_delay(cls, v: int) -> int:
        """Validate that the initial retry delay is not negative."""
        if v < 0:
            raise ValueError("retry_initial_delay_ms cannot be negative")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v


def get_settings() -> StoneSettings:
    """Create and return StoneSettings instance.

    Returns:
        StoneSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return StoneSettings()
