from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Forgejo Actions Monitor"
    APP_VERSION: str = "1.0.0"
    ENV: str = "dev"  # Environment: "dev", "staging", "prod"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Forgejo / Gitea server
    FORGEJO_BASE_URL: str = ""
    FORGEJO_TOKEN: Optional[str] = None
    FORGEJO_ORGANIZATIONS: List[str] = []
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Filters (case-insensitive regular expressions)
    REPO_PATTERN: str = ".*"
    WORKFLOW_PATTERN: str = ".*"
    BRANCH_PATTERN: str = "^main$"  # Empty string disables branch filtering

    # Polling
    REFRESH_INTERVAL_SECONDS: int = 30  # 0 disables periodic refresh
    DISCOVER_ON_STARTUP: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True


class EngineConfig(BaseModel):
    """Connection, filter and polling settings the scheduler works from."""

    base_url: str = ""
    token: Optional[str] = None
    repo_pattern: str = ".*"
    workflow_pattern: str = ".*"
    branch_pattern: str = "^main$"
    organizations: List[str] = Field(default_factory=list)
    refresh_interval: int = Field(default=30, ge=0)
    request_timeout: float = 30.0

    @classmethod
    def from_settings(cls, app_settings: "Settings") -> "EngineConfig":
        return cls(
            base_url=app_settings.FORGEJO_BASE_URL,
            token=app_settings.FORGEJO_TOKEN,
            repo_pattern=app_settings.REPO_PATTERN,
            workflow_pattern=app_settings.WORKFLOW_PATTERN,
            branch_pattern=app_settings.BRANCH_PATTERN,
            organizations=list(app_settings.FORGEJO_ORGANIZATIONS),
            refresh_interval=app_settings.REFRESH_INTERVAL_SECONDS,
            request_timeout=app_settings.REQUEST_TIMEOUT_SECONDS,
        )


settings = Settings()
