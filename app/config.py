from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000

    # GitHub (source tracker)
    gh_owner: str = ""
    gh_repo: str = ""
    gh_token: str = ""
    github_api_url: str = "https://api.github.com"
    github_max_pages: int = 10  # 100 issues per page

    # Jira (target tracker)
    jira_base_url: str = ""
    jira_username: str = ""
    jira_api_token: str = ""
    jira_project_key: str = "GT"
    jira_issue_type: str = "Task"

    # Ollama (local model endpoint)
    ollama_host: str = "http://127.0.0.1:11434"
    ollama_model: str = "mistral"
    # Must contain exactly one "{}" or "{content}" field. Empty = built-in prompt.
    summary_prompt_template: str = ""

    # Sync
    poll_interval_seconds: int = 60
    summary_timeout_seconds: float = 30.0
    # Whole per-issue budget: summary + creation + link-back
    issue_timeout_seconds: float = 60.0
    http_timeout_seconds: float = 30.0
    link_back_enabled: bool = True
    # Legacy behaviour: stop scanning at the first pull request instead of skipping it
    stop_at_first_pull_request: bool = False

    # Logging
    log_level: str = "INFO"

    # Authentication for the status/trigger API
    auth_enabled: bool = False
    auth_username: str = "admin"
    auth_password: str = "changeme"

    @model_validator(mode="after")
    def _check_timeouts(self) -> "Settings":
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        if self.summary_timeout_seconds <= 0:
            raise ValueError("summary_timeout_seconds must be positive")
        if self.summary_timeout_seconds >= self.issue_timeout_seconds:
            raise ValueError(
                "summary_timeout_seconds must be shorter than issue_timeout_seconds"
            )
        return self


settings = Settings()
