"""Application configuration."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    api_key: Optional[str] = None  # X-API-Key auth is disabled when unset
    cors_origins: str = "*"

    # Queue
    max_queue_size: int = 50
    queue_timeout_seconds: float = 600.0  # 10 minutes max wait in queue
    job_timeout_seconds: float = 180.0  # 3 minutes max per reschedule run
    shutdown_grace_seconds: float = 15.0

    # SimplePractice automation
    sp_email: str = ""
    sp_password: str = ""
    sp_login_url: str = "https://account.simplepractice.com/"
    sp_calendar_url: str = "https://secure.simplepractice.com/calendar/appointments"
    sp_secure_url_pattern: str = "**/secure.simplepractice.com/**"

    # Browser
    browser_headless: bool = True
    artifacts_dir: Optional[str] = None  # Failure screenshots land here when set

    # App Settings
    log_level: str = "INFO"
    environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def get_automation_credentials(self) -> tuple[str, str]:
        """
        Get SimplePractice login credentials.

        Credentials are only ever read from configuration, never from
        request payloads.

        Returns:
            Tuple of (email, password)

        Raises:
            ValueError: If either credential is missing
        """
        missing = []
        if not self.sp_email:
            missing.append("SP_EMAIL")
        if not self.sp_password:
            missing.append("SP_PASSWORD")
        if missing:
            raise ValueError(
                f"Automation credentials are not configured: {', '.join(missing)} required"
            )
        return self.sp_email, self.sp_password

    def get_artifacts_path(self) -> Path | None:
        """
        Get the failure screenshot directory, creating it when configured.

        Relative paths resolve against the project root.
        """
        if not self.artifacts_dir:
            return None

        path = Path(self.artifacts_dir)
        if not path.is_absolute():
            project_root = Path(__file__).parent.parent.parent
            path = project_root / path
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
