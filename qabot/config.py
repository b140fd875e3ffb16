"""Configuration management using environment variables."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from qabot.core.models import DEFAULT_REVIEW_HOSTS, ClassificationPolicy, LinkCheckConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Target
    test_url: Optional[str] = Field(default=None, alias="TEST_URL")

    # Output directories
    reports_dir: Path = Field(default=Path("reports"), alias="REPORTS_DIR")
    html_reports_dir: Path = Field(default=Path("playwright-report"), alias="HTML_REPORTS_DIR")
    test_results_dir: Path = Field(default=Path("test-results"), alias="TEST_RESULTS_DIR")

    # Link checking
    link_check_concurrency: int = Field(default=10, ge=1, le=50, alias="LINK_CHECK_CONCURRENCY")
    link_check_timeout: float = Field(default=10.0, gt=0, alias="LINK_CHECK_TIMEOUT")
    review_hosts: str = Field(default=",".join(DEFAULT_REVIEW_HOSTS), alias="REVIEW_HOSTS")
    include_hidden_links: bool = Field(default=False, alias="INCLUDE_HIDDEN_LINKS")
    capture_screenshots: bool = Field(default=True, alias="CAPTURE_SCREENSHOTS")

    # Rendering
    renderer: str = Field(default="browser", alias="RENDERER")
    headless: bool = Field(default=True, alias="HEADLESS")
    page_load_timeout: float = Field(default=60.0, gt=0, alias="PAGE_LOAD_TIMEOUT")
    page_parallelism: int = Field(default=2, ge=1, alias="PAGE_PARALLELISM")

    # Webhook
    n8n_webhook_url: Optional[str] = Field(default=None, alias="N8N_WEBHOOK_URL")
    n8n_webhook_method: str = Field(default="POST", alias="N8N_WEBHOOK_METHOD")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, alias="LOG_FILE")

    @field_validator("renderer")
    @classmethod
    def _check_renderer(cls, value: str) -> str:
        value = value.lower()
        if value not in ("browser", "static"):
            raise ValueError("RENDERER must be 'browser' or 'static'")
        return value

    @field_validator("n8n_webhook_method")
    @classmethod
    def _check_method(cls, value: str) -> str:
        value = value.upper()
        if value not in ("GET", "POST"):
            raise ValueError("N8N_WEBHOOK_METHOD must be GET or POST")
        return value

    def review_host_set(self) -> frozenset[str]:
        """Parse the comma separated REVIEW_HOSTS value."""
        return frozenset(
            host.strip().lower() for host in self.review_hosts.split(",") if host.strip()
        )

    def link_check_config(self) -> LinkCheckConfig:
        """Build the explicit configuration handed to the link checker."""
        return LinkCheckConfig(
            concurrency=self.link_check_concurrency,
            timeout=self.link_check_timeout,
            include_hidden=self.include_hidden_links,
            capture_evidence=self.capture_screenshots,
            evidence_dir=self.test_results_dir,
            policy=ClassificationPolicy(review_hosts=self.review_host_set()),
        )


def get_settings(**overrides) -> Settings:
    """Get application settings."""
    return Settings(**overrides)


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Route loguru output to stderr and, optionally, a rotating log file."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(str(log_file), level="DEBUG", rotation="5 MB", retention=5)
