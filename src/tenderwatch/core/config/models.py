"""
Pydantic configuration models for TenderWatch.

These models provide type-safe configuration with validation for:
- Database and logging settings
- The GeM listing scraper (URLs, selectors, timeouts, retries)
- Subscription matching and dispatch batching
- Email delivery
- Scheduler settings
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class EmailBackend(str, Enum):
    """Supported email delivery backends."""

    SMTP = "smtp"
    LOG = "log"


class LockBackend(str, Enum):
    """Run-guard backends for the scheduler."""

    MEMORY = "memory"
    DATABASE = "database"


# =============================================================================
# Region Gazetteer
# =============================================================================


# Order matters: the first entry found in the department text wins.
DEFAULT_REGIONS: list[str] = [
    "Andhra Pradesh",
    "Arunachal Pradesh",
    "Assam",
    "Bihar",
    "Chhattisgarh",
    "Goa",
    "Gujarat",
    "Haryana",
    "Himachal Pradesh",
    "Jharkhand",
    "Karnataka",
    "Kerala",
    "Madhya Pradesh",
    "Maharashtra",
    "Manipur",
    "Meghalaya",
    "Mizoram",
    "Nagaland",
    "Odisha",
    "Punjab",
    "Rajasthan",
    "Sikkim",
    "Tamil Nadu",
    "Telangana",
    "Tripura",
    "Uttar Pradesh",
    "Uttarakhand",
    "West Bengal",
    "Delhi",
    "Chandigarh",
    "Puducherry",
    "Jammu and Kashmir",
    "Ladakh",
]


# =============================================================================
# Scraper Configuration
# =============================================================================


class ListingSelectors(BaseModel):
    """CSS selectors for the GeM bid listing.

    A mismatch with the live markup degrades to zero extracted records,
    never to a crash.
    """

    card: str = Field(default=".card", description="One tender card")
    reference_link: str = Field(
        default="a.bid_no_hover",
        description="Bid number link; text is the reference id, href the detail link",
    )
    title: str = Field(
        default=".card-body .col-md-4 a",
        description="Title element; its data-content attribute wins over text",
    )
    department: str = Field(
        default=".card-body .col-md-5",
        description="Department / ministry block",
    )
    start_date: str = Field(default=".start_date", description="Bid start date")
    end_date: str = Field(default=".end_date", description="Bid end date")
    next_page: list[str] = Field(
        default_factory=lambda: [
            "a.page-link.next",
            'ul.pagination a[rel="next"]',
            "ul.pagination li.page-item:last-child a.page-link",
        ],
        description="Next-page controls to try in order",
    )
    disabled_class: str = Field(
        default="disabled",
        description="Class marking a pagination control as disabled",
    )


class ScraperConfig(BaseModel):
    """Settings for the listing scraper and its browser session."""

    home_url: str = Field(
        default="https://gem.gov.in/",
        description="Portal root page visited first to establish cookies",
    )
    listing_url: str = Field(
        default="https://bidplus.gem.gov.in/bidlists?bidlists&sorting=bid_start_date%7Cdesc",
        description="Bid listing, newest first",
    )
    source_name: str = Field(default="GEM", description="Source identifier stored on records")
    max_pages: int = Field(
        default=5,
        ge=0,
        description="Default page cap (0 = until the listing runs out)",
    )
    headless: bool = Field(default=True, description="Run the browser headless")
    browser: str = Field(default="chromium", description="chromium, firefox or webkit")
    user_agent: str | None = Field(default=None, description="Custom user agent string")
    stealth: bool = Field(default=True, description="Inject the anti-automation script")
    warmup_timeout_ms: int = Field(default=30000, ge=1000, le=120000)
    warmup_delay_ms: int = Field(default=2000, ge=0, le=30000)
    navigation_timeout_ms: int = Field(default=60000, ge=5000, le=180000)
    selector_timeout_ms: int = Field(default=30000, ge=1000, le=120000)
    page_change_timeout_ms: int = Field(default=30000, ge=1000, le=120000)
    listing_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts to load the listing before giving up",
    )
    retry_delay_seconds: float = Field(
        default=3.0,
        ge=0.0,
        le=120.0,
        description="Base delay; attempt N waits N times this",
    )
    category_max_length: int = Field(default=100, ge=10, le=500)
    screenshots_on_error: bool = Field(default=True)
    screenshots_path: Path = Field(default=Path("data/screenshots"))
    selectors: ListingSelectors = Field(default_factory=ListingSelectors)
    regions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_REGIONS),
        description="Region gazetteer, matched in order",
    )

    @field_validator("regions")
    @classmethod
    def regions_not_blank(cls, v: list[str]) -> list[str]:
        """Drop blank gazetteer entries."""
        return [r.strip() for r in v if r and r.strip()]


# =============================================================================
# Matcher & Dispatch Configuration
# =============================================================================


class MatcherConfig(BaseModel):
    """Subscription matching settings."""

    lookback_minutes: int = Field(
        default=150,
        ge=1,
        description="Only tenders ingested within this window are matched",
    )


class DispatchConfig(BaseModel):
    """Queue draining and email layout settings."""

    batch_size: int = Field(
        default=200,
        ge=1,
        le=10000,
        description="Maximum PENDING rows processed per drain",
    )
    display_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Tenders listed in one email before the overflow line",
    )
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL for the 'view all tenders' link",
    )
    requeue_max_attempts: int = Field(default=3, ge=1, le=20)
    requeue_backoff_minutes: int = Field(default=30, ge=0)

    @field_validator("frontend_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class EmailConfig(BaseModel):
    """Outbound email settings."""

    backend: EmailBackend = Field(
        default=EmailBackend.LOG,
        description="smtp sends for real; log only writes the message to the log",
    )
    from_address: str = Field(default="alerts@tenderwatch.local")
    from_name: str = Field(default="TenderWatch Alerts")
    smtp_host: str = Field(default="localhost")
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_user: str | None = Field(default=None)
    smtp_password: str | None = Field(default=None)
    use_tls: bool = Field(default=True, description="STARTTLS after connecting")
    use_ssl: bool = Field(default=False, description="Implicit TLS (port 465)")
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=300.0)

    @field_validator("use_ssl")
    @classmethod
    def ssl_excludes_starttls(cls, v: bool, info: Any) -> bool:
        if v and info.data.get("use_tls"):
            raise ValueError("use_ssl and use_tls are mutually exclusive")
        return v


# =============================================================================
# Scheduler Configuration
# =============================================================================


class SchedulerConfig(BaseModel):
    """Interval trigger and run-guard settings."""

    enabled: bool = Field(default=True, description="Master scheduler enable/disable")
    interval_minutes: int = Field(default=120, ge=1, le=1440)
    pages: int = Field(default=5, ge=0, description="Pages per scheduled scrape")
    today_only: bool = Field(default=True)
    manual_pages: int = Field(default=3, ge=0, description="Default pages for a manual trigger")
    run_on_start: bool = Field(default=False, description="Fire one run as soon as the scheduler starts")
    timezone: str = Field(default="Asia/Kolkata")
    lock_backend: LockBackend = Field(default=LockBackend.MEMORY)
    lock_name: str = Field(default="tender-pipeline")
    lock_ttl_minutes: int = Field(default=120, ge=1, le=1440)
    heartbeat_seconds: float = Field(default=60.0, ge=1.0)


# =============================================================================
# Database Configuration
# =============================================================================


class DatabaseConfig(BaseModel):
    """Database connection settings."""

    url: str = Field(
        default="sqlite:///data/tenderwatch.db",
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging)",
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Connection pool size",
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=Path("logs/tenderwatch.log"),
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    config_dir: Path = Field(
        default=Path("configs"),
        description="Configuration directory",
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Data storage directory",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scraper: ScraperConfig = Field(default_factory=ScraperConfig)
    matcher: MatcherConfig = Field(default_factory=MatcherConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [self.config_dir, self.data_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)
