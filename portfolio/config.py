"""
Runtime configuration for the portfolio backend.
Everything is read from environment variables once, at app creation.
"""

import os
import secrets
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_MEDIUM_USERNAME = "mohamedelshawaf"
DATA_DIR_NAME = "data"


def default_data_dir() -> Path:
    return Path.cwd() / DATA_DIR_NAME


@dataclass
class MediumConfig:
    """Where to find the Medium feed and how to reach it."""

    username: str = DEFAULT_MEDIUM_USERNAME
    domain: Optional[str] = None
    feed_url: Optional[str] = None
    timeout: float = 8.0
    user_agent: str = "shawaf-me-medium-integration"

    @property
    def profile_domain(self) -> str:
        return self.domain or f"{self.username}.medium.com"

    @property
    def default_feed_url(self) -> str:
        return self.feed_url or f"https://medium.com/feed/@{self.username}"

    def candidate_feed_urls(self) -> list[str]:
        """Feed URLs in the order they should be tried, without duplicates."""
        candidates = [
            self.default_feed_url,
            f"https://{self.profile_domain}/feed",
            f"https://medium.com/feed/@{self.username}",
        ]
        unique: list[str] = []
        for url in candidates:
            if url not in unique:
                unique.append(url)
        return unique

    @classmethod
    def from_env(cls) -> "MediumConfig":
        return cls(
            username=os.getenv("MEDIUM_USERNAME") or DEFAULT_MEDIUM_USERNAME,
            domain=os.getenv("MEDIUM_DOMAIN") or None,
            feed_url=os.getenv("MEDIUM_FEED_URL") or None,
        )


@dataclass
class Settings:
    data_dir: Path = field(default_factory=default_data_dir)
    admin_username: Optional[str] = None
    admin_password: Optional[str] = None
    secret_key: str = field(default_factory=lambda: secrets.token_hex(32))
    is_production: bool = False
    database_url: Optional[str] = None
    log_level: str = "INFO"
    medium: MediumConfig = field(default_factory=MediumConfig)

    @property
    def credentials_configured(self) -> bool:
        return bool(self.admin_username and self.admin_password)

    @classmethod
    def from_env(cls) -> "Settings":
        is_production = os.getenv("PORTFOLIO_ENV") == "production"

        # In production, this MUST be set via environment variable
        secret_key = os.getenv("BLOG_SECRET_KEY")
        if not secret_key:
            if is_production:
                raise RuntimeError("BLOG_SECRET_KEY must be set in production environment")
            warnings.warn("BLOG_SECRET_KEY not set - using random key (sessions won't persist across restarts)")
            secret_key = secrets.token_hex(32)

        return cls(
            data_dir=Path(os.getenv("BLOG_DATA_DIR") or default_data_dir()),
            admin_username=os.getenv("BLOG_ADMIN_USERNAME") or None,
            admin_password=os.getenv("BLOG_ADMIN_PASSWORD") or None,
            secret_key=secret_key,
            is_production=is_production,
            database_url=os.getenv("DATABASE_URL") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            medium=MediumConfig.from_env(),
        )
