from dotenv import load_dotenv
from dataclasses import dataclass
from typing import Optional
from pathlib import Path
import json
import logging
import os

from urllens.constants import (
    DEFAULT_USER_AGENT,
    DEFAULT_TIMEOUT_SECONDS,
    PROBE_TIMEOUT_SECONDS,
    MAX_REDIRECTS,
    MAX_AUDIT_URLS,
    MAX_URLS_PER_DOMAIN,
    MAX_DOMAINS_PER_AUDIT,
    DEFAULT_AUDIT_CONCURRENCY,
    INTER_BATCH_DELAY_SECONDS,
)
from urllens.http_client import HttpClientConfig

load_dotenv()  # Loads variables from .env file

logger = logging.getLogger(__name__)


class Settings:
    """
    Search API credentials loaded from environment variables.

    They are properties so that they are read when used, not when the
    module is imported.
    """

    @property
    def google_api_key(self) -> Optional[str]:
        return os.getenv("GOOGLE_API_KEY") or os.getenv("NEXT_PUBLIC_GOOGLE_API_KEY")

    @property
    def google_cse_id(self) -> Optional[str]:
        return os.getenv("GOOGLE_CSE_ID") or os.getenv("NEXT_PUBLIC_GOOGLE_CSE_ID")


settings = Settings()


@dataclass
class Config:
    """Configuration for URL Lens."""
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    probe_timeout: float = PROBE_TIMEOUT_SECONDS
    max_redirects: int = MAX_REDIRECTS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config: Configuration instance with values from environment
        """
        return cls(
            user_agent=os.getenv("URLLENS_USER_AGENT", DEFAULT_USER_AGENT),
            timeout=float(os.getenv("URLLENS_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))),
            probe_timeout=float(os.getenv("URLLENS_PROBE_TIMEOUT", str(PROBE_TIMEOUT_SECONDS))),
            max_redirects=int(os.getenv("URLLENS_MAX_REDIRECTS", str(MAX_REDIRECTS))),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def http_config(self) -> HttpClientConfig:
        """Build the read-only HTTP client configuration."""
        return HttpClientConfig(
            user_agent=self.user_agent,
            timeout=self.timeout,
            probe_timeout=self.probe_timeout,
            max_redirects=self.max_redirects,
        )


@dataclass
class AuditLimits:
    """Configurable limits for batch audits and domain discovery."""

    max_urls: int = MAX_AUDIT_URLS
    max_domains: int = MAX_DOMAINS_PER_AUDIT
    max_urls_per_domain: int = MAX_URLS_PER_DOMAIN
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    concurrency: int = DEFAULT_AUDIT_CONCURRENCY
    inter_batch_delay: float = INTER_BATCH_DELAY_SECONDS

    @classmethod
    def from_env(cls) -> "AuditLimits":
        """Load limits from environment variables.

        Environment variables should be prefixed with URLLENS_AUDIT_
        e.g., URLLENS_AUDIT_CONCURRENCY=3

        Returns:
            AuditLimits with values from environment
        """
        limits = cls()
        prefix = "URLLENS_AUDIT_"

        for field_name in limits.__dataclass_fields__:
            env_key = f"{prefix}{field_name.upper()}"
            env_value = os.getenv(env_key)

            if env_value is not None:
                field_type = limits.__dataclass_fields__[field_name].type
                try:
                    if field_type == int:
                        setattr(limits, field_name, int(env_value))
                    elif field_type == float:
                        setattr(limits, field_name, float(env_value))
                except ValueError:
                    logger.warning(f"Ignoring invalid value for {env_key}: {env_value!r}")

        return limits

    @classmethod
    def from_file(cls, path: str) -> "AuditLimits":
        """Load limits from a JSON configuration file.

        Args:
            path: Path to JSON configuration file

        Returns:
            AuditLimits with values from file
        """
        limits = cls()
        file_path = Path(path)

        if not file_path.exists():
            return limits

        with open(file_path, 'r') as f:
            config = json.load(f)

        limit_config = config.get('limits', config)
        for key, value in limit_config.items():
            if hasattr(limits, key):
                setattr(limits, key, value)

        return limits

    def to_dict(self) -> dict:
        """Convert limits to dictionary."""
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }


default_limits = AuditLimits()
