"""
Configuration Management for feedharvest

This module provides centralized configuration management with:
- Environment variable loading
- Type validation
- Sensible defaults
- Configuration documentation
"""

import os
from pathlib import Path
from typing import Optional, Tuple
from dotenv import load_dotenv


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
DEFAULT_RATE_LIMIT_TEXT = "Something went wrong. Try reloading."
DEFAULT_EMAIL_VERIFICATION_TEXT = (
    "Verify your identity by entering the email address associated with your X account."
)

_FALSY = {"0", "false", "False"}
_TRUTHY = {"1", "true", "True"}


def _split_csv(value: str) -> Tuple[str, ...]:
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


class Config:
    """
    Application configuration loaded from environment variables.

    All configuration is read from configs/.env file or environment variables.
    See configs/.env.example for documentation of all settings.
    """

    def __init__(self, env_path: Optional[Path] = None):
        """
        Initialize configuration from environment.

        Args:
            env_path: Path to .env file (default: configs/.env)
        """
        if env_path is None:
            env_path = Path("configs/.env")

        # Load environment variables
        load_dotenv(dotenv_path=env_path, override=True)

        # === Feed Configuration ===
        self.feed_url: str = os.getenv("FEED_URL", "")
        self.site_origin: str = os.getenv("SITE_ORIGIN", "https://twitter.com").rstrip("/")
        self.internal_domains: Tuple[str, ...] = _split_csv(
            os.getenv("INTERNAL_DOMAINS", "twitter.com,x.com")
        )

        # === Session Configuration ===
        self.session_cooldown_s: float = float(os.getenv("SESSION_COOLDOWN_S", "60"))
        self.session_retry_s: float = float(os.getenv("SESSION_RETRY_S", "10"))
        self.headless: bool = os.getenv("HEADLESS", "1") not in _FALSY
        self.user_agent: str = os.getenv("USER_AGENT", DEFAULT_USER_AGENT)
        self.session_viewport: Tuple[int, int] = (
            int(os.getenv("SESSION_VIEWPORT_WIDTH", "1920")),
            int(os.getenv("SESSION_VIEWPORT_HEIGHT", "25000")),
        )

        # === Login Configuration (explicit login only) ===
        self.home_url: str = os.getenv("HOME_URL", "https://twitter.com")
        self.login_url: str = os.getenv("LOGIN_URL", "https://twitter.com/i/flow/login")
        self.login_username: str = os.getenv("LOGIN_USERNAME", "")
        self.login_password: str = os.getenv("LOGIN_PASSWORD", "")
        self.email_verification_text: str = os.getenv(
            "EMAIL_VERIFICATION_TEXT", DEFAULT_EMAIL_VERIFICATION_TEXT
        )

        # === Crawl Loop Configuration ===
        self.pass_cooldown_s: float = float(os.getenv("PASS_COOLDOWN_S", "300"))
        self.nav_timeout_ms: int = int(os.getenv("NAV_TIMEOUT_MS", "45000"))
        self.render_settle_ms: int = int(os.getenv("RENDER_SETTLE_MS", "5000"))
        self.scroll_settle_ms: int = int(os.getenv("SCROLL_SETTLE_MS", "1000"))
        self.harvest_viewport: Tuple[int, int] = (
            int(os.getenv("HARVEST_VIEWPORT_WIDTH", "1024")),
            int(os.getenv("HARVEST_VIEWPORT_HEIGHT", "4000")),
        )
        self.rate_limit_text: str = os.getenv("RATE_LIMIT_TEXT", DEFAULT_RATE_LIMIT_TEXT)
        self.archive_max_retries: int = int(os.getenv("ARCHIVE_MAX_RETRIES", "3"))
        self.archive_retry_base_sleep: float = float(os.getenv("ARCHIVE_RETRY_BASE_SLEEP", "1.0"))

        # === Round Configuration ===
        self.round_fixed: Optional[int] = (
            int(os.environ["ROUND_FIXED"]) if os.getenv("ROUND_FIXED") else None
        )
        self.round_origin_ts: float = float(os.getenv("ROUND_ORIGIN_TS", "0"))
        self.round_length_s: float = float(os.getenv("ROUND_LENGTH_S", "3600"))

        # === Blob Store Configuration ===
        self.blob_backend: str = os.getenv("BLOB_BACKEND", "local").lower()
        self.ipfs_api_url: str = os.getenv("IPFS_API_URL", "http://127.0.0.1:5001").rstrip("/")
        self.ipfs_api_token: Optional[str] = os.getenv("IPFS_API_TOKEN")
        self.blob_timeout_s: float = float(os.getenv("BLOB_TIMEOUT_S", "60"))
        self.local_blob_dir: Path = Path(os.getenv("LOCAL_BLOB_DIR", "out/blobs"))

        # === Record Store Configuration ===
        self.store_backend: str = os.getenv("STORE_BACKEND", "local").lower()
        self.local_store_dir: Path = Path(os.getenv("LOCAL_STORE_DIR", "out/store"))
        self.supabase_url: Optional[str] = os.getenv("SUPABASE_URL")
        self.supabase_service_role_key: Optional[str] = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        self.records_table: str = os.getenv("SUPABASE_RECORDS_TABLE", "records")
        self.cids_table: str = os.getenv("SUPABASE_CIDS_TABLE", "cids")
        self.proofs_table: str = os.getenv("SUPABASE_PROOFS_TABLE", "proofs")

        # === Logging Configuration ===
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO")
        self.log_dir: Path = Path(os.getenv("LOG_DIR", "logs"))
        self.log_verbose: bool = os.getenv("LOG_VERBOSE", "0") in _TRUTHY

    def validate(self) -> None:
        """
        Validate required configuration is present.

        Raises:
            ValueError: If required configuration is missing or invalid
        """
        errors = []

        if not self.feed_url:
            errors.append("FEED_URL is required")

        if self.blob_backend not in {"ipfs", "local"}:
            errors.append(f"BLOB_BACKEND must be 'ipfs' or 'local', got {self.blob_backend!r}")

        if self.store_backend not in {"local", "supabase"}:
            errors.append(f"STORE_BACKEND must be 'local' or 'supabase', got {self.store_backend!r}")

        # Check Supabase config if selected
        if self.store_backend == "supabase":
            if not self.supabase_url:
                errors.append("SUPABASE_URL is required when STORE_BACKEND=supabase")
            if not self.supabase_service_role_key:
                errors.append("SUPABASE_SERVICE_ROLE_KEY is required when STORE_BACKEND=supabase")

        # Validate numeric ranges
        if self.session_cooldown_s < 0:
            errors.append(f"SESSION_COOLDOWN_S must be non-negative, got {self.session_cooldown_s}")

        if self.pass_cooldown_s < 0:
            errors.append(f"PASS_COOLDOWN_S must be non-negative, got {self.pass_cooldown_s}")

        if self.nav_timeout_ms <= 0:
            errors.append(f"NAV_TIMEOUT_MS must be positive, got {self.nav_timeout_ms}")

        if self.archive_max_retries < 0:
            errors.append(f"ARCHIVE_MAX_RETRIES must be non-negative, got {self.archive_max_retries}")

        if self.round_length_s <= 0:
            errors.append(f"ROUND_LENGTH_S must be positive, got {self.round_length_s}")

        if not self.rate_limit_text:
            errors.append("RATE_LIMIT_TEXT cannot be empty")

        if errors:
            raise ValueError("Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

    def __repr__(self) -> str:
        """Return string representation of config (without secrets)."""
        return (
            f"Config(\n"
            f"  feed_url={self.feed_url or 'NOT SET'},\n"
            f"  login_username={self.login_username or 'NOT SET'},\n"
            f"  login_password={'***' if self.login_password else 'NOT SET'},\n"
            f"  blob_backend={self.blob_backend},\n"
            f"  ipfs_api_token={'***' if self.ipfs_api_token else 'NOT SET'},\n"
            f"  store_backend={self.store_backend},\n"
            f"  supabase_url={self.supabase_url or 'NOT SET'},\n"
            f"  log_level={self.log_level}\n"
            f")"
        )


# Global configuration instance (lazy-loaded)
_config: Optional[Config] = None


def get_config(env_path: Optional[Path] = None) -> Config:
    """
    Get the global configuration instance.

    Args:
        env_path: Optional path to .env file (only used on first call)

    Returns:
        Global Config instance

    Example:
        >>> config = get_config()
        >>> print(config.feed_url)
    """
    global _config
    if _config is None:
        _config = Config(env_path=env_path)
    return _config


def validate_config(env_path: Optional[Path] = None) -> None:
    """
    Validate configuration and raise error if invalid.

    This should be called at application startup to fail fast
    if configuration is incorrect.

    Args:
        env_path: Optional path to .env file

    Raises:
        ValueError: If configuration is invalid
    """
    config = get_config(env_path=env_path)
    config.validate()
