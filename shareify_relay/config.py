"""
Unified Configuration Management for the Shareify command relay

Endpoints, timeouts, key storage, fallback policy and logging in one Pydantic BaseSettings model.
All settings can be overridden via environment variables with SHAREIFY_ prefix.

Usage:
    from shareify_relay.config import get_settings

    settings = get_settings()
    print(settings.command_url)
    print(settings.allow_plaintext_fallback)
"""

from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """
    Configuration for the command relay client

    All settings can be overridden via environment variables with SHAREIFY_ prefix.
    Example: SHAREIFY_HOST=relay.example.org
    """

    model_config = SettingsConfigDict(
        env_prefix="SHAREIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # RELAY ENDPOINTS
    # ============================================

    host: str = Field(
        default="bbarni.hackclub.app",
        description="Base host; bridge and command services live on sub-domains of it"
    )

    bridge_url_override: Optional[str] = Field(
        default=None,
        description="Full bridge URL (overrides https://bridge.<host>)"
    )

    command_url_override: Optional[str] = Field(
        default=None,
        description="Full command URL (overrides https://command.<host>/)"
    )

    # ============================================
    # HTTP TIMEOUTS (seconds)
    # ============================================

    connect_timeout: float = Field(default=30.0, description="Connect timeout")
    read_timeout: float = Field(default=30.0, description="Read timeout")
    write_timeout: float = Field(default=30.0, description="Write timeout")

    # ============================================
    # SECURITY SETTINGS
    # ============================================

    keyring_service: str = Field(
        default="shareify-code",
        description="Keyring service name holding the client RSA key pair"
    )

    key_passphrase: Optional[str] = Field(
        default=None,
        description="Optional passphrase protecting the stored private key PEM"
    )

    rsa_key_size: int = Field(
        default=4096,
        description="RSA modulus size for newly generated client key pairs"
    )

    allow_plaintext_fallback: bool = Field(
        default=False,
        description=(
            "Send commands unencrypted when no encrypted session can be established. "
            "A network attacker able to block session establishment can force plaintext."
        )
    )

    # ============================================
    # STORAGE
    # ============================================

    data_dir: Path = Field(
        default=Path.home() / ".shareify_code",
        description="Directory for the credential store"
    )

    credentials_db_name: str = Field(
        default="credentials.db",
        description="SQLite file name (inside data_dir) for persisted tokens and credentials"
    )

    # ============================================
    # LOGGING
    # ============================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines instead of plain text"
    )

    @field_validator("rsa_key_size")
    @classmethod
    def validate_rsa_key_size(cls, v: int) -> int:
        if v < 2048:
            raise ValueError("rsa_key_size must be at least 2048 bits")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    # ============================================
    # COMPUTED PROPERTIES
    # ============================================

    @property
    def bridge_url(self) -> str:
        """Bridge service base URL (no trailing slash)"""
        if self.bridge_url_override:
            return self.bridge_url_override.rstrip("/")
        return f"https://bridge.{self.host}"

    @property
    def command_url(self) -> str:
        """Generic command endpoint"""
        if self.command_url_override:
            return self.command_url_override
        return f"https://command.{self.host}/"

    @property
    def login_url(self) -> str:
        return f"{self.bridge_url}/login"

    @property
    def establish_session_url(self) -> str:
        return f"{self.bridge_url}/cloud/establish_session"

    @property
    def credentials_db(self) -> Path:
        return self.data_dir / self.credentials_db_name

    def ensure_data_dir(self) -> Path:
        """Create the data directory if needed and return it"""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.data_dir


@lru_cache()
def get_settings() -> RelaySettings:
    """
    Get cached settings instance

    Returns:
        Singleton RelaySettings instance
    """
    return RelaySettings()
