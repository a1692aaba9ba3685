"""
Configuration management for evtriage.

Uses Pydantic Settings for environment variable validation and type safety.
Command line flags override whatever is loaded here.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class TransportConfig(BaseSettings):
    """Remote execution transport configuration."""

    kind: str = Field(
        default="winrm",
        description="Transport used to reach hosts (winrm or ssh)"
    )
    powershell_exe: str = Field(
        default="powershell",
        description="PowerShell executable used by the winrm transport"
    )
    ssh_user: Optional[str] = Field(
        default=None,
        description="SSH user name (defaults to the ssh config or current user)"
    )
    ssh_port: int = Field(
        default=22,
        ge=1,
        le=65535,
        description="SSH port"
    )
    ssh_key_file: Optional[str] = Field(
        default=None,
        description="Private key file for SSH authentication"
    )
    ssh_config: Optional[str] = Field(
        default=None,
        description="Path to an OpenSSH client config (default: ~/.ssh/config)"
    )
    ssh_password: Optional[str] = Field(
        default=None,
        description="SSH password (disables key lookup when set)"
    )
    connect_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-host connection timeout in seconds"
    )
    query_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Hard limit per remote query in seconds (default: bounded by the collection timeout)"
    )

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        """Validate transport kind."""
        v = v.lower()
        if v not in ("winrm", "ssh"):
            raise ValueError("Transport must be one of: winrm, ssh")
        return v

    class Config:
        env_prefix = "EVTRIAGE_TRANSPORT_"


class CollectionConfig(BaseSettings):
    """Collection run defaults."""

    timeout: float = Field(
        default=300.0,
        gt=0,
        description="Overall wait for all hosts in seconds"
    )
    grace_period: float = Field(
        default=5.0,
        ge=0,
        description="Seconds granted to cancelled queries to release their sessions"
    )
    window_hours: int = Field(
        default=24,
        ge=1,
        description="Default look-back window in hours"
    )
    top: int = Field(
        default=0,
        ge=0,
        description="Number of ranked rows to show (0 = all)"
    )
    entry_type: str = Field(
        default="Error",
        description="Default entry type filter"
    )

    class Config:
        env_prefix = "EVTRIAGE_COLLECTION_"


class AppConfig(BaseSettings):
    """Main application configuration."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # Nested configurations
    transport: TransportConfig = Field(default_factory=TransportConfig)
    collection: CollectionConfig = Field(default_factory=CollectionConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v

    class Config:
        env_prefix = "EVTRIAGE_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the global configuration instance.

    Lazily loads configuration on first access.

    Returns:
        AppConfig: The global configuration instance
    """
    global _config
    if _config is None:
        _config = AppConfig(
            transport=TransportConfig(),
            collection=CollectionConfig(),
        )
    return _config


def reload_config() -> AppConfig:
    """
    Reload configuration from environment variables.

    Useful for testing or when environment changes.

    Returns:
        AppConfig: The reloaded configuration instance
    """
    global _config
    _config = None
    return get_config()
