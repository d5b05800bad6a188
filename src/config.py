"""
Configuration module for armconverge.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from transport import DEFAULT_ENDPOINT


@dataclass
class ArmConfig:
    """Azure Resource Manager connection settings."""

    subscription_id: str = ""
    endpoint: str = DEFAULT_ENDPOINT
    access_token: str = field(default="", repr=False)  # Never log the token
    request_timeout: int = 60

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            subscription_id=os.getenv("ARM_SUBSCRIPTION_ID", ""),
            endpoint=os.getenv("ARM_ENDPOINT", DEFAULT_ENDPOINT),
            access_token=os.getenv("ARM_ACCESS_TOKEN", ""),
            request_timeout=int(os.getenv("ARM_REQUEST_TIMEOUT", "60")),
        )


@dataclass
class WaiterConfig:
    """Long-running operation polling configuration."""

    poll_interval: float = 10  # seconds between status checks
    timeout: float = 3600  # 1 hour

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            poll_interval=float(os.getenv("OPERATION_POLL_INTERVAL", "10")),
            timeout=float(os.getenv("OPERATION_TIMEOUT", "3600")),
        )


@dataclass
class ControllerConfig:
    """Orchestrator retry and concurrency configuration."""

    max_concurrent_reconciles: int = 5
    max_retries: int = 3

    # Exponential backoff configuration
    backoff_base_delay: float = 2  # base delay in seconds
    backoff_max_delay: float = 60  # max delay in seconds
    backoff_jitter_factor: float = 0.1  # ±10% jitter

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            max_concurrent_reconciles=int(os.getenv("MAX_CONCURRENT_RECONCILES", "5")),
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
            backoff_base_delay=float(os.getenv("BACKOFF_BASE_DELAY", "2")),
            backoff_max_delay=float(os.getenv("BACKOFF_MAX_DELAY", "60")),
            backoff_jitter_factor=float(os.getenv("BACKOFF_JITTER_FACTOR", "0.1")),
        )


@dataclass
class DatabaseConfig:
    """PostgreSQL handle store configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "armconverge"
    user: str = "armconverge"
    password: str = field(default="", repr=False)  # Never log password
    min_pool_size: int = 1
    max_pool_size: int = 5

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        password = os.getenv("DB_PASSWORD", "")
        if not password:
            raise ValueError(
                "DB_PASSWORD environment variable must be set. "
                "Database password cannot be empty."
            )

        return cls(
            host=os.getenv("DB_HOST", "localhost"),
            port=int(os.getenv("DB_PORT", "5432")),
            database=os.getenv("DB_NAME", "armconverge"),
            user=os.getenv("DB_USER", "armconverge"),
            password=password,
            min_pool_size=int(os.getenv("DB_MIN_POOL_SIZE", "1")),
            max_pool_size=int(os.getenv("DB_MAX_POOL_SIZE", "5")),
        )


@dataclass
class StateConfig:
    """Where reconciled handles are persisted."""

    backend: str = "file"  # 'file' or 'postgres'
    state_file: str = "armconverge.state.json"
    database: Optional[DatabaseConfig] = None

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        backend = os.getenv("STATE_BACKEND", "file").lower()
        if backend not in ("file", "postgres"):
            raise ValueError(
                f"STATE_BACKEND must be 'file' or 'postgres', got {backend!r}"
            )
        return cls(
            backend=backend,
            state_file=os.getenv("STATE_FILE", "armconverge.state.json"),
            database=DatabaseConfig.from_env() if backend == "postgres" else None,
        )


@dataclass
class Config:
    """Main configuration object."""

    arm: ArmConfig
    waiter: WaiterConfig
    controller: ControllerConfig
    state: StateConfig
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            arm=ArmConfig.from_env(),
            waiter=WaiterConfig.from_env(),
            controller=ControllerConfig.from_env(),
            state=StateConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            arm=ArmConfig(),
            waiter=WaiterConfig(),
            controller=ControllerConfig(),
            state=StateConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
