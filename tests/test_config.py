"""Unit tests for config.py - Configuration management."""

import os
from unittest.mock import patch

import pytest

import config
from config import (
    ArmConfig,
    Config,
    ControllerConfig,
    DatabaseConfig,
    StateConfig,
    WaiterConfig,
    get_config,
    load_config,
    reset_config,
)
from transport import DEFAULT_ENDPOINT


class TestArmConfig:
    """Tests for ArmConfig class."""

    def test_default_values(self):
        cfg = ArmConfig()
        assert cfg.subscription_id == ""
        assert cfg.endpoint == DEFAULT_ENDPOINT
        assert cfg.access_token == ""
        assert cfg.request_timeout == 60

    def test_from_env(self):
        env_vars = {
            "ARM_SUBSCRIPTION_ID": "sub-1",
            "ARM_ENDPOINT": "https://management.usgovcloudapi.net",
            "ARM_ACCESS_TOKEN": "token",
            "ARM_REQUEST_TIMEOUT": "30",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = ArmConfig.from_env()

        assert cfg.subscription_id == "sub-1"
        assert cfg.endpoint == "https://management.usgovcloudapi.net"
        assert cfg.access_token == "token"
        assert cfg.request_timeout == 30

    def test_token_not_in_repr(self):
        """Test that the access token is never shown in repr."""
        cfg = ArmConfig(access_token="super-secret")
        assert "super-secret" not in repr(cfg)


class TestWaiterConfig:
    """Tests for WaiterConfig class."""

    def test_default_values(self):
        cfg = WaiterConfig()
        assert cfg.poll_interval == 10
        assert cfg.timeout == 3600

    def test_from_env(self):
        env_vars = {"OPERATION_POLL_INTERVAL": "2.5", "OPERATION_TIMEOUT": "600"}
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = WaiterConfig.from_env()

        assert cfg.poll_interval == 2.5
        assert cfg.timeout == 600


class TestControllerConfig:
    """Tests for ControllerConfig class."""

    def test_default_values(self):
        cfg = ControllerConfig()
        assert cfg.max_concurrent_reconciles == 5
        assert cfg.max_retries == 3
        assert cfg.backoff_base_delay == 2
        assert cfg.backoff_max_delay == 60
        assert cfg.backoff_jitter_factor == 0.1

    def test_from_env(self):
        env_vars = {
            "MAX_CONCURRENT_RECONCILES": "10",
            "MAX_RETRIES": "1",
            "BACKOFF_BASE_DELAY": "5",
            "BACKOFF_MAX_DELAY": "120",
            "BACKOFF_JITTER_FACTOR": "0.2",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = ControllerConfig.from_env()

        assert cfg.max_concurrent_reconciles == 10
        assert cfg.max_retries == 1
        assert cfg.backoff_base_delay == 5
        assert cfg.backoff_max_delay == 120
        assert cfg.backoff_jitter_factor == 0.2


class TestDatabaseConfig:
    """Tests for DatabaseConfig class."""

    def test_default_values(self):
        cfg = DatabaseConfig()
        assert cfg.host == "localhost"
        assert cfg.port == 5432
        assert cfg.database == "armconverge"
        assert cfg.user == "armconverge"
        assert cfg.min_pool_size == 1
        assert cfg.max_pool_size == 5

    def test_from_env(self):
        env_vars = {
            "DB_HOST": "envhost",
            "DB_PORT": "5434",
            "DB_NAME": "envdb",
            "DB_USER": "envuser",
            "DB_PASSWORD": "envpassword",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = DatabaseConfig.from_env()

        assert cfg.host == "envhost"
        assert cfg.port == 5434
        assert cfg.database == "envdb"
        assert cfg.user == "envuser"
        assert cfg.password == "envpassword"

    def test_from_env_requires_password(self):
        """Test that an empty DB_PASSWORD is rejected."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="DB_PASSWORD"):
                DatabaseConfig.from_env()

    def test_password_not_in_repr(self):
        cfg = DatabaseConfig(password="secret")
        assert "secret" not in repr(cfg)


class TestStateConfig:
    """Tests for StateConfig class."""

    def test_default_values(self):
        cfg = StateConfig()
        assert cfg.backend == "file"
        assert cfg.state_file == "armconverge.state.json"
        assert cfg.database is None

    def test_file_backend_from_env(self):
        env_vars = {"STATE_FILE": "/tmp/state.json"}
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = StateConfig.from_env()

        assert cfg.backend == "file"
        assert cfg.state_file == "/tmp/state.json"
        assert cfg.database is None

    def test_postgres_backend_from_env(self):
        env_vars = {"STATE_BACKEND": "Postgres", "DB_PASSWORD": "pw"}
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = StateConfig.from_env()

        assert cfg.backend == "postgres"
        assert cfg.database.password == "pw"

    def test_unknown_backend(self):
        with patch.dict(os.environ, {"STATE_BACKEND": "s3"}, clear=True):
            with pytest.raises(ValueError, match="STATE_BACKEND"):
                StateConfig.from_env()


class TestConfig:
    """Tests for the main Config class."""

    def test_default(self):
        cfg = Config.default()
        assert isinstance(cfg.arm, ArmConfig)
        assert isinstance(cfg.waiter, WaiterConfig)
        assert isinstance(cfg.controller, ControllerConfig)
        assert isinstance(cfg.state, StateConfig)
        assert cfg.log_level == "INFO"

    def test_from_env(self):
        env_vars = {"ARM_SUBSCRIPTION_ID": "sub-1", "LOG_LEVEL": "DEBUG"}
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = Config.from_env()

        assert cfg.arm.subscription_id == "sub-1"
        assert cfg.log_level == "DEBUG"


class TestConfigSingleton:
    """Tests for load_config/get_config/reset_config."""

    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_load_config_caches(self):
        with patch.dict(os.environ, {}, clear=True):
            first = load_config()
            second = load_config()
        assert first is second

    def test_get_config_loads_when_empty(self):
        with patch.dict(os.environ, {}, clear=True):
            cfg = get_config()
        assert config.config is cfg

    def test_reset_config(self):
        with patch.dict(os.environ, {}, clear=True):
            load_config()
        reset_config()
        assert config.config is None
