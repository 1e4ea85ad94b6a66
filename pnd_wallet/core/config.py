"""
Configuration loading and validation for the wallet service.

Settings come from environment variables (a `.env` file is honoured via
python-dotenv). `load_config()` validates them once at startup and the
resulting `AppConfig` is shared through `get_config()`.
"""

import os
from typing import Dict, Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv
from pnd_wallet.core.exceptions import ConfigurationError
import logging

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("mongo", "memory")


@dataclass
class DatabaseConfig:
    """MongoDB connection settings"""
    url: Optional[str] = None
    max_pool_size: int = 10
    min_pool_size: int = 2
    max_idle_time_ms: int = 30000
    server_selection_timeout_ms: int = 5000
    connect_timeout_ms: int = 10000
    socket_timeout_ms: int = 45000


@dataclass
class RateLimitConfig:
    transfer_rate_limit: str = "20/minute"
    api_rate_limit: str = "60/minute"


@dataclass
class TransferConfig:
    """Wallet transfer engine settings"""
    reference_prefix: str = "PnD"
    max_attempts: int = 5
    retry_wait_max_ms: int = 500


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class AppConfig:
    """Main application configuration"""
    database: DatabaseConfig
    rate_limit: RateLimitConfig
    transfer: TransferConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    storage_backend: str = "mongo"
    environment: str = "development"


class ConfigValidator:
    """Validates and loads application configuration"""

    REQUIRED_ENV_VARS = {
        "ADMIN_API_KEY": "your-admin-key-here",
    }

    OPTIONAL_ENV_VARS = {
        "MONGO_URL": None,
        "STORAGE_BACKEND": "mongo",
        "ENVIRONMENT": "development",
        "LOG_LEVEL": "INFO",
        "MONGO_MAX_POOL_SIZE": "10",
        "MONGO_MIN_POOL_SIZE": "2",
        "MONGO_MAX_IDLE_TIME_MS": "30000",
        "MONGO_SERVER_SELECTION_TIMEOUT_MS": "5000",
        "MONGO_CONNECT_TIMEOUT_MS": "10000",
        "MONGO_SOCKET_TIMEOUT_MS": "45000",
        "TRANSFER_RATE_LIMIT": "20/minute",
        "API_RATE_LIMIT": "60/minute",
        "TRANSFER_REFERENCE_PREFIX": "PnD",
        "TRANSFER_MAX_ATTEMPTS": "5",
        "TRANSFER_RETRY_WAIT_MAX_MS": "500",
    }

    @classmethod
    def validate_environment(cls) -> Dict[str, Optional[str]]:
        """
        Collect required and optional environment variables.

        Raises:
            ConfigurationError: If a required variable is missing
        """
        errors = []
        config = {}

        for var_name, default_value in cls.REQUIRED_ENV_VARS.items():
            value = os.getenv(var_name)
            if not value:
                errors.append(f"Required environment variable {var_name} is not set")
                config[var_name] = default_value
            else:
                config[var_name] = value

        for var_name, default_value in cls.OPTIONAL_ENV_VARS.items():
            config[var_name] = os.getenv(var_name, default_value)

        if errors:
            raise ConfigurationError(
                "Configuration validation failed: " + "; ".join(errors),
                config_key="environment_validation",
            )

        return config

    @classmethod
    def validate_mongo_url(cls, url: Optional[str]) -> str:
        """Validate MongoDB URL format"""
        if not url:
            raise ConfigurationError(
                "MONGO_URL environment variable is not set",
                config_key="MONGO_URL",
                expected_value="mongodb://localhost:27017/pnd",
            )
        if not url.startswith(("mongodb://", "mongodb+srv://")):
            raise ConfigurationError(
                "Invalid MongoDB URL format",
                config_key="MONGO_URL",
                expected_value="mongodb://localhost:27017/pnd",
            )
        return url

    @classmethod
    def validate_storage_backend(cls, backend: str) -> str:
        backend = (backend or "").strip().lower()
        if backend not in STORAGE_BACKENDS:
            raise ConfigurationError(
                "Invalid storage backend",
                config_key="STORAGE_BACKEND",
                expected_value=" | ".join(STORAGE_BACKENDS),
            )
        return backend

    @classmethod
    def validate_rate_limit(cls, rate_limit: str) -> str:
        """Validate rate limit format (e.g., '10/minute')"""
        try:
            count, period = rate_limit.split("/")
            int(count)
            if period not in ("second", "minute", "hour", "day"):
                raise ValueError(period)
        except ValueError:
            raise ConfigurationError(
                "Invalid rate limit format",
                config_key="rate_limit",
                expected_value="10/minute",
            )
        return rate_limit

    @classmethod
    def validate_reference_prefix(cls, prefix: str) -> str:
        if not prefix or not prefix.isalnum():
            raise ConfigurationError(
                "Transfer reference prefix must be alphanumeric",
                config_key="TRANSFER_REFERENCE_PREFIX",
                expected_value="PnD",
            )
        return prefix

    @classmethod
    def validate_integer(cls, value: str, default: int, min_val: int = None, max_val: int = None) -> int:
        """Parse an integer, falling back to the default when out of bounds or malformed"""
        try:
            int_val = int(value)
        except (ValueError, TypeError):
            return default
        if min_val is not None and int_val < min_val:
            return default
        if max_val is not None and int_val > max_val:
            return default
        return int_val

    @classmethod
    def load_config(cls) -> AppConfig:
        """
        Load and validate complete application configuration

        Raises:
            ConfigurationError: If configuration validation fails
        """
        logger.info("Loading application configuration...")
        load_dotenv()

        env_vars = cls.validate_environment()
        storage_backend = cls.validate_storage_backend(env_vars["STORAGE_BACKEND"])

        mongo_url = env_vars["MONGO_URL"]
        if storage_backend == "mongo":
            mongo_url = cls.validate_mongo_url(mongo_url)

        database_config = DatabaseConfig(
            url=mongo_url,
            max_pool_size=cls.validate_integer(env_vars["MONGO_MAX_POOL_SIZE"], 10, 1, 100),
            min_pool_size=cls.validate_integer(env_vars["MONGO_MIN_POOL_SIZE"], 2, 1, 50),
            max_idle_time_ms=cls.validate_integer(env_vars["MONGO_MAX_IDLE_TIME_MS"], 30000, 1000, 300000),
            server_selection_timeout_ms=cls.validate_integer(env_vars["MONGO_SERVER_SELECTION_TIMEOUT_MS"], 5000, 1000, 30000),
            connect_timeout_ms=cls.validate_integer(env_vars["MONGO_CONNECT_TIMEOUT_MS"], 10000, 1000, 60000),
            socket_timeout_ms=cls.validate_integer(env_vars["MONGO_SOCKET_TIMEOUT_MS"], 45000, 1000, 120000),
        )

        rate_limit_config = RateLimitConfig(
            transfer_rate_limit=cls.validate_rate_limit(env_vars["TRANSFER_RATE_LIMIT"]),
            api_rate_limit=cls.validate_rate_limit(env_vars["API_RATE_LIMIT"]),
        )

        transfer_config = TransferConfig(
            reference_prefix=cls.validate_reference_prefix(env_vars["TRANSFER_REFERENCE_PREFIX"]),
            max_attempts=cls.validate_integer(env_vars["TRANSFER_MAX_ATTEMPTS"], 5, 1, 20),
            retry_wait_max_ms=cls.validate_integer(env_vars["TRANSFER_RETRY_WAIT_MAX_MS"], 500, 0, 10000),
        )

        logging_config = LoggingConfig(level=env_vars["LOG_LEVEL"])

        app_config = AppConfig(
            database=database_config,
            rate_limit=rate_limit_config,
            transfer=transfer_config,
            logging=logging_config,
            storage_backend=storage_backend,
            environment=env_vars["ENVIRONMENT"],
        )

        logger.info("Configuration loaded successfully")
        logger.info(f"Environment: {app_config.environment}, storage: {app_config.storage_backend}")
        logger.info(
            f"Transfers: max_attempts={transfer_config.max_attempts}, "
            f"rate_limit={rate_limit_config.transfer_rate_limit}"
        )

        return app_config


_app_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the loaded application configuration

    Raises:
        ConfigurationError: If configuration is not loaded
    """
    if _app_config is None:
        raise ConfigurationError(
            "Configuration not loaded. Call load_config() first.",
            config_key="config_not_loaded",
        )

    return _app_config


def load_config() -> AppConfig:
    """Load, validate and cache the application configuration"""
    global _app_config

    _app_config = ConfigValidator.load_config()
    return _app_config
