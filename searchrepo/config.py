import logging
import os
import sys
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from searchrepo.domain.index.model.descriptor import IndexDescriptor
from searchrepo.domain.query.model.command_options import (
    DEFAULT_LIMIT,
    DEFAULT_SNAPSHOT_LIFETIME,
    MAX_LIMIT,
)

CONFIG_FILE_ENV = "SEARCHREPO_CONFIG_FILE"
LOG_FILE_ENV = "SEARCHREPO_LOG_FILE"


# =============================================================================
# Backends
# =============================================================================


class ElasticsearchConfig(BaseSettings):
    hosts: list[str] = ["http://localhost:9200"]
    request_timeout: float = 30.0
    max_retries: int = 3
    api_key: str | None = None


class RedisConfig(BaseSettings):
    url: str = "redis://localhost:6379/0"


class CacheConfig(BaseSettings):
    backend: Literal["none", "memory", "redis"] = "memory"
    max_items: int = 10000  # memory backend only
    default_expires_in: float | None = 300.0  # seconds; None keeps entries until evicted
    key_prefix: str = "searchrepo"


class LockConfig(BaseSettings):
    backend: Literal["memory", "redis"] = "memory"
    ttl: float = 1200.0  # seconds a crashed holder can keep a lock
    throttle_period: float = 60.0
    throttle_max_hits: int = 1


class QueueConfig(BaseSettings):
    backend: Literal["memory", "redis"] = "memory"
    name: str = "work-items"


class RepositoryConfig(BaseSettings):
    default_limit: int = DEFAULT_LIMIT
    max_limit: int = MAX_LIMIT
    default_snapshot_lifetime: str = DEFAULT_SNAPSHOT_LIFETIME

    def option_defaults(self) -> dict[str, Any]:
        """Defaults every repository seeds into its command options."""
        return {
            "default_limit": self.default_limit,
            "max_limit": self.max_limit,
            "default_snapshot_lifetime": self.default_snapshot_lifetime,
        }


class LoggingConfig(BaseSettings):
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @property
    def file(self) -> str | None:
        """Get log file path from SEARCHREPO_LOG_FILE env var."""
        return os.environ.get(LOG_FILE_ENV)


# =============================================================================
# Application Configuration
# =============================================================================


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Load settings from YAML file specified by SEARCHREPO_CONFIG_FILE env var."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        yaml_data = self._load_yaml_config()
        field_value = yaml_data.get(field_name)
        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict[str, Any]:
        config_file = os.environ.get(CONFIG_FILE_ENV)
        if config_file:
            path = Path(config_file).expanduser()
            if path.exists():
                return yaml.safe_load(path.read_text()) or {}
        return {}


class Config(BaseSettings):
    elasticsearch: ElasticsearchConfig = ElasticsearchConfig()
    redis: RedisConfig = RedisConfig()
    cache: CacheConfig = CacheConfig()
    lock: LockConfig = LockConfig()
    queue: QueueConfig = QueueConfig()
    repository: RepositoryConfig = RepositoryConfig()
    logging: LoggingConfig = LoggingConfig()
    indexes: list[IndexDescriptor] = []

    model_config = SettingsConfigDict(
        env_prefix="SEARCHREPO_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",  # Allows SEARCHREPO_CACHE__BACKEND override
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include YAML config.

        Priority (highest to lowest):
        1. init_settings - values passed to Config()
        2. env_settings - environment variables
        3. dotenv_settings - .env file
        4. yaml_settings - SEARCHREPO_CONFIG_FILE yaml
        5. file_secret_settings - secrets from files
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def configure_logging(config: LoggingConfig) -> None:
    """Configure Python logging based on config.

    Should be called early in application startup so all loggers pick up
    the configuration.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(config.format, datefmt=config.date_format)

    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(config.level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("elasticsearch").setLevel(logging.WARNING)
    logging.getLogger("elastic_transport").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.debug("Logging configured: level=%s, file=%s", config.level, config.file)
