"""
Configuration management for field encryption.

This module provides configuration utilities for naming protected fields
per schema, supplying the encryption secret, and reaching the document
store.
"""

import logging
import os
from pathlib import Path
from copy import deepcopy

import yaml
from pydantic import BaseModel

from .errors import ConfigError
from .models import FieldPolicy


logger = logging.getLogger(__name__)


class FieldCryptConfig:
    """
    Configuration for field encryption.

    Settings come from built-in defaults, then an optional YAML file, then
    environment variables. Protected fields are listed per schema under
    ``schemas.<SchemaName>.fields``.
    """

    # Default configuration values
    _default_config: dict[str, object] = {
        "encryption": {
            "secret": "",
        },
        "schemas": {},
        "database": {
            "url": "http://localhost:8529",
            "database": "fieldcrypt",
            "username": "root",
            "password": "",
        },
        "logging": {
            "level": "WARNING",
        },
    }

    # Instance configuration values, loaded from file or environment
    _config: dict[str, object] = {}

    # Flag indicating if the configuration has been initialized
    _initialized: bool = False

    @classmethod
    def initialize(cls, config_path: str | None = None) -> None:
        """
        Initialize the configuration.

        Args:
            config_path: Optional path to a YAML configuration file

        Raises:
            ConfigError: If the configuration file cannot be read
        """
        # Start with default configuration (deep copy to avoid shared nested dictionaries)
        cls._config = deepcopy(cls._default_config)

        if config_path:
            cls._load_from_file(config_path)

        cls._load_from_env()

        cls._initialized = True

    @classmethod
    def _load_from_file(cls, config_path: str) -> None:
        """
        Load configuration from a YAML file.

        Nested sections are merged into the defaults one level deep.

        Args:
            config_path: Path to the YAML configuration file
        """
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        try:
            with open(path, "r") as f:
                file_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Error loading configuration file {config_path}: {e}") from e

        if file_config is None:
            return
        if not isinstance(file_config, dict):
            raise ConfigError(f"Configuration file {config_path} must contain a mapping")

        for section, values in file_config.items():
            current = cls._config.get(section)
            if isinstance(values, dict) and isinstance(current, dict):
                current.update(values)
            else:
                cls._config[section] = values

        logger.info("Loaded configuration from %s", config_path)

    @classmethod
    def _load_from_env(cls) -> None:
        """Load configuration from environment variables."""
        env_secret = os.environ.get("INDALEKO_FIELDCRYPT_SECRET")
        if env_secret:
            cls._config["encryption"]["secret"] = env_secret

        env_db_url = os.environ.get("INDALEKO_DB_URL")
        if env_db_url:
            cls._config["database"]["url"] = env_db_url

        env_db_name = os.environ.get("INDALEKO_DB_NAME")
        if env_db_name:
            cls._config["database"]["database"] = env_db_name

        env_db_username = os.environ.get("INDALEKO_DB_USERNAME")
        if env_db_username:
            cls._config["database"]["username"] = env_db_username

        env_db_password = os.environ.get("INDALEKO_DB_PASSWORD")
        if env_db_password:
            cls._config["database"]["password"] = env_db_password

        env_log_level = os.environ.get("INDALEKO_LOG_LEVEL")
        if env_log_level:
            cls._config["logging"]["level"] = env_log_level.upper()

    @classmethod
    def _ensure_initialized(cls) -> None:
        """Ensure the configuration is initialized."""
        if not cls._initialized:
            cls.initialize()

    @classmethod
    def get(cls, key: str, default: object = None) -> object:
        """
        Get a configuration value.

        Args:
            key: The configuration key to retrieve, dotted for nested keys
            default: Default value to return if key is not found

        Returns:
            The configuration value, or default if not found
        """
        cls._ensure_initialized()

        value: object = cls._config
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return value

    @classmethod
    def get_secret(cls) -> str:
        """
        Get the encryption secret.

        Returns:
            The configured secret

        Raises:
            ConfigError: If no secret is configured
        """
        secret = cls.get("encryption.secret", "")
        if not isinstance(secret, str) or not secret:
            raise ConfigError(
                "No encryption secret configured; set INDALEKO_FIELDCRYPT_SECRET"
            )
        return secret

    @classmethod
    def get_schema_fields(cls, schema_name: str) -> list[str]:
        """
        Get the protected field names configured for a schema.

        Args:
            schema_name: Name of the schema, usually the model class name

        Returns:
            List of field names

        Raises:
            ConfigError: If the schema has no field list
        """
        fields = cls.get(f"schemas.{schema_name}.fields")
        if not isinstance(fields, list) or not all(isinstance(f, str) for f in fields):
            raise ConfigError(f"No protected field list configured for schema {schema_name}")
        return list(fields)

    @classmethod
    def policy_for(cls, model_cls: type[BaseModel]) -> FieldPolicy:
        """
        Build the field policy for a model from configuration.

        Args:
            model_cls: The pydantic model class of the schema

        Returns:
            A FieldPolicy using the configured fields and secret
        """
        return FieldPolicy.for_model(
            model_cls,
            cls.get_schema_fields(model_cls.__name__),
            cls.get_secret(),
        )

    @classmethod
    def get_database_url(cls) -> str:
        """
        Get the database URL.

        Returns:
            The URL of the database
        """
        return cls.get("database.url", "http://localhost:8529")

    @classmethod
    def get_database_credentials(cls) -> dict:
        """
        Get the database credentials.

        Returns:
            Dictionary containing database credentials
        """
        return {
            "username": cls.get("database.username", "root"),
            "password": cls.get("database.password", ""),
            "database": cls.get("database.database", "fieldcrypt"),
        }

    @classmethod
    def configure_logging(cls) -> None:
        """Apply the configured log level to the package logger."""
        level = cls.get("logging.level", "WARNING")
        package_logger = logging.getLogger(__name__.rsplit(".", 1)[0])
        try:
            package_logger.setLevel(level)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid log level: {level!r}") from e
