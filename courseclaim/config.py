"""
Platform configuration and logging setup.
"""

import json
import logging
import os
from typing import Any, Dict, Mapping, Optional

from .core.exceptions import ConfigurationError

DEFAULT_CONFIG: Dict[str, Any] = {
    'database_type': 'sqlite',
    'database_config': {'database_path': 'courseclaim.db'},
    'access_code_prefix': 'AC',
    'access_code_suffix_length': 4,
    'access_code_attempts': 3,
    'rest_host': '0.0.0.0',
    'rest_port': 8000,
    'log_level': 'INFO',
}

# environment variable -> (config key, converter)
ENV_OVERRIDES = {
    'COURSECLAIM_DATABASE_TYPE': ('database_type', str),
    'COURSECLAIM_ACCESS_CODE_PREFIX': ('access_code_prefix', str),
    'COURSECLAIM_ACCESS_CODE_ATTEMPTS': ('access_code_attempts', int),
    'COURSECLAIM_REST_HOST': ('rest_host', str),
    'COURSECLAIM_REST_PORT': ('rest_port', int),
    'COURSECLAIM_LOG_LEVEL': ('log_level', str),
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def load_config(path: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Merge defaults, an optional JSON file and COURSECLAIM_* variables."""
    environ = os.environ if environ is None else environ
    config = dict(DEFAULT_CONFIG)
    config['database_config'] = dict(DEFAULT_CONFIG['database_config'])

    if path:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Could not read configuration file {path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a JSON object")
        config.update(file_config)

    for variable, (key, convert) in ENV_OVERRIDES.items():
        if variable in environ:
            try:
                config[key] = convert(environ[variable])
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {variable}: {environ[variable]}") from e

    if 'COURSECLAIM_DATABASE_PATH' in environ:
        config['database_config'] = dict(config.get('database_config') or {})
        config['database_config']['database_path'] = environ['COURSECLAIM_DATABASE_PATH']

    validate_config(config)
    return config


def _int_setting(config: Mapping[str, Any], key: str) -> int:
    try:
        return int(config.get(key))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key} must be an integer, got {config.get(key)!r}") from e


def validate_config(config: Mapping[str, Any]) -> None:
    database_type = config.get('database_type')
    if not isinstance(database_type, str) or \
            database_type.lower() not in ('sqlite', 'postgresql', 'postgres'):
        raise ConfigurationError(f"Unsupported database type: {database_type!r}")
    if not isinstance(config.get('database_config', {}), dict):
        raise ConfigurationError("database_config must be an object")
    if _int_setting(config, 'access_code_attempts') < 1:
        raise ConfigurationError("access_code_attempts must be at least 1")
    if _int_setting(config, 'access_code_suffix_length') < 1:
        raise ConfigurationError("access_code_suffix_length must be at least 1")
    if not 0 < _int_setting(config, 'rest_port') < 65536:
        raise ConfigurationError(f"Invalid REST port: {config.get('rest_port')}")
    if not isinstance(logging.getLevelName(str(config.get('log_level', 'INFO')).upper()), int):
        raise ConfigurationError(f"Unknown log level: {config.get('log_level')}")


def configure_logging(level: str = 'INFO') -> None:
    """Install a single stream handler on the package logger."""
    package_logger = logging.getLogger('courseclaim')
    package_logger.setLevel(level.upper())
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
