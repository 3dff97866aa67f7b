import json
import logging

import pytest

from courseclaim.config import DEFAULT_CONFIG, configure_logging, load_config, validate_config
from courseclaim.core.exceptions import ConfigurationError


def test_defaults_without_file_or_environment():
    config = load_config(environ={})

    assert config == DEFAULT_CONFIG
    assert config['database_config'] is not DEFAULT_CONFIG['database_config']


def test_file_and_environment_overrides(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"rest_port": 9000, "access_code_prefix": "CRS"}))

    config = load_config(str(path), environ={
        "COURSECLAIM_REST_PORT": "9100",
        "COURSECLAIM_DATABASE_PATH": str(tmp_path / "env.db"),
        "COURSECLAIM_LOG_LEVEL": "debug",
    })

    assert config['rest_port'] == 9100
    assert config['access_code_prefix'] == "CRS"
    assert config['database_config']['database_path'] == str(tmp_path / "env.db")
    assert config['log_level'] == "debug"
    assert DEFAULT_CONFIG['database_config']['database_path'] == "courseclaim.db"


@pytest.mark.parametrize("environ", [
    {"COURSECLAIM_REST_PORT": "not-a-port"},
    {"COURSECLAIM_REST_PORT": "70000"},
    {"COURSECLAIM_ACCESS_CODE_ATTEMPTS": "0"},
    {"COURSECLAIM_DATABASE_TYPE": "mongodb"},
    {"COURSECLAIM_LOG_LEVEL": "chatty"},
])
def test_invalid_overrides(environ):
    with pytest.raises(ConfigurationError):
        load_config(environ=environ)


def test_unreadable_config_file(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")

    with pytest.raises(ConfigurationError):
        load_config(str(broken), environ={})
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "missing.json"), environ={})


@pytest.mark.parametrize("file_config", [
    {"rest_port": "eighty"},
    {"rest_port": None},
    {"access_code_attempts": "many"},
    {"access_code_suffix_length": "four"},
    {"database_type": None},
    {"database_type": 5},
])
def test_invalid_file_values(tmp_path, file_config):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(file_config))

    with pytest.raises(ConfigurationError):
        load_config(str(path), environ={})


def test_validate_rejects_non_object_database_config():
    config = dict(DEFAULT_CONFIG, database_config="courseclaim.db")

    with pytest.raises(ConfigurationError):
        validate_config(config)


def test_configure_logging_installs_one_handler():
    package_logger = logging.getLogger('courseclaim')
    saved = list(package_logger.handlers)
    package_logger.handlers = []
    try:
        configure_logging('warning')
        configure_logging('warning')
        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.WARNING
    finally:
        package_logger.handlers = saved
        package_logger.setLevel(logging.NOTSET)
