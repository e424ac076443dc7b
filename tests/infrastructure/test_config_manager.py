#!/usr/bin/env python3
"""Tests for the configuration manager."""

import pytest

from featurerules.core.constants import ConfigKey, ErrorCode
from featurerules.infrastructure.config_manager import (
    ConfigError,
    ConfigManager,
    ConfigSource,
    get_config_manager,
    set_global_config,
)


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_defaults(self):
        config = ConfigManager(environ={})
        assert config.get(ConfigKey.FAIL_FAST) is True
        assert config.get(ConfigKey.LOG_LEVEL) == "INFO"
        assert config.get(ConfigKey.COMPAT_TAGS) == []
        assert config.get("missing.key", "fallback") == "fallback"

    def test_file_overrides_defaults(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text("engine:\n  fail_fast: false\nlogging:\n  level: DEBUG\n")
        config = ConfigManager(str(path), environ={})
        assert config.get(ConfigKey.FAIL_FAST) is False
        assert config.get(ConfigKey.LOG_LEVEL) == "DEBUG"

    def test_empty_file(self, temp_dir):
        path = temp_dir / "empty.yaml"
        path.write_text("")
        config = ConfigManager(str(path), environ={})
        assert config.get(ConfigKey.LOG_LEVEL) == "INFO"

    def test_missing_file(self, temp_dir):
        with pytest.raises(ConfigError) as exc_info:
            ConfigManager(str(temp_dir / "nope.yaml"), environ={})
        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    def test_invalid_yaml(self, temp_dir):
        path = temp_dir / "bad.yaml"
        path.write_text("engine: [\n")
        with pytest.raises(ConfigError) as exc_info:
            ConfigManager(str(path), environ={})
        assert exc_info.value.error_code == ErrorCode.PARSE_ERROR

    def test_not_a_mapping(self, temp_dir):
        path = temp_dir / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError) as exc_info:
            ConfigManager(str(path), environ={})
        assert exc_info.value.error_code == ErrorCode.INVALID_INPUT

    def test_environment(self):
        config = ConfigManager(
            environ={
                "FEATURERULES_ENGINE__FAIL_FAST": "off",
                "FEATURERULES_COMPAT__TAGS": "prod, gpu",
                "FEATURERULES_LOGGING__LEVEL": "debug",
                "OTHER_VAR": "ignored",
            }
        )
        assert config.get(ConfigKey.FAIL_FAST) is False
        assert config.get(ConfigKey.COMPAT_TAGS) == ["prod", "gpu"]
        assert config.get(ConfigKey.LOG_LEVEL) == "debug"

    def test_parse_env_value(self):
        config = ConfigManager(environ={})
        assert config._parse_env_value("yes") is True
        assert config._parse_env_value("42") == 42
        assert config._parse_env_value("a,b,") == ["a", "b"]
        assert config._parse_env_value("text") == "text"

    def test_precedence(self):
        config = ConfigManager(environ={"FEATURERULES_LOGGING__LEVEL": "WARNING"})
        config.set(ConfigKey.LOG_LEVEL, "DEBUG", ConfigSource.CLI_ARGS)
        assert config.get(ConfigKey.LOG_LEVEL) == "DEBUG"
        config.clear(ConfigSource.CLI_ARGS)
        assert config.get(ConfigKey.LOG_LEVEL) == "WARNING"
        config.clear()
        assert config.get(ConfigKey.LOG_LEVEL) == "INFO"

    def test_get_all_deep_merges(self):
        config = ConfigManager(environ={})
        config.load_dict({"logging": {"file": "/tmp/x.log"}})
        merged = config.get_all()
        assert merged["logging"] == {"level": "INFO", "file": "/tmp/x.log"}
        assert merged["engine"] == {"fail_fast": True}

    def test_global(self):
        config = ConfigManager(environ={})
        set_global_config(config)
        assert get_config_manager() is config
