"""
Unit tests for server configuration.
"""

import pytest

from userserver.config import ServerConfig, DEFAULT_INDEX_FILE


ENV_VARS = (
    "USERSERVER_HOST",
    "USERSERVER_PORT",
    "USERSERVER_CONTRACT",
    "USERSERVER_WORKERS",
    "USERSERVER_TIMEOUT",
    "USERSERVER_LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Environment with none of the server variables set."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    """Tests for dataclass defaults."""

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.contract == "form"
        assert config.index_file == DEFAULT_INDEX_FILE
        assert config.min_workers == 4
        assert config.max_workers == 16
        assert config.timeout == 30.0
        assert config.keep_alive_timeout == 5.0
        assert config.max_request_size == 10 * 1024 * 1024
        assert config.log_level == "INFO"
        assert config.log_format == "text"
        assert config.server_name == "userserver/1.0"

    def test_defaults_are_valid(self):
        ServerConfig().validate()


class TestFromEnv:
    """Tests for ServerConfig.from_env()."""

    def test_no_env(self, clean_env):
        """Test that an empty environment gives the defaults."""
        assert ServerConfig.from_env() == ServerConfig()

    def test_overrides(self, clean_env):
        clean_env.setenv("USERSERVER_HOST", "127.0.0.1")
        clean_env.setenv("USERSERVER_PORT", "3000")
        clean_env.setenv("USERSERVER_CONTRACT", "JSON")
        clean_env.setenv("USERSERVER_TIMEOUT", "2.5")
        clean_env.setenv("USERSERVER_LOG_LEVEL", "debug")

        config = ServerConfig.from_env()

        assert config.host == "127.0.0.1"
        assert config.port == 3000
        assert config.contract == "json"
        assert config.timeout == 2.5
        assert config.log_level == "DEBUG"

    def test_workers(self, clean_env):
        """Test that a small worker count lowers min_workers too."""
        clean_env.setenv("USERSERVER_WORKERS", "2")

        config = ServerConfig.from_env()

        assert config.max_workers == 2
        assert config.min_workers == 2
        config.validate()

    def test_empty_values_ignored(self, clean_env):
        clean_env.setenv("USERSERVER_PORT", "")
        clean_env.setenv("USERSERVER_CONTRACT", "")

        config = ServerConfig.from_env()

        assert config.port == 8080
        assert config.contract == "form"

    def test_bad_number(self, clean_env):
        clean_env.setenv("USERSERVER_PORT", "eighty")

        with pytest.raises(ValueError):
            ServerConfig.from_env()


class TestSetWorkers:
    """Tests for ServerConfig.set_workers()."""

    def test_raise_cap(self):
        config = ServerConfig()
        config.set_workers(32)

        assert config.max_workers == 32
        assert config.min_workers == 4


class TestValidate:
    """Tests for ServerConfig.validate()."""

    @pytest.mark.parametrize("overrides", [
        {"port": 0},
        {"port": 65536},
        {"contract": "xml"},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"max_queue_size": 0},
        {"buffer_size": 512},
        {"timeout": 0},
        {"timeout": -1.0},
        {"keep_alive_timeout": 0},
        {"max_request_size": 0},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_rejects(self, overrides: dict):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()

    def test_error_names_field(self):
        with pytest.raises(ValueError, match="port"):
            ServerConfig(port=70000).validate()

    def test_no_timeout_allowed(self):
        """Test that timeout=None disables the first-request timeout."""
        ServerConfig(timeout=None).validate()

    def test_lowercase_log_level(self):
        ServerConfig(log_level="debug").validate()
