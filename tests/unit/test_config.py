"""Unit tests for microkernel configuration."""

import pytest

from microkernel.config import MicrokernelConfig


class TestMicrokernelConfig:
    """Tests for loading configuration from the environment."""

    def test_defaults(self, monkeypatch):
        """Test default values match the microkernel image layout."""
        for name in (
            "MK_INTERFACE_PREFIX",
            "MK_MAX_WAIT_SECONDS",
            "MK_FIRMWARE_MODULE_PATTERN",
            "MK_BOOT_CMDLINE",
            "MK_NEXT_SERVER_FILE",
            "MK_DEFAULT_SERVER_HOSTNAME",
            "MK_SERVER_PORT",
            "MK_USE_SUDO",
        ):
            monkeypatch.delenv(name, raising=False)

        config = MicrokernelConfig.from_env()

        assert config.interface_prefix == "eth"
        assert config.max_wait_seconds == 120
        assert config.firmware_module_pattern == r"^(bnx2)"
        assert config.boot_cmdline_path == "/proc/cmdline"
        assert config.next_server_file == "/tmp/nextServerIP.addr"
        assert config.default_server_hostname == "razor"
        assert config.server_port == 8026
        assert config.use_sudo is True

    def test_overrides(self, monkeypatch):
        """Test environment overrides and casts."""
        monkeypatch.setenv("MK_INTERFACE_PREFIX", "enp")
        monkeypatch.setenv("MK_MAX_WAIT_SECONDS", "30")
        monkeypatch.setenv("MK_USE_SUDO", "false")
        monkeypatch.setenv("MK_SERVER_PORT", "9000")

        config = MicrokernelConfig.from_env()

        assert config.interface_prefix == "enp"
        assert config.max_wait_seconds == 30
        assert config.use_sudo is False
        assert config.server_port == 9000

    def test_non_positive_wait_rejected(self, monkeypatch):
        """Test that a zero wait budget is a configuration error."""
        monkeypatch.setenv("MK_MAX_WAIT_SECONDS", "0")

        with pytest.raises(ValueError, match="MK_MAX_WAIT_SECONDS"):
            MicrokernelConfig.from_env()

    def test_bad_module_pattern_rejected(self, monkeypatch):
        """Test that an invalid regex is a configuration error."""
        monkeypatch.setenv("MK_FIRMWARE_MODULE_PATTERN", "^(bnx2")

        with pytest.raises(ValueError, match="MK_FIRMWARE_MODULE_PATTERN"):
            MicrokernelConfig.from_env()

    def test_server_url(self):
        """Test endpoint construction."""
        config = MicrokernelConfig(server_port=8026)

        assert config.server_url("10.0.0.5") == "http://10.0.0.5:8026"
