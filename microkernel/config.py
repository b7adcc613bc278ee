"""
Configuration management for microkernel init.

Loads configuration from environment variables with validation.
"""

import re
from dataclasses import dataclass
from decouple import config


@dataclass(slots=True)
class MicrokernelConfig:
    """Microkernel init configuration."""

    # Network readiness
    interface_prefix: str = "eth"
    max_wait_seconds: int = 120  # 2 minutes
    firmware_module_pattern: str = r"^(bnx2)"

    # System commands
    dhcp_service: str = "/etc/init.d/services/dhcp"
    use_sudo: bool = True
    command_timeout: int = 30  # seconds

    # Server discovery
    boot_cmdline_path: str = "/proc/cmdline"
    next_server_file: str = "/tmp/nextServerIP.addr"
    default_server_hostname: str = "razor"
    server_port: int = 8026

    # Microkernel files
    mk_conf_file: str = "/tmp/mk_conf.yaml"
    mk_version_file: str = "/tmp/mk-version.yaml"
    settle_seconds: int = 5

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "MicrokernelConfig":
        """Load configuration from environment variables."""

        # Network readiness
        interface_prefix = config("MK_INTERFACE_PREFIX", default="eth")
        max_wait_seconds = config("MK_MAX_WAIT_SECONDS", default=120, cast=int)
        if max_wait_seconds <= 0:
            raise ValueError(
                f"Invalid MK_MAX_WAIT_SECONDS: {max_wait_seconds}. Must be positive."
            )

        firmware_module_pattern = config("MK_FIRMWARE_MODULE_PATTERN", default=r"^(bnx2)")
        try:
            re.compile(firmware_module_pattern)
        except re.error as e:
            raise ValueError(f"Invalid MK_FIRMWARE_MODULE_PATTERN: {e}")

        # System commands
        dhcp_service = config("MK_DHCP_SERVICE", default="/etc/init.d/services/dhcp")
        use_sudo = config("MK_USE_SUDO", default=True, cast=bool)
        command_timeout = config("MK_COMMAND_TIMEOUT", default=30, cast=int)

        # Server discovery
        boot_cmdline_path = config("MK_BOOT_CMDLINE", default="/proc/cmdline")
        next_server_file = config("MK_NEXT_SERVER_FILE", default="/tmp/nextServerIP.addr")
        default_server_hostname = config("MK_DEFAULT_SERVER_HOSTNAME", default="razor")
        server_port = config("MK_SERVER_PORT", default=8026, cast=int)

        # Microkernel files
        mk_conf_file = config("MK_CONF_FILE", default="/tmp/mk_conf.yaml")
        mk_version_file = config("MK_VERSION_FILE", default="/tmp/mk-version.yaml")
        settle_seconds = config("MK_SETTLE_SECONDS", default=5, cast=int)

        # Logging
        log_level = config("LOG_LEVEL", default="INFO")

        return cls(
            interface_prefix=interface_prefix,
            max_wait_seconds=max_wait_seconds,
            firmware_module_pattern=firmware_module_pattern,
            dhcp_service=dhcp_service,
            use_sudo=use_sudo,
            command_timeout=command_timeout,
            boot_cmdline_path=boot_cmdline_path,
            next_server_file=next_server_file,
            default_server_hostname=default_server_hostname,
            server_port=server_port,
            mk_conf_file=mk_conf_file,
            mk_version_file=mk_version_file,
            settle_seconds=settle_seconds,
            log_level=log_level,
        )

    def server_url(self, address: str) -> str:
        """Build the provisioning server endpoint for a discovered address."""
        return f"http://{address}:{self.server_port}"
