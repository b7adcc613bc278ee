"""
Microkernel init entry point.

Waits for the network, discovers the provisioning server and records
its endpoint in the microkernel configuration for the services that
start afterwards. The process exit status is the readiness outcome.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
import yaml

from microkernel.config import MicrokernelConfig
from microkernel.models import ReadinessOutcome
from microkernel.services.discovery import ServerDiscoveryResolver
from microkernel.services.interfaces import NetifacesInterfaceProvider
from microkernel.services.readiness import NetworkReadinessDetector
from microkernel.services.system import build_system_ports

# Configure structured logging
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

DISCOVERY_FAILED = 1
CONFIG_ERROR = 1
CONF_WRITE_FAILED = 1


def update_mk_conf(conf_file: str, mk_uri: str) -> bool:
    """
    Set ``mk_uri`` in the microkernel YAML config, keeping other keys.

    Returns:
        True if the file was written, False otherwise.
    """
    path = Path(conf_file)
    try:
        data = {}
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning("mk_conf_not_a_mapping", path=str(path))
            data = {}

        data["mk_uri"] = mk_uri

        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False)

        logger.info("mk_conf_updated", path=str(path), mk_uri=mk_uri)
        return True

    except (OSError, yaml.YAMLError) as e:
        logger.error("mk_conf_update_failed", path=str(path), error=str(e))
        return False


def read_mk_version(version_file: str) -> Optional[str]:
    """Microkernel version from the version YAML, if present."""
    try:
        with open(version_file) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return None

    if not isinstance(data, dict) or data.get("mk_version") is None:
        return None
    return str(data["mk_version"])


class MicrokernelInit:
    """Boot-time coordinator for network readiness and server discovery."""

    def __init__(
        self,
        config: MicrokernelConfig,
        detector: NetworkReadinessDetector,
        resolver: ServerDiscoveryResolver,
    ):
        self.config = config
        self.detector = detector
        self.resolver = resolver

    @classmethod
    def from_config(cls, config: MicrokernelConfig) -> "MicrokernelInit":
        kernel_modules, dhcp_client = build_system_ports(config)
        detector = NetworkReadinessDetector(
            config,
            interfaces=NetifacesInterfaceProvider(),
            kernel_modules=kernel_modules,
            dhcp_client=dhcp_client,
        )
        return cls(config, detector, ServerDiscoveryResolver.from_config(config))

    async def run(self) -> int:
        """
        Run the init sequence.

        Returns:
            Process exit code: the readiness outcome value on network
            failure, DISCOVERY_FAILED if no server was found,
            CONF_WRITE_FAILED if the endpoint could not be recorded,
            else 0.
        """
        outcome = await self.detector.check_network_ready(
            self.config.interface_prefix,
            self.config.max_wait_seconds,
        )

        if outcome is ReadinessOutcome.TIMEOUT_EXCEEDED:
            logger.error("max_wait_exceeded_network_not_found")
            return int(outcome)
        if outcome is ReadinessOutcome.INVALID_ADDRESS:
            logger.error("dhcp_address_assignment_failed")
            return int(outcome)

        # Give the freshly configured interface a moment to settle
        if self.config.settle_seconds > 0:
            await asyncio.sleep(self.config.settle_seconds)

        logger.info("network_available_proceeding")

        address = await self.resolver.discover_server_address()
        if not address:
            logger.error("provisioning_server_not_found")
            return DISCOVERY_FAILED

        mk_uri = self.config.server_url(address)
        logger.info("provisioning_server_discovered", address=address, mk_uri=mk_uri)
        if not update_mk_conf(self.config.mk_conf_file, mk_uri):
            return CONF_WRITE_FAILED

        version = read_mk_version(self.config.mk_version_file)
        if version:
            logger.info("microkernel_loaded", mk_version=version)

        return int(ReadinessOutcome.SUCCESS)


async def main() -> int:
    """Main entry point."""
    # Load configuration
    try:
        config = MicrokernelConfig.from_env()
    except ValueError as e:
        logger.error("configuration_error", error=str(e))
        return CONFIG_ERROR

    # Set log level
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )

    init = MicrokernelInit.from_config(config)
    return await init.run()


def run() -> None:
    """Entry point for console script."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
