"""
Provisioning server discovery.

Tries, in order of precedence:

1. ``razor.ip=<ip>`` on the boot command line (set by the PXE config)
2. DNS lookup of ``razor.server=<name>`` from the boot command line,
   or of the default server hostname
3. The next-server address the DHCP client wrote during lease acquisition

The first strategy that yields an address wins.
"""

from __future__ import annotations

import asyncio
import socket
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

import structlog

from microkernel.config import MicrokernelConfig
from microkernel.models import DiscoveryMethod, DiscoveryResult
from microkernel.services.bootparams import BootParameters

logger = structlog.get_logger()

SERVER_IP_PARAM = "razor.ip"
SERVER_NAME_PARAM = "razor.server"


class DiscoveryStrategy(ABC):
    """One way of learning the provisioning server address."""

    method: DiscoveryMethod

    @abstractmethod
    async def try_discover(self) -> Optional[str]:
        """Return the server address, or None. Must not raise."""
        pass


class PxeBootParameterStrategy(DiscoveryStrategy):
    """Server IP passed explicitly on the kernel command line."""

    method = DiscoveryMethod.PXE

    def __init__(self, boot_params: BootParameters):
        self.boot_params = boot_params

    async def try_discover(self) -> Optional[str]:
        try:
            values = self.boot_params.values(SERVER_IP_PARAM)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("boot_cmdline_unreadable", error=str(e))
            return None

        if len(values) != 1:
            if values:
                logger.warning("ambiguous_server_ip_param", values=values)
            return None

        return values[0] or None


class HostnameStrategy(DiscoveryStrategy):
    """Resolve the server hostname from the command line (or the default)."""

    method = DiscoveryMethod.DNS

    def __init__(self, boot_params: BootParameters, default_hostname: str = "razor"):
        self.boot_params = boot_params
        self.default_hostname = default_hostname

    async def try_discover(self) -> Optional[str]:
        try:
            hostname = self.boot_params.single_value(SERVER_NAME_PARAM) or self.default_hostname
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("boot_cmdline_unreadable", error=str(e))
            return None

        try:
            addresses = await self.resolve(hostname)
        except (OSError, UnicodeError) as e:
            logger.debug("server_hostname_unresolved", hostname=hostname, error=str(e))
            return None

        if not addresses:
            return None
        return addresses[0]

    async def resolve(self, hostname: str) -> list[str]:
        """IPv4 addresses for ``hostname``, in resolver order, without duplicates."""
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(
            hostname,
            None,
            family=socket.AF_INET,
            type=socket.SOCK_STREAM,
        )

        addresses: list[str] = []
        for _family, _type, _proto, _canonname, sockaddr in infos:
            if sockaddr[0] not in addresses:
                addresses.append(sockaddr[0])
        return addresses


class DhcpNextServerStrategy(DiscoveryStrategy):
    """Next-server address left behind by the DHCP client."""

    method = DiscoveryMethod.DHCP_OPTION

    def __init__(self, next_server_file: str = "/tmp/nextServerIP.addr"):
        self.next_server_file = Path(next_server_file)

    async def try_discover(self) -> Optional[str]:
        try:
            contents = self.next_server_file.read_text().strip()
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("next_server_file_unreadable", path=str(self.next_server_file), error=str(e))
            return None

        return contents or None


class ServerDiscoveryResolver:
    """Runs discovery strategies in order and returns the first hit."""

    def __init__(self, strategies: Sequence[DiscoveryStrategy]):
        self.strategies = list(strategies)

    @classmethod
    def from_config(cls, config: MicrokernelConfig) -> "ServerDiscoveryResolver":
        boot_params = BootParameters(config.boot_cmdline_path)
        return cls([
            PxeBootParameterStrategy(boot_params),
            HostnameStrategy(boot_params, config.default_server_hostname),
            DhcpNextServerStrategy(config.next_server_file),
        ])

    async def discover(self) -> DiscoveryResult:
        for strategy in self.strategies:
            try:
                address = await strategy.try_discover()
            except Exception as e:
                logger.warning(
                    "discovery_strategy_error",
                    method=strategy.method.value,
                    error=str(e),
                )
                continue

            if address:
                logger.info(
                    "server_discovered",
                    method=strategy.method.value,
                    address=address,
                )
                return DiscoveryResult(method=strategy.method, address=address)

            logger.debug("discovery_strategy_missed", method=strategy.method.value)

        logger.error("server_discovery_failed")
        return DiscoveryResult.not_found()

    async def discover_server_address(self) -> Optional[str]:
        """Discovered server address, or None if every strategy missed."""
        result = await self.discover()
        return result.address if result.found else None
