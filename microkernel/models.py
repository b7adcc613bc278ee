"""
Data models for network readiness and server discovery.
"""

import ipaddress
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional

LOOPBACK_NETWORK = ipaddress.IPv4Network("127.0.0.0/8")
LINK_LOCAL_NETWORK = ipaddress.IPv4Network("169.254.0.0/16")


class ReadinessOutcome(IntEnum):
    """Result of a network readiness check; values double as exit codes."""

    SUCCESS = 0
    TIMEOUT_EXCEEDED = -1
    INVALID_ADDRESS = -2


class DiscoveryMethod(str, Enum):
    """How the provisioning server address was found."""

    PXE = "pxe"
    DNS = "dns"
    DHCP_OPTION = "dhcp_option"
    NOT_FOUND = "not_found"


def _parse_ipv4(address: Optional[str]) -> Optional[ipaddress.IPv4Address]:
    if not address:
        return None
    try:
        return ipaddress.IPv4Address(address)
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class InterfaceObservation:
    """Point-in-time view of a single network interface."""

    name: str
    has_address: bool
    address: Optional[str] = None
    is_loopback: bool = False
    is_link_local: bool = False

    @classmethod
    def from_address(cls, name: str, address: Optional[str]) -> "InterfaceObservation":
        """
        Build an observation from an interface name and its IPv4 address.

        Anything that does not parse as an IPv4 address counts as no address.
        """
        ip = _parse_ipv4(address)
        if ip is None:
            return cls(name=name, has_address=False)

        return cls(
            name=name,
            has_address=True,
            address=str(ip),
            is_loopback=ip in LOOPBACK_NETWORK,
            is_link_local=ip in LINK_LOCAL_NETWORK,
        )

    @property
    def is_routable(self) -> bool:
        """True when the interface holds an address usable off-host."""
        return self.has_address and not (self.is_loopback or self.is_link_local)


@dataclass(frozen=True, slots=True)
class AttemptState:
    """State of one readiness check, replaced (never mutated) each iteration."""

    attempt_count: int = 0
    elapsed_seconds: int = 0
    firmware_workaround_applied: bool = False
    last_observation: Optional[InterfaceObservation] = None
    ever_had_address: bool = False
    found_valid_address: bool = False

    @property
    def outcome(self) -> ReadinessOutcome:
        if not self.ever_had_address:
            return ReadinessOutcome.TIMEOUT_EXCEEDED
        if not self.found_valid_address:
            return ReadinessOutcome.INVALID_ADDRESS
        return ReadinessOutcome.SUCCESS


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    """Provisioning server address together with the method that found it."""

    method: DiscoveryMethod
    address: Optional[str] = None

    @classmethod
    def not_found(cls) -> "DiscoveryResult":
        return cls(method=DiscoveryMethod.NOT_FOUND)

    @property
    def found(self) -> bool:
        return self.method is not DiscoveryMethod.NOT_FOUND and bool(self.address)
