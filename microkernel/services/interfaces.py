"""
Network interface enumeration.

Wraps the OS interface table behind a provider so the readiness
detector can be driven by a fake table in tests.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Iterable, Optional

import netifaces
import structlog

from microkernel.models import InterfaceObservation

logger = structlog.get_logger()


class InterfaceProvider(ABC):
    """Source of point-in-time interface observations."""

    @abstractmethod
    def observe(self) -> list[InterfaceObservation]:
        """Return one observation per interface, in OS-reported order."""
        pass


class NetifacesInterfaceProvider(InterfaceProvider):
    """Reads the interface table through netifaces."""

    def observe(self) -> list[InterfaceObservation]:
        observations = []
        for name in netifaces.interfaces():
            try:
                addrs = netifaces.ifaddresses(name)
            except ValueError:
                # Interface vanished between listing and lookup
                logger.debug("interface_disappeared", interface=name)
                continue

            ipv4 = addrs.get(netifaces.AF_INET, [])
            address = ipv4[0].get("addr") if ipv4 else None
            observations.append(InterfaceObservation.from_address(name, address))

        return observations


def interface_name_pattern(prefix: str) -> re.Pattern:
    """Pattern for ``<prefix><digits>`` interface names (eth0, eth12, ...)."""
    return re.compile(rf"^{re.escape(prefix)}\d+$")


def select_interface(
    observations: Iterable[InterfaceObservation],
    prefix: str,
) -> Optional[InterfaceObservation]:
    """
    Pick the interface the readiness check should judge.

    Only interfaces named ``<prefix><digits>`` are considered. The first
    routable one wins; failing that the first one holding any address;
    failing that the first match at all. Returns None if nothing matches.
    """
    pattern = interface_name_pattern(prefix)
    first_match = None
    first_with_address = None

    for observation in observations:
        if not pattern.match(observation.name):
            continue
        if observation.is_routable:
            return observation
        if first_match is None:
            first_match = observation
        if first_with_address is None and observation.has_address:
            first_with_address = observation

    return first_with_address or first_match
