"""
Network readiness detection.

Polls the interface table until an interface named ``<prefix><digits>``
holds a routable IPv4 address, retrying with exponential backoff and
nudging the hardware and DHCP client between attempts.
"""

from __future__ import annotations

import asyncio
import dataclasses
import math
import time
from typing import Awaitable, Callable, Optional

import structlog

from microkernel.config import MicrokernelConfig
from microkernel.models import AttemptState, InterfaceObservation, ReadinessOutcome
from microkernel.services.interfaces import InterfaceProvider, select_interface
from microkernel.services.system import (
    DhcpClientPort,
    KernelModulePort,
    select_firmware_modules,
)

logger = structlog.get_logger()

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


def backoff_seconds(attempt_count: int) -> int:
    """
    Seconds to wait after ``attempt_count`` failed attempts.

    Computes 1/2 * (2**c - 1) rounded half-up: 0, 1, 2, 4, 8, 16, ...
    """
    if attempt_count < 0:
        raise ValueError(f"attempt_count must be >= 0, got {attempt_count}")
    return math.floor(((1 << attempt_count) - 1) / 2.0 + 0.5)


class NetworkReadinessDetector:
    """Waits for a usable network interface during boot."""

    def __init__(
        self,
        config: MicrokernelConfig,
        interfaces: InterfaceProvider,
        kernel_modules: KernelModulePort,
        dhcp_client: DhcpClientPort,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.interfaces = interfaces
        self.kernel_modules = kernel_modules
        self.dhcp_client = dhcp_client
        self.clock = clock
        self.sleep = sleep
        self.last_state: Optional[AttemptState] = None

    async def check_network_ready(
        self,
        interface_prefix: Optional[str] = None,
        max_wait_seconds: Optional[int] = None,
    ) -> ReadinessOutcome:
        """
        Poll until a routable address appears or the wait budget is spent.

        The budget is checked after each backoff sleep, so the actual wait
        can overrun ``max_wait_seconds`` by up to one backoff interval.

        Returns:
            ReadinessOutcome.SUCCESS, TIMEOUT_EXCEEDED (no matching
            interface ever got an address) or INVALID_ADDRESS (only
            loopback/link-local addresses were seen).
        """
        prefix = self.config.interface_prefix if interface_prefix is None else interface_prefix
        max_wait = self.config.max_wait_seconds if max_wait_seconds is None else max_wait_seconds

        start_time = self.clock()
        state = AttemptState()

        logger.info(
            "network_wait_started",
            interface_prefix=prefix,
            max_wait_seconds=max_wait,
        )

        while True:
            if state.attempt_count > 0:
                state = await self._recover(state)

            logger.info("network_attempt", attempt=state.attempt_count + 1)
            state = self._observe(state, prefix)

            if state.found_valid_address:
                break

            state = dataclasses.replace(state, attempt_count=state.attempt_count + 1)
            wait_time = backoff_seconds(state.attempt_count)
            logger.info(
                "network_attempt_failed",
                attempt=state.attempt_count,
                wait_seconds=wait_time,
                interface=state.last_observation.name if state.last_observation else None,
                address=state.last_observation.address if state.last_observation else None,
            )
            await self.sleep(wait_time)

            elapsed = max(state.elapsed_seconds, int(self.clock() - start_time))
            state = dataclasses.replace(state, elapsed_seconds=elapsed)

            if state.elapsed_seconds >= max_wait:
                break

        self.last_state = state
        outcome = state.outcome

        if outcome is ReadinessOutcome.SUCCESS:
            logger.info(
                "network_available",
                interface=state.last_observation.name,
                address=state.last_observation.address,
                attempts=state.attempt_count,
            )
        else:
            logger.error(
                "network_unavailable",
                outcome=outcome.name,
                attempts=state.attempt_count,
                elapsed_seconds=state.elapsed_seconds,
            )

        return outcome

    def _observe(self, state: AttemptState, prefix: str) -> AttemptState:
        """Take one snapshot of the interface table and fold it into state."""
        try:
            observations = self.interfaces.observe()
        except Exception as e:
            logger.warning("interface_enumeration_failed", error=str(e))
            observations = []

        selected: Optional[InterfaceObservation] = select_interface(observations, prefix)
        has_address = selected is not None and selected.has_address
        valid_address = selected is not None and selected.is_routable

        return dataclasses.replace(
            state,
            last_observation=selected,
            ever_had_address=state.ever_had_address or has_address,
            found_valid_address=valid_address,
        )

    async def _recover(self, state: AttemptState) -> AttemptState:
        """Run the between-attempt workarounds. Failures never propagate."""
        if not state.firmware_workaround_applied:
            await self._reload_firmware_module()
            state = dataclasses.replace(state, firmware_workaround_applied=True)

        last = state.last_observation
        if last is None or not last.has_address:
            logger.info("no_address_found_restarting_dhcp_client")
            try:
                await self.dhcp_client.restart()
            except Exception as e:
                logger.warning("dhcp_restart_error", error=str(e))

        return state

    async def _reload_firmware_module(self) -> None:
        """
        Reload the first loaded NIC driver that needs late-loaded firmware.

        Some drivers probe before their firmware is available during early
        boot and stay broken until they are reloaded.
        """
        try:
            modules = await self.kernel_modules.list_modules()
            matches = select_firmware_modules(modules, self.config.firmware_module_pattern)
            if not matches:
                logger.debug("no_firmware_modules_loaded")
                return

            logger.info("reloading_firmware_module", module=matches[0])
            await self.kernel_modules.reload_module(matches[0])
        except Exception as e:
            logger.warning("firmware_reload_error", error=str(e))
