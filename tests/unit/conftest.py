"""Pytest fixtures for microkernel unit tests.

Provides shared fixtures for testing:
- Fake monotonic clock with a sleep that advances it
- Scripted interface tables
- Recording kernel module and DHCP client ports
- Test configuration pointing at temporary files
"""

from typing import Optional, Sequence

import pytest

from microkernel.config import MicrokernelConfig
from microkernel.models import InterfaceObservation
from microkernel.services.interfaces import InterfaceProvider
from microkernel.services.system import DhcpClientPort, KernelModulePort


class FakeClock:
    """Monotonic clock that only moves when sleep() is awaited."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedInterfaces(InterfaceProvider):
    """Returns a fixed sequence of interface tables, repeating the last one."""

    def __init__(self, tables: Sequence[Sequence[InterfaceObservation]]):
        self.tables = [list(table) for table in tables]
        self.calls = 0

    def observe(self) -> list[InterfaceObservation]:
        table = self.tables[min(self.calls, len(self.tables) - 1)]
        self.calls += 1
        return list(table)


class RecordingKernelModules(KernelModulePort):
    """Kernel module port that records reloads instead of running them."""

    def __init__(self, modules: Sequence[str] = (), error: Optional[Exception] = None):
        self.modules = list(modules)
        self.error = error
        self.list_calls = 0
        self.reloaded: list[str] = []

    async def list_modules(self) -> list[str]:
        self.list_calls += 1
        if self.error:
            raise self.error
        return list(self.modules)

    async def reload_module(self, name: str) -> bool:
        self.reloaded.append(name)
        return True


class RecordingDhcpClient(DhcpClientPort):
    """DHCP client port that counts restarts."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.restarts = 0

    async def restart(self) -> bool:
        self.restarts += 1
        if self.error:
            raise self.error
        return True


def iface(name: str, address: Optional[str] = None) -> InterfaceObservation:
    """Shorthand for building an interface observation."""
    return InterfaceObservation.from_address(name, address)


@pytest.fixture(scope="function")
def fake_clock():
    """Provide a fake clock."""
    return FakeClock()


@pytest.fixture(scope="function")
def kernel_modules():
    """Provide a kernel module port with no firmware-dependent drivers."""
    return RecordingKernelModules(["e1000", "ipv6"])


@pytest.fixture(scope="function")
def dhcp_client():
    """Provide a recording DHCP client port."""
    return RecordingDhcpClient()


@pytest.fixture(scope="function")
def test_config(tmp_path):
    """Provide configuration with all files under a temporary directory."""
    return MicrokernelConfig(
        max_wait_seconds=120,
        boot_cmdline_path=str(tmp_path / "cmdline"),
        next_server_file=str(tmp_path / "nextServerIP.addr"),
        mk_conf_file=str(tmp_path / "mk_conf.yaml"),
        mk_version_file=str(tmp_path / "mk-version.yaml"),
        settle_seconds=0,
    )
