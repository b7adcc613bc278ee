"""
Best-effort system commands used while waiting for the network.

Covers kernel module reloads (for NICs whose firmware arrives after the
first driver probe) and DHCP client restarts. None of these raise: a
failed command is logged and reported as False.
"""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from typing import Sequence

import structlog

from microkernel.config import MicrokernelConfig

logger = structlog.get_logger()


class CommandRunner:
    """Runs external commands and folds every failure into (ok, output)."""

    def __init__(self, use_sudo: bool = True, timeout: float = 30.0):
        self.use_sudo = use_sudo
        self.timeout = timeout

    async def run(self, *cmd: str, privileged: bool = False) -> tuple[bool, str]:
        """
        Execute a command.

        Returns:
            (success: bool, output: str) where output is stdout on success
            and stderr (or an error description) on failure.
        """
        argv = ["sudo", *cmd] if privileged and self.use_sudo else list(cmd)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )

            try:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                logger.error("command_timeout", command=argv, timeout=self.timeout)
                return False, "command timeout"

            if process.returncode == 0:
                return True, stdout.decode("utf-8", errors="ignore")

            error = stderr.decode("utf-8", errors="ignore").strip()
            logger.warning(
                "command_failed",
                command=argv,
                returncode=process.returncode,
                error=error,
            )
            return False, error

        except FileNotFoundError:
            logger.error("command_not_found", command=argv[0])
            return False, f"{argv[0]} not installed"
        except Exception as e:
            logger.error("command_exception", command=argv, error=str(e))
            return False, str(e)


class KernelModulePort(ABC):
    """Access to loaded kernel modules."""

    @abstractmethod
    async def list_modules(self) -> list[str]:
        """Names of loaded kernel modules, in lsmod order."""
        pass

    @abstractmethod
    async def reload_module(self, name: str) -> bool:
        """Unload then load a module. Returns True if both steps worked."""
        pass


class DhcpClientPort(ABC):
    """Control over the DHCP client service."""

    @abstractmethod
    async def restart(self) -> bool:
        """Stop and start the DHCP client to force a new lease request."""
        pass


def parse_lsmod(output: str) -> list[str]:
    """Extract module names from lsmod output, skipping the header row."""
    modules = []
    for line in output.splitlines():
        fields = line.split()
        if not fields or fields[0] == "Module":
            continue
        modules.append(fields[0])
    return modules


def select_firmware_modules(modules: Sequence[str], pattern: str) -> list[str]:
    """Modules belonging to a firmware-dependent NIC driver family."""
    regex = re.compile(pattern)
    return [name for name in modules if regex.match(name)]


class SubprocessKernelModules(KernelModulePort):
    """Kernel module port backed by lsmod/rmmod/modprobe."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    async def list_modules(self) -> list[str]:
        ok, output = await self.runner.run("lsmod")
        if not ok:
            return []
        return parse_lsmod(output)

    async def reload_module(self, name: str) -> bool:
        # modprobe is attempted even if rmmod fails (module may be half-loaded)
        removed, _ = await self.runner.run("rmmod", name, privileged=True)
        loaded, _ = await self.runner.run("modprobe", name, privileged=True)

        logger.info(
            "kernel_module_reloaded",
            module=name,
            removed=removed,
            loaded=loaded,
        )
        return removed and loaded


class InitScriptDhcpClient(DhcpClientPort):
    """DHCP client port driving the distribution's init script."""

    def __init__(self, runner: CommandRunner, service_script: str):
        self.runner = runner
        self.service_script = service_script

    async def restart(self) -> bool:
        stopped, _ = await self.runner.run(self.service_script, "stop", privileged=True)
        started, _ = await self.runner.run(self.service_script, "start", privileged=True)

        logger.info(
            "dhcp_client_restarted",
            service=self.service_script,
            stopped=stopped,
            started=started,
        )
        return stopped and started


def build_system_ports(
    config: MicrokernelConfig,
) -> tuple[KernelModulePort, DhcpClientPort]:
    """Create the production kernel module and DHCP client ports."""
    runner = CommandRunner(use_sudo=config.use_sudo, timeout=config.command_timeout)
    return SubprocessKernelModules(runner), InitScriptDhcpClient(runner, config.dhcp_service)
