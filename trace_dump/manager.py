"""TraceManager: starts/stops Camel tracing per integration and streams dump output."""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from trace_dump.config import TracerConfig

logger = logging.getLogger(__name__)

LineCallback = Callable[[str, str], None]
ExitCallback = Callable[[str], None]

# Single body lines can exceed asyncio's 64 KiB default
_STREAM_LIMIT = 4 * 1024 * 1024


class TraceStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class _DumpProcess:
    proc: asyncio.subprocess.Process
    tasks: list[asyncio.Task] = field(default_factory=list)
    watcher: asyncio.Task | None = None


async def iter_stream_lines(reader: asyncio.StreamReader):
    """Yield decoded lines from a stream, without terminators; empty lines skipped."""
    while True:
        raw = await reader.readline()
        if not raw:
            break
        line = raw.decode("utf-8", errors="replace").rstrip("\n").rstrip("\r")
        if line:
            yield line


class TraceManager:
    """Controls `camel trace` for integrations and delivers dump lines.

    Lines arrive through on_line(integration_id, line); on_exit(integration_id)
    is called once the dump process for that integration is gone.
    """

    def __init__(
        self,
        config: TracerConfig,
        on_line: LineCallback,
        on_exit: ExitCallback | None = None,
    ) -> None:
        self._config = config
        self._on_line = on_line
        self._on_exit = on_exit
        self._processes: dict[str, _DumpProcess] = {}
        self._status: dict[str, TraceStatus] = {}

    def status(self, integration_id: str) -> TraceStatus:
        return self._status.get(integration_id, TraceStatus.IDLE)

    def is_running(self, integration_id: str) -> bool:
        entry = self._processes.get(integration_id)
        return (
            entry is not None
            and self.status(integration_id) == TraceStatus.RUNNING
            and entry.proc.returncode is None
        )

    def _command(self, integration_id: str, action: str) -> list[str]:
        return [
            self._config.jbang_executable,
            f"-Dcamel.jbang.version={self._config.camel_version}",
            "camel@apache/camel",
            "trace",
            integration_id,
            f"--action={action}",
        ]

    async def _spawn(self, integration_id: str, action: str) -> asyncio.subprocess.Process:
        cmd = self._command(integration_id, action)
        logger.debug("Spawning: %s", " ".join(cmd))
        return await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=os.environ.copy(),
            limit=_STREAM_LIMIT,
        )

    async def _run_action(self, integration_id: str, action: str) -> int | None:
        """Run a short-lived trace action to completion. Returns its exit code."""
        try:
            proc = await self._spawn(integration_id, action)
        except OSError as e:
            logger.error("Failed to run trace --action=%s for %s: %s", action, integration_id, e)
            return None
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            logger.warning(
                "trace --action=%s for %s exited with %d: %s",
                action, integration_id, proc.returncode,
                stderr.decode("utf-8", errors="replace").strip(),
            )
        return proc.returncode

    async def start(self, integration_id: str) -> None:
        """Enable tracing for the integration and start streaming its dump."""
        if self.is_running(integration_id):
            return

        await self._run_action(integration_id, "start")

        if integration_id in self._processes:
            return
        try:
            proc = await self._spawn(integration_id, "dump")
        except OSError as e:
            logger.error("Failed to start trace dump for %s: %s", integration_id, e)
            self._status[integration_id] = TraceStatus.ERROR
            return

        entry = _DumpProcess(proc=proc)
        self._processes[integration_id] = entry
        self._status[integration_id] = TraceStatus.RUNNING
        logger.info("Trace dump started for %s (pid %d)", integration_id, proc.pid)

        entry.tasks = [
            asyncio.create_task(self._pump(integration_id, proc.stdout)),
            asyncio.create_task(self._pump(integration_id, proc.stderr)),
        ]
        entry.watcher = asyncio.create_task(self._watch_exit(integration_id, entry))

    async def _pump(self, integration_id: str, reader: asyncio.StreamReader) -> None:
        async for line in iter_stream_lines(reader):
            self._on_line(integration_id, line)

    async def _watch_exit(self, integration_id: str, entry: _DumpProcess) -> None:
        await asyncio.gather(*entry.tasks, return_exceptions=True)
        returncode = await entry.proc.wait()
        # A process replaced or stopped via stop() is not reported again
        if self._processes.get(integration_id) is not entry:
            return
        del self._processes[integration_id]
        self._status[integration_id] = TraceStatus.STOPPED
        logger.info("Trace dump for %s exited with %d", integration_id, returncode)
        if self._on_exit:
            self._on_exit(integration_id)

    async def stop(self, integration_id: str) -> None:
        """Stop streaming the dump and disable tracing for the integration."""
        entry = self._processes.pop(integration_id, None)
        if entry is not None:
            self._status[integration_id] = TraceStatus.STOPPED
            await self._terminate(entry)
        await self._run_action(integration_id, "stop")

    async def _terminate(self, entry: _DumpProcess) -> None:
        if entry.proc.returncode is None:
            try:
                entry.proc.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(entry.proc.wait(), timeout=5)
            except asyncio.TimeoutError:
                entry.proc.kill()
                await entry.proc.wait()
        pending = list(entry.tasks)
        if entry.watcher is not None:
            pending.append(entry.watcher)
        await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        """Terminate every dump process without disabling tracing."""
        for integration_id in list(self._processes):
            entry = self._processes.pop(integration_id)
            self._status[integration_id] = TraceStatus.STOPPED
            await self._terminate(entry)
