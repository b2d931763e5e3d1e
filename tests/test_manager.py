"""Tests for TraceManager against a fake jbang executable."""

import asyncio
import os
import stat
import sys

import pytest

from trace_dump.config import TracerConfig
from trace_dump.manager import TraceManager, TraceStatus

FAKE_JBANG = """\
#!{python}
import os
import sys
import time

action = [a for a in sys.argv[1:] if a.startswith("--action=")][0].split("=", 1)[1]
with open(os.environ["FAKE_JBANG_LOG"], "a") as f:
    f.write(" ".join(sys.argv[1:]) + "\\n")

if action == "dump":
    sys.stdout.write("first line\\r\\n\\nsecond line\\n")
    sys.stdout.flush()
    sys.stderr.write("warning from stderr\\n")
    sys.stderr.flush()
    if os.environ.get("FAKE_JBANG_HOLD"):
        time.sleep(30)
"""


@pytest.fixture
def fake_jbang(tmp_path, monkeypatch):
    """Write an executable script that mimics `jbang camel trace`."""
    script = tmp_path / "jbang"
    script.write_text(FAKE_JBANG.format(python=sys.executable))
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    log = tmp_path / "calls.log"
    monkeypatch.setenv("FAKE_JBANG_LOG", str(log))
    return script, log


def _calls(log) -> list[str]:
    if not log.exists():
        return []
    return log.read_text().splitlines()


async def _wait_for(predicate, timeout: float = 5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.02)


@pytest.mark.asyncio
async def test_start_streams_dump_lines(fake_jbang):
    script, log = fake_jbang
    lines = []
    exited = []
    manager = TraceManager(
        TracerConfig(jbang_executable=str(script)),
        on_line=lambda iid, line: lines.append((iid, line)),
        on_exit=exited.append,
    )

    await manager.start("orders")
    await _wait_for(lambda: exited)

    assert ("orders", "first line") in lines
    assert ("orders", "second line") in lines
    assert ("orders", "warning from stderr") in lines
    assert all(line for _, line in lines)
    assert exited == ["orders"]
    assert manager.status("orders") == TraceStatus.STOPPED
    assert not manager.is_running("orders")

    calls = _calls(log)
    assert calls[0] == "-Dcamel.jbang.version=4.13.0 camel@apache/camel trace orders --action=start"
    assert calls[1].endswith("trace orders --action=dump")


@pytest.mark.asyncio
async def test_stdout_order_preserved(fake_jbang):
    script, _ = fake_jbang
    lines = []
    exited = []
    manager = TraceManager(
        TracerConfig(jbang_executable=str(script)),
        on_line=lambda iid, line: lines.append(line),
        on_exit=exited.append,
    )
    await manager.start("orders")
    await _wait_for(lambda: exited)

    stdout_lines = [line for line in lines if line != "warning from stderr"]
    assert stdout_lines == ["first line", "second line"]


@pytest.mark.asyncio
async def test_stop_terminates_dump_and_disables_trace(fake_jbang, monkeypatch):
    script, log = fake_jbang
    monkeypatch.setenv("FAKE_JBANG_HOLD", "1")
    exited = []
    manager = TraceManager(
        TracerConfig(jbang_executable=str(script)),
        on_line=lambda iid, line: None,
        on_exit=exited.append,
    )

    await manager.start("orders")
    assert manager.is_running("orders")
    assert manager.status("orders") == TraceStatus.RUNNING

    # second start is a no-op while running
    await manager.start("orders")

    # the dump process logs its argv once its interpreter is up
    await _wait_for(lambda: any("--action=dump" in c for c in _calls(log)))
    await manager.stop("orders")
    assert manager.status("orders") == TraceStatus.STOPPED
    assert not manager.is_running("orders")
    assert exited == []

    actions = [c.rsplit("=", 1)[1] for c in _calls(log)]
    assert actions == ["start", "dump", "stop"]


@pytest.mark.asyncio
async def test_close_terminates_all(fake_jbang, monkeypatch):
    script, _ = fake_jbang
    monkeypatch.setenv("FAKE_JBANG_HOLD", "1")
    manager = TraceManager(TracerConfig(jbang_executable=str(script)), on_line=lambda iid, line: None)

    await manager.start("a")
    await manager.start("b")
    await manager.close()

    assert manager.status("a") == TraceStatus.STOPPED
    assert manager.status("b") == TraceStatus.STOPPED


@pytest.mark.asyncio
async def test_missing_executable_sets_error(tmp_path):
    manager = TraceManager(
        TracerConfig(jbang_executable=str(tmp_path / "does-not-exist")),
        on_line=lambda iid, line: None,
    )
    await manager.start("orders")
    assert manager.status("orders") == TraceStatus.ERROR
    assert not manager.is_running("orders")


def test_unknown_integration_is_idle():
    manager = TraceManager(TracerConfig(), on_line=lambda iid, line: None)
    assert manager.status("nothing") == TraceStatus.IDLE
    assert not manager.is_running("nothing")
