"""Tracking of the collector's own processes and their resource overhead.

The tracker records our own PID and every spawned tool PID so that
collectors can leave self-generated noise out of their data, and it
measures how much CPU, memory, I/O and context switching the run cost.
"""

from __future__ import annotations

import os
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

_PAGE_SIZE = 4096
_INT64_MAX = 2**63 - 1
_INT64_MIN = -(2**63)
_UINT64_MAX = 2**64 - 1
_SIGNED = re.compile(r"[+-]?\d+")
_UNSIGNED = re.compile(r"\d+")


@dataclass
class OverheadSummary:
    """Resource consumption of our own process and its children during a run."""

    self_pid: int = 0
    child_pids: list[int] = field(default_factory=list)
    cpu_user_ms: int = 0
    cpu_system_ms: int = 0
    memory_rss_bytes: int = 0
    disk_read_bytes: int = 0
    disk_write_bytes: int = 0
    context_switches: int = 0


@dataclass
class ProcSnapshot:
    """Raw per-process counters read from /proc."""

    utime: int = 0  # clock ticks
    stime: int = 0
    rss: int = 0  # pages
    voluntary_ctx_sw: int = 0
    nonvol_ctx_sw: int = 0
    read_bytes: int = 0
    write_bytes: int = 0


@dataclass
class _BeforeSnapshot:
    own: ProcSnapshot
    children: dict[int, ProcSnapshot]


def _parse_int(text: str, *, unsigned: bool = False) -> int:
    """Parse a decimal integer; malformed text yields 0, overflow is clamped."""
    pattern = _UNSIGNED if unsigned else _SIGNED
    if not pattern.fullmatch(text):
        return 0
    value = int(text)
    if unsigned:
        return min(value, _UINT64_MAX)
    return max(_INT64_MIN, min(value, _INT64_MAX))


def ticks_to_ms(ticks: int) -> int:
    """Convert clock ticks (100 Hz on practically all Linux systems) to ms."""
    return ticks * 10


def parse_proc_stat(content: str) -> ProcSnapshot:
    """Extract utime, stime and rss from /proc/<pid>/stat content."""
    snap = ProcSnapshot()
    comm_end = content.rfind(")")
    if comm_end < 0 or comm_end + 2 >= len(content):
        return snap
    fields = content[comm_end + 2 :].split()
    # fields[0] is the state; utime, stime and rss follow at fixed offsets.
    if len(fields) > 12:
        snap.utime = _parse_int(fields[11], unsigned=True)
        snap.stime = _parse_int(fields[12], unsigned=True)
    if len(fields) > 21:
        snap.rss = _parse_int(fields[21])
    return snap


def _parse_keyed(content: str, separator: str, wanted: tuple[str, str]) -> tuple[int, int]:
    values = dict.fromkeys(wanted, 0)
    for line in content.split("\n"):
        key, sep, rest = line.partition(separator)
        if not sep:
            continue
        if key in values:
            values[key] = _parse_int(rest.strip())
    return values[wanted[0]], values[wanted[1]]


def parse_proc_io(content: str) -> tuple[int, int]:
    """Return (read_bytes, write_bytes) from /proc/<pid>/io content."""
    return _parse_keyed(content, ": ", ("read_bytes", "write_bytes"))


def parse_proc_status(content: str) -> tuple[int, int]:
    """Return (voluntary, nonvoluntary) context switches from /proc/<pid>/status."""
    return _parse_keyed(content, ":\t", ("voluntary_ctxt_switches", "nonvoluntary_ctxt_switches"))


def _read(path: Path) -> Optional[str]:
    try:
        return path.read_text()
    except (OSError, UnicodeDecodeError):
        return None


def read_proc_snapshot(pid: int) -> ProcSnapshot:
    """Read counters for ``pid``; a vanished or unreadable process yields zeros."""
    base = Path("/proc") / str(pid)
    stat = _read(base / "stat")
    if stat is None:
        return ProcSnapshot()
    snap = parse_proc_stat(stat)

    io = _read(base / "io")
    if io is None:
        return snap
    snap.read_bytes, snap.write_bytes = parse_proc_io(io)

    status = _read(base / "status")
    if status is None:
        return snap
    snap.voluntary_ctx_sw, snap.nonvol_ctx_sw = parse_proc_status(status)
    return snap


class PIDTracker:
    """Thread-safe registry of our own PID and the child tool PIDs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._self_pid = os.getpid()
        self._children: dict[int, str] = {}
        self._before: Optional[_BeforeSnapshot] = None

    def self_pid(self) -> int:
        """Our own process ID."""
        return self._self_pid

    def add(self, pid: int, tool: str) -> None:
        """Register a child process with the name of its tool."""
        with self._lock:
            self._children[pid] = tool

    def remove(self, pid: int) -> None:
        """Forget a child process."""
        with self._lock:
            self._children.pop(pid, None)

    def is_own_pid(self, pid: int) -> bool:
        """True for our own PID or any tracked child."""
        if pid == self._self_pid:
            return True
        with self._lock:
            return pid in self._children

    def all_pids(self) -> list[int]:
        """Our own PID followed by every tracked child PID."""
        with self._lock:
            return [self._self_pid, *self._children]

    def child_count(self) -> int:
        """Number of tracked child PIDs."""
        with self._lock:
            return len(self._children)

    def snapshot_before(self) -> None:
        """Record current usage of ourselves and our children; call before collecting."""
        with self._lock:
            self._before = _BeforeSnapshot(
                own=read_proc_snapshot(self._self_pid),
                children={pid: read_proc_snapshot(pid) for pid in self._children},
            )

    def snapshot_after(self) -> OverheadSummary:
        """Usage since :meth:`snapshot_before`; only PIDs if no snapshot was taken."""
        with self._lock:
            before = self._before
            child_pids = list(self._children)

        summary = OverheadSummary(self_pid=self._self_pid, child_pids=child_pids)
        if before is None:
            return summary

        pairs = [(read_proc_snapshot(self._self_pid), before.own)]
        # A child started after the first snapshot counts with its full values.
        pairs += [(read_proc_snapshot(pid), before.children.get(pid, ProcSnapshot())) for pid in child_pids]

        for now, then in pairs:
            summary.cpu_user_ms += ticks_to_ms(now.utime - then.utime)
            summary.cpu_system_ms += ticks_to_ms(now.stime - then.stime)
            summary.memory_rss_bytes += now.rss * _PAGE_SIZE
            summary.context_switches += (now.voluntary_ctx_sw - then.voluntary_ctx_sw) + (
                now.nonvol_ctx_sw - then.nonvol_ctx_sw
            )
            summary.disk_read_bytes += now.read_bytes - then.read_bytes
            summary.disk_write_bytes += now.write_bytes - then.write_bytes
        return summary