"""Actionable sysctl and configuration advice derived from a report."""

from __future__ import annotations

import re
from typing import Iterator, TypeVar

from melisai.models import CPUData, DiskData, MemoryData, NetworkData, Recommendation, Report

_T = TypeVar("_T")

_SYSCTL_CONF = "/etc/sysctl.d/99-melisai.conf"
_UDEV_RULES = "/etc/udev/rules.d/60-scheduler.rules"
_TCP_BUFFER_MIN_MAX = 4 * 1024 * 1024
_LARGE_MEMORY_BYTES = 16 * 1024 * 1024 * 1024
_INTEGER = re.compile(r"[+-]?\d+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_GREGG_CPU = "Brendan Gregg, Systems Performance ch.6"
_GREGG_MEM = "Brendan Gregg, Systems Performance ch.7"
_GREGG_DISK = "Brendan Gregg, Systems Performance ch.9"
_GREGG_NET = "Brendan Gregg, Systems Performance ch.10"


def _data_of(report: Report, category: str, kind: type[_T]) -> Iterator[_T]:
    for result in report.categories.get(category, []):
        if isinstance(result.data, kind):
            yield result.data


def _persist(*settings: str) -> list[str]:
    return [f"echo '{setting}' >> {_SYSCTL_CONF}" for setting in settings]


def _sysctl(*settings: str) -> list[str]:
    return [f"sysctl -w {setting}" for setting in settings]


def is_low_tcp_buffer(buf: str) -> bool:
    """True when a ``min default max`` tcp_rmem/tcp_wmem string has a max below 4 MiB."""
    parts = buf.split()
    if len(parts) < 3 or not _INTEGER.fullmatch(parts[2]):
        return False
    value = int(parts[2])
    if not _INT64_MIN <= value <= _INT64_MAX:
        return False
    return value < _TCP_BUFFER_MIN_MAX


def _cpu_recommendations(cpu: CPUData) -> Iterator[Recommendation]:
    if cpu.load_avg_1 / max(cpu.num_cpus, 1) > 2.0:
        yield Recommendation(
            category="cpu",
            title="CPU saturation detected — investigate high-CPU processes",
            commands=["melisai collect --profile deep --focus stacks"],
            persistent=[],
            expected_impact="Identify CPU-bound bottleneck",
            evidence=f"load_avg_1={cpu.load_avg_1:.2f}, num_cpus={cpu.num_cpus}",
            source=_GREGG_CPU,
        )
    if cpu.sched_latency_ns > 24_000_000:
        settings = ("kernel.sched_latency_ns=6000000", "kernel.sched_min_granularity_ns=750000")
        yield Recommendation(
            category="cpu",
            title="Reduce CFS scheduling latency for interactive workloads",
            commands=_sysctl(*settings),
            persistent=_persist(*settings),
            expected_impact="Lower tail latency for latency-sensitive workloads",
            evidence=f"sched_latency_ns={cpu.sched_latency_ns}",
            source="Linux kernel CFS documentation",
        )


def _memory_tuning(mem: MemoryData) -> Iterator[Recommendation]:
    if mem.swappiness > 30 and mem.swap_used_bytes > 0:
        yield Recommendation(
            category="memory",
            title="Reduce swappiness for database/latency-sensitive workloads",
            commands=_sysctl("vm.swappiness=10"),
            persistent=_persist("vm.swappiness=10"),
            expected_impact="Reduce swap-induced latency spikes",
            evidence=f"swappiness={mem.swappiness}, swap_used={mem.swap_used_bytes}",
            source=_GREGG_MEM,
        )
    if mem.dirty_ratio > 20:
        settings = ("vm.dirty_ratio=10", "vm.dirty_background_ratio=5")
        yield Recommendation(
            category="memory",
            title="Lower dirty_ratio to prevent write stalls",
            commands=_sysctl(*settings),
            persistent=_persist(*settings),
            expected_impact="Reduce periodic write stalls on heavy I/O workloads",
            evidence=f"dirty_ratio={mem.dirty_ratio}",
            source="Linux kernel documentation (vm.dirty_ratio)",
        )
    if mem.overcommit_memory == 0:
        yield Recommendation(
            category="memory",
            title="Consider disabling memory overcommit for production",
            commands=_sysctl("vm.overcommit_memory=2"),
            persistent=_persist("vm.overcommit_memory=2"),
            expected_impact="Prevent OOM kills by enforcing commit limit",
            evidence=f"overcommit_memory={mem.overcommit_memory}",
            source="Linux kernel documentation",
        )


def _network_recommendations(net: NetworkData) -> Iterator[Recommendation]:
    if net.congestion_ctrl and net.congestion_ctrl != "bbr":
        settings = ("net.core.default_qdisc=fq", "net.ipv4.tcp_congestion_control=bbr")
        yield Recommendation(
            category="network",
            title="Enable BBR congestion control",
            commands=_sysctl(*settings),
            persistent=_persist(*settings),
            expected_impact="2-3x throughput on high-BDP links, lower retransmits",
            evidence=f"tcp_congestion_control={net.congestion_ctrl}",
            source="Google BBR paper, Brendan Gregg Systems Performance ch.10",
        )
    if net.tcp is not None and net.tcp.retrans_rate > 1.0:
        yield Recommendation(
            category="network",
            title="Investigate TCP retransmissions",
            commands=["melisai collect --profile deep --focus network"],
            expected_impact="Identify network path issues causing packet loss",
            evidence=f"retrans_rate={net.tcp.retrans_rate:.1f}/s",
            source=_GREGG_NET,
        )
    if 0 < net.somaxconn < 4096:
        yield Recommendation(
            category="network",
            title="Increase listen backlog for high-traffic servers",
            commands=_sysctl("net.core.somaxconn=4096"),
            persistent=_persist("net.core.somaxconn=4096"),
            expected_impact="Prevent connection drops under burst load",
            evidence=f"somaxconn={net.somaxconn}",
            source="Linux networking documentation",
        )
    if is_low_tcp_buffer(net.tcp_rmem):
        yield Recommendation(
            category="network",
            title="Increase TCP receive buffer sizes",
            commands=["sysctl -w net.ipv4.tcp_rmem='4096 87380 6291456'"],
            persistent=_persist("net.ipv4.tcp_rmem=4096 87380 6291456"),
            expected_impact="Better throughput on high-BDP paths",
            evidence=f"tcp_rmem={net.tcp_rmem}",
            source=_GREGG_NET,
        )
    if is_low_tcp_buffer(net.tcp_wmem):
        yield Recommendation(
            category="network",
            title="Increase TCP send buffer sizes",
            commands=["sysctl -w net.ipv4.tcp_wmem='4096 65536 6291456'"],
            persistent=_persist("net.ipv4.tcp_wmem=4096 65536 6291456"),
            expected_impact="Better throughput on high-BDP paths",
            evidence=f"tcp_wmem={net.tcp_wmem}",
            source=_GREGG_NET,
        )
    if net.tcp_tw_reuse == 0 and net.tcp is not None and net.tcp.time_wait_count > 1000:
        yield Recommendation(
            category="network",
            title="Enable TIME_WAIT socket reuse",
            commands=_sysctl("net.ipv4.tcp_tw_reuse=1"),
            persistent=_persist("net.ipv4.tcp_tw_reuse=1"),
            expected_impact="Reduce TIME_WAIT socket accumulation on busy servers",
            evidence=f"tcp_tw_reuse={net.tcp_tw_reuse}, timewait_count={net.tcp.time_wait_count}",
            source=_GREGG_NET,
        )
    if 0 < net.tcp_max_syn_backlog < 4096:
        yield Recommendation(
            category="network",
            title="Increase SYN backlog for high-connection-rate servers",
            commands=_sysctl("net.ipv4.tcp_max_syn_backlog=8192"),
            persistent=_persist("net.ipv4.tcp_max_syn_backlog=8192"),
            expected_impact="Handle connection bursts without SYN drops",
            evidence=f"tcp_max_syn_backlog={net.tcp_max_syn_backlog}",
            source=_GREGG_NET,
        )


def _scheduler_recommendation(name: str, scheduler: str, target: str, label: str, rotational: bool,
                              impact: str) -> Recommendation:
    rule = f'ACTION=="add|change", KERNEL=="{name}", ATTR{{queue/scheduler}}="{target}"'
    return Recommendation(
        category="disk",
        title=f"Switch {name} to {label}",
        commands=[f"echo {target} > /sys/block/{name}/queue/scheduler"],
        persistent=[f"echo '{rule}' >> {_UDEV_RULES}"],
        expected_impact=impact,
        evidence=f"device={name}, scheduler={scheduler}, rotational={'true' if rotational else 'false'}",
        source=_GREGG_DISK,
    )


def _disk_recommendations(disk: DiskData) -> Iterator[Recommendation]:
    for dev in disk.devices:
        if not dev.scheduler:
            continue
        if not dev.rotational and dev.scheduler not in ("mq-deadline", "none"):
            yield _scheduler_recommendation(dev.name, dev.scheduler, "mq-deadline",
                                            "mq-deadline scheduler (SSD)", False,
                                            "Lower latency for SSD workloads")
        if dev.rotational and dev.scheduler != "bfq":
            yield _scheduler_recommendation(dev.name, dev.scheduler, "bfq",
                                            "BFQ scheduler (HDD)", True,
                                            "Better I/O fairness for HDD workloads")


def _memory_layout(mem: MemoryData) -> Iterator[Recommendation]:
    if mem.thp_enabled == "always":
        command = "echo madvise > /sys/kernel/mm/transparent_hugepage/enabled"
        yield Recommendation(
            category="memory",
            title="Consider disabling THP for latency-sensitive workloads",
            commands=[command],
            persistent=[f"echo '{command}' >> /etc/rc.local"],
            expected_impact="Eliminate THP compaction stalls and latency spikes",
            evidence=f"transparent_hugepage={mem.thp_enabled}",
            source=_GREGG_MEM,
        )
    if mem.total_bytes > _LARGE_MEMORY_BYTES and 0 < mem.min_free_kbytes < 65536:
        yield Recommendation(
            category="memory",
            title="Increase vm.min_free_kbytes for large memory system",
            commands=_sysctl("vm.min_free_kbytes=131072"),
            persistent=_persist("vm.min_free_kbytes=131072"),
            expected_impact="Reduce direct reclaim stalls under memory pressure",
            evidence=f"min_free_kbytes={mem.min_free_kbytes}, total_bytes={mem.total_bytes}",
            source=_GREGG_MEM,
        )


def _all_recommendations(report: Report) -> Iterator[Recommendation]:
    for cpu in _data_of(report, "cpu", CPUData):
        yield from _cpu_recommendations(cpu)
    for mem in _data_of(report, "memory", MemoryData):
        yield from _memory_tuning(mem)
    for net in _data_of(report, "network", NetworkData):
        yield from _network_recommendations(net)
    for disk in _data_of(report, "disk", DiskData):
        yield from _disk_recommendations(disk)
    for mem in _data_of(report, "memory", MemoryData):
        yield from _memory_layout(mem)


def generate_recommendations(report: Report) -> list[Recommendation]:
    """Recommendations for the report, numbered by priority from 1."""
    recs = list(_all_recommendations(report))
    for priority, rec in enumerate(recs, start=1):
        rec.priority = priority
    return recs