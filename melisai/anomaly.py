"""Threshold rules that flag anomalies in a collected report."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Optional, TypeVar

from melisai.models import (
    Anomaly,
    ContainerData,
    CPUData,
    DiskData,
    MemoryData,
    NetworkData,
    Report,
)
from melisai.use import compute_disk_utilization

Evaluator = Callable[[Report], Optional[float]]

_T = TypeVar("_T")

_DEVICE_PREFIXES = ("block_io_latency_",)


@dataclass(frozen=True)
class Threshold:
    """One anomaly rule.

    ``evaluator`` returns the metric's value, or ``None`` when the report
    holds no data for it. ``message`` is a format template applied to the value.
    """

    metric: str
    category: str
    warning: float
    critical: float
    evaluator: Evaluator
    message: str

    def severity(self, value: float) -> Optional[str]:
        """Severity of ``value``, or ``None`` when it is below both limits."""
        if value >= self.critical:
            return "critical"
        if value >= self.warning:
            return "warning"
        return None

    def describe(self, value: float) -> str:
        """Human-readable message for ``value``."""
        return self.message.format(value)


def _data_of(report: Report, category: str, kind: type[_T]) -> Iterator[_T]:
    for result in report.categories.get(category, []):
        if isinstance(result.data, kind):
            yield result.data


def _scan(category: str, kind: type[_T], extract: Callable[[_T], Optional[float]]) -> Evaluator:
    """Evaluator returning the first value ``extract`` yields for data of ``kind``."""

    def evaluate(report: Report) -> Optional[float]:
        for data in _data_of(report, category, kind):
            value = extract(data)
            if value is not None:
                return value
        return None

    return evaluate


def _positive(value: float) -> Optional[float]:
    return value if value > 0 else None


def _load_per_cpu(cpu: CPUData) -> Optional[float]:
    return cpu.load_avg_1 / cpu.num_cpus if cpu.num_cpus > 0 else None


def _memory_utilization(mem: MemoryData) -> Optional[float]:
    if mem.total_bytes > 0:
        return (mem.total_bytes - mem.available_bytes) / mem.total_bytes * 100
    return None


def _swap_usage(mem: MemoryData) -> Optional[float]:
    if mem.swap_total_bytes > 0:
        return mem.swap_used_bytes / mem.swap_total_bytes * 100
    return None


def _retrans_rate(net: NetworkData) -> Optional[float]:
    return net.tcp.retrans_rate if net.tcp is not None else None


def _time_wait(net: NetworkData) -> Optional[float]:
    return float(net.tcp.time_wait_count) if net.tcp is not None else None


def _container_memory(c: ContainerData) -> Optional[float]:
    if c.memory_limit > 0:
        return c.memory_usage / c.memory_limit * 100
    return None


def _max_disk_latency(disk: DiskData) -> Optional[float]:
    return _positive(max((dev.avg_latency_ms for dev in disk.devices), default=0.0))


def _max_interface_errors(net: NetworkData) -> Optional[float]:
    return _positive(max((iface.errors_per_sec for iface in net.interfaces), default=0.0))


def _cache_miss_ratio(report: Report) -> Optional[float]:
    for results in report.categories.values():
        for result in results:
            if result.collector != "cachestat":
                continue
            for hist in result.histograms:
                if hist.name == "cache_miss_ratio":
                    return hist.mean
    return None


def extract_device_name(hist_name: str) -> str:
    """Device name from a histogram name such as ``block_io_latency_nvme0n1``."""
    for prefix in _DEVICE_PREFIXES:
        if len(hist_name) > len(prefix) and hist_name.startswith(prefix):
            return hist_name[len(prefix):]
    return ""


def histogram_p99_evaluator(collector_name: str, rotational: bool) -> Evaluator:
    """Evaluator giving the largest p99, in milliseconds, of a collector's histograms.

    For ``biolatency`` histograms the device type is looked up in the disk
    data; histograms of devices of the other kind (HDD vs SSD) are skipped.
    """

    def evaluate(report: Report) -> Optional[float]:
        device_rotational = {
            dev.name: dev.rotational
            for disk in _data_of(report, "disk", DiskData)
            for dev in disk.devices
        }

        best: Optional[float] = None
        for results in report.categories.values():
            for result in results:
                if result.collector != collector_name:
                    continue
                for hist in result.histograms:
                    if hist.p99 <= 0:
                        continue
                    if collector_name == "biolatency" and device_rotational:
                        device = extract_device_name(hist.name)
                        if device and device in device_rotational and device_rotational[device] != rotational:
                            continue
                    p99_ms = hist.p99 / 1000.0 if hist.unit == "us" else hist.p99
                    if p99_ms > (best or 0.0):
                        best = p99_ms
        return best

    return evaluate


def default_thresholds() -> list[Threshold]:
    """The built-in anomaly rules, in evaluation order."""
    return [
        # CPU
        Threshold("cpu_utilization", "cpu", 80, 95,
                  _scan("cpu", CPUData, lambda c: 100 - c.idle_pct),
                  "CPU utilization at {:.1f}%"),
        Threshold("cpu_iowait", "cpu", 10, 30,
                  _scan("cpu", CPUData, lambda c: c.iowait_pct),
                  "High CPU iowait: {:.1f}% (CPUs blocked on I/O)"),
        Threshold("load_average", "cpu", 2.0, 4.0,
                  _scan("cpu", CPUData, _load_per_cpu),
                  "Load average per CPU: {:.2f} (saturation threshold: 1.0)"),
        # Memory
        Threshold("memory_utilization", "memory", 85, 95,
                  _scan("memory", MemoryData, _memory_utilization),
                  "Memory utilization at {:.1f}%"),
        Threshold("swap_usage", "memory", 10, 50,
                  _scan("memory", MemoryData, _swap_usage),
                  "Swap usage at {:.1f}%"),
        Threshold("memory_psi_pressure", "memory", 5.0, 25.0,
                  _scan("memory", MemoryData, lambda m: _positive(m.psi_some_10)),
                  "Memory PSI pressure: {:.1f}% (some tasks stalling)"),
        # Network
        Threshold("tcp_retransmits", "network", 10, 50,
                  _scan("network", NetworkData, _retrans_rate),
                  "TCP retransmit rate: {:.1f}/sec"),
        Threshold("tcp_timewait", "network", 5000, 20000,
                  _scan("network", NetworkData, _time_wait),
                  "TIME_WAIT connections: {:.0f}"),
        # Disk
        Threshold("disk_utilization", "disk", 70, 90,
                  _scan("disk", DiskData, compute_disk_utilization),
                  "Disk utilization: {:.1f}%"),
        # Container
        Threshold("cpu_throttling", "container", 100, 1000,
                  _scan("container", ContainerData, lambda c: float(c.cpu_throttled_periods)),
                  "CPU throttled periods: {:.0f} (container CPU limit hit)"),
        Threshold("container_memory_usage", "container", 80, 95,
                  _scan("container", ContainerData, _container_memory),
                  "Container memory: {:.1f}% of limit (OOM risk)"),
        # Histogram-based (milliseconds)
        Threshold("biolatency_p99_ssd", "disk", 5, 25,
                  histogram_p99_evaluator("biolatency", False),
                  "Block I/O p99 latency (SSD): {:.1f}ms"),
        Threshold("biolatency_p99_hdd", "disk", 50, 200,
                  histogram_p99_evaluator("biolatency", True),
                  "Block I/O p99 latency (HDD): {:.1f}ms"),
        Threshold("runqlat_p99", "cpu", 10, 50,
                  histogram_p99_evaluator("runqlat", False),
                  "Run queue latency p99: {:.1f}ms (scheduler delay)"),
        Threshold("dns_latency_p99", "network", 50, 200,
                  histogram_p99_evaluator("gethostlatency", False),
                  "DNS lookup latency p99: {:.1f}ms"),
        Threshold("cache_miss_ratio", "memory", 5, 15,
                  _cache_miss_ratio,
                  "Page cache miss ratio: {:.1f}%"),
        # Pressure stall information
        Threshold("cpu_psi_pressure", "cpu", 5.0, 25.0,
                  _scan("cpu", CPUData, lambda c: _positive(c.psi_some_10)),
                  "CPU PSI pressure: {:.1f}% (some tasks stalling on CPU)"),
        Threshold("io_psi_pressure", "disk", 10.0, 50.0,
                  _scan("disk", DiskData, lambda d: _positive(d.psi_some_10)),
                  "I/O PSI pressure: {:.1f}% (tasks stalling on I/O)"),
        # Disk average latency (conservative for mixed SSD/HDD)
        Threshold("disk_avg_latency", "disk", 5, 50,
                  _scan("disk", DiskData, _max_disk_latency),
                  "Disk average I/O latency: {:.1f}ms"),
        # Network errors
        Threshold("network_errors_per_sec", "network", 10, 100,
                  _scan("network", NetworkData, _max_interface_errors),
                  "Network errors: {:.1f}/sec"),
    ]


def detect_anomalies(report: Report) -> list[Anomaly]:
    """Run every default threshold against ``report``."""
    anomalies: list[Anomaly] = []
    for threshold in default_thresholds():
        value = threshold.evaluator(report)
        if value is None:
            continue
        severity = threshold.severity(value)
        if severity is None:
            continue
        anomalies.append(
            Anomaly(
                severity=severity,
                category=threshold.category,
                metric=threshold.metric,
                message=threshold.describe(value),
                value=f"{value:.2f}",
                threshold=f"warning={threshold.warning:.0f}, critical={threshold.critical:.0f}",
            )
        )
    return anomalies