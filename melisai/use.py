"""USE methodology metrics (utilization, saturation, errors) per resource."""

from __future__ import annotations

from melisai.models import (
    ContainerData,
    CPUData,
    DiskData,
    MemoryData,
    NetworkData,
    Report,
    USEMetric,
)


def _first_data(report: Report, category: str, kind: type):
    """Return the first collector data of ``kind`` in ``category``, if any."""
    for result in report.categories.get(category, []):
        if isinstance(result.data, kind):
            return result.data
    return None


def compute_use_metrics(report: Report) -> dict[str, USEMetric]:
    """Compute USE metrics for CPU, memory, disk, network and container limits."""
    resources: dict[str, USEMetric] = {}

    cpu = _first_data(report, "cpu", CPUData)
    if cpu is not None:
        resources["cpu"] = USEMetric(
            utilization=100 - cpu.idle_pct,
            saturation=_cpu_saturation(cpu),
            errors=0,
        )

    mem = _first_data(report, "memory", MemoryData)
    if mem is not None:
        utilization = 0.0
        if mem.total_bytes > 0:
            utilization = (mem.total_bytes - mem.available_bytes) / mem.total_bytes * 100
        # Major faults are cumulative since boot, so they are not counted as errors.
        resources["memory"] = USEMetric(
            utilization=utilization,
            saturation=_memory_saturation(mem),
            errors=0,
        )

    disk = _first_data(report, "disk", DiskData)
    if disk is not None:
        resources["disk"] = USEMetric(
            utilization=compute_disk_utilization(disk),
            saturation=_disk_saturation(disk),
            errors=0,
        )

    net = _first_data(report, "network", NetworkData)
    if net is not None:
        # Utilization would need the link speed, which is not collected.
        resources["network"] = USEMetric(
            utilization=0.0,
            saturation=_network_saturation(net),
            errors=_network_errors(net),
        )

    for result in report.categories.get("container", []):
        container = result.data
        if not isinstance(container, ContainerData) or container.runtime == "none":
            continue
        if container.cpu_quota > 0 and container.cpu_period > 0:
            allowed_ratio = container.cpu_quota / container.cpu_period
            utilization = 0.0
            if allowed_ratio > 0 and container.cpu_throttled_time > 0:
                throttled_sec = container.cpu_throttled_time / 1e6
                utilization = throttled_sec / allowed_ratio * 100
            resources["container_cpu"] = USEMetric(
                utilization=utilization,
                saturation=float(container.cpu_throttled_periods),
            )
        if container.memory_limit > 0:
            resources["container_memory"] = USEMetric(
                utilization=container.memory_usage / container.memory_limit * 100,
            )

    return resources


def _cpu_saturation(cpu: CPUData) -> float:
    if cpu.num_cpus > 0:
        ratio = cpu.load_avg_1 / cpu.num_cpus
        if ratio > 1.0:
            return (ratio - 1.0) * 100
    return 0.0


def _memory_saturation(mem: MemoryData) -> float:
    if mem.swap_total_bytes > 0:
        return mem.swap_used_bytes / mem.swap_total_bytes * 100
    return 0.0


def compute_disk_utilization(disk: DiskData) -> float:
    """Busiest device's I/O time as a percentage, capped at 100."""
    # io_time_ms is per second of sampling: 1000 ms means fully busy.
    busiest = max((dev.io_time_ms / 10.0 for dev in disk.devices), default=0.0)
    return min(max(busiest, 0.0), 100.0)


def _disk_saturation(disk: DiskData) -> float:
    return max((float(dev.io_in_progress) for dev in disk.devices if dev.io_in_progress > 0), default=0.0)


def _network_saturation(net: NetworkData) -> float:
    if net.tcp is not None:
        return float(net.tcp.time_wait_count + net.tcp.close_wait_count)
    return 0.0


def _network_errors(net: NetworkData) -> int:
    total = sum(iface.errors_per_sec for iface in net.interfaces)
    if net.tcp is not None:
        total += net.tcp.retrans_rate
    return int(total)