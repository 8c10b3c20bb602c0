import pytest

from melisai.models import (
    ContainerData,
    CPUData,
    DiskData,
    DiskDevice,
    MemoryData,
    NetworkData,
    NetworkInterface,
    Report,
    Result,
    TCPStats,
)
from melisai.use import compute_disk_utilization, compute_use_metrics


def test_compute_use_metrics_cpu_and_memory():
    report = Report(
        categories={
            "cpu": [Result(data=CPUData(idle_pct=20, iowait_pct=5, load_avg_1=8, num_cpus=4))],
            "memory": [
                Result(
                    data=MemoryData(
                        total_bytes=16_000_000_000,
                        available_bytes=4_000_000_000,
                        swap_total_bytes=4_000_000_000,
                        swap_used_bytes=1_000_000_000,
                        major_faults=100,
                    )
                )
            ],
        }
    )
    resources = compute_use_metrics(report)

    cpu = resources["cpu"]
    assert 79 <= cpu.utilization <= 81
    assert cpu.saturation > 0

    mem = resources["memory"]
    assert 74 <= mem.utilization <= 76
    assert 24 <= mem.saturation <= 26
    assert mem.errors == 0


def test_cpu_saturation_over_capacity():
    report = Report(categories={"cpu": [Result(data=CPUData(idle_pct=50, load_avg_1=8, num_cpus=4))]})
    assert compute_use_metrics(report)["cpu"].saturation == pytest.approx(100.0)


def test_cpu_saturation_zero_under_capacity():
    report = Report(categories={"cpu": [Result(data=CPUData(idle_pct=50, load_avg_1=2, num_cpus=4))]})
    assert compute_use_metrics(report)["cpu"].saturation == 0


def test_first_typed_result_is_used():
    report = Report(
        categories={
            "cpu": [
                Result(collector="other", data=None),
                Result(collector="cpu", data=CPUData(idle_pct=40)),
                Result(collector="cpu2", data=CPUData(idle_pct=10)),
            ]
        }
    )
    assert compute_use_metrics(report)["cpu"].utilization == pytest.approx(60.0)


def test_empty_report_has_no_resources():
    assert compute_use_metrics(Report()) == {}


def test_disk_utilization_is_capped():
    disk = DiskData(devices=[DiskDevice(name="sda", io_time_ms=500), DiskDevice(name="sdb", io_time_ms=1500)])
    assert compute_disk_utilization(disk) == 100.0


def test_disk_utilization_uses_busiest_device():
    disk = DiskData(devices=[DiskDevice(name="sda", io_time_ms=300), DiskDevice(name="sdb", io_time_ms=700)])
    assert compute_disk_utilization(disk) == pytest.approx(70.0)


def test_disk_utilization_without_devices():
    assert compute_disk_utilization(DiskData()) == 0.0


def test_disk_saturation_is_max_queue():
    disk = DiskData(devices=[DiskDevice(name="sda", io_in_progress=3), DiskDevice(name="sdb", io_in_progress=9)])
    resources = compute_use_metrics(Report(categories={"disk": [Result(data=disk)]}))
    assert resources["disk"].saturation == 9.0
    assert resources["disk"].errors == 0


def test_network_saturation_and_errors():
    net = NetworkData(
        interfaces=[
            NetworkInterface(name="eth0", errors_per_sec=2.5),
            NetworkInterface(name="eth1", errors_per_sec=1.0),
        ],
        tcp=TCPStats(time_wait_count=10, close_wait_count=5, retrans_rate=0.9),
    )
    resources = compute_use_metrics(Report(categories={"network": [Result(data=net)]}))
    metric = resources["network"]
    assert metric.utilization == 0
    assert metric.saturation == 15.0
    assert metric.errors == 4


def test_network_without_tcp():
    net = NetworkData(interfaces=[NetworkInterface(name="eth0", errors_per_sec=3.7)])
    metric = compute_use_metrics(Report(categories={"network": [Result(data=net)]}))["network"]
    assert metric.saturation == 0
    assert metric.errors == 3


def test_container_resources():
    container = ContainerData(
        runtime="docker",
        cpu_quota=50000,
        cpu_period=100000,
        cpu_throttled_periods=7,
        cpu_throttled_time=250000,
        memory_limit=1000,
        memory_usage=250,
    )
    resources = compute_use_metrics(Report(categories={"container": [Result(data=container)]}))
    assert resources["container_cpu"].utilization == pytest.approx(50.0)
    assert resources["container_cpu"].saturation == 7.0
    assert resources["container_memory"].utilization == pytest.approx(25.0)


def test_container_cpu_without_throttled_time():
    container = ContainerData(runtime="docker", cpu_quota=50000, cpu_period=100000, cpu_throttled_periods=3)
    resources = compute_use_metrics(Report(categories={"container": [Result(data=container)]}))
    assert resources["container_cpu"].utilization == 0
    assert resources["container_cpu"].saturation == 3.0
    assert "container_memory" not in resources


def test_container_runtime_none_is_ignored():
    container = ContainerData(runtime="none", cpu_quota=50000, cpu_period=100000, memory_limit=1000, memory_usage=900)
    resources = compute_use_metrics(Report(categories={"container": [Result(data=container)]}))
    assert "container_cpu" not in resources
    assert "container_memory" not in resources