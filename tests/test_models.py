import json
from datetime import datetime, timezone

import pytest

from melisai.models import (
    AIContext,
    Anomaly,
    CPUData,
    HistBucket,
    Histogram,
    MemoryData,
    Metadata,
    NetworkData,
    ObserverOverhead,
    Recommendation,
    Report,
    Result,
    Summary,
    TCPStats,
    USEMetric,
    histogram_from_dict,
    report_from_dict,
    to_dict,
    to_json,
)


def _sample_report():
    return Report(
        metadata=Metadata(
            tool="melisai",
            version="0.1.0",
            schema_version="1.0.0",
            hostname="test-host",
            timestamp="2024-01-01T00:00:00Z",
            duration="30s",
            profile="standard",
            focus_areas=["disk", "network"],
            kernel_version="6.1.0",
            arch="amd64",
            cpus=8,
            memory_gb=32,
            capabilities=["procfs", "bcc"],
            container_env="kubernetes",
            cgroup_version=2,
        ),
        categories={
            "cpu": [
                Result(
                    collector="cpu_utilization",
                    category="cpu",
                    tier=1,
                    data=CPUData(user_pct=45.2, system_pct=12.1, idle_pct=42.7, load_avg_1=3.14, num_cpus=8),
                )
            ]
        },
        summary=Summary(
            health_score=85,
            anomalies=[
                Anomaly(
                    severity="warning",
                    category="cpu",
                    metric="cpu_utilization",
                    message="High CPU utilization detected",
                    value="92.3%",
                    threshold="90%",
                )
            ],
            resources={"cpu": USEMetric(utilization=57.3, saturation=2.1, errors=0)},
            recommendations=[
                Recommendation(
                    priority=1,
                    category="network",
                    title="Enable BBR congestion control",
                    commands=["sysctl -w net.ipv4.tcp_congestion_control=bbr"],
                    persistent=["echo 'net.ipv4.tcp_congestion_control=bbr' >> /etc/sysctl.d/99-melisai.conf"],
                    expected_impact="2-3x throughput on high-BDP links",
                    evidence="tcp_congestion_control=cubic + retransmits=94/min",
                    source="Systems Performance ch.10",
                )
            ],
        ),
    )


def test_report_json_round_trip():
    decoded = report_from_dict(json.loads(to_json(_sample_report())))
    assert decoded.metadata.schema_version == "1.0.0"
    assert decoded.metadata.container_env == "kubernetes"
    assert decoded.summary.health_score == 85
    assert len(decoded.summary.anomalies) == 1
    assert len(decoded.summary.recommendations) == 1
    assert decoded.summary.resources["cpu"].utilization == pytest.approx(57.3)


def test_report_data_decodes_as_mapping():
    decoded = report_from_dict(json.loads(to_json(_sample_report())))
    data = decoded.categories["cpu"][0].data
    assert data["num_cpus"] == 8
    assert data["load_avg_1"] == pytest.approx(3.14)


def test_histogram_json_round_trip():
    h = Histogram(
        name="block_io_latency",
        unit="us",
        total_count=10000,
        p50=64,
        p90=256,
        p99=1024,
        p999=4096,
        max_value=8192,
        mean=128.5,
        buckets=[
            HistBucket(low=0, high=1, count=100),
            HistBucket(low=2, high=3, count=200),
            HistBucket(low=4, high=7, count=500),
            HistBucket(low=8, high=15, count=1500),
        ],
    )
    decoded = histogram_from_dict(json.loads(to_json(h, indent=None)))
    assert decoded.p999 == 4096
    assert len(decoded.buckets) == 4
    assert (decoded.buckets[0].low, decoded.buckets[0].high) == (0, 1)
    assert decoded.max_value == 8192
    assert decoded == Histogram(**{**h.__dict__, "p50": 64.0})


def test_cpu_data_field_names():
    cpu = CPUData(
        user_pct=45.2,
        system_pct=12.1,
        iowait_pct=3.5,
        idle_pct=39.2,
        context_switches_per_sec=15000,
        load_avg_1=3.14,
        load_avg_5=2.71,
        load_avg_15=1.99,
        num_cpus=8,
        sched_latency_ns=24000000,
        sched_min_granularity_ns=3000000,
    )
    text = to_json(cpu)
    for name in [
        "user_pct", "system_pct", "iowait_pct", "idle_pct",
        "steal_pct", "irq_pct", "softirq_pct",
        "context_switches_per_sec", "load_avg_1", "load_avg_5", "load_avg_15",
        "num_cpus", "sched_latency_ns", "sched_min_granularity_ns",
    ]:
        assert f'"{name}"' in text


def test_memory_data_field_names():
    mem = MemoryData(
        total_bytes=34359738368,
        available_bytes=17179869184,
        swap_used_bytes=1073741824,
        dirty_bytes=5242880,
        major_faults=42,
        minor_faults=1000000,
        swappiness=60,
        overcommit_memory=0,
        dirty_ratio=20,
        psi_some_10=0.5,
        psi_full_10=0.1,
    )
    text = to_json(mem)
    for name in [
        "total_bytes", "available_bytes", "swap_used_bytes",
        "dirty_bytes", "major_faults", "minor_faults",
        "swappiness", "overcommit_memory", "dirty_ratio",
        "psi_some_10", "psi_full_10",
    ]:
        assert f'"{name}"' in text


def test_omitempty_fields_are_dropped():
    assert to_dict(NetworkData()) == {}
    assert "psi_some_60" not in to_dict(CPUData())
    assert to_dict(CPUData())["steal_pct"] == 0.0


def test_renamed_keys():
    d = to_dict(NetworkData(tcp=TCPStats(retrans_rate=1.5), congestion_ctrl="cubic"))
    assert d["tcp"]["retrans_rate_per_sec"] == 1.5
    assert d["congestion_control"] == "cubic"
    assert to_dict(USEMetric(utilization=10, saturation=2)) == {
        "utilization_pct": 10,
        "saturation_pct": 2,
        "errors": 0,
    }


def test_optional_nested_round_trip():
    report = Report(
        metadata=Metadata(observer_overhead=ObserverOverhead(self_pid=7, child_pids=[8, 9], cpu_user_ms=30)),
        ai_context=AIContext(prompt="p", known_patterns=["a"]),
    )
    decoded = report_from_dict(json.loads(to_json(report)))
    assert decoded.metadata.observer_overhead == ObserverOverhead(self_pid=7, child_pids=[8, 9], cpu_user_ms=30)
    assert decoded.ai_context.known_patterns == ["a"]
    assert "ai_context" not in to_dict(Report())


def test_null_values_fall_back_to_defaults():
    decoded = report_from_dict({"metadata": {"focus_areas": None, "tool": "melisai"}, "summary": {"anomalies": None}})
    assert decoded.metadata.focus_areas == []
    assert decoded.metadata.tool == "melisai"
    assert decoded.summary.anomalies == []


def test_report_from_dict_rejects_non_object():
    with pytest.raises(TypeError):
        report_from_dict([1, 2, 3])
    with pytest.raises(TypeError):
        report_from_dict({"metadata": "nope"})