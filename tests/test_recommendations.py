import pytest

from melisai.models import (
    CPUData,
    DiskData,
    DiskDevice,
    MemoryData,
    NetworkData,
    Report,
    Result,
    TCPStats,
)
from melisai.recommendations import generate_recommendations, is_low_tcp_buffer


def _report(**categories):
    return Report(categories={cat: [Result(data=data)] for cat, data in categories.items()})


def _commands(recs, category=None):
    return [cmd for r in recs if category is None or r.category == category for cmd in r.commands]


def test_tcp_buffer_recommendation():
    recs = generate_recommendations(
        _report(network=NetworkData(tcp_rmem="4096 87380 2097152", tcp_wmem="4096 65536 6291456"))
    )
    cmds = _commands(recs, "network")
    assert "sysctl -w net.ipv4.tcp_rmem='4096 87380 6291456'" in cmds
    assert "sysctl -w net.ipv4.tcp_wmem='4096 65536 6291456'" not in cmds


def test_tcp_tw_reuse_recommendation():
    recs = generate_recommendations(_report(network=NetworkData(tcp_tw_reuse=0, tcp=TCPStats(time_wait_count=5000))))
    assert "sysctl -w net.ipv4.tcp_tw_reuse=1" in _commands(recs, "network")


def test_tcp_tw_reuse_not_triggered_when_enabled():
    recs = generate_recommendations(_report(network=NetworkData(tcp_tw_reuse=1, tcp=TCPStats(time_wait_count=5000))))
    assert "sysctl -w net.ipv4.tcp_tw_reuse=1" not in _commands(recs)


def test_disk_scheduler_recommendation():
    recs = generate_recommendations(
        _report(
            disk=DiskData(
                devices=[
                    DiskDevice(name="sda", rotational=False, scheduler="cfq"),
                    DiskDevice(name="sdb", rotational=True, scheduler="deadline"),
                ]
            )
        )
    )
    cmds = _commands(recs, "disk")
    assert "echo mq-deadline > /sys/block/sda/queue/scheduler" in cmds
    assert "echo bfq > /sys/block/sdb/queue/scheduler" in cmds


def test_disk_scheduler_no_recommendation_when_optimal():
    recs = generate_recommendations(
        _report(
            disk=DiskData(
                devices=[
                    DiskDevice(name="sda", rotational=False, scheduler="mq-deadline"),
                    DiskDevice(name="sdb", rotational=True, scheduler="bfq"),
                ]
            )
        )
    )
    assert [r for r in recs if r.category == "disk"] == []


def test_disk_scheduler_none_is_accepted_for_ssd():
    recs = generate_recommendations(_report(disk=DiskData(devices=[DiskDevice(name="nvme0n1", scheduler="none")])))
    assert [r for r in recs if r.category == "disk"] == []


def test_disk_scheduler_evidence_and_persistent():
    recs = generate_recommendations(
        _report(disk=DiskData(devices=[DiskDevice(name="sda", rotational=False, scheduler="cfq")]))
    )
    (rec,) = [r for r in recs if r.category == "disk"]
    assert rec.title == "Switch sda to mq-deadline scheduler (SSD)"
    assert rec.evidence == "device=sda, scheduler=cfq, rotational=false"
    assert rec.persistent == [
        "echo 'ACTION==\"add|change\", KERNEL==\"sda\", ATTR{queue/scheduler}=\"mq-deadline\"' "
        ">> /etc/udev/rules.d/60-scheduler.rules"
    ]


def test_thp_recommendation():
    recs = generate_recommendations(_report(memory=MemoryData(thp_enabled="always")))
    assert "echo madvise > /sys/kernel/mm/transparent_hugepage/enabled" in _commands(recs, "memory")


def test_thp_no_recommendation_when_madvise():
    recs = generate_recommendations(_report(memory=MemoryData(thp_enabled="madvise")))
    assert "echo madvise > /sys/kernel/mm/transparent_hugepage/enabled" not in _commands(recs, "memory")


def test_min_free_kbytes_recommendation():
    recs = generate_recommendations(_report(memory=MemoryData(total_bytes=32 * 1024**3, min_free_kbytes=32768)))
    assert "sysctl -w vm.min_free_kbytes=131072" in _commands(recs, "memory")


def test_min_free_kbytes_no_recommendation_when_sufficient():
    recs = generate_recommendations(_report(memory=MemoryData(total_bytes=32 * 1024**3, min_free_kbytes=131072)))
    assert "sysctl -w vm.min_free_kbytes=131072" not in _commands(recs, "memory")


def test_tcp_max_syn_backlog_recommendation():
    recs = generate_recommendations(_report(network=NetworkData(tcp_max_syn_backlog=128)))
    assert "sysctl -w net.ipv4.tcp_max_syn_backlog=8192" in _commands(recs, "network")


def test_tcp_max_syn_backlog_no_recommendation_when_sufficient():
    recs = generate_recommendations(_report(network=NetworkData(tcp_max_syn_backlog=8192)))
    assert "sysctl -w net.ipv4.tcp_max_syn_backlog=8192" not in _commands(recs)


@pytest.mark.parametrize(
    ("buf", "expected"),
    [
        ("4096 87380 6291456", False),
        ("4096 87380 2097152", True),
        ("4096 16384 131072", True),
        ("", False),
        ("4096 87380 4194304", False),
        ("4096 87380 4194303", True),
        ("not a number", False),
        ("4096 87380", False),
    ],
)
def test_is_low_tcp_buffer(buf, expected):
    assert is_low_tcp_buffer(buf) is expected


def test_generate_recommendations():
    report = _report(
        cpu=CPUData(load_avg_1=20, num_cpus=4, sched_latency_ns=30_000_000),
        memory=MemoryData(
            swappiness=60,
            swap_used_bytes=1_000_000_000,
            swap_total_bytes=4_000_000_000,
            dirty_ratio=40,
            overcommit_memory=0,
        ),
        network=NetworkData(congestion_ctrl="cubic", tcp=TCPStats(retrans_segs=500), somaxconn=128),
    )
    recs = generate_recommendations(report)
    assert recs
    assert any(r.category == "cpu" for r in recs)
    assert "sysctl -w net.ipv4.tcp_congestion_control=bbr" in _commands(recs, "network")
    priorities = [r.priority for r in recs]
    assert priorities == sorted(priorities)
    assert priorities == list(range(1, len(recs) + 1))


def test_generate_recommendations_order_and_evidence():
    report = _report(
        cpu=CPUData(load_avg_1=20, num_cpus=4, sched_latency_ns=30_000_000),
        memory=MemoryData(swappiness=60, swap_used_bytes=1_000_000_000, dirty_ratio=40, overcommit_memory=0),
    )
    recs = generate_recommendations(report)
    assert [r.category for r in recs] == ["cpu", "cpu", "memory", "memory", "memory"]
    assert recs[0].evidence == "load_avg_1=20.00, num_cpus=4"
    assert recs[1].evidence == "sched_latency_ns=30000000"
    assert recs[2].evidence == "swappiness=60, swap_used=1000000000"
    assert recs[1].persistent == [
        "echo 'kernel.sched_latency_ns=6000000' >> /etc/sysctl.d/99-melisai.conf",
        "echo 'kernel.sched_min_granularity_ns=750000' >> /etc/sysctl.d/99-melisai.conf",
    ]


def test_retransmit_recommendation_uses_rate():
    recs = generate_recommendations(_report(network=NetworkData(tcp=TCPStats(retrans_rate=2.5))))
    (rec,) = recs
    assert rec.title == "Investigate TCP retransmissions"
    assert rec.evidence == "retrans_rate=2.5/s"
    assert rec.persistent == []


def test_bbr_already_enabled_gives_nothing():
    recs = generate_recommendations(_report(network=NetworkData(congestion_ctrl="bbr")))
    assert recs == []


def test_zero_cpus_treated_as_one():
    recs = generate_recommendations(_report(cpu=CPUData(load_avg_1=3.0, num_cpus=0)))
    assert [r.evidence for r in recs] == ["load_avg_1=3.00, num_cpus=0"]


def test_empty_report_has_no_recommendations():
    assert generate_recommendations(Report()) == []