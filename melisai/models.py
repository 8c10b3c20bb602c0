"""Report data model and its JSON encoding.

Every class is a dataclass whose JSON keys follow the report schema.
Fields marked ``omitempty`` are left out of the encoded output when they
hold an empty value (zero, empty string, ``False``, ``None`` or an empty
collection).
"""

import json
import re
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Union, get_args, get_origin

SCHEMA_VERSION = "1.0.0"

# Encoding used for a time that was never set.
_ZERO_TIME = "0001-01-01T00:00:00Z"


def _f(default: Any = MISSING, *, key: Optional[str] = None, omitempty: bool = False, factory: Any = None) -> Any:
    meta = {"json": key, "omitempty": omitempty}
    if factory is not None:
        return field(default_factory=factory, metadata=meta)
    return field(default=default, metadata=meta)


# --- Report: top-level output ---


@dataclass
class ObserverOverhead:
    """The collector's own resource consumption during a run."""

    self_pid: int = 0
    child_pids: list[int] = field(default_factory=list)
    cpu_user_ms: int = 0
    cpu_system_ms: int = 0
    memory_rss_bytes: int = 0
    disk_read_bytes: int = 0
    disk_write_bytes: int = 0
    context_switches: int = 0


@dataclass
class Metadata:
    """Identifies a collection run."""

    tool: str = ""
    version: str = ""
    schema_version: str = ""
    hostname: str = ""
    timestamp: str = ""
    duration: str = ""
    profile: str = ""
    focus_areas: list[str] = field(default_factory=list)
    kernel_version: str = ""
    arch: str = ""
    cpus: int = 0
    memory_gb: int = 0
    capabilities: list[str] = field(default_factory=list)
    container_env: str = ""
    cgroup_version: int = 0
    observer_overhead: Optional[ObserverOverhead] = _f(None, omitempty=True)


@dataclass
class FilesystemInfo:
    mount: str = ""
    device: str = ""
    kind: str = _f("", key="type")
    size_gb: float = 0.0
    used_pct: float = 0.0


@dataclass
class BlockDevice:
    name: str = ""
    kind: str = _f("", key="type")
    size_gb: float = 0.0
    model: str = _f("", omitempty=True)


@dataclass
class LogEntry:
    time: str = ""
    level: str = _f("", omitempty=True)
    unit: str = _f("", omitempty=True)
    message: str = ""


@dataclass
class SystemInfo:
    """Host OS, filesystems and recent errors."""

    os: str = ""
    kernel: str = ""
    uptime_seconds: int = 0
    boot_params: str = ""
    filesystems: list[FilesystemInfo] = _f(omitempty=True, factory=list)
    block_devices: list[BlockDevice] = _f(omitempty=True, factory=list)
    dmesg_errors: list[LogEntry] = _f(omitempty=True, factory=list)
    journal_errors: list[LogEntry] = _f(omitempty=True, factory=list)


# --- Histograms, events, stacks ---


@dataclass
class HistBucket:
    low: int = 0
    high: int = 0
    count: int = 0


@dataclass
class Histogram:
    """A power-of-two latency distribution with precomputed percentiles."""

    name: str = ""
    unit: str = ""
    buckets: list[HistBucket] = field(default_factory=list)
    total_count: int = 0
    p50: float = 0.0
    p90: float = 0.0
    p99: float = 0.0
    p999: float = 0.0
    max_value: float = _f(0.0, key="max")
    mean: float = 0.0


@dataclass
class Event:
    time: str = ""
    pid: int = _f(0, omitempty=True)
    comm: str = _f("", omitempty=True)
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class StackTrace:
    """A folded stack with its sample count."""

    stack: str = ""
    count: int = 0
    kind: str = _f("", key="type")


# --- Result: unified collector output ---


@dataclass
class Result:
    """The normalized output of one collector.

    ``data`` holds one of the typed data classes when built in memory; after
    decoding from JSON it holds the plain mapping.
    """

    collector: str = ""
    category: str = ""
    tier: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    data: Any = None
    histograms: list[Histogram] = _f(omitempty=True, factory=list)
    events: list[Event] = _f(omitempty=True, factory=list)
    stacks: list[StackTrace] = _f(omitempty=True, factory=list)
    errors: list[str] = _f(omitempty=True, factory=list)
    truncated: bool = _f(False, omitempty=True)


# --- Typed data per category ---


@dataclass
class PerCPU:
    cpu: int = 0
    user_pct: float = 0.0
    system_pct: float = 0.0
    iowait_pct: float = 0.0
    idle_pct: float = 0.0


@dataclass
class CPUData:
    user_pct: float = 0.0
    system_pct: float = 0.0
    iowait_pct: float = 0.0
    idle_pct: float = 0.0
    steal_pct: float = 0.0
    irq_pct: float = 0.0
    softirq_pct: float = 0.0
    context_switches_per_sec: int = 0
    load_avg_1: float = 0.0
    load_avg_5: float = 0.0
    load_avg_15: float = 0.0
    num_cpus: int = 0
    per_cpu: list[PerCPU] = _f(omitempty=True, factory=list)
    sched_latency_ns: int = _f(0, omitempty=True)
    sched_min_granularity_ns: int = _f(0, omitempty=True)
    psi_some_10: float = _f(0.0, omitempty=True)
    psi_some_60: float = _f(0.0, omitempty=True)


@dataclass
class NUMANode:
    node: int = 0
    mem_total_bytes: int = 0
    mem_free_bytes: int = 0
    numa_hit: int = 0
    numa_miss: int = 0
    numa_foreign: int = 0


@dataclass
class MemoryData:
    total_bytes: int = 0
    free_bytes: int = 0
    available_bytes: int = 0
    cached_bytes: int = 0
    buffers_bytes: int = 0
    swap_total_bytes: int = 0
    swap_used_bytes: int = 0
    dirty_bytes: int = 0
    major_faults: int = 0
    minor_faults: int = 0
    swappiness: int = 0
    overcommit_memory: int = 0
    overcommit_ratio: int = 0
    dirty_ratio: int = 0
    dirty_background_ratio: int = 0
    huge_pages_total: int = 0
    huge_pages_free: int = 0
    psi_full_10: float = _f(0.0, omitempty=True)
    psi_full_60: float = _f(0.0, omitempty=True)
    psi_some_10: float = _f(0.0, omitempty=True)
    psi_some_60: float = _f(0.0, omitempty=True)
    thp_enabled: str = _f("", omitempty=True)
    min_free_kbytes: int = _f(0, omitempty=True)
    numa_nodes: list[NUMANode] = _f(omitempty=True, factory=list)
    buddy_info: dict[str, list[int]] = _f(omitempty=True, factory=dict)


@dataclass
class DiskDevice:
    name: str = ""
    read_ops: int = 0
    write_ops: int = 0
    read_bytes: int = 0
    write_bytes: int = 0
    io_in_progress: int = 0
    io_time_ms: int = 0
    weighted_io_ms: int = 0
    avg_latency_ms: float = _f(0.0, omitempty=True)
    scheduler: str = _f("", omitempty=True)
    queue_depth: int = _f(0, omitempty=True)
    rotational: bool = False
    read_ahead_kb: int = _f(0, omitempty=True)


@dataclass
class DiskData:
    devices: list[DiskDevice] = field(default_factory=list)
    total_ops: int = 0
    read_ops: int = 0
    write_ops: int = 0
    psi_some_10: float = _f(0.0, omitempty=True)
    psi_some_60: float = _f(0.0, omitempty=True)


@dataclass
class NetworkInterface:
    name: str = ""
    rx_bytes: int = 0
    tx_bytes: int = 0
    rx_packets: int = 0
    tx_packets: int = 0
    rx_errors: int = 0
    tx_errors: int = 0
    rx_dropped: int = 0
    tx_dropped: int = 0
    errors_per_sec: float = _f(0.0, omitempty=True)


@dataclass
class TCPStats:
    curr_estab: int = 0
    active_opens: int = 0
    passive_opens: int = 0
    retrans_segs: int = 0
    retrans_rate: float = _f(0.0, key="retrans_rate_per_sec")
    in_errs: int = 0
    out_rsts: int = 0
    time_wait_count: int = 0
    close_wait_count: int = 0


@dataclass
class NetworkData:
    interfaces: list[NetworkInterface] = _f(omitempty=True, factory=list)
    tcp: Optional[TCPStats] = _f(None, omitempty=True)
    congestion_ctrl: str = _f("", key="congestion_control", omitempty=True)
    tcp_rmem: str = _f("", omitempty=True)
    tcp_wmem: str = _f("", omitempty=True)
    somaxconn: int = _f(0, omitempty=True)
    tcp_max_syn_backlog: int = _f(0, omitempty=True)
    tcp_tw_reuse: int = _f(0, omitempty=True)
    total_connections: int = _f(0, omitempty=True)
    avg_latency_ms: float = _f(0.0, omitempty=True)
    p99_latency_ms: float = _f(0.0, omitempty=True)
    total_retransmits: int = _f(0, omitempty=True)
    rate_per_min: float = _f(0.0, omitempty=True)
    unique_conns: int = _f(0, key="unique_connections", omitempty=True)
    total_lookups: int = _f(0, omitempty=True)


@dataclass
class ProcessInfo:
    pid: int = 0
    comm: str = ""
    cpu_pct: float = _f(0.0, omitempty=True)
    mem_rss: int = _f(0, key="mem_rss_bytes", omitempty=True)
    mem_pct: float = _f(0.0, omitempty=True)
    threads: int = _f(0, omitempty=True)
    fds: int = _f(0, omitempty=True)
    state: str = _f("", omitempty=True)


@dataclass
class ProcessData:
    top_by_cpu: list[ProcessInfo] = _f(omitempty=True, factory=list)
    top_by_mem: list[ProcessInfo] = _f(omitempty=True, factory=list)
    total: int = _f(0, key="total_processes")
    running: int = 0
    sleeping: int = 0
    zombie: int = 0
    excluded_pids: list[int] = _f(omitempty=True, factory=list)


@dataclass
class StackData:
    total_samples: int = 0
    unique_stacks: int = 0
    total_us: int = _f(0, omitempty=True)
    flamegraph_svg: str = _f("", omitempty=True)


@dataclass
class ContainerData:
    runtime: str = ""
    cgroup_version: int = 0
    cgroup_path: str = _f("", omitempty=True)
    container_id: str = _f("", omitempty=True)
    pod_name: str = _f("", omitempty=True)
    namespace: str = _f("", omitempty=True)
    cpu_quota: int = _f(0, omitempty=True)
    cpu_period: int = _f(0, omitempty=True)
    cpu_throttled_periods: int = _f(0, omitempty=True)
    cpu_throttled_time: int = _f(0, key="cpu_throttled_time_us", omitempty=True)
    memory_limit: int = _f(0, key="memory_limit_bytes", omitempty=True)
    memory_usage: int = _f(0, key="memory_usage_bytes", omitempty=True)


# --- Summary: precomputed analysis ---


@dataclass
class USEMetric:
    """Utilization, saturation and errors of one resource."""

    utilization: float = _f(0.0, key="utilization_pct")
    saturation: float = _f(0.0, key="saturation_pct")
    errors: int = 0


@dataclass
class Anomaly:
    severity: str = ""
    category: str = ""
    metric: str = ""
    message: str = ""
    value: str = ""
    threshold: str = ""


@dataclass
class Hotspot:
    category: str = ""
    description: str = ""
    evidence: str = ""


@dataclass
class Recommendation:
    priority: int = 0
    category: str = ""
    title: str = ""
    commands: list[str] = field(default_factory=list)
    persistent: list[str] = field(default_factory=list)
    expected_impact: str = ""
    evidence: str = ""
    source: str = ""


@dataclass
class Summary:
    health_score: int = 0
    anomalies: list[Anomaly] = field(default_factory=list)
    hotspots: list[Hotspot] = _f(omitempty=True, factory=list)
    resources: dict[str, USEMetric] = field(default_factory=dict)
    recommendations: list[Recommendation] = _f(omitempty=True, factory=list)


@dataclass
class AIContext:
    prompt: str = ""
    methodology: str = ""
    known_patterns: list[str] = field(default_factory=list)


@dataclass
class Report:
    """The complete report document."""

    metadata: Metadata = field(default_factory=Metadata)
    system: SystemInfo = field(default_factory=SystemInfo)
    categories: dict[str, list[Result]] = field(default_factory=dict)
    summary: Summary = field(default_factory=Summary)
    ai_context: Optional[AIContext] = _f(None, omitempty=True)


# --- Encoding ---


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (bool, int, float, str)):
        return not value
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _format_time(value: Optional[datetime]) -> str:
    if value is None:
        return _ZERO_TIME
    text = value.isoformat()
    if value.utcoffset() is not None and value.utcoffset().total_seconds() == 0:
        text = text[: -len("+00:00")] + "Z"
    return text


_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_time(text: str) -> Optional[datetime]:
    if text == _ZERO_TIME:
        return None
    text = _FRACTION.sub(r"\1", text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def to_dict(obj: Any) -> Any:
    """Convert a model object (or any nesting of them) to JSON-ready values."""
    if is_dataclass(obj) and not isinstance(obj, type):
        out: dict[str, Any] = {}
        for f in fields(obj):
            value = getattr(obj, f.name)
            if f.metadata.get("omitempty") and _is_empty(value):
                continue
            out[f.metadata.get("json") or f.name] = to_dict(value)
        return out
    if isinstance(obj, datetime):
        return _format_time(obj)
    if isinstance(obj, Mapping):
        return {str(k): to_dict(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_dict(v) for v in obj]
    return obj


def to_json(obj: Any, indent: Optional[int] = 2) -> str:
    """Encode a model object as JSON text."""
    return json.dumps(to_dict(obj), indent=indent, ensure_ascii=False)


# --- Decoding ---


def _decode(tp: Any, value: Any) -> Any:
    if tp is Any or value is None:
        return value
    origin = get_origin(tp)
    if origin is Union:
        inner = [a for a in get_args(tp) if a is not type(None)]
        return _decode(inner[0], value)
    if origin is list:
        (item,) = get_args(tp)
        if not isinstance(value, list):
            raise TypeError(f"expected a list, got {type(value).__name__}")
        return [_decode(item, v) for v in value]
    if origin is dict:
        _, item = get_args(tp)
        if not isinstance(value, Mapping):
            raise TypeError(f"expected an object, got {type(value).__name__}")
        return {k: _decode(item, v) for k, v in value.items()}
    if is_dataclass(tp):
        return _from_dict(tp, value)
    if tp is datetime:
        return _parse_time(value)
    if tp is float:
        return float(value)
    if tp is int:
        return int(value)
    if tp is bool:
        return bool(value)
    if tp is str:
        return str(value)
    return value


def _from_dict(cls: type, data: Any) -> Any:
    if not isinstance(data, Mapping):
        raise TypeError(f"{cls.__name__} must be decoded from an object, got {type(data).__name__}")
    kwargs = {}
    for f in fields(cls):
        key = f.metadata.get("json") or f.name
        if key in data and data[key] is not None:
            kwargs[f.name] = _decode(f.type, data[key])
    return cls(**kwargs)


def report_from_dict(data: Mapping[str, Any]) -> Report:
    """Build a Report from decoded JSON. Collector ``data`` stays a mapping."""
    return _from_dict(Report, data)


def histogram_from_dict(data: Mapping[str, Any]) -> Histogram:
    """Build a Histogram from decoded JSON."""
    return _from_dict(Histogram, data)