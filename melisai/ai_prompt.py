"""Context-aware analysis prompt built from a finished report."""

from __future__ import annotations

from melisai.models import AIContext, ContainerData, ProcessData, Report

_METHODOLOGY = "USE Method (Utilization, Saturation, Errors) by Brendan Gregg"

_ANTI_PATTERNS = (
    "P1: CPU saturation with single-threaded bottleneck (load_avg > num_cpus but one CPU at 100%)",
    "P2: Memory pressure cascade (high dirty_ratio -> write stalls -> iowait -> apparent CPU saturation)",
    "P3: Swap death spiral (swap active + high major faults -> exponential performance degradation)",
    "P4: Network retransmit storm (cubic congestion control + high RTT -> throughput collapse)",
    "P5: Disk I/O amplification (random reads on rotational -> queue depth explosion)",
    "P6: Lock contention hotspot (futex_wait in stack traces -> serialized processing)",
    "P7: Container CPU throttling (cfs_quota too low -> periodic latency spikes)",
    "P8: NUMA imbalance (cross-node memory access -> 2-3x latency penalty)",
    "P9: IRQ imbalance (all interrupts on CPU 0 -> single-core bottleneck)",
    "P10: File descriptor exhaustion (approaching ulimit -> EMFILE errors)",
    "P11: Conntrack table overflow (nf_conntrack_max -> packet drops)",
    "P12: TIME_WAIT accumulation (short-lived connections -> port exhaustion)",
    "P13: Dirty page writeback storm (vm.dirty_ratio too high -> periodic I/O stalls)",
    "P14: THP defragmentation stall (transparent hugepages + fragmented memory -> allocation latency)",
    "P15: Scheduler migration overhead (processes bouncing between NUMA nodes)",
    "P16: I/O scheduler mismatch (using cfq on SSD instead of none/mq-deadline)",
    "P17: TCP buffer autotune failure (rmem/wmem too small for high-BDP links)",
    "P18: cgroup memory thrashing (near limit -> constant reclaim -> high PSI)",
    "P19: Kernel softlockup (debug logging storm -> RCU stall)",
    "P20: DNS resolution blocking (gethostlatency spikes -> application timeout cascade)",
    "P21: AppArmor per-packet overhead (LSM hooks on high-PPS workloads)",
    "P22: Per-process resource leak (FD count growing, RSS growing without release -> eventual OOM/EMFILE)",
    "P23: Application thread pool exhaustion (all threads blocked on I/O or locks -> request queuing)",
    "P24: Kafka/message-broker fsync storm (frequent fsync on rotational storage -> I/O queue saturation"
    " -> cascading latency to all co-located containers)",
    "P25: Docker log I/O contention (dockerd JSON-log writer + Fluent Bit log reader competing for same disk"
    " -> container stdout blocking -> application hangs)",
    "P26: HDD I/O scheduler mismatch (mq-deadline on rotational under containerized mixed workload"
    " -> no I/O fairness, use BFQ instead)",
    "P27: Page cache dirty write amplification (0% cache hit + high dirty page rate"
    " -> all I/O is write-through, no read caching benefit)",
)


def known_anti_patterns() -> list[str]:
    """Common performance anti-patterns the analysis should look for."""
    return list(_ANTI_PATTERNS)


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // b
    return quotient if a >= 0 else -quotient


def _all_results(report: Report):
    for results in report.categories.values():
        yield from results


def _targeting(report: Report) -> tuple[bool, bool]:
    has_pid = any(
        isinstance(r.data, ProcessData) and 0 < len(r.data.top_by_cpu) <= 5
        for r in report.categories.get("process", [])
    )
    has_cgroup = any(
        isinstance(r.data, ContainerData) and r.data.cgroup_path not in ("", "/")
        for r in report.categories.get("container", [])
    )
    return has_pid, has_cgroup


def generate_ai_prompt(report: Report) -> AIContext:
    """Build the prompt, methodology and pattern list for analysing ``report``."""
    meta = report.metadata
    summary = report.summary
    out: list[str] = [
        "You are a Linux systems performance expert. ",
        "Analyze the following melisai report and provide:\n",
        "1. Root cause analysis for any detected anomalies\n",
        "2. Performance optimization recommendations with specific commands\n",
        "3. Risk assessment for production workloads\n",
        "4. Investigation priorities ordered by impact\n\n",
        f"System: {meta.hostname}, Kernel: {meta.kernel_version}, CPUs: {meta.cpus}, Memory: {meta.memory_gb}GB\n",
    ]

    if meta.container_env not in ("", "none"):
        out.append(f"Container: {meta.container_env} (cgroup v{meta.cgroup_version})\n")
    out.append(f"Profile: {meta.profile}, Duration: {meta.duration}\n")

    has_pid, has_cgroup = _targeting(report)
    if has_pid or has_cgroup:
        out.append("\n** TARGETED ANALYSIS MODE **\n")
        if has_pid:
            out += [
                "This report is scoped to specific PIDs. ",
                "BCC tools that support PID filtering (24 of 67) traced only the target process(es). ",
                "Tier 1 metrics (CPU, memory, disk, network) show system-wide baselines for context. ",
                "Focus your analysis on the target application:\n",
                "- Compare process CPU/memory against system totals to assess resource share\n",
                "- Latency histograms (runqlat, biolatency, tcpconnlat) reflect only the target PID\n",
                "- Stack traces (profile, offcputime) show only the target application code paths\n",
                "- Events (opensnoop, tcpconnect, syscount) are filtered to the target process\n\n",
            ]
        if has_cgroup:
            out += [
                "This report is scoped to a specific cgroup (container/service). ",
                "Container metrics (CPU throttling, memory usage vs limit) reflect the target cgroup. ",
                "Process list is filtered to PIDs within the cgroup.\n\n",
            ]
    else:
        out.append("Collection mode: system-wide (all processes)\n\n")

    out += [
        "COLLECTION METHOD: Two-phase collection was used to avoid observer effect.\n",
        "Phase 1: Tier 1 (procfs) collectors ran on a clean system -- CPU, memory, disk, network baselines"
        " are accurate.\n",
        "Phase 2: Tier 2/3 (BCC/eBPF) tools ran after baseline collection -- latency histograms, events,"
        " and stack traces.\n\n",
        f"Health Score: {summary.health_score}/100\n",
    ]

    if summary.anomalies:
        out.append(f"\nDetected Anomalies ({len(summary.anomalies)}):\n")
        for a in summary.anomalies:
            out.append(
                f"  [{a.severity.upper()}] {a.category}: {a.message} (value={a.value}, threshold={a.threshold})\n"
            )

    if summary.resources:
        out.append("\nUSE Metrics:\n")
        for resource, use in summary.resources.items():
            out.append(
                f"  {resource}: util={use.utilization:.1f}%, sat={use.saturation:.1f}%, err={use.errors}\n"
            )

    if meta.focus_areas:
        out.append(f"\nFocus areas requested: {', '.join(meta.focus_areas)}\n")
        out.append("Pay special attention to these subsystems.\n")

    if any(r.stacks for r in _all_results(report)):
        out.append("\nStack traces are available. Analyze hot code paths and ")
        out.append("identify contention points (futex, mutex, I/O waits).\n")
        if has_pid:
            out.append("Stacks are filtered to the target PID -- all code paths belong to the target application.\n")

    if any(r.histograms for r in _all_results(report)):
        out.append("\nLatency histograms are available. Focus on p99/p999 for ")
        out.append("tail latency issues and multimodal distributions.\n")
        if has_pid:
            out.append(
                "Histograms from PID-filtered tools reflect only the target application's latency profile.\n"
            )

    tier2 = [r for r in _all_results(report) if r.tier == 2]
    tier2_empty = sum(1 for r in tier2 if not r.histograms and not r.events and not r.stacks)
    if tier2 and tier2_empty * 2 > len(tier2):
        out.append(
            f"\nWARNING: {tier2_empty} of {len(tier2)} BCC tools returned empty results. "
            "This may indicate a signal-handling issue where BCC Python tools were killed "
            "before flushing output. Consider re-running with a longer timeout or checking "
            "tool compatibility. Interpret Tier 2 data with caution and rely primarily on "
            "Tier 1 (procfs) metrics for this analysis.\n"
        )

    oh = meta.observer_overhead
    if oh is not None:
        out.append(
            "\nOBSERVER EFFECT NOTE: melisai overhead during collection: "
            f"CPU={oh.cpu_user_ms}ms user + {oh.cpu_system_ms}ms system, "
            f"Memory={_trunc_div(oh.memory_rss_bytes, 1024 * 1024)}MB RSS. "
            "Two-phase collection ensures Tier 1 baselines are unaffected by BCC tool overhead. "
            "melisai PIDs excluded from TopByCPU/TopByMem lists.\n"
        )

    out.append("\nProvide actionable, specific commands. ")
    out.append("Cite relevant kernel documentation or performance references.\n")

    return AIContext(prompt="".join(out), methodology=_METHODOLOGY, known_patterns=known_anti_patterns())