# melisai

melisai is a library for building and analysing Linux performance reports.
A report groups collector results by category (CPU, memory, disk, network,
process, container, stack traces) and is encoded as JSON with stable field
names. On top of the report model the package offers:

- USE-method metrics (Utilization, Saturation, Errors) per resource;
- threshold-based anomaly detection with warning and critical levels;
- a health score from 0 to 100;
- sysctl, I/O scheduler and kernel tuning recommendations, each with the
  evidence that triggered it;
- a context-aware prompt for AI-assisted analysis of a report;
- a simple flame graph SVG and folded-stack text;
- a tracker of the current process and its child processes that measures
  their CPU, memory, I/O and context-switch overhead from `/proc`;
- named collection profiles (`quick`, `standard`, `deep`);
- progress messages on standard error.

It needs nothing beyond the Python standard library and supports Python 3.10
and later.

## Analysing a report

```python
from melisai.models import CPUData, MemoryData, Report, Result
from melisai.use import compute_use_metrics
from melisai.anomaly import detect_anomalies
from melisai.health import compute_health_score
from melisai.recommendations import generate_recommendations

report = Report(
    categories={
        "cpu": [Result(collector="cpu_utilization", category="cpu", tier=1,
                       data=CPUData(idle_pct=3, iowait_pct=35,
                                    load_avg_1=20, num_cpus=4))],
        "memory": [Result(collector="memory_info", category="memory", tier=1,
                          data=MemoryData(total_bytes=16_000_000_000,
                                          available_bytes=500_000_000))],
    }
)

report.summary.resources = compute_use_metrics(report)
report.summary.anomalies = detect_anomalies(report)
report.summary.health_score = compute_health_score(
    report.summary.resources, report.summary.anomalies)
report.summary.recommendations = generate_recommendations(report)

for anomaly in report.summary.anomalies:
    print(anomaly.severity, anomaly.metric, anomaly.message)
```

Anomaly values are formatted with two decimals (for example `"15.00"`) and
thresholds as `warning=10, critical=50`. The rules themselves are available
from `melisai.anomaly.default_thresholds()`. Recommendations are numbered by
priority starting at 1; `is_low_tcp_buffer` tells whether a
`tcp_rmem`/`tcp_wmem` string has a maximum below 4 MiB.

## JSON

```python
from melisai.ai_prompt import generate_ai_prompt
from melisai.json_output import write_json
from melisai.models import report_from_dict, to_dict, to_json

report.ai_context = generate_ai_prompt(report)
write_json(report, "report.json")   # "-" or "" writes to standard output

text = to_json(report)              # indented JSON text
again = report_from_dict(to_dict(report))
```

`write_json` sorts map keys and raises `OSError` if the file cannot be
created. Fields that are empty and marked optional in the schema are left
out. When a report is read back with `report_from_dict`, each result's
`data` stays a plain mapping.

## Flame graphs

```python
from melisai.models import StackTrace
from melisai.flamegraph import generate_flamegraph_svg, generate_folded

stacks = [
    StackTrace(stack="main;do_work;compute", count=100, kind="on-cpu"),
    StackTrace(stack="idle;cpu_idle", count=200, kind="on-cpu"),
]
svg = generate_flamegraph_svg(stacks, "CPU Profile")   # "" for no stacks
folded = generate_folded(stacks)    # "main;do_work;compute 100\n..."
```

## Measuring overhead

```python
from melisai.observer import PIDTracker

tracker = PIDTracker()
tracker.snapshot_before()
tracker.add(12345, "runqlat")       # register a child tool process
# ... work ...
summary = tracker.snapshot_after()
print(summary.cpu_user_ms, summary.memory_rss_bytes)
```

`is_own_pid`, `all_pids`, `child_count` and `remove` let collectors leave the
tracker's own processes out of their data. The `/proc` parsers
(`parse_proc_stat`, `parse_proc_io`, `parse_proc_status`) are usable on
their own.

## Profiles and progress

```python
from melisai.profiles import get_profile, profile_names
from melisai.progress import Progress

profile = get_profile("deep")         # unknown names give "standard"
print(profile.duration, profile.get_duration("stacks"), profile_names())

progress = Progress(enabled=True, verbose=False)
progress.log("collected %d categories", 4)
```

## What this package does not do

melisai does not gather measurements itself: it has no collectors that read
CPU, memory, disk or network statistics, no tracing tools, and nothing that
runs collectors on a schedule or in parallel. There is no command-line
program either. Reports are built by the calling code from data it collects
by its own means; melisai analyses, scores and encodes them.