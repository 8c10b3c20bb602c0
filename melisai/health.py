"""Overall 0-100 health score derived from USE metrics and anomalies."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

from melisai.models import Anomaly, USEMetric

_WEIGHTS = {
    "cpu": 1.5,
    "memory": 1.5,
    "disk": 1.0,
    "network": 1.0,
    "container_cpu": 1.2,
    "container_memory": 1.2,
}

_ANOMALY_PENALTY = {"critical": 10, "warning": 5}


def resource_weight(resource: str) -> float:
    """Importance weight of a resource; unknown resources weigh 0.5."""
    return _WEIGHTS.get(resource, 0.5)


def _utilization_points(value: float) -> int:
    if value >= 95:
        return 15
    if value >= 85:
        return 8
    if value >= 70:
        return 3
    return 0


def _saturation_points(value: float) -> int:
    if value > 50:
        return 15
    if value > 10:
        return 8
    if value > 1:
        return 3
    return 0


def _error_points(value: int) -> int:
    if value > 1000:
        return 10
    if value > 100:
        return 5
    if value > 0:
        return 2
    return 0


def compute_health_score(
    resources: Mapping[str, USEMetric],
    anomalies: Optional[Iterable[Anomaly]] = None,
) -> int:
    """Score from 100 (healthy) down to 0 (critical)."""
    score = 100
    for resource, use in resources.items():
        weight = resource_weight(resource)
        for points in (
            _utilization_points(use.utilization),
            _saturation_points(use.saturation),
            _error_points(use.errors),
        ):
            if points:
                score -= int(points * weight)

    for anomaly in anomalies or ():
        score -= _ANOMALY_PENALTY.get(anomaly.severity, 0)

    return max(0, min(100, score))