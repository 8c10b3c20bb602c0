"""Named collection profiles: how long to collect and which collectors to run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class ProfileConfig:
    """Collection parameters of a named profile.

    ``collectors`` is a list of collector names, or ``("all",)`` for every
    available collector. ``focus_duration`` extends the duration for
    particular focus areas; ``extra`` names additional collectors for deep runs.
    """

    duration: timedelta
    collectors: tuple[str, ...] = ()
    focus_duration: Mapping[str, timedelta] = field(default_factory=lambda: MappingProxyType({}))
    extra: tuple[str, ...] = ()

    def get_duration(self, focus_area: str) -> timedelta:
        """Duration for ``focus_area``, falling back to the profile's default."""
        return self.focus_duration.get(focus_area, self.duration)


_PROFILES: Mapping[str, ProfileConfig] = MappingProxyType(
    {
        "quick": ProfileConfig(
            duration=timedelta(seconds=10),
            collectors=(
                "cpu_utilization",
                "memory_info",
                "disk_stats",
                "network_stats",
                "system_info",
                "process_info",
                "biolatency",
                "tcpretrans",
                "opensnoop",
                "oomkill",
            ),
        ),
        "standard": ProfileConfig(
            duration=timedelta(seconds=30),
            collectors=("all",),
            focus_duration=MappingProxyType(
                {
                    "stacks": timedelta(seconds=15),
                    "network": timedelta(seconds=30),
                    "disk": timedelta(seconds=30),
                }
            ),
        ),
        "deep": ProfileConfig(
            duration=timedelta(seconds=60),
            collectors=("all",),
            focus_duration=MappingProxyType(
                {
                    "stacks": timedelta(seconds=30),
                    "network": timedelta(seconds=60),
                    "disk": timedelta(seconds=60),
                }
            ),
            extra=(
                "memleak",
                "offwaketime",
                "biostacks",
                "wakeuptime",
                "biotop",
                "tcpstates",
                "tcplife",
            ),
        ),
    }
)


def get_profile(name: str) -> ProfileConfig:
    """Profile called ``name``; unknown names fall back to ``standard``."""
    return _PROFILES.get(name, _PROFILES["standard"])


def profile_names() -> list[str]:
    """Names of the built-in profiles."""
    return ["quick", "standard", "deep"]