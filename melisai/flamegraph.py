"""Simple inline flame-graph SVG rendering and folded-stack output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from melisai.models import StackTrace

_WIDTH = 1200
_HEIGHT = 400
_FRAME_HEIGHT = 16
_FONT_SIZE = 12
_COLORS = (
    "#ff6633", "#ff8855", "#ffaa77", "#ffcc99",
    "#ff5533", "#ff7744", "#ff9966", "#ffbb88",
    "#e85533", "#e87744", "#e89966", "#eebb88",
)


@dataclass
class _Frame:
    name: str
    depth: int
    x_start: float
    x_width: float


def _header(title: str, total: int) -> str:
    return (
        '<?xml version="1.0" standalone="no"?>\n'
        '<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN" '
        '"http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd">\n'
        f'<svg version="1.1" width="{_WIDTH}" height="{_HEIGHT}" xmlns="http://www.w3.org/2000/svg">\n'
        "<style>\n"
        f"  .func {{ font-family: monospace; font-size: {_FONT_SIZE}px; }}\n"
        "  rect:hover { stroke: black; stroke-width: 1; }\n"
        "</style>\n"
        f'<text x="10" y="20" class="func" style="font-size:14px; font-weight:bold">'
        f"{title} — {total} samples</text>\n"
    )


def _frames(stacks: Sequence[StackTrace], total: int):
    x = 0.0
    for stack in stacks:
        width = stack.count / total * (_WIDTH - 20)
        for depth, name in enumerate(stack.stack.split(";")):
            yield _Frame(name=name, depth=depth, x_start=x + 10, x_width=width)
        x += width


def _label(name: str, width: float) -> str:
    max_chars = int(width / 7)
    if len(name) <= max_chars:
        return name
    return name[: max_chars - 2] + ".." if max_chars > 3 else ""


def generate_flamegraph_svg(stacks: Sequence[StackTrace], title: str) -> str:
    """Render folded stacks as a simplified flame-graph SVG; empty input gives ``""``."""
    if not stacks:
        return ""
    ordered = sorted(stacks, key=lambda s: s.stack)
    total = sum(s.count for s in ordered)

    parts = [_header(title, total)]
    if total > 0:
        for frame in _frames(ordered, total):
            if frame.x_width < 1:
                continue
            y = float(_HEIGHT - 30) - frame.depth * _FRAME_HEIGHT
            if y < 30:
                continue
            color = _COLORS[frame.depth % len(_COLORS)]
            parts.append(
                f'<rect x="{frame.x_start:.1f}" y="{y:.1f}" width="{frame.x_width:.1f}" '
                f'height="{_FRAME_HEIGHT - 1}" fill="{color}" rx="1"/>'
            )
            label = _label(frame.name, frame.x_width)
            if label:
                parts.append(
                    f'<text x="{frame.x_start + 2:.1f}" y="{y + _FRAME_HEIGHT - 3:.1f}" class="func">{label}</text>'
                )
            parts.append("\n")
    parts.append("</svg>\n")
    return "".join(parts)


def generate_folded(stacks: Sequence[StackTrace]) -> str:
    """Folded-stack text, one ``stack count`` line per stack."""
    return "".join(f"{s.stack} {s.count}\n" for s in stacks)