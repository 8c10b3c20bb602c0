"""Writing a report as indented JSON."""

from __future__ import annotations

import json
import sys
from dataclasses import fields, is_dataclass
from datetime import datetime
from typing import Any, Mapping

from melisai.models import Report, to_dict


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (bool, int, float, str, list, tuple, dict)):
        return not value
    return False


def _prepare(obj: Any) -> Any:
    """JSON-ready values: map keys sorted, integral floats written without a fraction."""
    if is_dataclass(obj) and not isinstance(obj, type):
        out: dict[str, Any] = {}
        for f in fields(obj):
            value = getattr(obj, f.name)
            if f.metadata.get("omitempty") and _is_empty(value):
                continue
            out[f.metadata.get("json") or f.name] = _prepare(value)
        return out
    if isinstance(obj, datetime):
        return to_dict(obj)
    if isinstance(obj, Mapping):
        return {str(k): _prepare(obj[k]) for k in sorted(obj, key=str)}
    if isinstance(obj, (list, tuple)):
        return [_prepare(v) for v in obj]
    if isinstance(obj, float) and obj.is_integer() and abs(obj) < 1e21:
        return int(obj)
    return obj


def _encode(report: Report) -> str:
    try:
        text = json.dumps(_prepare(report), indent=2, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"encode JSON: {exc}") from exc
    return text.replace("\u2028", "\\u2028").replace("\u2029", "\\u2029") + "\n"


def write_json(report: Report, path: str = "-") -> None:
    """Write ``report`` as indented JSON to ``path``; ``"-"`` or ``""`` means stdout.

    Raises OSError when the file cannot be created and ValueError when the
    report holds values JSON cannot represent.
    """
    if not path or path == "-":
        sys.stdout.write(_encode(report))
        return
    with open(path, "w", encoding="utf-8") as out:
        out.write(_encode(report))