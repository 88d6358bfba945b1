"""
Lightweight in-process counters for resolutions and probe steps.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any

_counters = Counter()
_outcomes = defaultdict(Counter)
_probe_hits = Counter()


def record_resolution(routing_class: str, outcome: str) -> None:
    """outcome: "found", "not_found" or "error"."""
    _counters["resolution_total"] += 1
    _outcomes[routing_class or "unknown"][outcome] += 1


def record_probe_hit(step: str) -> None:
    _probe_hits[step or "unknown"] += 1


def record_rejection(reason: str) -> None:
    _counters[f"rejected_{reason}"] += 1


def snapshot() -> dict[str, Any]:
    return {
        "counters": dict(_counters),
        "outcomes": {k: dict(v) for k, v in _outcomes.items()},
        "probe_hits": dict(_probe_hits),
    }


def reset() -> None:
    _counters.clear()
    _outcomes.clear()
    _probe_hits.clear()
