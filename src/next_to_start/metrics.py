"""In-process metric sink for migration impact counters."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Mapping

MIGRATION_IMPACT = "migration-impact"

BUCKETS: tuple[str, ...] = ("automated", "manual", "blocked")
EFFORTS: tuple[str, ...] = ("low", "medium", "high")

Cardinality = Mapping[str, "str | None"]


@dataclass(frozen=True)
class MetricEntry:
    cardinality: dict[str, str]
    count: int

    def as_json(self) -> dict[str, object]:
        return {"cardinality": dict(self.cardinality), "count": self.count}


def _label_key(cardinality: Cardinality | None) -> tuple[tuple[str, str], ...]:
    if not cardinality:
        return ()
    return tuple(
        sorted(
            (str(name), str(value))
            for name, value in cardinality.items()
            if value is not None
        )
    )


@dataclass
class MetricAtom:
    """Counter keyed by label set.

    Purely observational: nothing in the pipeline reads these values to make
    decisions.
    """

    name: str
    _counts: dict[tuple[tuple[str, str], ...], int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def increment(self, cardinality: Cardinality | None = None, amount: int = 1) -> None:
        key = _label_key(cardinality)
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + int(amount)

    def entries(self) -> list[MetricEntry]:
        with self._lock:
            items = sorted(self._counts.items())
        return [MetricEntry(cardinality=dict(key), count=count) for key, count in items]

    def total(self, **labels: str) -> int:
        wanted = set(labels.items())
        with self._lock:
            return sum(
                count for key, count in self._counts.items() if wanted.issubset(key)
            )


@dataclass
class MetricRegistry:
    _atoms: dict[str, MetricAtom] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def atom(self, name: str) -> MetricAtom:
        with self._lock:
            existing = self._atoms.get(name)
            if existing is None:
                existing = MetricAtom(name=name)
                self._atoms[name] = existing
            return existing

    def as_json(self) -> dict[str, list[dict[str, object]]]:
        with self._lock:
            atoms = sorted(self._atoms.items())
        return {name: [entry.as_json() for entry in atom.entries()] for name, atom in atoms}
