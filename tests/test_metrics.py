from __future__ import annotations

import warnings

from next_to_start.context import RunContext
from next_to_start.metrics import MIGRATION_IMPACT, MetricAtom, MetricRegistry


def test_metric_atom_counts_by_label_set() -> None:
    atom = MetricAtom("migration-impact")
    atom.increment({"bucket": "automated", "effort": "low"})
    atom.increment({"bucket": "automated", "effort": "low"}, 2)
    atom.increment({"bucket": "blocked", "effort": None})
    assert atom.total(bucket="automated") == 3
    assert atom.total(bucket="blocked") == 1
    assert atom.total() == 4
    entries = [entry.as_json() for entry in atom.entries()]
    assert {"cardinality": {"bucket": "blocked"}, "count": 1} in entries


def test_registry_reuses_atoms() -> None:
    registry = MetricRegistry()
    assert registry.atom("x") is registry.atom("x")
    registry.atom("x").increment({"bucket": "manual"})
    assert registry.as_json() == {"x": [{"cardinality": {"bucket": "manual"}, "count": 1}]}


def test_run_context_exposes_migration_metric() -> None:
    ctx = RunContext(environ={})
    assert ctx.migration_metric is ctx.metrics.atom(MIGRATION_IMPACT)


def test_warn_once_latches_per_key() -> None:
    ctx = RunContext(environ={})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        assert ctx.warn_once("delete", "first")
        assert not ctx.warn_once("delete", "again")
        assert ctx.warn_once("config", "other")
    assert [str(item.message) for item in caught] == ["first", "other"]
