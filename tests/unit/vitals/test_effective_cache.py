"""Tests for the effective value cache."""

from datetime import datetime

import pytest

from vitals.domain.models import BaseContext, EffectiveValues
from vitals.services.effective_cache import EffectiveValueCache


class CountingCompute:
    def __init__(self, clock) -> None:
        self.clock = clock
        self.calls = 0

    def __call__(self, patient_id: str) -> EffectiveValues:
        self.calls += 1
        return EffectiveValues(
            patient_id=patient_id,
            parameter_ranges={},
            organ_levels={},
            active_tags=frozenset(),
            overrides={},
            base_context=BaseContext(
                problem_id=None, risk_level=None, matrix_ranges={}, matrix_organ_levels={}
            ),
            computed_at=self.clock(),
        )


@pytest.fixture
def compute(clock) -> CountingCompute:
    return CountingCompute(clock)


@pytest.fixture
def cache(compute: CountingCompute, clock) -> EffectiveValueCache:
    return EffectiveValueCache(compute, ttl_seconds=2.0, clock=clock)


def test_hit_returns_same_object(cache: EffectiveValueCache, compute: CountingCompute, clock) -> None:
    first = cache.get_effective_values("1")
    clock.advance(500)
    second = cache.get_effective_values("1")

    assert second is first
    assert compute.calls == 1
    assert cache.stats() == {"entries": 1, "hits": 1, "misses": 1}


def test_entry_expires_after_ttl(cache: EffectiveValueCache, compute: CountingCompute, clock) -> None:
    first = cache.get_effective_values("1")
    clock.advance(2000)
    second = cache.get_effective_values("1")

    assert second is not first
    assert second.computed_at > first.computed_at
    assert compute.calls == 2


def test_force_refresh_recomputes(cache: EffectiveValueCache, compute: CountingCompute, clock) -> None:
    cache.get_effective_values("1")
    clock.advance(1)

    cache.get_effective_values("1", force_refresh=True)

    assert compute.calls == 2


def test_invalidate_yields_later_computation(cache: EffectiveValueCache, clock) -> None:
    before: datetime = cache.get_effective_values("1").computed_at
    clock.advance(1)

    cache.invalidate("1")
    after = cache.get_effective_values("1").computed_at

    assert after > before


def test_entries_are_per_patient(cache: EffectiveValueCache, compute: CountingCompute) -> None:
    cache.get_effective_values("1")
    cache.get_effective_values("2")
    cache.invalidate("1")
    cache.get_effective_values("2")

    assert compute.calls == 2
    assert cache.stats()["entries"] == 1


def test_clear_drops_everything(cache: EffectiveValueCache) -> None:
    cache.get_effective_values("1")
    cache.get_effective_values("2")

    cache.clear()

    assert cache.stats()["entries"] == 0


def test_invalidate_unknown_patient_is_noop(cache: EffectiveValueCache) -> None:
    cache.invalidate("missing")
    assert cache.stats()["entries"] == 0
