"""Tests for the manual override layer."""

import pytest

from adapters.local.storage import InMemoryKeyValueStore
from vitals.domain.models import OrganLevel, ParameterRange
from vitals.services.overrides import OverrideLayer
from vitals.services.stores import KeyValueOverrideStore


class ChangeSpy:
    def __init__(self, store: KeyValueOverrideStore) -> None:
        self.store = store
        self.calls: list[tuple[str, int]] = []

    def __call__(self, patient_id: str) -> None:
        # Record how many overrides were durable when the callback fired
        self.calls.append((patient_id, len(self.store.load(patient_id))))


@pytest.fixture
def store() -> KeyValueOverrideStore:
    return KeyValueOverrideStore(InMemoryKeyValueStore())


@pytest.fixture
def spy(store: KeyValueOverrideStore) -> ChangeSpy:
    return ChangeSpy(store)


@pytest.fixture
def layer(store: KeyValueOverrideStore, spy: ChangeSpy, clock) -> OverrideLayer:
    return OverrideLayer(store, on_change=spy, clock=clock)


def computed() -> dict[str, ParameterRange]:
    return {
        "HR": ParameterRange(min=70, max=140, unit="bpm"),
        "BP_Mean": ParameterRange(min=40, max=70, unit="mmHg"),
    }


def test_override_takes_precedence(layer: OverrideLayer) -> None:
    layer.set_override("1", "HR", ParameterRange(min=100, max=110, unit="bpm"))

    final = layer.apply_overrides("1", computed())

    assert (final["HR"].min, final["HR"].max) == (100, 110)
    assert final["BP_Mean"] == computed()["BP_Mean"]


def test_no_overrides_passes_through(layer: OverrideLayer) -> None:
    assert layer.apply_overrides("1", computed()) == computed()


def test_set_override_notifies_after_save(layer: OverrideLayer, spy: ChangeSpy) -> None:
    layer.set_override("1", "HR", ParameterRange(min=100, max=110, unit="bpm"))

    assert spy.calls == [("1", 1)]


def test_set_override_records_source_and_time(layer: OverrideLayer, clock) -> None:
    override = layer.set_override("1", "SpO2", ParameterRange(min=88, max=96), source="nurse")

    assert override.source == "nurse"
    assert override.set_at == clock.now
    assert override.range.unit == "%"
    assert layer.list_overrides("1")["SpO2"] == override


def test_one_override_per_parameter(layer: OverrideLayer) -> None:
    layer.set_override("1", "HR", ParameterRange(min=100, max=110, unit="bpm"))
    layer.set_override("1", "HR", ParameterRange(min=90, max=120, unit="bpm"))

    overrides = layer.list_overrides("1")
    assert list(overrides) == ["HR"]
    assert overrides["HR"].range.min == 90


def test_unknown_parameter_is_rejected(layer: OverrideLayer, spy: ChangeSpy) -> None:
    with pytest.raises(ValueError, match="Unknown parameter"):
        layer.set_override("1", "GCS", ParameterRange(min=3, max=15))

    assert spy.calls == []


def test_inverted_override_is_rejected(layer: OverrideLayer) -> None:
    with pytest.raises(ValueError, match="min above max"):
        layer.set_override("1", "HR", ParameterRange(min=120, max=100, unit="bpm"))

    assert layer.list_overrides("1") == {}


def test_unset_override_is_skipped(layer: OverrideLayer) -> None:
    layer.set_override("1", "HR", ParameterRange.unset("bpm"))

    final = layer.apply_overrides("1", computed())

    assert final["HR"] == computed()["HR"]


def test_clear_overrides_returns_count(layer: OverrideLayer, spy: ChangeSpy) -> None:
    layer.set_override("1", "HR", ParameterRange(min=100, max=110, unit="bpm"))
    layer.set_override("1", "RR", ParameterRange(min=8, max=30, unit="/min"))

    removed = layer.clear_overrides("1", reason="matrix-change")

    assert removed == 2
    assert layer.list_overrides("1") == {}
    assert spy.calls[-1] == ("1", 0)


def test_clear_is_per_patient(layer: OverrideLayer) -> None:
    layer.set_override("1", "HR", ParameterRange(min=100, max=110, unit="bpm"))
    layer.set_override("2", "HR", ParameterRange(min=90, max=100, unit="bpm"))

    layer.clear_overrides("1", reason="tag:sepsis")

    assert layer.list_overrides("1") == {}
    assert "HR" in layer.list_overrides("2")


def test_clear_without_overrides(layer: OverrideLayer) -> None:
    assert layer.clear_overrides("1", reason="manual") == 0


def test_organ_override_wins(layer: OverrideLayer, spy: ChangeSpy) -> None:
    levels = {"circulatory": OrganLevel.HIGH, "respiratory": OrganLevel.MID}

    layer.set_organ_override("1", "circulatory", "low", source="physician")

    final = layer.apply_organ_overrides("1", levels)
    assert final == {"circulatory": OrganLevel.LOW, "respiratory": OrganLevel.MID}
    assert levels["circulatory"] == OrganLevel.HIGH
    assert spy.calls == [("1", 0)]


def test_organ_override_validation(layer: OverrideLayer) -> None:
    with pytest.raises(ValueError, match="Unknown organ"):
        layer.set_organ_override("1", "renal", OrganLevel.HIGH)
    with pytest.raises(ValueError):
        layer.set_organ_override("1", "respiratory", "extreme")

    assert layer.list_organ_overrides("1") == {}


def test_clear_overrides_counts_organ_overrides(layer: OverrideLayer) -> None:
    layer.set_override("1", "HR", ParameterRange(min=100, max=110, unit="bpm"))
    layer.set_organ_override("1", "temperature", OrganLevel.HIGH)

    assert layer.clear_overrides("1", reason="tag:copd") == 2
    assert layer.list_organ_overrides("1") == {}
