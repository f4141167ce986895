"""
Tests for the condition tag delta engine.

Covers:
- The sepsis/high scenario on top of the matrix base
- Inputs are never mutated
- Unset ranges pass through untouched
- Organ level clamping and order independence (property based)
- Additive composition of several tags
"""

from hypothesis import given
from hypothesis import strategies as st

from vitals.domain.models import OrganLevel, ParameterRange, RiskLevel
from vitals.domain.rules import TagDelta
from vitals.services.rule_matrix import UNSET_RESOLUTION, RuleMatrix
from vitals.services.tag_deltas import TagDeltaEngine

engine = TagDeltaEngine()
matrix = RuleMatrix()


def test_sepsis_tag_on_sepsis_high() -> None:
    base = matrix.resolve("sepsis", RiskLevel.HIGH)

    result = engine.apply_tag_deltas({"sepsis"}, base.ranges, base.organ_levels, RiskLevel.HIGH)

    hr = result.adjusted_ranges["HR"]
    bp = result.adjusted_ranges["BP_Mean"]
    assert (hr.min, hr.max) == (70, 140)
    assert (bp.min, bp.max) == (40, 70)
    assert result.adjusted_organ_levels["circulatory"] == OrganLevel.HIGH
    assert {a.target for a in result.applied_adjustments} == {"HR", "BP_Mean", "circulatory"}


def test_base_is_not_mutated() -> None:
    base = matrix.resolve("heart-failure", RiskLevel.LOW)
    ranges_before = dict(base.ranges)
    organs_before = dict(base.organ_levels)

    engine.apply_tag_deltas({"sepsis", "pneumonia"}, base.ranges, base.organ_levels, RiskLevel.LOW)

    assert base.ranges == ranges_before
    assert base.organ_levels == organs_before
    assert matrix.resolve("heart-failure", RiskLevel.LOW).ranges["HR"].max == 110


def test_no_tags_returns_base_values() -> None:
    base = matrix.resolve("sepsis", RiskLevel.MID)

    result = engine.apply_tag_deltas(set(), base.ranges, base.organ_levels, RiskLevel.MID)

    assert result.adjusted_ranges == base.ranges
    assert result.adjusted_organ_levels == base.organ_levels
    assert result.applied_adjustments == ()


def test_unset_ranges_are_skipped() -> None:
    result = engine.apply_tag_deltas(
        {"sepsis"}, UNSET_RESOLUTION.ranges, UNSET_RESOLUTION.organ_levels, RiskLevel.HIGH
    )

    assert all(rng.is_unset for rng in result.adjusted_ranges.values())
    # Organ steps still apply; only ranges depend on a concrete base
    assert result.adjusted_organ_levels["circulatory"] == OrganLevel.MID
    assert all(a.kind == "organ" for a in result.applied_adjustments)


def test_missing_risk_level_applies_nothing() -> None:
    base = matrix.resolve("sepsis", RiskLevel.HIGH)

    result = engine.apply_tag_deltas({"sepsis"}, base.ranges, base.organ_levels, None)

    assert result.adjusted_ranges == base.ranges
    assert result.applied_adjustments == ()


def test_unknown_tag_is_ignored() -> None:
    base = matrix.resolve("sepsis", RiskLevel.HIGH)

    result = engine.apply_tag_deltas({"delirium"}, base.ranges, base.organ_levels, RiskLevel.HIGH)

    assert result.adjusted_ranges == base.ranges
    assert engine.ordered({"delirium", "copd", "sepsis"}) == ["sepsis", "copd", "delirium"]


def test_deltas_compose_additively() -> None:
    custom = TagDeltaEngine(
        {
            "a": {RiskLevel.MID: TagDelta(range_deltas={"HR": (5, 10)})},
            "b": {RiskLevel.MID: TagDelta(range_deltas={"HR": (-2, 3)})},
        }
    )
    base = {"HR": ParameterRange(min=60, max=100, unit="bpm")}

    result = custom.apply_tag_deltas({"a", "b"}, base, {}, RiskLevel.MID)

    assert (result.adjusted_ranges["HR"].min, result.adjusted_ranges["HR"].max) == (63, 113)


def test_inverted_range_is_kept() -> None:
    custom = TagDeltaEngine({"squeeze": {RiskLevel.LOW: TagDelta(range_deltas={"RR": (20, -20)})}})
    base = {"RR": ParameterRange(min=10, max=25, unit="/min")}

    result = custom.apply_tag_deltas({"squeeze"}, base, {}, RiskLevel.LOW)

    assert (result.adjusted_ranges["RR"].min, result.adjusted_ranges["RR"].max) == (30, 5)


organ_levels = st.sampled_from(list(OrganLevel))
risk_levels = st.sampled_from(list(RiskLevel))
tag_sets = st.sets(st.sampled_from(engine.known_tags()))


@given(
    circulatory=organ_levels,
    respiratory=organ_levels,
    temperature=organ_levels,
    risk=risk_levels,
    tags=tag_sets,
)
def test_organ_levels_stay_in_bounds(
    circulatory: OrganLevel,
    respiratory: OrganLevel,
    temperature: OrganLevel,
    risk: RiskLevel,
    tags: set[str],
) -> None:
    organs = {"circulatory": circulatory, "respiratory": respiratory, "temperature": temperature}
    base = matrix.resolve("sepsis", risk)

    result = engine.apply_tag_deltas(tags, base.ranges, organs, risk)

    for organ, level in result.adjusted_organ_levels.items():
        assert level in OrganLevel
        assert level.rank >= organs[organ].rank


@given(tags=st.lists(st.sampled_from(engine.known_tags()), unique=True), risk=risk_levels)
def test_result_does_not_depend_on_input_order(tags: list[str], risk: RiskLevel) -> None:
    base = matrix.resolve("respiratory-insufficiency", risk)

    forward = engine.apply_tag_deltas(tags, base.ranges, base.organ_levels, risk)
    backward = engine.apply_tag_deltas(list(reversed(tags)), base.ranges, base.organ_levels, risk)

    assert forward == backward
