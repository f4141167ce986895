"""
Clinical rule tables.

Illustrative values only, not validated for clinical use. Every (problem, risk)
cell is written out explicitly; nothing here is interpolated.
"""

from pydantic import BaseModel, ConfigDict, Field

from vitals.domain.models import (
    PARAMETER_UNITS,
    MatrixResolution,
    OrganId,
    OrganLevel,
    ParameterId,
    ParameterRange,
    RiskLevel,
    TagId,
)

LOW, MID, HIGH = OrganLevel.LOW, OrganLevel.MID, OrganLevel.HIGH


def _cell(
    organs: tuple[OrganLevel, OrganLevel, OrganLevel],
    hr: tuple[float, float],
    bp_mean: tuple[float, float],
    spo2: tuple[float, float],
    rr: tuple[float, float],
    temp: tuple[float, float],
) -> MatrixResolution:
    bounds = {"HR": hr, "BP_Mean": bp_mean, "SpO2": spo2, "RR": rr, "Temp": temp}
    return MatrixResolution(
        ranges={
            param: ParameterRange(min=lo, max=hi, unit=PARAMETER_UNITS[param])
            for param, (lo, hi) in bounds.items()
        },
        organ_levels=dict(zip(("circulatory", "respiratory", "temperature"), organs)),
    )


# fmt: off
PROBLEM_MATRIX: dict[str, dict[RiskLevel, MatrixResolution]] = {
    "respiratory-insufficiency": {
        RiskLevel.LOW:  _cell((LOW, MID, LOW),    hr=(60, 110), bp_mean=(65, 90), spo2=(90, 100), rr=(10, 25), temp=(36.0, 38.5)),
        RiskLevel.MID:  _cell((MID, HIGH, LOW),   hr=(60, 110), bp_mean=(65, 85), spo2=(92, 100), rr=(10, 22), temp=(36.0, 38.5)),
        RiskLevel.HIGH: _cell((HIGH, HIGH, MID),  hr=(60, 100), bp_mean=(65, 85), spo2=(94, 100), rr=(12, 20), temp=(36.5, 38.0)),
    },
    "heart-failure": {
        RiskLevel.LOW:  _cell((MID, LOW, LOW),    hr=(60, 110), bp_mean=(60, 90), spo2=(90, 100), rr=(10, 25), temp=(36.0, 38.5)),
        RiskLevel.MID:  _cell((HIGH, MID, LOW),   hr=(60, 100), bp_mean=(65, 85), spo2=(90, 100), rr=(10, 25), temp=(36.0, 38.5)),
        RiskLevel.HIGH: _cell((HIGH, HIGH, MID),  hr=(60, 90),  bp_mean=(65, 80), spo2=(92, 100), rr=(12, 22), temp=(36.5, 38.0)),
    },
    "sepsis": {
        RiskLevel.LOW:  _cell((MID, MID, MID),    hr=(60, 110), bp_mean=(60, 85), spo2=(92, 100), rr=(10, 25), temp=(36.0, 38.5)),
        RiskLevel.MID:  _cell((HIGH, HIGH, HIGH), hr=(65, 115), bp_mean=(55, 80), spo2=(92, 100), rr=(10, 25), temp=(36.0, 38.5)),
        RiskLevel.HIGH: _cell((HIGH, HIGH, HIGH), hr=(70, 120), bp_mean=(50, 80), spo2=(92, 100), rr=(12, 25), temp=(36.0, 39.0)),
    },
    "neurological-disorder": {
        RiskLevel.LOW:  _cell((LOW, LOW, LOW),    hr=(50, 110), bp_mean=(65, 95),  spo2=(90, 100), rr=(10, 25), temp=(36.0, 38.5)),
        RiskLevel.MID:  _cell((MID, MID, MID),    hr=(50, 100), bp_mean=(70, 95),  spo2=(92, 100), rr=(10, 22), temp=(36.0, 38.0)),
        RiskLevel.HIGH: _cell((HIGH, HIGH, HIGH), hr=(50, 100), bp_mean=(80, 100), spo2=(94, 100), rr=(12, 20), temp=(36.0, 37.5)),
    },
    "renal-insufficiency": {
        RiskLevel.LOW:  _cell((LOW, LOW, LOW),    hr=(60, 110), bp_mean=(65, 90), spo2=(90, 100), rr=(10, 25), temp=(36.0, 38.5)),
        RiskLevel.MID:  _cell((MID, LOW, MID),    hr=(60, 100), bp_mean=(65, 90), spo2=(90, 100), rr=(10, 25), temp=(36.0, 38.5)),
        RiskLevel.HIGH: _cell((HIGH, MID, HIGH),  hr=(60, 100), bp_mean=(70, 90), spo2=(92, 100), rr=(10, 22), temp=(36.0, 38.0)),
    },
    "liver-failure": {
        RiskLevel.LOW:  _cell((LOW, LOW, LOW),    hr=(60, 110), bp_mean=(60, 90), spo2=(90, 100), rr=(10, 25), temp=(36.0, 38.5)),
        RiskLevel.MID:  _cell((MID, LOW, MID),    hr=(60, 110), bp_mean=(65, 85), spo2=(90, 100), rr=(10, 25), temp=(36.0, 38.5)),
        RiskLevel.HIGH: _cell((HIGH, MID, HIGH),  hr=(60, 100), bp_mean=(65, 85), spo2=(92, 100), rr=(10, 22), temp=(36.0, 38.0)),
    },
}
# fmt: on


class TagDelta(BaseModel):
    """Additive adjustments one condition tag applies at one risk level."""

    model_config = ConfigDict(frozen=True)

    range_deltas: dict[ParameterId, tuple[float, float]] = Field(default_factory=dict)
    organ_steps: dict[OrganId, int] = Field(default_factory=dict)


# Declaration order is the order tags are applied in
TAG_DELTAS: dict[TagId, dict[RiskLevel, TagDelta]] = {
    "sepsis": {
        RiskLevel.LOW: TagDelta(
            range_deltas={"HR": (10, 20), "BP_Mean": (-10, -10)},
            organ_steps={"circulatory": 1},
        ),
        RiskLevel.MID: TagDelta(
            range_deltas={"HR": (10, 20), "BP_Mean": (-10, -10)},
            organ_steps={"circulatory": 1},
        ),
        RiskLevel.HIGH: TagDelta(
            range_deltas={"HR": (0, 20), "BP_Mean": (-10, -10)},
            organ_steps={"circulatory": 1},
        ),
    },
    "pneumonia": {
        RiskLevel.LOW: TagDelta(range_deltas={"RR": (0, 5)}, organ_steps={"respiratory": 1}),
        RiskLevel.MID: TagDelta(range_deltas={"RR": (0, 5)}, organ_steps={"respiratory": 1}),
        RiskLevel.HIGH: TagDelta(
            range_deltas={"RR": (0, 5), "SpO2": (-2, 0)},
            organ_steps={"respiratory": 1},
        ),
    },
    "copd": {
        RiskLevel.LOW: TagDelta(range_deltas={"SpO2": (-2, -6), "RR": (0, 3)}),
        RiskLevel.MID: TagDelta(range_deltas={"SpO2": (-4, -8), "RR": (0, 3)}),
        RiskLevel.HIGH: TagDelta(
            range_deltas={"SpO2": (-6, -8), "RR": (0, 3)},
            organ_steps={"respiratory": 1},
        ),
    },
}
