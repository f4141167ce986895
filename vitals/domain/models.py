"""
Domain models for vital-sign threshold derivation.

These models represent the core clinical concepts and are framework-agnostic.
They use Pydantic for validation; every model is frozen so no pipeline step can
edit data owned by another step.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Identifiers are plain strings so payloads and stored JSON round-trip without enum keys
ParameterId = str
OrganId = str
TagId = str

UNSET: Literal["unset"] = "unset"
Bound = float | Literal["unset"]

PARAMETER_UNITS: dict[ParameterId, str] = {
    "HR": "bpm",
    "BP_Mean": "mmHg",
    "SpO2": "%",
    "RR": "/min",
    "Temp": "°C",
}

ORGANS: tuple[OrganId, ...] = ("circulatory", "respiratory", "temperature")

DataSource = Literal["matrix", "tag-adjusted", "manual-override"]
ChangeType = Literal["matrix-change", "tag-adjustment", "manual-override"]


class RiskLevel(str, Enum):
    """Risk level selected for the patient's primary problem."""

    LOW = "low"
    MID = "mid"
    HIGH = "high"

    @classmethod
    def parse(cls, value: "RiskLevel | str | None") -> "RiskLevel | None":
        """Return the matching level, or None for absent or unknown input."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class OrganLevel(str, Enum):
    """Monitoring intensity for one organ system, ordered low < mid < high."""

    LOW = "low"
    MID = "mid"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return list(OrganLevel).index(self)

    def shifted(self, steps: int) -> "OrganLevel":
        """Move ``steps`` along the order, clamped at both ends."""
        levels = list(OrganLevel)
        index = max(0, min(len(levels) - 1, self.rank + steps))
        return levels[index]


class ParameterRange(BaseModel):
    """Alarm range for one vital parameter."""

    model_config = ConfigDict(frozen=True)

    min: Bound
    max: Bound
    unit: str = ""

    @classmethod
    def unset(cls, unit: str = "") -> "ParameterRange":
        return cls(min=UNSET, max=UNSET, unit=unit)

    @property
    def is_unset(self) -> bool:
        return self.min == UNSET or self.max == UNSET

    def shifted(self, min_delta: float, max_delta: float) -> "ParameterRange":
        """Return a new range with both bounds moved. Unset ranges are returned as-is."""
        if self.is_unset:
            return self
        return ParameterRange(
            min=float(self.min) + min_delta,  # type: ignore[arg-type]
            max=float(self.max) + max_delta,  # type: ignore[arg-type]
            unit=self.unit,
        )


class Override(BaseModel):
    """Manually set range for a single parameter."""

    model_config = ConfigDict(frozen=True)

    parameter: ParameterId
    range: ParameterRange
    source: str = Field(default="manual", description="Who or what set the override")
    set_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class OrganOverride(BaseModel):
    """Manually set monitoring level for one organ system."""

    model_config = ConfigDict(frozen=True)

    organ: OrganId
    level: OrganLevel
    source: str = Field(default="manual", description="Who or what set the override")
    set_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class PatientContext(BaseModel):
    """Selection state of a patient as kept by the medical record store."""

    model_config = ConfigDict(frozen=True)

    problem_id: str | None = None
    risk_level: RiskLevel | None = None
    active_tags: frozenset[TagId] = Field(default_factory=frozenset)
    bed_number: str | None = None


class MatrixResolution(BaseModel):
    """Base ranges and organ levels for one (problem, risk level) cell."""

    model_config = ConfigDict(frozen=True)

    ranges: dict[ParameterId, ParameterRange]
    organ_levels: dict[OrganId, OrganLevel]

    @property
    def is_complete(self) -> bool:
        return not any(r.is_unset for r in self.ranges.values())


class AppliedAdjustment(BaseModel):
    """One delta applied by a condition tag, kept for traceability."""

    model_config = ConfigDict(frozen=True)

    tag: TagId
    kind: Literal["range", "organ"]
    target: str
    min_delta: float = 0.0
    max_delta: float = 0.0
    steps: int = 0


class TagAdjustmentResult(BaseModel):
    """Output of the tag delta engine."""

    model_config = ConfigDict(frozen=True)

    adjusted_ranges: dict[ParameterId, ParameterRange]
    adjusted_organ_levels: dict[OrganId, OrganLevel]
    applied_adjustments: tuple[AppliedAdjustment, ...] = ()


class BaseContext(BaseModel):
    """Inputs the effective values were derived from."""

    model_config = ConfigDict(frozen=True)

    problem_id: str | None
    risk_level: RiskLevel | None
    matrix_ranges: dict[ParameterId, ParameterRange]
    matrix_organ_levels: dict[OrganId, OrganLevel]


class EffectiveValues(BaseModel):
    """Fully resolved thresholds and organ levels for one patient."""

    model_config = ConfigDict(frozen=True)

    patient_id: str
    parameter_ranges: dict[ParameterId, ParameterRange]
    organ_levels: dict[OrganId, OrganLevel]
    active_tags: frozenset[TagId]
    overrides: dict[ParameterId, Override]
    organ_overrides: dict[OrganId, OrganOverride] = Field(default_factory=dict)
    base_context: BaseContext
    applied_adjustments: tuple[AppliedAdjustment, ...] = ()
    data_source: DataSource = "matrix"
    bed_number: str | None = None
    computed_at: datetime


class CacheEntry(BaseModel):
    """Memoized effective values."""

    model_config = ConfigDict(frozen=True)

    values: EffectiveValues
    computed_at: datetime


class ToggleResult(BaseModel):
    """Outcome of a condition tag transition request."""

    model_config = ConfigDict(frozen=True)

    changed: bool
    patient_id: str
    tag_id: TagId
    previous_state: bool
    state: bool
    effective_values: EffectiveValues | None = None
    notified: bool = False


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class RiskLevels(_CamelModel):
    circulatory: OrganLevel
    respiratory: OrganLevel
    temperature: OrganLevel


class ThresholdMessage(_CamelModel):
    """Outbound ``thresholds-changed`` payload."""

    patient_id: str
    bed_number: str | None = None
    change_type: ChangeType
    risk_levels: RiskLevels
    thresholds: dict[ParameterId, ParameterRange]
    data_source: DataSource
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
