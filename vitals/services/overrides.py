"""
Manual override layer.

Overrides have the highest precedence and are fragile: any systemic change
(problem, risk level, real tag transition) wipes all of a patient's overrides.
"""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from vitals.domain.models import (
    ORGANS,
    PARAMETER_UNITS,
    OrganId,
    OrganLevel,
    OrganOverride,
    Override,
    ParameterId,
    ParameterRange,
)
from vitals.services.stores import OverrideStore

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


class OverrideLayer:
    """Owns per-patient override maps: at most one override per parameter and per organ."""

    def __init__(
        self,
        store: OverrideStore,
        on_change: Callable[[str], None],
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.on_change = on_change
        self.clock = clock or (lambda: datetime.now(UTC))
        self.logger = logger.bind(component="override_layer")

    def list_overrides(self, patient_id: str) -> dict[ParameterId, Override]:
        return dict(self.store.load(patient_id))

    def apply_overrides(
        self, patient_id: str, computed_ranges: dict[ParameterId, ParameterRange]
    ) -> dict[ParameterId, ParameterRange]:
        """Copy each override's range verbatim over the computed range."""
        final = dict(computed_ranges)
        for parameter, override in self.store.load(patient_id).items():
            if override.range.is_unset:
                self.logger.debug("unset_override_skipped", patient_id=patient_id, parameter=parameter)
                continue
            final[parameter] = override.range
        return final

    def set_override(
        self,
        patient_id: str,
        parameter: ParameterId,
        range: ParameterRange,
        source: str = "manual",
    ) -> Override:
        if parameter not in PARAMETER_UNITS:
            raise ValueError(f"Unknown parameter: {parameter}")
        if not range.is_unset and range.min > range.max:  # type: ignore[operator]
            raise ValueError(f"Override for {parameter} has min above max: {range.min} > {range.max}")
        if not range.unit:
            range = range.model_copy(update={"unit": PARAMETER_UNITS[parameter]})

        override = Override(parameter=parameter, range=range, source=source, set_at=self.clock())
        overrides = dict(self.store.load(patient_id))
        overrides[parameter] = override
        self.store.save(patient_id, overrides)

        self.logger.info(
            "override_set",
            patient_id=patient_id,
            parameter=parameter,
            min=range.min,
            max=range.max,
            source=source,
        )
        self.on_change(patient_id)
        return override

    def list_organ_overrides(self, patient_id: str) -> dict[OrganId, OrganOverride]:
        return dict(self.store.load_organs(patient_id))

    def apply_organ_overrides(
        self, patient_id: str, computed_levels: dict[OrganId, OrganLevel]
    ) -> dict[OrganId, OrganLevel]:
        final = dict(computed_levels)
        for organ, override in self.store.load_organs(patient_id).items():
            final[organ] = override.level
        return final

    def set_organ_override(
        self,
        patient_id: str,
        organ: OrganId,
        level: OrganLevel | str,
        source: str = "manual",
    ) -> OrganOverride:
        """Pin an organ's monitoring level, bypassing matrix and tag adjustments."""
        if organ not in ORGANS:
            raise ValueError(f"Unknown organ: {organ}")
        override = OrganOverride(
            organ=organ, level=OrganLevel(level), source=source, set_at=self.clock()
        )
        overrides = dict(self.store.load_organs(patient_id))
        overrides[organ] = override
        self.store.save_organs(patient_id, overrides)

        self.logger.info(
            "organ_override_set",
            patient_id=patient_id,
            organ=organ,
            level=override.level.value,
            source=source,
        )
        self.on_change(patient_id)
        return override

    def clear_overrides(self, patient_id: str, reason: str) -> int:
        """Drop every range and organ override for the patient. Returns how many were removed."""
        removed = len(self.store.load(patient_id)) + len(self.store.load_organs(patient_id))
        self.store.save(patient_id, {})
        self.store.save_organs(patient_id, {})
        if removed:
            self.logger.info("overrides_cleared", patient_id=patient_id, count=removed, reason=reason)
        self.on_change(patient_id)
        return removed
