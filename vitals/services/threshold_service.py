"""
Threshold service: the single entry point UI and API layers talk to.

Orchestrates the derivation pipeline:
1. Mutate and persist the relevant input (context, tag state, overrides)
2. Invalidate the cache and recompute RuleMatrix -> TagDeltaEngine -> OverrideLayer
3. Run local change listeners
4. Emit a deduplicated external notification

Each mutation runs these phases in order, synchronously, for one patient.
"""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from vitals.config import AppConfig, get_config, get_timing_config
from vitals.domain.models import (
    BaseContext,
    ChangeType,
    DataSource,
    EffectiveValues,
    OrganId,
    OrganLevel,
    OrganOverride,
    Override,
    ParameterId,
    ParameterRange,
    PatientContext,
    RiskLevel,
    TagId,
    ToggleResult,
)
from vitals.services.condition_tags import ConditionTagStateMachine
from vitals.services.effective_cache import EffectiveValueCache
from vitals.services.notifier import ChangeNotifier, NotificationChannel
from vitals.services.overrides import OverrideLayer
from vitals.services.publisher import ChangeListener, ChangePublisher
from vitals.services.rule_matrix import RuleMatrix
from vitals.services.stores import MedicalRecordStore, OverrideStore, TagStore
from vitals.services.tag_deltas import TagDeltaEngine

logger = structlog.get_logger(__name__)


class ThresholdService:
    """
    Wires the pipeline components for a set of patients.

    All state lives in the injected stores; the service holds no per-patient
    values besides the short-lived cache.
    """

    def __init__(
        self,
        records: MedicalRecordStore,
        tags: TagStore,
        override_store: OverrideStore,
        channel: NotificationChannel,
        config: AppConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        matrix: RuleMatrix | None = None,
        tag_engine: TagDeltaEngine | None = None,
    ) -> None:
        self.config = config or get_config()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.logger = logger.bind(component="threshold_service")

        self.records = records
        self.tags = tags
        self.matrix = matrix or RuleMatrix()
        self.tag_engine = tag_engine or TagDeltaEngine()

        timing = get_timing_config(self.config)
        self.cache = EffectiveValueCache(
            compute=self._compute,
            ttl_seconds=timing["cache_ttl_seconds"],
            clock=self.clock,
        )
        self.overrides = OverrideLayer(override_store, on_change=self.cache.invalidate, clock=self.clock)
        self.notifier = ChangeNotifier(
            channel,
            window_seconds=timing["dedup_window_seconds"],
            max_fingerprints=timing["max_fingerprints"],
            clock=self.clock,
        )
        self.publisher = ChangePublisher(self.notifier)
        self.condition_tags = ConditionTagStateMachine(
            tags,
            self.overrides,
            self.cache,
            self.publisher,
            known_tags=self.tag_engine.known_tags(),
        )

    def _compute(self, patient_id: str) -> EffectiveValues:
        """Run the full pipeline from the stored inputs."""
        context = self.records.get_context(patient_id)
        active_tags = self.tags.active_tags(patient_id)
        overrides = self.overrides.list_overrides(patient_id)
        organ_overrides = self.overrides.list_organ_overrides(patient_id)

        base = self.matrix.resolve(context.problem_id, context.risk_level)
        adjusted = self.tag_engine.apply_tag_deltas(
            active_tags, base.ranges, base.organ_levels, context.risk_level
        )
        final_ranges = self.overrides.apply_overrides(patient_id, adjusted.adjusted_ranges)
        final_organs = self.overrides.apply_organ_overrides(patient_id, adjusted.adjusted_organ_levels)

        data_source: DataSource = "matrix"
        if organ_overrides or any(not o.range.is_unset for o in overrides.values()):
            data_source = "manual-override"
        elif adjusted.applied_adjustments:
            data_source = "tag-adjusted"

        return EffectiveValues(
            patient_id=patient_id,
            parameter_ranges=final_ranges,
            organ_levels=final_organs,
            active_tags=active_tags,
            overrides=overrides,
            organ_overrides=organ_overrides,
            base_context=BaseContext(
                problem_id=context.problem_id,
                risk_level=context.risk_level,
                matrix_ranges=base.ranges,
                matrix_organ_levels=base.organ_levels,
            ),
            applied_adjustments=adjusted.applied_adjustments,
            data_source=data_source,
            bed_number=context.bed_number,
            computed_at=self.clock(),
        )

    def _recompute_and_publish(self, patient_id: str, change_type: ChangeType) -> EffectiveValues:
        self.cache.invalidate(patient_id)
        values = self.cache.get_effective_values(patient_id, force_refresh=True)
        self.publisher.publish(values, change_type)
        return values

    def get_context(self, patient_id: str) -> PatientContext:
        context = self.records.get_context(patient_id)
        return context.model_copy(update={"active_tags": self.tags.active_tags(patient_id)})

    def get_effective_values(self, patient_id: str, force_refresh: bool = False) -> EffectiveValues:
        return self.cache.get_effective_values(patient_id, force_refresh=force_refresh)

    def toggle_condition_tag(self, patient_id: str, tag_id: TagId, desired: bool) -> ToggleResult:
        return self.condition_tags.toggle(patient_id, tag_id, desired)

    def set_manual_override(
        self,
        patient_id: str,
        parameter: ParameterId,
        range: ParameterRange,
        source: str = "manual",
    ) -> Override:
        override = self.overrides.set_override(patient_id, parameter, range, source)
        self._recompute_and_publish(patient_id, "manual-override")
        return override

    def set_organ_override(
        self,
        patient_id: str,
        organ: OrganId,
        level: OrganLevel | str,
        source: str = "manual",
    ) -> OrganOverride:
        """Set an organ monitoring level by hand. Cleared like any other override."""
        override = self.overrides.set_organ_override(patient_id, organ, level, source)
        self._recompute_and_publish(patient_id, "manual-override")
        return override

    def clear_manual_overrides(self, patient_id: str, reason: str = "manual") -> None:
        removed = self.overrides.clear_overrides(patient_id, reason=reason)
        if removed:
            self._recompute_and_publish(patient_id, "manual-override")

    def set_problem_and_risk(
        self, patient_id: str, problem_id: str | None, risk_level: RiskLevel | str | None
    ) -> None:
        """Select the primary problem and risk level. A real change wipes all overrides."""
        level = None if risk_level is None else RiskLevel(risk_level)
        context = self.records.get_context(patient_id)
        if context.problem_id == problem_id and context.risk_level == level:
            self.logger.debug("problem_and_risk_unchanged", patient_id=patient_id)
            return

        self.records.set_context(
            patient_id, context.model_copy(update={"problem_id": problem_id, "risk_level": level})
        )
        self.overrides.clear_overrides(patient_id, reason="matrix-change")
        self.logger.info(
            "problem_and_risk_set",
            patient_id=patient_id,
            problem_id=problem_id,
            risk_level=None if level is None else level.value,
        )
        self._recompute_and_publish(patient_id, "matrix-change")

    def set_bed_number(self, patient_id: str, bed_number: str | None) -> None:
        """Record where the patient lies. Not a systemic change; overrides survive."""
        context = self.records.get_context(patient_id)
        self.records.set_context(patient_id, context.model_copy(update={"bed_number": bed_number}))
        self.cache.invalidate(patient_id)

    def subscribe(self, listener: ChangeListener) -> None:
        self.publisher.subscribe(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        self.publisher.unsubscribe(listener)
