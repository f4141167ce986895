"""
Condition tag state machine.

Each (patient, tag) pair is ACTIVE or INACTIVE, initially INACTIVE. Requesting
the current state is a no-op; only a real transition clears overrides,
recomputes from the matrix base and notifies.
"""

from collections.abc import Iterable

import structlog

from vitals.domain.models import TagId, ToggleResult
from vitals.services.effective_cache import EffectiveValueCache
from vitals.services.overrides import OverrideLayer
from vitals.services.publisher import ChangePublisher
from vitals.services.stores import TagStore

logger = structlog.get_logger(__name__)


class ConditionTagStateMachine:
    def __init__(
        self,
        tag_store: TagStore,
        overrides: OverrideLayer,
        cache: EffectiveValueCache,
        publisher: ChangePublisher,
        known_tags: Iterable[TagId] | None = None,
    ) -> None:
        self.tag_store = tag_store
        self.overrides = overrides
        self.cache = cache
        self.publisher = publisher
        self.known_tags = None if known_tags is None else frozenset(known_tags)
        self.logger = logger.bind(component="condition_tags")

    def state(self, patient_id: str, tag_id: TagId) -> bool:
        return self.tag_store.get_tag_state(patient_id, tag_id)

    def toggle(self, patient_id: str, tag_id: TagId, desired_state: bool) -> ToggleResult:
        if self.known_tags is not None and tag_id not in self.known_tags:
            raise ValueError(f"Unknown condition tag: {tag_id}")

        # Always read the stored state; re-entrant callers must not act on a stale value
        current = self.tag_store.get_tag_state(patient_id, tag_id)
        if current == desired_state:
            self.logger.debug(
                "tag_toggle_skipped", patient_id=patient_id, tag=tag_id, state=desired_state
            )
            return ToggleResult(
                changed=False,
                patient_id=patient_id,
                tag_id=tag_id,
                previous_state=current,
                state=current,
            )

        # Phase 1: persist, then wipe overrides because this is a systemic change
        self.tag_store.set_tag_state(patient_id, tag_id, desired_state)
        self.overrides.clear_overrides(patient_id, reason=f"tag:{tag_id}")

        # Phase 2: recompute from the matrix base with the full current tag set
        self.cache.invalidate(patient_id)
        values = self.cache.get_effective_values(patient_id, force_refresh=True)

        self.logger.info(
            "tag_toggled",
            patient_id=patient_id,
            tag=tag_id,
            state=desired_state,
            active_tags=sorted(values.active_tags),
        )

        # Phases 3 and 4
        notified = self.publisher.publish(values, "tag-adjustment")

        return ToggleResult(
            changed=True,
            patient_id=patient_id,
            tag_id=tag_id,
            previous_state=current,
            state=desired_state,
            effective_values=values,
            notified=notified,
        )
