"""
Condition tag delta engine.

Applies additive per-tag deltas to the matrix base. The accumulator always
starts from the base passed in, so toggling a tag off and on again can never
drift the result.
"""

from collections.abc import Iterable

import structlog

from vitals.domain.models import (
    AppliedAdjustment,
    OrganId,
    OrganLevel,
    ParameterId,
    ParameterRange,
    RiskLevel,
    TagAdjustmentResult,
    TagId,
)
from vitals.domain.rules import TAG_DELTAS, TagDelta

logger = structlog.get_logger(__name__)


class TagDeltaEngine:
    """Pure function of (active tags, base ranges, base organ levels, risk level)."""

    def __init__(self, deltas: dict[TagId, dict[RiskLevel, TagDelta]] | None = None) -> None:
        self.deltas = TAG_DELTAS if deltas is None else deltas
        self.logger = logger.bind(component="tag_delta_engine")

    def known_tags(self) -> tuple[TagId, ...]:
        return tuple(self.deltas)

    def ordered(self, active_tags: Iterable[TagId]) -> list[TagId]:
        """Table declaration order first, then any unknown tags alphabetically."""
        active = set(active_tags)
        known = [tag for tag in self.deltas if tag in active]
        unknown = sorted(active - set(self.deltas))
        return known + unknown

    def apply_tag_deltas(
        self,
        active_tags: Iterable[TagId],
        base_ranges: dict[ParameterId, ParameterRange],
        base_organ_levels: dict[OrganId, OrganLevel],
        risk_level: RiskLevel | str | None,
    ) -> TagAdjustmentResult:
        ranges = dict(base_ranges)
        organs = dict(base_organ_levels)
        applied: list[AppliedAdjustment] = []

        level = RiskLevel.parse(risk_level)
        if level is None:
            return TagAdjustmentResult(adjusted_ranges=ranges, adjusted_organ_levels=organs)

        for tag in self.ordered(active_tags):
            delta = self.deltas.get(tag, {}).get(level)
            if delta is None:
                self.logger.debug("tag_without_deltas", tag=tag, risk_level=level.value)
                continue

            for param, (min_delta, max_delta) in delta.range_deltas.items():
                current = ranges.get(param)
                if current is None or current.is_unset:
                    continue
                adjusted = current.shifted(min_delta, max_delta)
                if adjusted.min > adjusted.max:  # type: ignore[operator]
                    self.logger.warning(
                        "inverted_range_after_delta",
                        tag=tag,
                        parameter=param,
                        min=adjusted.min,
                        max=adjusted.max,
                    )
                ranges[param] = adjusted
                applied.append(
                    AppliedAdjustment(
                        tag=tag,
                        kind="range",
                        target=param,
                        min_delta=min_delta,
                        max_delta=max_delta,
                    )
                )

            for organ, steps in delta.organ_steps.items():
                current_level = organs.get(organ)
                if current_level is None:
                    continue
                organs[organ] = current_level.shifted(steps)
                applied.append(AppliedAdjustment(tag=tag, kind="organ", target=organ, steps=steps))

        return TagAdjustmentResult(
            adjusted_ranges=ranges,
            adjusted_organ_levels=organs,
            applied_adjustments=tuple(applied),
        )
