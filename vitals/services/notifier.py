"""
Change notifier with fingerprint-window deduplication.

Redundant recomputation must not flood the external channel: semantically
identical messages inside the dedup window are delivered at most once.
"""

import hashlib
import json
from collections import OrderedDict
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import structlog

from vitals.domain.models import (
    ORGANS,
    ChangeType,
    EffectiveValues,
    RiskLevels,
    ThresholdMessage,
)

logger = structlog.get_logger(__name__)

THRESHOLDS_CHANGED = "thresholds-changed"

# Payload keys that identify a message; everything else is noise for dedup purposes
IDENTIFYING_FIELDS = ("patientId", "bedNumber")
THRESHOLD_CONTENT_FIELDS = ("changeType", "riskLevels", "thresholds", "dataSource")


class NotificationChannel(Protocol):
    """Fire-and-forget outbound transport."""

    def send(self, message_type: str, payload: dict[str, Any]) -> bool: ...


def canonical_hash(obj: Any) -> str:
    """SHA-256 over canonical JSON: sorted keys, compact separators."""
    canonical = json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def fingerprint(message_type: str, payload: dict[str, Any]) -> str:
    """Identify a message by its type and the semantically relevant part of its payload."""
    key: dict[str, Any] = {"type": message_type}
    for field in IDENTIFYING_FIELDS:
        key[field] = payload.get(field)
    if message_type == THRESHOLDS_CHANGED:
        # Content of the change, timestamp excluded
        key["change"] = canonical_hash(
            {field: payload.get(field) for field in THRESHOLD_CONTENT_FIELDS}
        )
    return canonical_hash(key)


def build_threshold_message(
    values: EffectiveValues, change_type: ChangeType, timestamp: datetime | None = None
) -> dict[str, Any]:
    """Render effective values in the outbound ``thresholds-changed`` schema."""
    message = ThresholdMessage(
        patient_id=values.patient_id,
        bed_number=values.bed_number,
        change_type=change_type,
        risk_levels=RiskLevels(**{organ: values.organ_levels[organ] for organ in ORGANS}),
        thresholds=values.parameter_ranges,
        data_source=values.data_source,
        timestamp=timestamp or values.computed_at,
    )
    return message.model_dump(mode="json", by_alias=True)


class ChangeNotifier:
    def __init__(
        self,
        channel: NotificationChannel,
        window_seconds: float = 0.05,
        max_fingerprints: int = 256,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.channel = channel
        self.window = timedelta(seconds=window_seconds)
        self.max_fingerprints = max_fingerprints
        self.clock = clock or (lambda: datetime.now(UTC))
        self.logger = logger.bind(component="change_notifier")
        self._recent: OrderedDict[str, datetime] = OrderedDict()

    def notify(self, message_type: str, payload: dict[str, Any]) -> bool:
        """Forward the message unless an identical one went out within the window."""
        now = self.clock()
        key = fingerprint(message_type, payload)

        seen_at = self._recent.get(key)
        if seen_at is not None and now - seen_at < self.window:
            self.logger.debug(
                "notification_suppressed",
                message_type=message_type,
                patient_id=payload.get("patientId"),
            )
            return False

        self._recent[key] = now
        self._recent.move_to_end(key)
        self._prune(now)

        try:
            delivered = self.channel.send(message_type, payload)
        except Exception as e:
            self.logger.error(
                "notification_channel_failed", message_type=message_type, error=str(e)
            )
            delivered = False

        if not delivered:
            # Allow an immediate retry of an undelivered message
            self._recent.pop(key, None)
            self.logger.warning(
                "notification_not_delivered",
                message_type=message_type,
                patient_id=payload.get("patientId"),
            )
            return False

        self.logger.info(
            "notification_sent", message_type=message_type, patient_id=payload.get("patientId")
        )
        return True

    def _prune(self, now: datetime) -> None:
        # Entries are kept in insertion-time order, so stale ones sit at the front
        while self._recent:
            _, oldest_at = next(iter(self._recent.items()))
            if now - oldest_at < self.window and len(self._recent) <= self.max_fingerprints:
                break
            self._recent.popitem(last=False)

    def pending_fingerprints(self) -> int:
        return len(self._recent)
