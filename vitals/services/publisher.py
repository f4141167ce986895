"""
Post-commit publication of recomputed effective values.

Runs after inputs are persisted and values recomputed: local listeners first,
then the external notification. Failures are logged and never roll back the
committed state.
"""

from collections.abc import Callable

import structlog

from vitals.domain.models import ChangeType, EffectiveValues
from vitals.services.notifier import THRESHOLDS_CHANGED, ChangeNotifier, build_threshold_message

logger = structlog.get_logger(__name__)

ChangeListener = Callable[[EffectiveValues, ChangeType], None]


class ChangePublisher:
    def __init__(self, notifier: ChangeNotifier) -> None:
        self.notifier = notifier
        self.listeners: list[ChangeListener] = []
        self.logger = logger.bind(component="change_publisher")

    def subscribe(self, listener: ChangeListener) -> None:
        self.listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        self.listeners.remove(listener)

    def publish(self, values: EffectiveValues, change_type: ChangeType) -> bool:
        """Apply local effects, then emit. Returns whether a message was delivered."""
        for listener in list(self.listeners):
            try:
                listener(values, change_type)
            except Exception as e:
                self.logger.error(
                    "change_listener_failed",
                    patient_id=values.patient_id,
                    change_type=change_type,
                    error=str(e),
                )

        try:
            payload = build_threshold_message(values, change_type)
            delivered = self.notifier.notify(THRESHOLDS_CHANGED, payload)
        except Exception as e:
            self.logger.error(
                "notification_failed", patient_id=values.patient_id, error=str(e)
            )
            return False

        if not delivered:
            self.logger.info(
                "notification_not_emitted", patient_id=values.patient_id, change_type=change_type
            )
        return delivered
