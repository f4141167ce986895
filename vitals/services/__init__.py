"""
Core services for the threshold derivation pipeline.

This package contains the rule matrix, tag delta engine, override layer,
effective value cache, condition tag state machine and change notifier, plus
the ThresholdService facade that wires them together.
"""

from .condition_tags import ConditionTagStateMachine
from .effective_cache import EffectiveValueCache
from .notifier import THRESHOLDS_CHANGED, ChangeNotifier, NotificationChannel
from .overrides import OverrideLayer
from .publisher import ChangePublisher
from .rule_matrix import RuleMatrix
from .stores import (
    KeyValueMedicalRecordStore,
    KeyValueOverrideStore,
    KeyValueStore,
    KeyValueTagStore,
    Result,
)
from .tag_deltas import TagDeltaEngine
from .threshold_service import ThresholdService

__all__ = [
    "THRESHOLDS_CHANGED",
    "ChangeNotifier",
    "ChangePublisher",
    "ConditionTagStateMachine",
    "EffectiveValueCache",
    "KeyValueMedicalRecordStore",
    "KeyValueOverrideStore",
    "KeyValueStore",
    "KeyValueTagStore",
    "NotificationChannel",
    "OverrideLayer",
    "Result",
    "RuleMatrix",
    "TagDeltaEngine",
    "ThresholdService",
]
