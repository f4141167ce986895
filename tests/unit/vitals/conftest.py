"""Shared fixtures: a controllable clock and a fully wired in-memory service."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest

from adapters.local.channels import RecordingChannel
from adapters.local.storage import InMemoryKeyValueStore
from vitals.config import AppConfig
from vitals.services import (
    KeyValueMedicalRecordStore,
    KeyValueOverrideStore,
    KeyValueTagStore,
    ThresholdService,
)


class FakeClock:
    """Deterministic clock; time only moves when a test advances it."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 8, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += timedelta(milliseconds=ms)


@dataclass
class Harness:
    service: ThresholdService
    channel: RecordingChannel
    clock: FakeClock
    kv: InMemoryKeyValueStore


def build_harness(clock: FakeClock | None = None) -> Harness:
    clock = clock or FakeClock()
    kv = InMemoryKeyValueStore()
    channel = RecordingChannel()
    service = ThresholdService(
        records=KeyValueMedicalRecordStore(kv),
        tags=KeyValueTagStore(kv),
        override_store=KeyValueOverrideStore(kv),
        channel=channel,
        config=AppConfig(),
        clock=clock,
    )
    return Harness(service=service, channel=channel, clock=clock, kv=kv)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def harness(clock: FakeClock) -> Harness:
    return build_harness(clock)


@pytest.fixture
def make_harness() -> Callable[..., Harness]:
    """Factory for tests that need several independent services."""
    return build_harness
