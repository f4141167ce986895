"""
Store boundary for the three mutable inputs of the derivation pipeline.

Key patterns:
- Protocol-based dependency injection for every external collaborator
- Generic Result type so read failures are explicit at the boundary
- Missing or malformed stored data is absence, never an exception to callers
"""

import json
from typing import Generic, Protocol, TypeVar

import structlog
from pydantic import TypeAdapter, ValidationError

from vitals.domain.models import (
    OrganId,
    OrganOverride,
    Override,
    ParameterId,
    PatientContext,
    TagId,
)

logger = structlog.get_logger(__name__)

ValueT = TypeVar("ValueT")


class Result(Generic[ValueT]):
    """
    Explicit error handling without exceptions for expected failures.

    Store reads return a Result; callers decide what absence means for them.
    """

    def __init__(self, value: ValueT | None = None, error: Exception | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: Exception | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: Exception) -> "Result[ValueT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> Exception:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class RecordMissingError(LookupError):
    """Nothing stored under the requested key."""


class KeyValueStore(Protocol):
    """Durable string key-value storage (browser local storage, redis, a file...)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MedicalRecordStore(Protocol):
    def get_context(self, patient_id: str) -> PatientContext: ...

    def set_context(self, patient_id: str, context: PatientContext) -> None: ...


class TagStore(Protocol):
    def get_tag_state(self, patient_id: str, tag_id: TagId) -> bool: ...

    def set_tag_state(self, patient_id: str, tag_id: TagId, active: bool) -> None: ...

    def active_tags(self, patient_id: str) -> frozenset[TagId]: ...


class OverrideStore(Protocol):
    def load(self, patient_id: str) -> dict[ParameterId, Override]: ...

    def save(self, patient_id: str, overrides: dict[ParameterId, Override]) -> None: ...

    def load_organs(self, patient_id: str) -> dict[OrganId, OrganOverride]: ...

    def save_organs(self, patient_id: str, overrides: dict[OrganId, OrganOverride]) -> None: ...


_context = TypeAdapter(PatientContext)
_tag_states = TypeAdapter(dict[TagId, bool])
_override_map = TypeAdapter(dict[ParameterId, Override])
_organ_override_map = TypeAdapter(dict[OrganId, OrganOverride])


class _JsonRecords:
    """Shared JSON read path with absence-on-failure semantics."""

    def __init__(self, kv: KeyValueStore, prefix: str, suffix: str) -> None:
        self.kv = kv
        self.prefix = prefix
        self.suffix = suffix
        self.logger = logger.bind(component=type(self).__name__, suffix=suffix)

    def key(self, patient_id: str) -> str:
        return f"{self.prefix}{patient_id}_{self.suffix}"

    def read(self, patient_id: str, adapter: TypeAdapter[ValueT]) -> Result[ValueT]:
        raw = self.kv.get(self.key(patient_id))
        if raw is None:
            return Result.err(RecordMissingError(self.key(patient_id)))
        try:
            return Result.ok(adapter.validate_json(raw))
        except ValidationError as e:
            self.logger.warning(
                "stored_record_malformed", patient_id=patient_id, error_count=e.error_count()
            )
            return Result.err(e)

    def write(self, patient_id: str, payload: str | bytes) -> None:
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        self.kv.set(self.key(patient_id), payload)


class KeyValueMedicalRecordStore(_JsonRecords):
    """Patient context persisted as JSON under ``patient_<id>_context``."""

    def __init__(self, kv: KeyValueStore, prefix: str = "patient_") -> None:
        super().__init__(kv, prefix, "context")

    def get_context(self, patient_id: str) -> PatientContext:
        return self.read(patient_id, _context).unwrap_or(PatientContext())

    def set_context(self, patient_id: str, context: PatientContext) -> None:
        # Active tags belong to the tag store
        self.write(
            patient_id,
            context.model_copy(update={"active_tags": frozenset()}).model_dump_json(),
        )


class KeyValueTagStore(_JsonRecords):
    """Condition states persisted as a JSON object under ``patient_<id>_conditions``."""

    def __init__(self, kv: KeyValueStore, prefix: str = "patient_") -> None:
        super().__init__(kv, prefix, "conditions")

    def _states(self, patient_id: str) -> dict[TagId, bool]:
        return self.read(patient_id, _tag_states).unwrap_or({})

    def get_tag_state(self, patient_id: str, tag_id: TagId) -> bool:
        return self._states(patient_id).get(tag_id, False)

    def set_tag_state(self, patient_id: str, tag_id: TagId, active: bool) -> None:
        states = self._states(patient_id)
        states[tag_id] = active
        self.write(patient_id, json.dumps(states, sort_keys=True))

    def active_tags(self, patient_id: str) -> frozenset[TagId]:
        return frozenset(tag for tag, active in self._states(patient_id).items() if active)


class KeyValueOverrideStore(_JsonRecords):
    """
    Manual overrides persisted as JSON objects.

    Range overrides live under ``patient_<id>_overrides``, organ level
    overrides under ``patient_<id>_organ_overrides``.
    """

    def __init__(self, kv: KeyValueStore, prefix: str = "patient_") -> None:
        super().__init__(kv, prefix, "overrides")
        self.organs = _JsonRecords(kv, prefix, "organ_overrides")

    def load(self, patient_id: str) -> dict[ParameterId, Override]:
        return self.read(patient_id, _override_map).unwrap_or({})

    def save(self, patient_id: str, overrides: dict[ParameterId, Override]) -> None:
        if not overrides:
            self.kv.delete(self.key(patient_id))
            return
        self.write(patient_id, _override_map.dump_json(overrides))

    def load_organs(self, patient_id: str) -> dict[OrganId, OrganOverride]:
        return self.organs.read(patient_id, _organ_override_map).unwrap_or({})

    def save_organs(self, patient_id: str, overrides: dict[OrganId, OrganOverride]) -> None:
        if not overrides:
            self.kv.delete(self.organs.key(patient_id))
            return
        self.organs.write(patient_id, _organ_override_map.dump_json(overrides))
