"""Tension Tracker — recurring conflicts between pairs of beliefs."""

import logging
import threading
from datetime import timedelta
from typing import Callable
from uuid import UUID

from sovern.errors import AlreadyResolvedError, NotFoundError, ValidationError
from sovern.models import TensionRecord, utcnow

logger = logging.getLogger(__name__)


def _pair_key(stance1: str, stance2: str) -> tuple[str, str]:
    a, b = stance1.strip().casefold(), stance2.strip().casefold()
    return (a, b) if a <= b else (b, a)


class TensionTracker:
    """Owns every TensionRecord. Records are never deleted."""

    def __init__(self, records: list[TensionRecord] = (), clock: Callable = utcnow):
        self._lock = threading.RLock()
        self._clock = clock
        self._records: dict[UUID, TensionRecord] = {}
        self._by_pair: dict[tuple[str, str], UUID] = {}
        for record in records:
            copy = record.model_copy(deep=True)
            self._records[copy.id] = copy
            self._by_pair.setdefault(_pair_key(copy.belief1, copy.belief2), copy.id)

    def __len__(self) -> int:
        return len(self._records)

    def find_or_create(self, stance1: str, stance2: str, description: str) -> TensionRecord:
        """
        Record an encounter with a conflicting pair.

        (A, B) and (B, A) hit the same record. A recurrence bumps
        encounter_count and last_encountered, whether or not the record was
        already resolved.
        """
        for name, value in (("stance1", stance1), ("stance2", stance2)):
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{name} must be a non-empty string", {name: repr(value)})
        key = _pair_key(stance1, stance2)
        if key[0] == key[1]:
            raise ValidationError("A belief cannot be in tension with itself", {"stance": stance1})

        with self._lock:
            now = self._clock()
            existing_id = self._by_pair.get(key)
            if existing_id is not None:
                record = self._records[existing_id]
                record.encounter_count += 1
                record.last_encountered = now
                logger.debug(
                    "Tension %r <-> %r seen again (%d)",
                    record.belief1, record.belief2, record.encounter_count,
                )
                return record.model_copy(deep=True)

            first, second = sorted((stance1.strip(), stance2.strip()), key=str.casefold)
            record = TensionRecord(
                belief1=first,
                belief2=second,
                description=description,
                first_noticed=now,
                last_encountered=now,
            )
            self._records[record.id] = record
            self._by_pair[key] = record.id
            logger.info("New tension: %r <-> %r", first, second)
            return record.model_copy(deep=True)

    def resolve(self, tension_id: UUID, reasoning: str) -> TensionRecord:
        if not isinstance(reasoning, str) or not reasoning.strip():
            raise ValidationError("Resolution reasoning must be a non-empty string")
        with self._lock:
            record = self._records.get(tension_id)
            if record is None:
                raise NotFoundError("Tension not found", {"id": tension_id})
            if record.resolved:
                raise AlreadyResolvedError(
                    "Tension already resolved",
                    {"id": tension_id, "resolved_at": record.resolution_date},
                )
            record.resolved = True
            record.resolution_reasoning = reasoning
            record.resolution_date = self._clock()
            return record.model_copy(deep=True)

    def get(self, tension_id: UUID) -> TensionRecord:
        with self._lock:
            record = self._records.get(tension_id)
            if record is None:
                raise NotFoundError("Tension not found", {"id": tension_id})
            return record.model_copy(deep=True)

    def all(self) -> list[TensionRecord]:
        with self._lock:
            records = [r.model_copy(deep=True) for r in self._records.values()]
        return sorted(records, key=lambda r: r.last_encountered, reverse=True)

    def unresolved(self) -> list[TensionRecord]:
        return [r for r in self.all() if not r.resolved]

    def resolved(self) -> list[TensionRecord]:
        return [r for r in self.all() if r.resolved]

    def incident_rate(self, window_days: float, now=None) -> float:
        """Share of records encountered within the trailing window."""
        records = self.all()
        if not records:
            return 0.0
        cutoff = (now or self._clock()) - timedelta(days=window_days)
        recent = sum(1 for r in records if r.last_encountered >= cutoff)
        return recent / len(records)
