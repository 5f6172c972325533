"""Belief Update Applier — turns externally proposed updates into store mutations.

Proposals come from the LLM synthesis step (or any other untrusted source).
Each one either applies or is reported; nothing here aborts the batch.
"""

import logging
import math
from typing import Any, Iterable

from pydantic import ValidationError as PydanticValidationError

from sovern.belief_store import BeliefStore
from sovern.coherence import coherence_score
from sovern.config import WEIGHT_STEP
from sovern.errors import NotFoundError, ValidationError
from sovern.models import (
    AppliedUpdate,
    ApplyResult,
    BeliefNode,
    BeliefUpdate,
    ConsolidationChoice,
    RejectedUpdate,
    RevisionType,
)

logger = logging.getLogger(__name__)


def _numeric(value: Any) -> float | None:
    """Accept ints, floats and numeric strings. Anything else means 'no target'."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    # Ints of any size are fine, set_weight clamps them
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return value
    return None


def resolve_target_weight(update: BeliefUpdate, current: int) -> float:
    target = _numeric(update.target_weight)
    if target is not None:
        return target
    rtype = update.revision_type.strip().lower()
    if rtype == RevisionType.STRENGTHEN.value:
        return current + WEIGHT_STEP
    if rtype == RevisionType.WEAKEN.value:
        return current - WEIGHT_STEP
    return current


def _parse(raw: Any) -> BeliefUpdate:
    if isinstance(raw, BeliefUpdate):
        return raw
    return BeliefUpdate.model_validate(raw)


def apply_belief_updates(
    store: BeliefStore,
    updates: Iterable[BeliefUpdate | dict] | None,
) -> ApplyResult:
    """
    Apply a batch of proposed updates in input order.

    1. Match stance case-insensitively; unknown stances are skipped, not errors
    2. Use targetWeight when numeric, otherwise +1/-1/0 by revision type
    3. Write through set_weight so the bound holds and one revision is recorded
    4. Report coherence after each update and after the batch

    The whole batch holds the store lock. There is no rollback: earlier
    updates stay applied if a later one is rejected.
    """
    result = ApplyResult()

    with store.batch():
        for raw in updates or []:
            try:
                update = _parse(raw)
            except PydanticValidationError as e:
                stance = raw.get("stance") if isinstance(raw, dict) else None
                logger.warning("Rejected malformed belief update %r: %s", raw, e.errors()[0]["msg"])
                result.rejected.append(RejectedUpdate(
                    stance=str(stance) if stance is not None else None,
                    error=f"malformed update: {e.errors()[0]['msg']}",
                ))
                continue

            node = store.find_by_stance(update.stance)
            if node is None:
                logger.info("Skipping update for unknown stance %r", update.stance)
                result.skipped.append(update.stance)
                continue

            target = resolve_target_weight(update, node.weight)
            try:
                updated = store.set_weight(node.id, target, update.reason)
            except ValidationError as e:
                logger.warning("Rejected update for %r: %s", node.stance, e)
                result.rejected.append(RejectedUpdate(stance=update.stance, error=e.message))
                continue

            result.applied.append(AppliedUpdate(
                stance=updated.stance,
                node=updated,
                revision=updated.revision_history[-1],
                coherence_score=coherence_score(store.snapshot()),
            ))

        result.coherence_score = coherence_score(store.snapshot())

    if result.skipped or result.rejected:
        logger.info(
            "Belief batch: %d applied, %d skipped, %d rejected",
            len(result.applied), len(result.skipped), len(result.rejected),
        )
    return result


def consolidate(store: BeliefStore, choices: Iterable[ConsolidationChoice]) -> list[BeliefNode]:
    """
    Lock oscillating beliefs to the weights the user settled on.

    Each choice goes through set_weight, so it records one revision with the
    reason prefixed by "Consolidated from oscillation: ". Choices for ids that
    are no longer in the store are skipped.
    """
    updated = []
    with store.batch():
        for choice in choices:
            try:
                store.get(choice.belief_id)
            except NotFoundError:
                logger.info("Skipping consolidation for unknown belief %s", choice.belief_id)
                continue
            updated.append(store.set_weight(
                choice.belief_id,
                choice.selected_weight,
                f"Consolidated from oscillation: {choice.reason}",
            ))
    logger.info("Consolidated %d beliefs", len(updated))
    return updated
