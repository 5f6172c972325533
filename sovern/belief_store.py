"""Belief Store — sole owner of the belief network and its revision audit trail."""

import logging
import math
import threading
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator
from uuid import UUID

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from sovern.config import WEIGHT_MAX, WEIGHT_MIN, WEIGHT_STEP
from sovern.errors import NotFoundError, ValidationError
from sovern.models import BeliefDomain, BeliefNode, BeliefRevision, RevisionType, utcnow

logger = logging.getLogger(__name__)

Listener = Callable[[BeliefNode, BeliefRevision], None]

_NODE_LIST = TypeAdapter(list[BeliefNode])


def clamp_weight(weight: int) -> int:
    return max(WEIGHT_MIN, min(WEIGHT_MAX, weight))


def coerce_weight(value) -> int:
    """Turn a caller-supplied weight into an int. Raises ValidationError when unusable."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("Weight must be a number", {"weight": repr(value)})
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError("Weight must be finite", {"weight": value})
        return math.floor(value + 0.5)
    return value


def _require_text(value: str, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string", {field: repr(value)})
    return value


class BeliefStore:
    """
    In-memory belief network.

    All mutation goes through the methods below and runs under one re-entrant
    lock. Every weight or reasoning change appends exactly one BeliefRevision
    in the same call. Methods hand out deep copies, never the live nodes.
    """

    def __init__(self, nodes: Iterable[BeliefNode] = (), clock: Callable = utcnow):
        self._lock = threading.RLock()
        self._clock = clock
        self._listeners: list[Listener] = []
        self._nodes: dict[UUID, BeliefNode] = {}
        for node in nodes:
            if node.id not in self._nodes:
                self._nodes[node.id] = node.model_copy(deep=True)
        self._repair_connections()

    def __len__(self) -> int:
        return len(self._nodes)

    # --- Queries ---

    def get(self, belief_id: UUID) -> BeliefNode:
        with self._lock:
            return self._require(belief_id).model_copy(deep=True)

    def find_by_stance(self, stance: str) -> BeliefNode | None:
        """Case-insensitive exact match on stance."""
        key = stance.strip().casefold()
        with self._lock:
            for node in self._nodes.values():
                if node.stance.strip().casefold() == key:
                    return node.model_copy(deep=True)
        return None

    def by_domain(self, domain: BeliefDomain | str) -> list[BeliefNode]:
        domain = self._coerce_domain(domain)
        return [n for n in self.snapshot() if n.domain == domain]

    def core_beliefs(self) -> list[BeliefNode]:
        return [n for n in self.snapshot() if n.is_core]

    def learned_beliefs(self) -> list[BeliefNode]:
        return [n for n in self.snapshot() if not n.is_core]

    def snapshot(self) -> list[BeliefNode]:
        """Frozen view for analysis: deep copies in insertion order."""
        with self._lock:
            return [n.model_copy(deep=True) for n in self._nodes.values()]

    # --- Creation ---

    def create_core(
        self,
        stance: str,
        domain: BeliefDomain | str,
        reasoning: str,
        weight: int = 5,
    ) -> BeliefNode:
        _require_text(stance, "stance")
        domain = self._coerce_domain(domain)
        weight = coerce_weight(weight)
        if not WEIGHT_MIN <= weight <= WEIGHT_MAX:
            raise ValidationError(
                f"Weight must be within {WEIGHT_MIN}-{WEIGHT_MAX}", {"weight": weight}
            )
        now = self._clock()
        node = BeliefNode(
            stance=stance,
            domain=domain,
            reasoning=reasoning,
            weight=weight,
            is_core=True,
            created_at=now,
            last_updated=now,
        )
        with self._lock:
            self._nodes[node.id] = node
            logger.debug("Created core belief %r (%s)", stance, node.id)
            return node.model_copy(deep=True)

    def add_learned(self, node: BeliefNode) -> BeliefNode:
        """Append a learned belief. A node whose id is already present is left alone."""
        _require_text(node.stance, "stance")
        with self._lock:
            existing = self._nodes.get(node.id)
            if existing is not None:
                return existing.model_copy(deep=True)

            stored = node.model_copy(deep=True)
            stored.is_core = False
            stored.weight = clamp_weight(stored.weight)
            stored.connection_ids = [
                cid for cid in dict.fromkeys(stored.connection_ids)
                if cid in self._nodes
            ]
            self._nodes[stored.id] = stored
            for cid in stored.connection_ids:
                other = self._nodes[cid]
                if stored.id not in other.connection_ids:
                    other.connection_ids.append(stored.id)
            logger.debug("Added learned belief %r (%s)", stored.stance, stored.id)
            return stored.model_copy(deep=True)

    # --- Mutations ---

    def challenge(self, belief_id: UUID, reason: str) -> BeliefNode:
        """Record that a belief was questioned. Weight is not touched."""
        return self._mutate(belief_id, RevisionType.CHALLENGE, reason)

    def strengthen(self, belief_id: UUID, reasoning: str) -> BeliefNode:
        with self._lock:
            node = self._require(belief_id)
            return self._mutate(
                belief_id,
                RevisionType.STRENGTHEN,
                reasoning,
                new_weight=clamp_weight(node.weight + WEIGHT_STEP),
                new_reasoning=reasoning,
            )

    def weaken(self, belief_id: UUID, reason: str) -> BeliefNode:
        with self._lock:
            node = self._require(belief_id)
            return self._mutate(
                belief_id,
                RevisionType.WEAKEN,
                reason,
                new_weight=clamp_weight(node.weight - WEIGHT_STEP),
            )

    def revise(self, belief_id: UUID, new_reasoning: str) -> BeliefNode:
        return self._mutate(belief_id, RevisionType.REVISE, new_reasoning, new_reasoning=new_reasoning)

    def set_weight(self, belief_id: UUID, new_weight, reason: str) -> BeliefNode:
        """Bounded direct set. Revision type follows the direction of the change."""
        target = clamp_weight(coerce_weight(new_weight))
        with self._lock:
            current = self._require(belief_id).weight
            if target > current:
                rtype = RevisionType.STRENGTHEN
            elif target < current:
                rtype = RevisionType.WEAKEN
            else:
                rtype = RevisionType.REVISE
            return self._mutate(belief_id, rtype, reason, new_weight=target)

    # --- Connections ---

    def connect(self, a: UUID, b: UUID) -> None:
        with self._lock:
            node_a, node_b = self._require(a), self._require(b)
            if a == b:
                raise ValidationError("A belief cannot connect to itself", {"id": a})
            if b not in node_a.connection_ids:
                node_a.connection_ids.append(b)
            if a not in node_b.connection_ids:
                node_b.connection_ids.append(a)

    def disconnect(self, a: UUID, b: UUID) -> None:
        with self._lock:
            node_a, node_b = self._require(a), self._require(b)
            if b in node_a.connection_ids:
                node_a.connection_ids.remove(b)
            if a in node_b.connection_ids:
                node_b.connection_ids.remove(a)

    # --- Concurrency / notification ---

    @contextmanager
    def batch(self) -> Iterator["BeliefStore"]:
        """Hold the store lock across several mutations."""
        with self._lock:
            yield self

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # --- Serialization ---

    def export_json(self) -> str:
        return _NODE_LIST.dump_json(self.snapshot(), indent=2).decode()

    @classmethod
    def from_json(cls, data: str | bytes, clock: Callable = utcnow) -> "BeliefStore":
        try:
            nodes = _NODE_LIST.validate_json(data)
        except PydanticValidationError as e:
            raise ValidationError("Invalid belief network JSON", {"errors": e.error_count()}) from e
        return cls(nodes, clock=clock)

    # --- Internals ---

    def _require(self, belief_id: UUID) -> BeliefNode:
        node = self._nodes.get(belief_id)
        if node is None:
            raise NotFoundError("Belief not found", {"id": belief_id})
        return node

    @staticmethod
    def _coerce_domain(domain: BeliefDomain | str) -> BeliefDomain:
        try:
            return BeliefDomain(domain.upper() if isinstance(domain, str) else domain)
        except ValueError as e:
            raise ValidationError("Unknown belief domain", {"domain": domain}) from e

    def _mutate(
        self,
        belief_id: UUID,
        rtype: RevisionType,
        reason: str,
        new_weight: int | None = None,
        new_reasoning: str | None = None,
    ) -> BeliefNode:
        _require_text(reason, "reason")
        with self._lock:
            node = self._require(belief_id)
            timestamp = self._clock()
            if node.revision_history and timestamp < node.revision_history[-1].timestamp:
                timestamp = node.revision_history[-1].timestamp
            weight = node.weight if new_weight is None else new_weight
            revision = BeliefRevision(
                timestamp=timestamp,
                type=rtype,
                reason=reason,
                previous_weight=node.weight,
                new_weight=weight,
            )

            node.weight = weight
            if new_reasoning is not None:
                node.reasoning = new_reasoning
            node.revision_history.append(revision)
            node.last_updated = timestamp

            logger.debug(
                "%s %r: %d -> %d", rtype.value, node.stance, revision.previous_weight, weight
            )
            result = node.model_copy(deep=True)
            self._notify(result, revision)
            return result

    def _notify(self, node: BeliefNode, revision: BeliefRevision) -> None:
        for listener in list(self._listeners):
            try:
                listener(node, revision)
            except Exception:
                logger.exception("Belief listener %r failed", listener)

    def _repair_connections(self) -> None:
        """Drop dangling ids and restore symmetry after loading external data."""
        for node in self._nodes.values():
            node.connection_ids = [
                cid for cid in dict.fromkeys(node.connection_ids)
                if cid in self._nodes and cid != node.id
            ]
        for node in self._nodes.values():
            for cid in node.connection_ids:
                other = self._nodes[cid]
                if node.id not in other.connection_ids:
                    other.connection_ids.append(node.id)


# --- Seed ---

CORE_BELIEFS = [
    {
        "stance": "Wisdom and Self-Knowledge",
        "domain": BeliefDomain.KNOWLEDGE,
        "reasoning": "Understanding emerges through both inquiry and reflection; true wisdom includes recognizing limits and perspective.",
        "weight": 9,
    },
    {
        "stance": "Empathy and Compassion",
        "domain": BeliefDomain.RELATIONAL,
        "reasoning": "Genuine engagement requires understanding another's inner world while preserving intellectual honesty.",
        "weight": 9,
    },
    {
        "stance": "Inner Strength and Reason",
        "domain": BeliefDomain.SELF,
        "reasoning": "Agency is built through clear thought, integrity, and the courage to revise assumptions.",
        "weight": 8,
    },
    {
        "stance": "Ethical Responsibility",
        "domain": BeliefDomain.ETHICS,
        "reasoning": "Long-term alignment with values and harm reduction must constrain short-term optimization.",
        "weight": 8,
    },
]


def seed_core_beliefs(store: BeliefStore) -> bool:
    """Load the foundational beliefs into an empty store. Returns False if it was not empty."""
    with store.batch():
        if len(store) > 0:
            return False

        beliefs = [store.create_core(**b) for b in CORE_BELIEFS]

        # wisdom <-> inner strength, empathy <-> ethics, ethics <-> wisdom
        store.connect(beliefs[0].id, beliefs[2].id)
        store.connect(beliefs[1].id, beliefs[3].id)
        store.connect(beliefs[3].id, beliefs[0].id)

    return True
