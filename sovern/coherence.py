"""Coherence Analyzer — read-only metrics over a belief snapshot.

Every function takes a list of nodes (normally ``BeliefStore.snapshot()``)
and never mutates it, so callers can compute metrics while the live store
keeps changing.
"""

import statistics
from collections import defaultdict
from uuid import UUID

from sovern.config import (
    CAUTION_COHERENCE,
    CONSOLIDATED_COHERENCE,
    HEALTHY_COHERENCE,
    MAJORITY_WEIGHT,
    OSCILLATION_MIN_REVERSALS,
    OSCILLATION_WINDOW,
    REVISION_PENALTY,
    WEIGHT_MAX,
    WEIGHT_MIN,
)
from sovern.models import (
    BeliefDomain,
    BeliefNode,
    BeliefRevision,
    ConsolidationSuggestion,
    HealthAssessment,
    HealthState,
    RevisionType,
    TensionAnalysis,
)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# --- Network scores ---

def average_weight(nodes: list[BeliefNode]) -> float:
    if not nodes:
        return 0.0
    return sum(n.weight for n in nodes) / len(nodes)


def total_revisions(nodes: list[BeliefNode]) -> int:
    return sum(len(n.revision_history) for n in nodes)


def coherence_score(nodes: list[BeliefNode]) -> float:
    """
    Network coherence on a 0-100 scale.

    (average weight / 10 * 100) - (total revisions * 2), clamped. Churn lowers
    the score regardless of direction, so a network that keeps revising itself
    reads as less coherent even when its weights stay high.
    """
    weight_score = average_weight(nodes) * 10.0
    penalty = total_revisions(nodes) * REVISION_PENALTY
    return _clamp(weight_score - penalty, 0.0, 100.0)


def average_weight_by_domain(nodes: list[BeliefNode]) -> dict[BeliefDomain, float]:
    grouped: dict[BeliefDomain, list[int]] = defaultdict(list)
    for n in nodes:
        grouped[n.domain].append(n.weight)
    return {domain: sum(ws) / len(ws) for domain, ws in grouped.items()}


def domain_balance(nodes: list[BeliefNode]) -> float:
    """100 when every present domain has the same mean weight; lower as they spread."""
    averages = average_weight_by_domain(nodes)
    if len(averages) <= 1:
        return 100.0
    std_dev = statistics.pstdev(averages.values())
    return max(0.0, 100.0 - std_dev * 10.0)


# --- Rankings ---

def volatile_beliefs(nodes: list[BeliefNode], n: int = 3) -> list[BeliefNode]:
    return sorted(nodes, key=lambda b: len(b.revision_history), reverse=True)[:n]


def stable_beliefs(nodes: list[BeliefNode], n: int = 3) -> list[BeliefNode]:
    """The n least-revised beliefs, fewest revisions first.

    Same key as volatile_beliefs with the sort reversed, so ties keep their
    original order (A before B) rather than appearing as the tail of the
    volatile ordering.
    """
    return sorted(nodes, key=lambda b: len(b.revision_history))[:n]


def recently_updated(nodes: list[BeliefNode], n: int = 5) -> list[BeliefNode]:
    return sorted(nodes, key=lambda b: b.last_updated, reverse=True)[:n]


def beliefs_below_weight(nodes: list[BeliefNode], threshold: int) -> list[BeliefNode]:
    return [b for b in nodes if b.weight < threshold]


def beliefs_at_majority(nodes: list[BeliefNode]) -> list[BeliefNode]:
    return [b for b in nodes if b.weight >= MAJORITY_WEIGHT]


# --- Health ---

def health_check(nodes: list[BeliefNode]) -> list[str]:
    """Ordered findings. A broken weight bound is reported here, never raised."""
    issues = []

    for b in nodes:
        if b.is_core and b.weight < WEIGHT_MIN:
            issues.append(
                f"Core belief '{b.stance}' is at weight {b.weight} "
                f"(should be {WEIGHT_MIN}-{WEIGHT_MAX})"
            )

    majority = beliefs_at_majority(nodes)
    if len(majority) > len(nodes) * 0.5:
        issues.append(
            f"{len(majority)} beliefs at majority weight (50%+) - consider distributing"
        )

    isolated = [b for b in nodes if not b.connection_ids]
    if isolated:
        issues.append(f"{len(isolated)} beliefs have no connections to the network")

    if not issues:
        issues.append("Belief system is healthy")
    return issues


def describe_state(score: float) -> str:
    if score > 85:
        return "Coherent — beliefs are strong and settled"
    elif score > HEALTHY_COHERENCE:
        return "Steady — some revision activity, nothing pulling apart"
    elif score > CAUTION_COHERENCE:
        return "Strained — several beliefs are pulling in different directions"
    elif score > 25:
        return "Conflicted — core beliefs in conflict, consolidation needed"
    else:
        return "Fragmented — the network is churning faster than it settles"


def assess_health(nodes: list[BeliefNode]) -> HealthAssessment:
    score = coherence_score(nodes)
    oscillating = [b for b in nodes if is_oscillating(b)]

    if score > HEALTHY_COHERENCE:
        state = HealthState.HEALTHY
        action = f"Belief system coherent at {int(score)}% — continuing normally"
    elif score > CAUTION_COHERENCE:
        state = HealthState.CAUTION
        action = (
            f"Several beliefs are pulling in different directions (coherence {int(score)}%). "
            "Review oscillating beliefs."
        )
    else:
        state = HealthState.CRITICAL
        action = (
            f"CRITICAL: core beliefs in conflict (coherence {int(score)}%). "
            "Review and resolve oscillating beliefs."
        )

    return HealthAssessment(
        state=state, score=score, recommended_action=action, oscillating=oscillating
    )


# --- Oscillation ---

def _directional(history: list[BeliefRevision]) -> list[RevisionType]:
    return [r.type for r in history if r.is_directional]


def _reversals(directions: list[RevisionType]) -> int:
    return sum(1 for prev, cur in zip(directions, directions[1:]) if prev != cur)


def is_oscillating(
    node: BeliefNode,
    window: int = OSCILLATION_WINDOW,
    min_reversals: int = OSCILLATION_MIN_REVERSALS,
) -> bool:
    """
    True when the belief keeps flipping instead of converging.

    Only strengthen/weaken revisions carry a direction; challenge and revise
    entries are ignored. The last ``window`` directional revisions must contain
    at least ``min_reversals`` direction changes. With the defaults (4, 3) that
    means the four most recent moves alternate completely: up, down, up, down.
    """
    recent = _directional(node.revision_history)[-window:]
    return _reversals(recent) >= min_reversals


_CONFLICT_PATTERNS = [
    (("logic", "reason"), ("value", "empathy"), "Tension between logic and values"),
    (("theory", "should"), ("practice", "experience"), "Tension between theory and practice"),
    (("growth", "potential"), ("safe", "risk"), "Tension between growth and safety"),
    (("self", "personal"), ("other", "relational"),
     "Tension between self-interest and relational concerns"),
]


def _identify_conflict(history: list[BeliefRevision]) -> str | None:
    if len(history) < 3:
        return None
    reasons = [r.reason.lower() for r in history[-3:]]
    for left, right, label in _CONFLICT_PATTERNS:
        has_left = any(word in reason for reason in reasons for word in left)
        has_right = any(word in reason for reason in reasons for word in right)
        if has_left and has_right:
            return label
    return None


def analyze_tension(node: BeliefNode) -> TensionAnalysis:
    history = node.revision_history
    directional = [r for r in history if r.is_directional]
    reversals = _reversals([r.type for r in directional])

    weights = [r.new_weight for r in directional]
    amplitude = (max(weights) - min(weights)) if weights else 0

    if not directional:
        last_direction = "stable"
    elif directional[-1].type == RevisionType.STRENGTHEN:
        last_direction = "increasing"
    else:
        last_direction = "decreasing"

    return TensionAnalysis(
        oscillation_count=reversals,
        oscillation_amplitude=amplitude,
        stability_score=max(0.0, 1.0 - min(1.0, reversals / 10.0)),
        unresolved=is_oscillating(node),
        last_direction=last_direction,
        tension_reason=_identify_conflict(history),
    )


def describe_tension(node: BeliefNode) -> str:
    tension = analyze_tension(node)
    if not tension.unresolved:
        return f"Stable: {node.weight}/10"

    text = "Unresolved oscillation"
    if tension.tension_reason:
        text += f" ({tension.tension_reason})"
    if tension.oscillation_amplitude > 2:
        text += " — high flux"
    text += (
        f" (swung {tension.oscillation_count} times, "
        f"amplitude ±{tension.oscillation_amplitude / 2:.1f})"
    )
    return text


# --- Consolidation ---

def prepare_consolidation(nodes: list[BeliefNode]) -> list[ConsolidationSuggestion]:
    """
    One suggestion per belief, built from the range its history has swung through.

    Callers normally pass ``assess_health(...).oscillating``. A belief with no
    history reports its current weight as both ends of the range.
    """
    suggestions = []
    for node in nodes:
        weights = [r.new_weight for r in node.revision_history] or [node.weight]
        low, high = min(weights), max(weights)
        suggestions.append(ConsolidationSuggestion(
            belief=node,
            min_weight=low,
            max_weight=high,
            suggestion=(
                f"This belief swings between ~{low} and ~{high}. "
                "Which position reflects what you actually believe?"
            ),
        ))
    return suggestions


def consolidation_succeeded(new_score: float, previous_score: float) -> bool:
    return new_score > previous_score or new_score > CONSOLIDATED_COHERENCE


# --- Utilities ---

def strengthened_with_beliefs(
    base_strength: float,
    linked_ids: list[UUID],
    nodes: list[BeliefNode],
) -> float:
    """Blend an argument's strength with the weights of the beliefs it leans on.

    40% base strength, 60% average linked weight, clamped to 1-10. Linked ids
    that are not in ``nodes`` count as zero.
    """
    if not linked_ids:
        return base_strength
    by_id = {n.id: n for n in nodes}
    total = sum(by_id[i].weight for i in linked_ids if i in by_id)
    avg = total / len(linked_ids)
    return _clamp(base_strength * 0.4 + avg * 0.6, float(WEIGHT_MIN), float(WEIGHT_MAX))


def system_summary(nodes: list[BeliefNode]) -> str:
    core = sum(1 for n in nodes if n.is_core)
    volatile = ", ".join(b.stance for b in volatile_beliefs(nodes))
    health = "\n".join(health_check(nodes))
    return (
        "BELIEF SYSTEM OVERVIEW\n"
        f"Total Beliefs: {len(nodes)}\n"
        f"Core Beliefs: {core}\n"
        f"Learned Beliefs: {len(nodes) - core}\n\n"
        f"Network Coherence: {coherence_score(nodes):.1f}/100\n"
        f"Average Weight: {average_weight(nodes):.1f}/10\n"
        f"Domain Balance: {domain_balance(nodes):.1f}%\n\n"
        f"Total Revisions: {total_revisions(nodes)}\n"
        f"Volatile Beliefs: {volatile}\n\n"
        f"Health Status:\n{health}"
    )
