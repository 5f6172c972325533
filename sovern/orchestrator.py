"""Orchestrator — one conversational turn through the belief engine."""

import logging
from typing import Awaitable, Callable

from sovern.belief_store import BeliefStore
from sovern.coherence import coherence_score, describe_state, health_check
from sovern.errors import ValidationError
from sovern.llm import call_llm
from sovern.models import AppliedUpdate
from sovern.prompts import system_prompt_with_beliefs
from sovern.synthesis import extract_synthesis, format_beliefs_for_prompt
from sovern.tension_tracker import TensionTracker
from sovern.update_applier import apply_belief_updates

logger = logging.getLogger(__name__)


def format_tensions_for_prompt(tracker: TensionTracker, limit: int = 5) -> str:
    return "\n".join(
        f"- {t.belief1} <-> {t.belief2}: {t.description} (seen {t.encounter_count}x)"
        for t in tracker.unresolved()[:limit]
    )


async def process_turn(
    store: BeliefStore,
    tracker: TensionTracker,
    user_message: str,
    on_revision: Callable[[AppliedUpdate], Awaitable[None]] | None = None,
) -> dict:
    """
    Main interaction loop:
    1. Snapshot beliefs and coherence
    2. Generate a reply with a belief-aware system prompt
    3. Synthesize belief updates and tensions from the exchange
    4. Apply updates through the applier
    5. Record tensions
    """

    # 1. Current state
    beliefs = store.snapshot()
    coherence = coherence_score(beliefs)

    # 2. Reply
    system = system_prompt_with_beliefs(
        format_beliefs_for_prompt(beliefs),
        coherence,
        describe_state(coherence),
        format_tensions_for_prompt(tracker),
    )
    response = await call_llm(system, user_message)

    # 3. Synthesis
    synthesis = await extract_synthesis(user_message, response, beliefs)

    # 4. Belief updates
    result = apply_belief_updates(store, synthesis.updates)
    if on_revision:
        for applied in result.applied:
            await on_revision(applied)

    # 5. Tensions
    recorded = []
    for proposal in synthesis.tensions:
        try:
            recorded.append(
                tracker.find_or_create(proposal.belief1, proposal.belief2, proposal.description)
            )
        except ValidationError as e:
            logger.warning("Ignoring tension proposal %r: %s", proposal, e)

    final = store.snapshot()
    final_coherence = coherence_score(final)

    return {
        "response": response,
        "coherence": final_coherence,
        "coherence_state": describe_state(final_coherence),
        "health": health_check(final),
        "applied": result.applied_stances,
        "skipped": result.skipped,
        "rejected": [r.model_dump() for r in result.rejected],
        "tensions": recorded,
        "beliefs_count": len(final),
    }
