"""Belief Synthesis — asks the model how an exchange bears on the belief network."""

import json
import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

from sovern.llm import call_llm_json
from sovern.models import BeliefNode, BeliefUpdate, Synthesis, TensionProposal
from sovern.prompts import synthesis_prompt

logger = logging.getLogger(__name__)


def format_beliefs_for_prompt(beliefs: list[BeliefNode]) -> str:
    lines = []
    for b in sorted(beliefs, key=lambda b: b.weight, reverse=True):
        lines.append(
            f"- \"{b.stance}\" [{b.domain.value}] weight={b.weight}/10"
            f"{' core' if b.is_core else ''}: {b.reasoning}"
        )
    return "\n".join(lines)


def parse_synthesis(raw) -> Synthesis:
    """Keep the well-formed items of a synthesis payload and drop the rest."""
    if not isinstance(raw, dict):
        return Synthesis()

    updates = []
    raw_updates = raw.get("beliefUpdates")
    for item in raw_updates if isinstance(raw_updates, list) else []:
        if not isinstance(item, dict) or not item.get("stance"):
            continue
        try:
            updates.append(BeliefUpdate.model_validate(item))
        except PydanticValidationError:
            logger.debug("Dropping malformed belief update %r", item)

    tensions = []
    raw_tensions = raw.get("tensions")
    for item in raw_tensions if isinstance(raw_tensions, list) else []:
        if not isinstance(item, dict):
            continue
        try:
            tensions.append(TensionProposal.model_validate(item))
        except PydanticValidationError:
            logger.debug("Dropping malformed tension %r", item)

    return Synthesis(updates=updates, tensions=tensions)


async def extract_synthesis(
    user_message: str,
    assistant_response: str,
    beliefs: list[BeliefNode],
) -> Synthesis:
    """Run the synthesis call. A failed call or unparseable reply means no updates."""
    if not beliefs:
        return Synthesis()

    prompt = synthesis_prompt(user_message, assistant_response, format_beliefs_for_prompt(beliefs))

    try:
        raw = await call_llm_json(
            "You are a precise belief synthesis system. Respond only in valid JSON.",
            prompt,
        )
    except (httpx.HTTPError, json.JSONDecodeError) as e:
        logger.warning("Belief synthesis failed: %s", e)
        return Synthesis()

    return parse_synthesis(raw)
