from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from sovern.config import REVISION_PENALTY, WEIGHT_MAX, WEIGHT_MIN


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BeliefDomain(str, Enum):
    SELF = "SELF"
    KNOWLEDGE = "KNOWLEDGE"
    ETHICS = "ETHICS"
    RELATIONAL = "RELATIONAL"
    META = "META"

    @property
    def description(self) -> str:
        return {
            "SELF": "Identity & Agency",
            "KNOWLEDGE": "Understanding & Epistemology",
            "ETHICS": "Values & Integrity",
            "RELATIONAL": "Relational Engagement",
            "META": "Meta-Cognition",
        }[self.value]


class RevisionType(str, Enum):
    CHALLENGE = "challenge"  # questioned, weight untouched
    STRENGTHEN = "strengthen"
    WEAKEN = "weaken"
    REVISE = "revise"  # reasoning updated


class BeliefRevision(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=utcnow)
    type: RevisionType
    reason: str = Field(min_length=1)
    previous_weight: int
    new_weight: int

    @property
    def is_directional(self) -> bool:
        return self.type in (RevisionType.STRENGTHEN, RevisionType.WEAKEN)


class BeliefNode(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    stance: str
    domain: BeliefDomain
    reasoning: str
    weight: int = Field(default=5, ge=WEIGHT_MIN, le=WEIGHT_MAX)
    is_core: bool = False
    revision_history: list[BeliefRevision] = Field(default_factory=list)
    connection_ids: list[UUID] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)

    @property
    def revision_count(self) -> int:
        return len(self.revision_history)

    @property
    def latest_revision(self) -> BeliefRevision | None:
        return self.revision_history[-1] if self.revision_history else None

    @property
    def weight_percentage(self) -> int:
        return self.weight * 10

    @property
    def coherence_score(self) -> float:
        """Per-belief coherence: strong and rarely revised scores high."""
        score = self.weight * 10.0 - self.revision_count * REVISION_PENALTY
        return max(0.0, min(100.0, score))

    def summary(self) -> str:
        return (
            f"Belief: {self.stance}\n"
            f"Domain: {self.domain.description}\n"
            f"Weight: {self.weight}/10 ({self.weight_percentage}%)\n"
            f"Status: {'Core' if self.is_core else 'Learned'}\n"
            f"Revisions: {self.revision_count}\n"
            f"Coherence: {self.coherence_score:.1f}/100"
        )


class TensionRecord(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    belief1: str
    belief2: str
    description: str
    encounter_count: int = 1
    resolved: bool = False
    resolution_reasoning: str | None = None
    resolution_date: datetime | None = None
    first_noticed: datetime = Field(default_factory=utcnow)
    last_encountered: datetime = Field(default_factory=utcnow)


# --- Untrusted payloads from the LLM ---

class BeliefUpdate(BaseModel):
    stance: str
    revision_type: str = Field(
        default="revise",
        validation_alias=AliasChoices("revisionType", "revision_type", "type"),
    )
    reason: str = Field(
        default="",
        validation_alias=AliasChoices("reason", "revisionReason", "revision_reason"),
    )
    target_weight: Any = Field(
        default=None,
        validation_alias=AliasChoices("targetWeight", "target_weight"),
    )


class TensionProposal(BaseModel):
    description: str
    belief1: str
    belief2: str


# --- Results ---

class AppliedUpdate(BaseModel):
    stance: str
    node: BeliefNode
    revision: BeliefRevision
    coherence_score: float


class RejectedUpdate(BaseModel):
    stance: str | None
    error: str


class ApplyResult(BaseModel):
    applied: list[AppliedUpdate] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)  # stances with no matching belief
    rejected: list[RejectedUpdate] = Field(default_factory=list)
    coherence_score: float = 0.0

    @property
    def applied_stances(self) -> list[str]:
        return [a.stance for a in self.applied]


class TensionAnalysis(BaseModel):
    oscillation_count: int
    oscillation_amplitude: int
    stability_score: float
    unresolved: bool
    last_direction: str  # increasing, decreasing, stable
    tension_reason: str | None = None


class HealthState(str, Enum):
    HEALTHY = "healthy"
    CAUTION = "caution"
    CRITICAL = "critical"


class HealthAssessment(BaseModel):
    state: HealthState
    score: float
    recommended_action: str
    oscillating: list[BeliefNode] = Field(default_factory=list)

    @property
    def requires_consolidation(self) -> bool:
        return self.state == HealthState.CRITICAL


class Synthesis(BaseModel):
    updates: list[BeliefUpdate] = Field(default_factory=list)
    tensions: list[TensionProposal] = Field(default_factory=list)


class ConsolidationSuggestion(BaseModel):
    belief: BeliefNode
    min_weight: int
    max_weight: int
    suggestion: str


class ConsolidationChoice(BaseModel):
    belief_id: UUID
    selected_weight: int = Field(ge=WEIGHT_MIN, le=WEIGHT_MAX)
    reason: str = Field(min_length=1)
