"""
Decision Schema

A structured engineering decision with provenance back to the normalized
event it was extracted from. Decisions are upserted by id and never deleted;
a superseded decision is linked through ``supersedes_decision_id``.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class DecisionType(str, Enum):
    TECHNICAL = "technical"
    ARCHITECTURAL = "architectural"
    PROCESS = "process"
    TOOL_CHOICE = "tool_choice"
    APPROVAL = "approval"
    IMPLEMENTATION = "implementation"


class Scope(str, Enum):
    LOCAL = "local"
    COMPONENT = "component"
    SYSTEM = "system"
    ORGANIZATION = "organization"


class Reversibility(str, Enum):
    REVERSIBLE = "reversible"
    COSTLY = "costly"
    IRREVERSIBLE = "irreversible"


class DecisionConfidence(str, Enum):
    """How sure the decision maker sounded, not how sure the extractor is"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ExtractionMethod(str, Enum):
    LLM = "llm"
    RULE_BASED = "rule_based"


class Decision(BaseModel):
    id: str = Field(..., description="decision_<normalized event id>")
    source_event_id: str
    repository: str
    timestamp: datetime

    # Decision content
    decision_statement: str = Field(..., min_length=1)
    rationale: Optional[str] = None
    alternatives_considered: Optional[str] = None
    tradeoffs: Optional[str] = None
    problem_statement: Optional[str] = None
    success_criteria: Optional[str] = None
    implementation_notes: Optional[str] = None

    # Classification
    decision_type: DecisionType = DecisionType.TECHNICAL
    scope: Scope = Scope.COMPONENT
    reversibility: Reversibility = Reversibility.REVERSIBLE
    decision_confidence: DecisionConfidence = DecisionConfidence.MEDIUM

    # Extraction quality
    extraction_confidence: float = Field(ge=0.0, le=1.0)
    extraction_method: ExtractionMethod = ExtractionMethod.RULE_BASED

    # People
    primary_decision_maker: Optional[str] = None
    involved_parties: List[str] = Field(default_factory=list)

    # Relationships
    related_pr_number: Optional[int] = None
    related_issue_number: Optional[int] = None
    related_commit_sha: Optional[str] = None
    supersedes_decision_id: Optional[str] = None


def generate_decision_id(source_event_id: str) -> str:
    """One decision per normalized event; re-extraction overwrites."""
    return f"decision_{source_event_id}"


def confidence_level(
    score: float,
    high: float = 0.8,
    medium: float = 0.6,
    low: float = 0.3,
) -> str:
    """Map a [0, 1] score onto a display label"""
    if score >= high:
        return "high"
    if score >= medium:
        return "medium"
    if score >= low:
        return "low"
    return "very_low"
