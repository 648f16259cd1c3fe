"""
Explanation Schema

Ephemeral answers to "why does X exist?". Recomputed on every query and
never persisted.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .decision import Decision
from .events import NormalizedEvent, RawEvent


class FormattedDecision(BaseModel):
    """A decision as shown inside an explanation"""
    id: str
    statement: str
    rationale: Optional[str] = None
    type: str
    scope: str
    reversibility: str
    decision_maker: Optional[str] = None
    confidence: str
    extraction_confidence: float
    timestamp: datetime
    related_pr: Optional[int] = None


class TimelineItem(BaseModel):
    kind: Literal["event", "decision"]
    timestamp: datetime
    reference_id: str
    event_type: Optional[str] = None
    author: Optional[str] = None
    title: str
    content: Optional[str] = None
    rationale: Optional[str] = None
    source_url: Optional[str] = None


class GraphNode(BaseModel):
    id: str
    type: str
    label: str


class GraphEdge(BaseModel):
    source: str
    target: str
    label: str


class RelationshipGraph(BaseModel):
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)


class Freshness(BaseModel):
    level: Literal["fresh", "recent", "aging", "stale", "none"]
    last_activity: Optional[datetime] = None
    days_ago: Optional[int] = None


class EvidenceSummary(BaseModel):
    total_events: int
    decision_count: int
    confidence_score: float = Field(ge=0.0, le=1.0)
    data_freshness: Freshness


class Summary(BaseModel):
    text: str
    confidence: str
    key_decisions: List[str] = Field(default_factory=list)
    open_questions: List[str] = Field(default_factory=list)
    primary_decision_maker: Optional[str] = None
    source: Literal["llm", "template"] = "template"


class Explanation(BaseModel):
    subject: str
    repository: str
    summary: Summary
    decisions: List[FormattedDecision] = Field(default_factory=list)
    timeline: List[TimelineItem] = Field(default_factory=list)
    graph: RelationshipGraph = Field(default_factory=RelationshipGraph)
    evidence: EvidenceSummary
    gaps: List[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SearchHit(BaseModel):
    """A component search match against commits, pull requests or comments"""
    type: Literal["commit", "pull_request", "comment"]
    component: str
    repository: str
    title: str
    description: str = ""
    author: Optional[str] = None
    timestamp: datetime
    source_url: str
    context: str
    event_id: str
    pr_number: Optional[int] = None
    relevance_score: float = 0.0


class DecisionEvidence(BaseModel):
    """A decision traced back to the records it was extracted from"""
    decision: Decision
    source_event: Optional[NormalizedEvent] = None
    raw_event: Optional[RawEvent] = None
    source_url: Optional[str] = None
