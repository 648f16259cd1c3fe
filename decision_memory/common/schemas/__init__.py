"""
Decision Memory Schemas

Raw and normalized events, extracted decisions, and explanations.
"""

from .events import (
    EventType,
    RawEvent,
    NormalizedEvent,
    DecisionIndicator,
    EventPayload,
    PullRequestPayload,
    IssuePayload,
    CommitPayload,
    PRCommentPayload,
    PRReviewPayload,
    UnknownPayload,
    normalized_event_id,
)
from .decision import (
    Decision,
    DecisionType,
    Scope,
    Reversibility,
    DecisionConfidence,
    ExtractionMethod,
    generate_decision_id,
    confidence_level,
)
from .explanation import (
    DecisionEvidence,
    Explanation,
    EvidenceSummary,
    Freshness,
    FormattedDecision,
    GraphEdge,
    GraphNode,
    RelationshipGraph,
    SearchHit,
    Summary,
    TimelineItem,
)

__all__ = [
    "EventType",
    "RawEvent",
    "NormalizedEvent",
    "DecisionIndicator",
    "EventPayload",
    "PullRequestPayload",
    "IssuePayload",
    "CommitPayload",
    "PRCommentPayload",
    "PRReviewPayload",
    "UnknownPayload",
    "normalized_event_id",
    "Decision",
    "DecisionType",
    "Scope",
    "Reversibility",
    "DecisionConfidence",
    "ExtractionMethod",
    "generate_decision_id",
    "confidence_level",
    "DecisionEvidence",
    "Explanation",
    "EvidenceSummary",
    "Freshness",
    "FormattedDecision",
    "GraphEdge",
    "GraphNode",
    "RelationshipGraph",
    "SearchHit",
    "Summary",
    "TimelineItem",
]
