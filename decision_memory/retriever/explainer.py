"""
Explainer

Answers "why does X exist?" for a subject in a repository by aggregating
related events and decisions into an Explanation: summary, formatted
decisions, chronological timeline, relationship graph, evidence scores and
gap notes.

Sparse evidence never raises. An unknown subject yields a zero-confidence
explanation with both gap notes.
"""

import logging
import math
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from ..common.config import QueryConfig
from ..common.llm_gateway import LLMGateway
from ..common.schemas import (
    Decision,
    DecisionEvidence,
    EvidenceSummary,
    Explanation,
    FormattedDecision,
    Freshness,
    NormalizedEvent,
    TimelineItem,
    confidence_level,
)
from ..common.store import EventStore
from .graph import build_relationship_graph
from .searcher import Searcher, event_source_url
from .synthesizer import Synthesizer

logger = logging.getLogger("decision_memory.retriever.explainer")

GAP_NO_DECISIONS = "no structured decisions"
GAP_NO_EVENTS = "no related discussions"

EVENTS_ONLY_CONFIDENCE = 0.3

# (upper bound in days, level), checked in order
FRESHNESS_LEVELS = [
    (30, "fresh"),
    (180, "recent"),
    (365, "aging"),
]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def aggregate_confidence(decisions: Sequence[Decision], events: Sequence[NormalizedEvent]) -> float:
    """0 without evidence, 0.3 for events only, else mean extraction confidence."""
    if not decisions:
        return EVENTS_ONLY_CONFIDENCE if events else 0.0
    return sum(d.extraction_confidence for d in decisions) / len(decisions)


def assess_freshness(events: Sequence[NormalizedEvent], now: Optional[datetime] = None) -> Freshness:
    """Classify by days since the most recent related event."""
    if not events:
        return Freshness(level="none")

    now = _as_utc(now or datetime.now(timezone.utc))
    latest = max(_as_utc(e.timestamp) for e in events)
    days = (now - latest).total_seconds() / 86400

    level = "stale"
    for bound, name in FRESHNESS_LEVELS:
        if days < bound:
            level = name
            break

    return Freshness(level=level, last_activity=latest, days_ago=math.floor(days))


def identify_gaps(decisions: Sequence[Decision], events: Sequence[NormalizedEvent]) -> List[str]:
    gaps = []
    if not decisions:
        gaps.append(GAP_NO_DECISIONS)
    if not events:
        gaps.append(GAP_NO_EVENTS)
    return gaps


def build_timeline(events: Sequence[NormalizedEvent], decisions: Sequence[Decision]) -> List[TimelineItem]:
    """Events and decisions merged into one sequence, oldest first."""
    items: List[TimelineItem] = []

    for event in events:
        content = event.content or ""
        items.append(TimelineItem(
            kind="event",
            timestamp=event.timestamp,
            reference_id=event.id,
            event_type=event.event_type.value,
            author=event.author_login or "system",
            title=event.title or (content.split("\n")[0] if content else "") or "Event",
            content=content,
            source_url=event_source_url(event),
        ))

    for decision in decisions:
        items.append(TimelineItem(
            kind="decision",
            timestamp=decision.timestamp,
            reference_id=decision.id,
            author=decision.primary_decision_maker,
            title=decision.decision_statement,
            rationale=decision.rationale,
        ))

    items.sort(key=lambda item: _as_utc(item.timestamp))
    return items


class Explainer:
    """
    Evidence aggregation for a named subject.

    Pipeline:
    1. Find related events (scored, relevance > 0.1) and decisions
    2. Score evidence (confidence, freshness) and note gaps
    3. Build timeline and relationship graph
    4. Summarize (LLM when available, template otherwise)
    """

    def __init__(
        self,
        store: EventStore,
        gateway: Optional[LLMGateway] = None,
        config: Optional[QueryConfig] = None,
    ):
        self._store = store
        self._config = config or QueryConfig()
        self._searcher = Searcher(store, search_limit=self._config.search_limit)
        self._synthesizer = Synthesizer(gateway, self._config)

    @property
    def searcher(self) -> Searcher:
        return self._searcher

    def format_decision(self, decision: Decision) -> FormattedDecision:
        return FormattedDecision(
            id=decision.id,
            statement=decision.decision_statement,
            rationale=decision.rationale,
            type=decision.decision_type.value,
            scope=decision.scope.value,
            reversibility=decision.reversibility.value,
            decision_maker=decision.primary_decision_maker,
            confidence=confidence_level(
                decision.extraction_confidence,
                high=self._config.high_confidence,
                medium=self._config.medium_confidence,
                low=self._config.low_confidence,
            ),
            extraction_confidence=decision.extraction_confidence,
            timestamp=decision.timestamp,
            related_pr=decision.related_pr_number,
        )

    async def explain(
        self,
        repository: str,
        subject: str,
        now: Optional[datetime] = None,
    ) -> Explanation:
        """
        Build the explanation for a subject.

        Args:
            repository: "owner/repo"
            subject: Component or topic name
            now: Reference time for freshness (defaults to the current time)

        Returns:
            Explanation (never raises for missing evidence)
        """
        logger.info("Explaining %r in %s", subject, repository)

        scored = self._searcher.find_related_events(repository, subject)
        events = [s.event for s in scored]
        decisions = self._searcher.find_related_decisions(repository, subject)

        summary = await self._synthesizer.synthesize(subject, decisions, events)

        return Explanation(
            subject=subject,
            repository=repository,
            summary=summary,
            decisions=[self.format_decision(d) for d in decisions[:self._config.max_results]],
            timeline=build_timeline(events, decisions),
            graph=build_relationship_graph(subject, events, decisions),
            evidence=EvidenceSummary(
                total_events=len(events),
                decision_count=len(decisions),
                confidence_score=aggregate_confidence(decisions, events),
                data_freshness=assess_freshness(events, now=now),
            ),
            gaps=identify_gaps(decisions, events),
        )

    def timeline(self, repository: str, subject: str) -> List[TimelineItem]:
        """Timeline for a subject without the rest of the explanation."""
        events = [s.event for s in self._searcher.find_related_events(repository, subject)]
        decisions = self._searcher.find_related_decisions(repository, subject)
        return build_timeline(events, decisions)

    def get_decision_evidence(self, decision_id: str) -> Optional[DecisionEvidence]:
        """The decision with the normalized and raw events it came from."""
        decision = self._store.get_decision(decision_id)
        if decision is None:
            return None

        source_event = self._store.get_normalized_event(decision.source_event_id)
        raw_event = (
            self._store.get_event(source_event.original_event_id) if source_event else None
        )
        return DecisionEvidence(
            decision=decision,
            source_event=source_event,
            raw_event=raw_event,
            source_url=event_source_url(source_event) if source_event else None,
        )
