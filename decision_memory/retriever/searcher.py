"""
Searcher

Finds the evidence behind a subject: related normalized events (scored for
relevance), related decisions, and component matches across commits, pull
requests and PR comments.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..common.errors import PayloadValidationError
from ..common.schemas import (
    CommitPayload,
    Decision,
    EventType,
    NormalizedEvent,
    PRCommentPayload,
    PullRequestPayload,
    RawEvent,
    SearchHit,
)
from ..common.store import EventStore

logger = logging.getLogger("decision_memory.retriever.searcher")

GITHUB_BASE_URL = "https://github.com"


def source_url(
    repository: str,
    event_type: EventType,
    pr_number: Optional[int] = None,
    issue_number: Optional[int] = None,
    commit_sha: Optional[str] = None,
) -> str:
    """Link to the record on the source platform, else to the repository."""
    base = f"{GITHUB_BASE_URL}/{repository}"
    if event_type in (EventType.PULL_REQUEST, EventType.PR_COMMENT, EventType.PR_REVIEW) and pr_number:
        return f"{base}/pull/{pr_number}"
    if event_type is EventType.ISSUE and issue_number:
        return f"{base}/issues/{issue_number}"
    if event_type is EventType.COMMIT and commit_sha:
        return f"{base}/commit/{commit_sha}"
    return base


def event_source_url(event: NormalizedEvent) -> str:
    return source_url(
        event.repository,
        event.event_type,
        pr_number=event.pull_request_number,
        issue_number=event.issue_number,
        commit_sha=event.commit_sha,
    )


@dataclass
class ScoredEvent:
    """A normalized event with its relevance to a subject"""
    event: NormalizedEvent
    relevance_score: float


class Searcher:
    """
    Evidence retrieval over the event store.

    Relevance of an event to a subject (case-insensitive):
    - +0.8 if the title contains the subject
    - +0.6 if title or content contains the subject
    - +0.2 if the event is a pull request
    capped at 1.0; events scoring 0.1 or less are dropped.
    """

    TITLE_WEIGHT = 0.8
    CONTENT_WEIGHT = 0.6
    PULL_REQUEST_BONUS = 0.2
    MIN_RELEVANCE = 0.1

    # Component search
    COMPONENT_TITLE_WEIGHT = 0.6
    COMPONENT_DESCRIPTION_WEIGHT = 0.4
    COMPONENT_TYPE_BONUS = {"pull_request": 0.3, "commit": 0.2}
    COMPONENT_MIN_RELEVANCE = 0.2
    COMPONENT_MAX_RESULTS = 20

    def __init__(self, store: EventStore, search_limit: int = 50):
        self._store = store
        self._search_limit = search_limit

    # ------------------------------------------------------------------
    # Explanation evidence
    # ------------------------------------------------------------------

    @classmethod
    def relevance_score(cls, event: NormalizedEvent, subject: str) -> float:
        needle = subject.lower()
        title = (event.title or "").lower()
        text = f"{title} {(event.content or '').lower()}"

        score = 0.0
        if needle in title:
            score += cls.TITLE_WEIGHT
        if needle in text:
            score += cls.CONTENT_WEIGHT
        if event.event_type is EventType.PULL_REQUEST:
            score += cls.PULL_REQUEST_BONUS
        return min(score, 1.0)

    def find_related_events(self, repository: str, subject: str) -> List[ScoredEvent]:
        """
        Events mentioning the subject, most relevant first.

        Searches for the subject as given and lower-cased, deduplicating by id.
        """
        seen: Dict[str, NormalizedEvent] = {}
        for term in (subject, subject.lower()):
            for event in self._store.search_normalized_events(
                term, repository=repository, limit=self._search_limit,
            ):
                seen.setdefault(event.id, event)

        scored = [
            ScoredEvent(event=e, relevance_score=self.relevance_score(e, subject))
            for e in seen.values()
        ]
        scored = [s for s in scored if s.relevance_score > self.MIN_RELEVANCE]
        scored.sort(key=lambda s: s.relevance_score, reverse=True)
        return scored

    def find_related_decisions(self, repository: str, subject: str) -> List[Decision]:
        """Decisions whose statement or rationale contains the subject."""
        return self._store.find_decisions(repository, subject)

    # ------------------------------------------------------------------
    # Component search
    # ------------------------------------------------------------------

    def search_components(self, query: str, repository: Optional[str] = None) -> List[SearchHit]:
        """
        Search commits, pull requests and PR comments for a component name.

        Args:
            query: Component or topic name
            repository: Restrict to one "owner/repo" (optional)

        Returns:
            Up to 20 hits, most relevant first
        """
        logger.info("Searching for %r", query)

        hits: List[SearchHit] = []
        for event_type in (EventType.COMMIT, EventType.PULL_REQUEST, EventType.PR_COMMENT):
            events = self._store.search_events(
                query, repository=repository, event_type=event_type.value, limit=self._search_limit,
            )
            for raw in events:
                try:
                    hit = self._to_hit(raw, query)
                except PayloadValidationError as e:
                    logger.warning("Skipping search hit %s: %s", raw.id, e)
                    continue
                if hit is not None:
                    hits.append(hit)

        unique: List[SearchHit] = []
        seen: set = set()
        for hit in hits:
            key: Tuple[str, str, str] = (hit.repository, hit.type, hit.event_id)
            if key in seen:
                continue
            seen.add(key)
            hit.relevance_score = self.component_relevance(hit, query)
            unique.append(hit)

        unique = [h for h in unique if h.relevance_score > self.COMPONENT_MIN_RELEVANCE]
        unique.sort(key=lambda h: h.relevance_score, reverse=True)
        return unique[:self.COMPONENT_MAX_RESULTS]

    @classmethod
    def component_relevance(cls, hit: SearchHit, query: str) -> float:
        needle = query.lower()
        score = 0.0
        if needle in hit.title.lower():
            score += cls.COMPONENT_TITLE_WEIGHT
        if needle in hit.description.lower():
            score += cls.COMPONENT_DESCRIPTION_WEIGHT
        # Matches elsewhere in the payload (author, state, keys) don't count
        if score == 0.0:
            return 0.0
        score += cls.COMPONENT_TYPE_BONUS.get(hit.type, 0.0)
        return min(score, 1.0)

    @staticmethod
    def _to_hit(raw: RawEvent, query: str) -> Optional[SearchHit]:
        payload = raw.payload()

        if isinstance(payload, CommitPayload):
            return SearchHit(
                type="commit",
                component=query,
                repository=raw.repository,
                title=payload.message.split("\n")[0],
                description=payload.message,
                author=payload.author,
                timestamp=raw.timestamp,
                source_url=source_url(raw.repository, EventType.COMMIT, commit_sha=payload.sha),
                context="Implementation",
                event_id=raw.id,
            )
        if isinstance(payload, PullRequestPayload):
            return SearchHit(
                type="pull_request",
                component=query,
                repository=raw.repository,
                title=payload.title,
                description=payload.body or "",
                author=payload.author,
                timestamp=raw.timestamp,
                source_url=source_url(raw.repository, EventType.PULL_REQUEST, pr_number=payload.number),
                context="Feature/Change Request",
                event_id=raw.id,
                pr_number=payload.number,
            )
        if isinstance(payload, PRCommentPayload):
            return SearchHit(
                type="comment",
                component=query,
                repository=raw.repository,
                title=f"Comment on PR #{payload.pr_number}",
                description=payload.body or "",
                author=payload.author,
                timestamp=raw.timestamp,
                source_url=source_url(raw.repository, EventType.PR_COMMENT, pr_number=payload.pr_number),
                context="Discussion",
                event_id=raw.id,
                pr_number=payload.pr_number,
            )
        return None
