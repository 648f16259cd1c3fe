"""
Event Normalizer

Translates raw activity records into the uniform NormalizedEvent shape
(author, content, entity links) and scores their content for decision
signals. Re-running normalization overwrites by derived id, so it is
idempotent per repository.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..common.errors import PayloadValidationError
from ..common.schemas import (
    CommitPayload,
    EventType,
    IssuePayload,
    NormalizedEvent,
    PRCommentPayload,
    PRReviewPayload,
    PullRequestPayload,
    RawEvent,
    normalized_event_id,
)
from ..common.store import EventStore
from .signal_scorer import DecisionSignalScorer

logger = logging.getLogger("decision_memory.capture.normalizer")


@dataclass
class NormalizationResult:
    """Outcome of normalizing one repository"""
    repository: str
    processed: int = 0
    normalized: int = 0
    failed: int = 0


class EventNormalizer:
    """
    Raw event -> NormalizedEvent.

    Field mapping per event kind:
    - pull_request / issue: title, body as content, number as entity link
    - pr_comment / pr_review: body as content, pr_number as entity link
    - commit: first message line as title, full message as content, sha
    - anything else: no author, no content, content_type "unknown"
    """

    def __init__(self, store: EventStore, scorer: Optional[DecisionSignalScorer] = None):
        self._store = store
        self._scorer = scorer or DecisionSignalScorer()

    @property
    def scorer(self) -> DecisionSignalScorer:
        return self._scorer

    def normalize(self, raw: RawEvent) -> NormalizedEvent:
        """
        Normalize a single raw event.

        Raises:
            PayloadValidationError: if the payload does not fit its event kind
        """
        payload = raw.payload()
        fields: Dict[str, Any] = {}

        if isinstance(payload, PullRequestPayload):
            fields.update(
                author_login=payload.author,
                author_name=payload.author,
                title=payload.title,
                content=payload.body or "",
                content_type="pr_description",
                pull_request_number=payload.number,
            )
        elif isinstance(payload, IssuePayload):
            fields.update(
                author_login=payload.author,
                author_name=payload.author,
                title=payload.title,
                content=payload.body or "",
                content_type="issue_description",
                issue_number=payload.number,
            )
        elif isinstance(payload, PRCommentPayload):
            fields.update(
                author_login=payload.author,
                author_name=payload.author,
                content=payload.body or "",
                content_type="comment",
                pull_request_number=payload.pr_number,
            )
        elif isinstance(payload, PRReviewPayload):
            fields.update(
                author_login=payload.author,
                author_name=payload.author,
                content=payload.body or "",
                content_type="review",
                pull_request_number=payload.pr_number,
            )
        elif isinstance(payload, CommitPayload):
            fields.update(
                author_login=payload.author,
                author_name=payload.author,
                author_email=payload.author_email,
                title=payload.message.split("\n")[0],
                content=payload.message,
                content_type="commit_message",
                commit_sha=payload.sha,
            )
        else:
            fields.update(content=None, content_type="unknown")

        signals = self._scorer.score(fields.get("content") or "")

        return NormalizedEvent(
            id=normalized_event_id(raw.id),
            original_event_id=raw.id,
            timestamp=raw.timestamp,
            event_type=raw.event_type,
            repository=raw.repository,
            decision_indicators=signals.indicators,
            confidence_score=signals.confidence,
            **fields,
        )

    def normalize_repository(self, repository: str) -> NormalizationResult:
        """
        Normalize every raw event of a repository and upsert the results.

        Events whose payload fails validation are logged and counted as
        failed; the rest are written in one batch.
        """
        logger.info("Normalizing events for %s", repository)
        result = NormalizationResult(repository=repository)

        raw_events = self._store.get_events(repository=repository)
        normalized: List[NormalizedEvent] = []

        for raw in raw_events:
            result.processed += 1
            if raw.event_type is EventType.UNKNOWN:
                logger.debug("Unrecognized event type %r for %s", raw.type, raw.id)
            try:
                normalized.append(self.normalize(raw))
            except PayloadValidationError as e:
                logger.warning("Skipping event %s: %s", raw.id, e)
                result.failed += 1

        result.normalized = self._store.upsert_normalized_batch(normalized)
        logger.info(
            "Normalized %d/%d events for %s (%d failed)",
            result.normalized, result.processed, repository, result.failed,
        )
        return result

    def get_decision_candidates(
        self,
        repository: str,
        min_confidence: float = 0.4,
        limit: Optional[int] = None,
    ) -> List[NormalizedEvent]:
        """Candidates ordered by confidence desc, then recency desc."""
        return self._store.get_decision_candidates(repository, min_confidence, limit)

    def get_stats(self, repository: str) -> Dict[str, Any]:
        return self._store.get_normalization_stats(repository)
