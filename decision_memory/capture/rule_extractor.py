"""
Rule-Based Decision Extractor

Deterministic fallback used when no LLM back end is configured or the LLM
call fails. Applies per-event-kind templates and fixed regex cues.
"""

import re
from typing import List, Optional

from ..common.schemas import (
    Decision,
    DecisionConfidence,
    DecisionType,
    EventType,
    ExtractionMethod,
    NormalizedEvent,
    Reversibility,
    Scope,
    generate_decision_id,
)
from .signal_scorer import DecisionSignalScorer


class RuleBasedExtractor:
    """
    Template extraction keyed on event kind.

    A candidate qualifies only if it carries a strong indicator (explicit,
    approval or implementation decision language) or its confidence is at
    least ``min_confidence``.
    """

    DECISION_PHRASES = [
        "let's go with",
        "i think we should",
        "we should use",
        "i prefer",
        "better approach",
        "i suggest",
        "let's implement",
        "we need to",
        "i recommend",
    ]

    RATIONALE_PATTERNS = [
        re.compile(r"because ([^.!?]+)", re.IGNORECASE),
        re.compile(r"since ([^.!?]+)", re.IGNORECASE),
        re.compile(r"due to ([^.!?]+)", re.IGNORECASE),
        re.compile(r"this (?:will|should) ([^.!?]+)", re.IGNORECASE),
    ]

    PROBLEM_PATTERNS = [
        re.compile(r"(?:issue|problem|challenge) (?:is|was) ([^.!?]+)", re.IGNORECASE),
        re.compile(r"we (?:need|want) to ([^.!?]+)", re.IGNORECASE),
        re.compile(r"(?:currently|right now) ([^.!?]+)", re.IGNORECASE),
    ]

    # Checked in order; first hit wins
    SCOPE_CUES = [
        (("architecture", "system"), Scope.SYSTEM),
        (("component", "module"), Scope.COMPONENT),
    ]
    REVERSIBILITY_CUES = [
        (("database", "schema"), Reversibility.IRREVERSIBLE),
        (("migration", "breaking"), Reversibility.COSTLY),
    ]
    CONFIDENCE_CUES = [
        (("definitely", "certain"), DecisionConfidence.HIGH),
        (("probably", "likely"), DecisionConfidence.MEDIUM),
    ]

    SENTENCE_SPLIT = re.compile(r"[.!?]+")
    STATEMENT_FALLBACK_CHARS = 100

    def __init__(self, min_confidence: float = 0.6, confidence_boost: float = 0.1):
        self._min_confidence = min_confidence
        self._confidence_boost = confidence_boost

    def qualifies(self, event: NormalizedEvent) -> bool:
        return (
            DecisionSignalScorer.has_strong_indicator(event.indicator_types)
            or event.confidence_score >= self._min_confidence
        )

    def extract(self, event: NormalizedEvent) -> Optional[Decision]:
        """
        Build a Decision from a normalized event using templates.

        Returns:
            Decision, or None if the event does not qualify or its kind has
            no template
        """
        if not self.qualifies(event):
            return None

        content = event.content or ""
        title = event.title or ""
        full_text = f"{title} {content}"

        fields = {}
        if event.event_type is EventType.PR_REVIEW and "approved" in content.lower():
            fields.update(
                decision_statement=f"Approved implementation approach in PR #{event.pull_request_number}",
                decision_type=DecisionType.APPROVAL,
                scope=Scope.COMPONENT,
                reversibility=Reversibility.REVERSIBLE,
                rationale=self.extract_rationale(content),
            )
        elif event.event_type is EventType.PULL_REQUEST:
            fields.update(
                decision_statement=f"Implement: {title}",
                decision_type=DecisionType.TECHNICAL,
                scope=self.infer_scope(full_text),
                reversibility=self.infer_reversibility(full_text),
                problem_statement=self.extract_problem_statement(content),
                rationale=self.extract_rationale(content),
            )
        elif event.event_type is EventType.PR_COMMENT:
            if not self.contains_decision_language(content):
                return None
            fields.update(
                decision_statement=self.extract_decision_statement(content),
                decision_type=DecisionType.TECHNICAL,
                scope=Scope.COMPONENT,
                reversibility=Reversibility.REVERSIBLE,
                rationale=self.extract_rationale(content),
            )
        elif event.event_type is EventType.COMMIT:
            fields.update(
                decision_statement=f"Implement: {title}",
                decision_type=DecisionType.IMPLEMENTATION,
                scope=Scope.LOCAL,
                reversibility=Reversibility.REVERSIBLE,
                implementation_notes=content,
            )
        else:
            return None

        return Decision(
            id=generate_decision_id(event.id),
            source_event_id=event.id,
            repository=event.repository,
            timestamp=event.timestamp,
            primary_decision_maker=event.author_login,
            related_pr_number=event.pull_request_number,
            related_issue_number=event.issue_number,
            related_commit_sha=event.commit_sha,
            extraction_confidence=min(event.confidence_score + self._confidence_boost, 1.0),
            extraction_method=ExtractionMethod.RULE_BASED,
            decision_confidence=self.infer_decision_confidence(content),
            **fields,
        )

    # ------------------------------------------------------------------
    # Text cues
    # ------------------------------------------------------------------

    def contains_decision_language(self, text: str) -> bool:
        lowered = text.lower()
        return any(phrase in lowered for phrase in self.DECISION_PHRASES)

    def extract_decision_statement(self, content: str) -> str:
        """First sentence carrying decision language, else a truncated prefix."""
        for sentence in self.SENTENCE_SPLIT.split(content):
            if self.contains_decision_language(sentence):
                return sentence.strip()
        return content[:self.STATEMENT_FALLBACK_CHARS] + "..."

    @staticmethod
    def _first_capture(patterns: List[re.Pattern], text: str) -> Optional[str]:
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
        return None

    def extract_rationale(self, content: str) -> Optional[str]:
        return self._first_capture(self.RATIONALE_PATTERNS, content)

    def extract_problem_statement(self, content: str) -> Optional[str]:
        return self._first_capture(self.PROBLEM_PATTERNS, content)

    @staticmethod
    def _match_cues(text: str, cues, default):
        lowered = text.lower()
        for keywords, value in cues:
            if any(k in lowered for k in keywords):
                return value
        return default

    def infer_scope(self, text: str) -> Scope:
        return self._match_cues(text, self.SCOPE_CUES, Scope.LOCAL)

    def infer_reversibility(self, text: str) -> Reversibility:
        return self._match_cues(text, self.REVERSIBILITY_CUES, Reversibility.REVERSIBLE)

    def infer_decision_confidence(self, text: str) -> DecisionConfidence:
        return self._match_cues(text, self.CONFIDENCE_CUES, DecisionConfidence.LOW)
