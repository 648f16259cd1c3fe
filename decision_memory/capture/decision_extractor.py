"""
Decision Extractor

Turns high-scoring normalized events into structured Decisions.

Per event:
1. LLM path when a back end is configured. A response with
   ``is_decision: false`` means "no decision" and the event is skipped.
2. Rule-based path when no back end is configured, or when the LLM call or
   its JSON parsing fails.

Every produced Decision is upserted; failures on one event are logged and
counted as skipped without aborting the batch.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Type

from ..common.config import ExtractionConfig
from ..common.llm_gateway import LLMGateway
from ..common.schemas import (
    Decision,
    DecisionConfidence,
    DecisionType,
    ExtractionMethod,
    NormalizedEvent,
    Reversibility,
    Scope,
    generate_decision_id,
)
from ..common.store import EventStore
from .prompts import DECISION_SYSTEM_PROMPT, build_decision_prompt
from .rule_extractor import RuleBasedExtractor

logger = logging.getLogger("decision_memory.capture.decision_extractor")

_TEXT_FIELDS = (
    "rationale",
    "alternatives_considered",
    "tradeoffs",
    "problem_statement",
    "success_criteria",
    "implementation_notes",
)


@dataclass
class ExtractionResult:
    """Aggregate counts for one extraction run"""
    extracted: int = 0
    skipped: int = 0


def _coerce_enum(enum_cls: Type[Enum], value: Any, default: Enum) -> Enum:
    if value is None:
        return default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def _coerce_confidence(value: Any, default: float) -> float:
    try:
        score = float(value) if value is not None else float(default)
    except (TypeError, ValueError):
        score = float(default)
    if math.isnan(score):
        score = float(default)
    return min(max(score, 0.0), 1.0)


_TRUE_STRINGS = {"true", "yes", "y", "1"}


def _coerce_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        flag = value.strip().lower() in _TRUE_STRINGS
    else:
        flag = bool(value)
    logger.debug("Coerced is_decision %r to %s", value, flag)
    return flag


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = "; ".join(str(v) for v in value)
    text = str(value).strip()
    return text or None


class DecisionExtractor:
    """
    LLM-first decision extraction with deterministic fallback.

    The gateway is optional; without one every candidate goes through the
    rule-based templates.
    """

    def __init__(
        self,
        store: EventStore,
        gateway: Optional[LLMGateway] = None,
        config: Optional[ExtractionConfig] = None,
        rule_extractor: Optional[RuleBasedExtractor] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._config = config or ExtractionConfig()
        self._rules = rule_extractor or RuleBasedExtractor()

    @property
    def llm_available(self) -> bool:
        return self._gateway is not None and self._gateway.is_available

    async def extract(
        self,
        repository: str,
        min_confidence: Optional[float] = None,
    ) -> ExtractionResult:
        """
        Extract and store decisions for every candidate of a repository.

        Args:
            repository: "owner/repo"
            min_confidence: Candidate threshold (defaults to config)

        Returns:
            ExtractionResult with extracted/skipped counts
        """
        threshold = self._config.min_confidence if min_confidence is None else min_confidence
        if self.llm_available:
            logger.info("Extracting decisions for %s (LLM: %s)", repository, self._gateway.primary)
        else:
            logger.info("Extracting decisions for %s (rule-based)", repository)

        candidates = self._store.get_decision_candidates(repository, threshold)
        logger.info("Processing %d decision candidates", len(candidates))

        result = ExtractionResult()
        for candidate in candidates:
            try:
                decision = await self.extract_decision_from_event(candidate)
                if decision is None:
                    result.skipped += 1
                    continue
                self._store.upsert_decision(decision)
                result.extracted += 1
            except Exception as e:
                logger.error("Error processing event %s: %s", candidate.id, e)
                result.skipped += 1

        logger.info(
            "Extracted %d decisions, skipped %d for %s",
            result.extracted, result.skipped, repository,
        )
        return result

    async def extract_decision_from_event(self, event: NormalizedEvent) -> Optional[Decision]:
        """Route a single event to the LLM or rule-based path."""
        if self.llm_available:
            return await self.extract_with_llm(event)
        return self.extract_rule_based(event)

    async def extract_with_llm(self, event: NormalizedEvent) -> Optional[Decision]:
        """
        LLM extraction for one event.

        Returns:
            Decision, None when the model reports no decision, or the
            rule-based result when the call or parsing fails
        """
        try:
            parsed = await self._gateway.complete_json(
                DECISION_SYSTEM_PROMPT,
                build_decision_prompt(event),
                max_tokens=self._config.llm_max_tokens,
                temperature=self._config.llm_temperature,
            )
        except Exception as e:
            logger.warning(
                "LLM extraction failed for event %s, falling back to rule-based: %s",
                event.id, e,
            )
            return self.extract_rule_based(event)

        is_decision = _coerce_flag(parsed.get("is_decision"))
        if not is_decision:
            return None

        return self._decision_from_llm(event, parsed)

    def extract_rule_based(self, event: NormalizedEvent) -> Optional[Decision]:
        return self._rules.extract(event)

    def _decision_from_llm(self, event: NormalizedEvent, parsed: Dict[str, Any]) -> Decision:
        statement = _optional_text(parsed.get("decision_statement")) or "(no statement)"
        return Decision(
            id=generate_decision_id(event.id),
            source_event_id=event.id,
            repository=event.repository,
            timestamp=event.timestamp,
            primary_decision_maker=event.author_login,
            related_pr_number=event.pull_request_number,
            related_issue_number=event.issue_number,
            related_commit_sha=event.commit_sha,
            decision_statement=statement,
            decision_type=_coerce_enum(DecisionType, parsed.get("decision_type"), DecisionType.TECHNICAL),
            scope=_coerce_enum(Scope, parsed.get("scope"), Scope.COMPONENT),
            reversibility=_coerce_enum(
                Reversibility, parsed.get("reversibility"), Reversibility.REVERSIBLE,
            ),
            decision_confidence=_coerce_enum(
                DecisionConfidence, parsed.get("decision_confidence"), DecisionConfidence.MEDIUM,
            ),
            extraction_confidence=_coerce_confidence(
                parsed.get("extraction_confidence"), event.confidence_score,
            ),
            extraction_method=ExtractionMethod.LLM,
            **{name: _optional_text(parsed.get(name)) for name in _TEXT_FIELDS},
        )
