"""
Capture - Decision Extraction

Turns raw repository activity into structured engineering decisions.

Key Components:
- DecisionSignalScorer: Weighted lexical scoring of decision language
- EventNormalizer: Raw event -> NormalizedEvent, plus candidate selection
- DecisionExtractor: LLM extraction with failover, rule-based fallback
- RuleBasedExtractor: Deterministic per-event-kind templates

Pipeline:
1. Normalize raw events and score their content
2. Select candidates above the confidence threshold (highest first)
3. Extract a Decision per candidate (LLM, else rules)
4. Upsert decisions by id
"""

from .signal_scorer import DecisionSignalScorer, SignalScore
from .normalizer import EventNormalizer, NormalizationResult
from .rule_extractor import RuleBasedExtractor
from .decision_extractor import DecisionExtractor, ExtractionResult

__all__ = [
    "DecisionSignalScorer",
    "SignalScore",
    "EventNormalizer",
    "NormalizationResult",
    "RuleBasedExtractor",
    "DecisionExtractor",
    "ExtractionResult",
]
