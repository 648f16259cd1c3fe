"""
Decision-Signal Scorer

Rule-based lexical matcher that estimates how likely a block of text is to
record an engineering decision. Pure and deterministic: no I/O, no clock,
no randomness.
"""

import re
from dataclasses import dataclass, field
from typing import List, Pattern, Tuple

from ..common.schemas import DecisionIndicator


@dataclass
class SignalScore:
    """Result of scoring a block of text"""
    indicators: List[DecisionIndicator] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def indicator_types(self) -> List[str]:
        return [i.type for i in self.indicators]


class DecisionSignalScorer:
    """
    Scores text against a fixed, ordered table of weighted patterns.

    Algorithm:
    1. Lower-case the text
    2. Count matches of each pattern
    3. Each matching pattern adds min(count * weight, 2 * weight)
    4. Confidence is the running total capped at 1.0

    The per-pattern cap keeps one repeated phrase from dominating the score.
    """

    # (pattern, weight, indicator type), in reporting order
    PATTERNS: List[Tuple[Pattern, float, str]] = [
        # Explicit decision language
        (re.compile(r"\b(decided?|decision|choose|chose|selected?)\b", re.IGNORECASE), 0.8, "explicit_decision"),
        (re.compile(r"\b(approved?|rejected?|accepted?)\b", re.IGNORECASE), 0.7, "approval_decision"),
        (re.compile(r"\b(let's (go with|use|implement))\b", re.IGNORECASE), 0.6, "implementation_decision"),

        # Tradeoffs, rationale and alternatives
        (re.compile(r"\b(tradeoff|trade-off|pros? and cons?)\b", re.IGNORECASE), 0.5, "tradeoff_analysis"),
        (re.compile(r"\b(because|since|due to|reason)\b", re.IGNORECASE), 0.3, "rationale"),
        (re.compile(r"\b(however|but|although|instead)\b", re.IGNORECASE), 0.2, "alternative_consideration"),

        # Technical and quality attributes
        (re.compile(r"\b(architecture|design|approach|strategy)\b", re.IGNORECASE), 0.4, "technical_decision"),
        (re.compile(r"\b(performance|scalability|maintainability)\b", re.IGNORECASE), 0.3, "quality_attribute"),

        # Implementation and problem solving
        (re.compile(r"\b(implement|refactor|migrate|upgrade)\b", re.IGNORECASE), 0.3, "implementation_signal"),
        (re.compile(r"\b(fix|bug|issue|problem)\b", re.IGNORECASE), 0.2, "problem_solving"),
    ]

    # Indicator types that on their own justify rule-based extraction
    STRONG_INDICATORS = frozenset({
        "explicit_decision",
        "approval_decision",
        "implementation_decision",
    })

    MAX_EXAMPLES = 3

    def __init__(self, contribution_cap: float = 2.0):
        """
        Args:
            contribution_cap: Multiple of a pattern's weight that its matches
                may contribute at most
        """
        self._contribution_cap = contribution_cap

    def score(self, text: str) -> SignalScore:
        """
        Score text for decision-relevant language.

        Args:
            text: Free text (may be empty or None)

        Returns:
            SignalScore with ordered indicators and confidence in [0, 1]
        """
        if not text:
            return SignalScore()

        lowered = text.lower()
        indicators: List[DecisionIndicator] = []
        total = 0.0

        for pattern, weight, indicator_type in self.PATTERNS:
            matches = [m.group(0) for m in pattern.finditer(lowered)]
            if not matches:
                continue
            count = len(matches)
            indicators.append(DecisionIndicator(
                type=indicator_type,
                count=count,
                weight=weight,
                examples=matches[:self.MAX_EXAMPLES],
            ))
            total += min(count * weight, weight * self._contribution_cap)

        return SignalScore(indicators=indicators, confidence=min(total, 1.0))

    @classmethod
    def has_strong_indicator(cls, indicator_types: List[str]) -> bool:
        return any(t in cls.STRONG_INDICATORS for t in indicator_types)
