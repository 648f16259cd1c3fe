"""
Synthesizer

Natural-language summary for a "why does X exist?" query.
Uses the LLM gateway when available and there is evidence to summarize;
otherwise (or on any LLM failure) falls back to fixed templates built from
the top-ranked decision.

Key principle: surface only recorded facts. With no evidence the summary
says so rather than guessing.
"""

import logging
from typing import List, Optional, Sequence

from ..common.config import QueryConfig
from ..common.llm_gateway import LLMGateway
from ..common.schemas import Decision, NormalizedEvent, Summary, confidence_level

logger = logging.getLogger("decision_memory.retriever.synthesizer")

MAX_KEY_DECISIONS = 5
MAX_PROMPT_ITEMS = 10

NO_EVIDENCE_TEXT = "No recorded decisions or discussions found for this component."

WHY_SYSTEM_PROMPT = """You are a senior software engineer explaining your team's engineering decisions to a new team member.
Given a list of structured decisions and related repository activity for a code component, produce a concise, helpful natural-language explanation.

Return a JSON object:
{
  "summary": "2-4 sentence paragraph explaining why the component exists and how it evolved.",
  "key_decisions": ["bullet", "bullet", ...],
  "open_questions": ["...", ...]
}

key_decisions holds at most 5 of the most important decisions. open_questions lists unresolved or unclear areas and may be empty.
Be factual. If evidence is sparse, say so honestly. Respond ONLY with the JSON."""


def build_why_prompt(
    subject: str,
    decisions: Sequence[Decision],
    events: Sequence[NormalizedEvent],
) -> str:
    """Build the user prompt for a component explanation."""
    decision_lines = []
    for d in decisions[:MAX_PROMPT_ITEMS]:
        line = f"- [{d.decision_type.value}] {d.decision_statement}"
        if d.rationale:
            line += f" (rationale: {d.rationale})"
        decision_lines.append(line)

    event_lines = [
        f"- [{e.event_type.value}] {e.title or '(no title)'} by {e.author_login or 'unknown'}"
        for e in events[:MAX_PROMPT_ITEMS]
    ]

    return (
        f"COMPONENT: {subject}\n\n"
        f"EXTRACTED DECISIONS ({len(decisions)} total, showing top {MAX_PROMPT_ITEMS}):\n"
        + ("\n".join(decision_lines) or "None found.")
        + f"\n\nRELATED ACTIVITY ({len(events)} total, showing top {MAX_PROMPT_ITEMS}):\n"
        + ("\n".join(event_lines) or "None found.")
    )


def _string_list(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v]


class Synthesizer:
    """
    Produces the Summary of an explanation.

    Falls back to templates if the LLM is not available or fails.
    """

    def __init__(
        self,
        gateway: Optional[LLMGateway] = None,
        config: Optional[QueryConfig] = None,
    ):
        self._gateway = gateway
        self._config = config or QueryConfig()

    @property
    def has_llm(self) -> bool:
        return self._gateway is not None and self._gateway.is_available

    def _level(self, score: float) -> str:
        return confidence_level(
            score,
            high=self._config.high_confidence,
            medium=self._config.medium_confidence,
            low=self._config.low_confidence,
        )

    async def synthesize(
        self,
        subject: str,
        decisions: Sequence[Decision],
        events: Sequence[NormalizedEvent],
    ) -> Summary:
        """
        Summarize the evidence for a subject.

        Args:
            subject: Component or topic name
            decisions: Related decisions, best first
            events: Related events, most relevant first

        Returns:
            Summary (source "llm" or "template")
        """
        if self.has_llm and (decisions or events):
            try:
                return await self._synthesize_with_llm(subject, decisions, events)
            except Exception as e:
                logger.warning("LLM summary failed for %r, using template: %s", subject, e)

        return self.fallback_summary(decisions, events)

    async def _synthesize_with_llm(
        self,
        subject: str,
        decisions: Sequence[Decision],
        events: Sequence[NormalizedEvent],
    ) -> Summary:
        data = await self._gateway.complete_json(
            WHY_SYSTEM_PROMPT, build_why_prompt(subject, decisions, events),
        )
        text = str(data.get("summary") or "").strip()
        if not text:
            raise ValueError("LLM summary is empty")

        top = decisions[0] if decisions else None
        return Summary(
            text=text,
            confidence=self._level(top.extraction_confidence) if top else "low",
            key_decisions=_string_list(data.get("key_decisions"))[:MAX_KEY_DECISIONS],
            open_questions=_string_list(data.get("open_questions")),
            primary_decision_maker=top.primary_decision_maker if top else None,
            source="llm",
        )

    def fallback_summary(
        self,
        decisions: Sequence[Decision],
        events: Sequence[NormalizedEvent],
    ) -> Summary:
        if not decisions and not events:
            return Summary(text=NO_EVIDENCE_TEXT, confidence="none")

        if not decisions:
            return Summary(
                text=f"Found {len(events)} related discussions but no structured decisions recorded.",
                confidence="low",
            )

        top = decisions[0]
        text = top.decision_statement
        if top.rationale:
            text += f" Rationale: {top.rationale}"

        return Summary(
            text=text,
            confidence=self._level(top.extraction_confidence),
            key_decisions=[d.decision_statement for d in decisions[:MAX_KEY_DECISIONS]],
            primary_decision_maker=top.primary_decision_maker,
        )
