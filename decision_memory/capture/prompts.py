"""
Prompt templates for decision extraction.
"""

from ..common.schemas import NormalizedEvent

MAX_CONTENT_CHARS = 3000


DECISION_SYSTEM_PROMPT = """You are an expert engineering decision analyst.
Your task is to read a repository event (PR, commit, comment, or review) and extract any engineering decision
recorded in it.

Return a JSON object with EXACTLY these fields (use null for anything not found):

{
  "is_decision": true | false,
  "decision_statement": "One crisp sentence stating what was decided.",
  "rationale": "Why this decision was made (can be null).",
  "alternatives_considered": "Other options that were mentioned or evaluated (can be null).",
  "tradeoffs": "Explicit trade-offs discussed (can be null).",
  "problem_statement": "The problem or need that drove this decision (can be null).",
  "success_criteria": "How success is measured (can be null).",
  "implementation_notes": "Notable implementation details (can be null).",
  "decision_type": "technical" | "architectural" | "process" | "tool_choice" | "approval" | "implementation",
  "scope": "local" | "component" | "system" | "organization",
  "reversibility": "reversible" | "costly" | "irreversible",
  "decision_confidence": "high" | "medium" | "low",
  "extraction_confidence": 0.0 to 1.0
}

Rules:
- Set is_decision to false if the content contains no decision at all.
- decision_statement must be in the past tense and start with a verb, e.g. "Chose X over Y because Z".
- Keep every field concise (2 sentences at most).
- Respond ONLY with the JSON object, no markdown, no extra text."""


def build_decision_prompt(event: NormalizedEvent) -> str:
    """Build the user prompt for a single normalized event."""
    lines = [
        f"EVENT TYPE: {event.event_type.value}",
        f"AUTHOR: {event.author_login or 'unknown'}",
    ]
    if event.pull_request_number:
        lines.append(f"PR NUMBER: #{event.pull_request_number}")
    if event.title:
        lines.append(f"TITLE: {event.title}")
    if event.decision_indicators:
        lines.append(f"DECISION SIGNALS DETECTED: {', '.join(event.indicator_types)}")

    content = (event.content or "")[:MAX_CONTENT_CHARS]
    return "\n".join(lines) + f"\n\nCONTENT:\n{content}"

