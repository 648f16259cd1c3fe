"""
Decision Memory

Turns repository activity (pull requests, commits, issues, comments, reviews)
into structured engineering decisions with provenance, then answers
"why does X exist?" from that evidence.

Philosophy:
- Raw events are immutable; everything else is reproducible from them
- Evidence-based answers: surface recorded facts, never invent rationale
- LLM when available, deterministic rules when not

Usage:
    from decision_memory.common import load_config, SQLiteEventStore, LLMGateway
    from decision_memory.capture import EventNormalizer, DecisionExtractor
    from decision_memory.retriever import Explainer
    from decision_memory.service import DecisionMemory
"""

__version__ = "0.1.0"
