"""
Retriever - Decision Explanation

Answers "why does X exist?" from recorded decisions and repository activity.

Key Components:
- Searcher: Related events/decisions and component search
- Synthesizer: LLM summary with template fallback
- Explainer: Aggregates evidence into an Explanation
- build_relationship_graph: Derived node/edge view for display

Pipeline:
1. Find related events (relevance-scored) and decisions
2. Score evidence (confidence, freshness) and list gaps
3. Merge into a timeline and relationship graph
4. Summarize (respecting sparse evidence)
"""

from .searcher import Searcher, ScoredEvent, source_url
from .graph import build_relationship_graph
from .synthesizer import Synthesizer
from .explainer import Explainer

__all__ = [
    "Searcher",
    "ScoredEvent",
    "source_url",
    "build_relationship_graph",
    "Synthesizer",
    "Explainer",
]
