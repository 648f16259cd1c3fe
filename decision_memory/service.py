"""
Decision Memory service facade.

Wires the store, LLM gateway and pipeline stages together from one
MemoryConfig and exposes the operations the CLI and HTTP front ends call.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .capture import DecisionExtractor, EventNormalizer, ExtractionResult, NormalizationResult
from .common.config import MemoryConfig
from .common.llm_gateway import LLMGateway
from .common.schemas import DecisionEvidence, Explanation, RawEvent, SearchHit, TimelineItem
from .common.store import EventStore, SQLiteEventStore
from .retriever import Explainer

logger = logging.getLogger("decision_memory.service")


def read_raw_events(path: Union[str, Path]) -> List[RawEvent]:
    """
    Read raw events from a JSON array or a JSON-lines file.

    Raises:
        pydantic.ValidationError: if any record does not have the raw event shape
        json.JSONDecodeError: if the file is not valid JSON / JSON lines
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    stripped = text.lstrip()

    if stripped.startswith("["):
        return [RawEvent.model_validate(item) for item in json.loads(stripped)]

    events = []
    for line in text.splitlines():
        line = line.strip()
        if line:
            events.append(RawEvent.model_validate_json(line))
    return events


class DecisionMemory:
    """
    One configured instance of the pipeline.

    Build it once at process start and hand it to the front ends.
    """

    def __init__(
        self,
        config: MemoryConfig,
        store: Optional[EventStore] = None,
        gateway: Optional[LLMGateway] = None,
    ):
        self.config = config
        self.store = store if store is not None else SQLiteEventStore(config.storage.db_path)
        self.gateway = gateway if gateway is not None else LLMGateway.from_config(config.llm)

        self.normalizer = EventNormalizer(self.store)
        self.extractor = DecisionExtractor(self.store, self.gateway, config.extraction)
        self.explainer = Explainer(self.store, self.gateway, config.query)

    def close(self) -> None:
        self.store.close()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def load_events(self, path: Union[str, Path]) -> int:
        """Store a raw event export in one batch. Returns the number of new events."""
        events = read_raw_events(path)
        logger.info("Loaded %d raw events from %s", len(events), path)
        return self.store.store_batch(events)

    async def normalize(self, repository: str) -> NormalizationResult:
        return self.normalizer.normalize_repository(repository)

    async def extract(
        self,
        repository: str,
        min_confidence: Optional[float] = None,
    ) -> ExtractionResult:
        return await self.extractor.extract(repository, min_confidence)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def explain(self, repository: str, subject: str) -> Explanation:
        return await self.explainer.explain(repository, subject)

    async def timeline(self, repository: str, subject: str) -> List[TimelineItem]:
        return self.explainer.timeline(repository, subject)

    async def search(self, subject: str, repository: Optional[str] = None) -> List[SearchHit]:
        return self.explainer.searcher.search_components(subject, repository)

    async def get_decision_evidence(self, decision_id: str) -> Optional[DecisionEvidence]:
        return self.explainer.get_decision_evidence(decision_id)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def list_repositories(self) -> List[Dict[str, Any]]:
        return self.store.list_repositories()

    async def status(self) -> Dict[str, Any]:
        return {
            "events": self.store.get_stats(),
            "llm": self.gateway.describe(),
        }

    async def stats(self, repository: str) -> Dict[str, Any]:
        return {
            "repository": repository,
            "normalization": self.store.get_normalization_stats(repository),
            "extraction": self.store.get_extraction_stats(repository),
        }
