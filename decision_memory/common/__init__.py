"""
Decision Memory Common Module

Shared infrastructure for the capture and retriever stages.
"""

from .config import MemoryConfig, load_config
from .llm_gateway import LLMGateway
from .store import EventStore, SQLiteEventStore

__all__ = [
    "MemoryConfig",
    "load_config",
    "LLMGateway",
    "EventStore",
    "SQLiteEventStore",
]
