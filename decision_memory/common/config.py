"""
Configuration Management for Decision Memory

Loads configuration from ~/.decision_memory/config.json and environment variables.
The resulting MemoryConfig is built once at startup and handed to every component.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("decision_memory.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".decision_memory"
CONFIG_PATH = CONFIG_DIR / "config.json"

DEFAULT_DB_PATH = "./storage/events.db"


@dataclass
class LLMConfig:
    """LLM back ends, discovered from whichever API keys are present"""
    groq_api_key: str = ""
    groq_model: str = "llama-3.3-70b-versatile"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-haiku-20240307"
    max_tokens: int = 1024
    temperature: float = 0.2
    timeout: float = 30.0  # per back-end call, seconds


@dataclass
class StorageConfig:
    """Event store configuration"""
    db_path: str = DEFAULT_DB_PATH


@dataclass
class ExtractionConfig:
    """Decision extraction configuration"""
    min_confidence: float = 0.4
    llm_max_tokens: int = 512
    llm_temperature: float = 0.1


@dataclass
class QueryConfig:
    """Explanation / search configuration"""
    max_results: int = 10
    search_limit: int = 50
    high_confidence: float = 0.8
    medium_confidence: float = 0.6
    low_confidence: float = 0.3


@dataclass
class ServerConfig:
    """HTTP front end configuration"""
    host: str = "127.0.0.1"
    port: int = 3000


@dataclass
class MemoryConfig:
    """Main Decision Memory configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    defaults = LLMConfig()
    return LLMConfig(
        groq_api_key=llm_data.get("groq_api_key", ""),
        groq_model=llm_data.get("groq_model", defaults.groq_model),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", defaults.openai_model),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", defaults.anthropic_model),
        max_tokens=int(llm_data.get("max_tokens", defaults.max_tokens)),
        temperature=float(llm_data.get("temperature", defaults.temperature)),
        timeout=float(llm_data.get("timeout", defaults.timeout)),
    )


def _parse_storage_config(data: dict) -> StorageConfig:
    """Parse storage section from config dict"""
    storage_data = data.get("storage", {})
    return StorageConfig(
        db_path=storage_data.get("db_path", DEFAULT_DB_PATH),
    )


def _parse_extraction_config(data: dict) -> ExtractionConfig:
    """Parse extraction section from config dict"""
    extraction_data = data.get("extraction", {})
    defaults = ExtractionConfig()
    return ExtractionConfig(
        min_confidence=float(extraction_data.get("min_confidence", defaults.min_confidence)),
        llm_max_tokens=int(extraction_data.get("llm_max_tokens", defaults.llm_max_tokens)),
        llm_temperature=float(extraction_data.get("llm_temperature", defaults.llm_temperature)),
    )


def _parse_query_config(data: dict) -> QueryConfig:
    """Parse query section from config dict"""
    query_data = data.get("query", {})
    defaults = QueryConfig()
    return QueryConfig(
        max_results=int(query_data.get("max_results", defaults.max_results)),
        search_limit=int(query_data.get("search_limit", defaults.search_limit)),
        high_confidence=float(query_data.get("high_confidence", defaults.high_confidence)),
        medium_confidence=float(query_data.get("medium_confidence", defaults.medium_confidence)),
        low_confidence=float(query_data.get("low_confidence", defaults.low_confidence)),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "127.0.0.1"),
        port=int(server_data.get("port", 3000)),
    )


def load_config(config_path: Path = None) -> MemoryConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.decision_memory/config.json)
    3. Default values
    """
    config = MemoryConfig()
    path = config_path or CONFIG_PATH

    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.storage = _parse_storage_config(data)
            config.extraction = _parse_extraction_config(data)
            config.query = _parse_query_config(data)
            config.server = _parse_server_config(data)
        except (json.JSONDecodeError, IOError, ValueError) as e:
            logger.warning("Failed to load config file %s: %s", path, e)

    # LLM env var overrides
    _env_llm_map = {
        "GROQ_API_KEY": "groq_api_key",
        "GROQ_MODEL": "groq_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)

    if os.getenv("LLM_TIMEOUT"):
        config.llm.timeout = float(os.getenv("LLM_TIMEOUT"))
    if os.getenv("DB_PATH"):
        config.storage.db_path = os.getenv("DB_PATH")
    if os.getenv("EXTRACT_MIN_CONFIDENCE"):
        config.extraction.min_confidence = float(os.getenv("EXTRACT_MIN_CONFIDENCE"))
    if os.getenv("QUERY_MAX_RESULTS"):
        config.query.max_results = int(os.getenv("QUERY_MAX_RESULTS"))
    if os.getenv("PORT"):
        config.server.port = int(os.getenv("PORT"))

    return config
