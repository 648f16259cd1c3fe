"""
Decision Memory Server

FastAPI front end for "why does this exist?" queries.

Endpoints:
- GET /api/health: Health check
- GET /api/repositories: Repositories with stored events
- GET /api/search?q=&repo=: Component search
- GET /api/why/{owner}/{repo}/{subject}: Full explanation
- GET /api/timeline/{owner}/{repo}/{subject}: Timeline only
- GET /api/evidence/{decision_id}: Decision with its source records
- GET /api/stats/{owner}/{repo}: Normalization and extraction stats
- POST /api/normalize/{owner}/{repo}: Run normalization
- POST /api/extract/{owner}/{repo}: Run decision extraction
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request

from .common.config import MemoryConfig, load_config
from .service import DecisionMemory

logger = logging.getLogger("decision_memory.server")


def create_app(
    memory: Optional[DecisionMemory] = None,
    config: Optional[MemoryConfig] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        memory: Pre-built service (tests pass one in); built at startup otherwise
        config: Configuration used when ``memory`` is not given
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = False
        if getattr(app.state, "memory", None) is None:
            app.state.memory = DecisionMemory(config or load_config())
            owned = True
        logger.info("Decision Memory server ready (LLM: %s)", app.state.memory.gateway.primary or "none")

        yield

        logger.info("Shutting down...")
        if owned:
            app.state.memory.close()

    app = FastAPI(
        title="Decision Memory",
        description="Engineering decision extraction and explanation",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.memory = memory

    def get_memory(request: Request) -> DecisionMemory:
        service = request.app.state.memory
        if service is None:
            raise HTTPException(status_code=503, detail="Service not initialized")
        return service

    @app.get("/api/health")
    async def health(request: Request):
        """Health check endpoint"""
        service = request.app.state.memory
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "llm": service.gateway.describe() if service else None,
        }

    @app.get("/api/repositories")
    async def repositories(request: Request):
        try:
            return await get_memory(request).list_repositories()
        except HTTPException:
            raise
        except Exception as e:
            logger.error("Repositories error: %s", e)
            raise HTTPException(status_code=500, detail="Failed to get repositories")

    @app.get("/api/search")
    async def search(request: Request, q: Optional[str] = Query(None), repo: Optional[str] = None):
        if not q:
            raise HTTPException(status_code=400, detail="Query parameter required")
        try:
            hits = await get_memory(request).search(q, repo)
            return [h.model_dump(mode="json") for h in hits]
        except HTTPException:
            raise
        except Exception as e:
            logger.error("Search error: %s", e)
            raise HTTPException(status_code=500, detail="Search failed")

    @app.get("/api/why/{owner}/{repo}/{subject:path}")
    async def why(request: Request, owner: str, repo: str, subject: str):
        try:
            explanation = await get_memory(request).explain(f"{owner}/{repo}", subject)
            return explanation.model_dump(mode="json")
        except HTTPException:
            raise
        except Exception as e:
            logger.error("Why explanation error: %s", e)
            raise HTTPException(status_code=500, detail="Failed to generate explanation")

    @app.get("/api/timeline/{owner}/{repo}/{subject:path}")
    async def timeline(request: Request, owner: str, repo: str, subject: str):
        try:
            items = await get_memory(request).timeline(f"{owner}/{repo}", subject)
            return [item.model_dump(mode="json") for item in items]
        except HTTPException:
            raise
        except Exception as e:
            logger.error("Timeline error: %s", e)
            raise HTTPException(status_code=500, detail="Failed to get timeline")

    @app.get("/api/evidence/{decision_id}")
    async def evidence(request: Request, decision_id: str):
        try:
            result = await get_memory(request).get_decision_evidence(decision_id)
        except HTTPException:
            raise
        except Exception as e:
            logger.error("Evidence error: %s", e)
            raise HTTPException(status_code=500, detail="Failed to get evidence")
        if result is None:
            raise HTTPException(status_code=404, detail="Decision not found")
        return result.model_dump(mode="json")

    @app.get("/api/stats/{owner}/{repo}")
    async def stats(request: Request, owner: str, repo: str):
        try:
            return await get_memory(request).stats(f"{owner}/{repo}")
        except HTTPException:
            raise
        except Exception as e:
            logger.error("Stats error: %s", e)
            raise HTTPException(status_code=500, detail="Failed to get stats")

    @app.post("/api/normalize/{owner}/{repo}")
    async def normalize(request: Request, owner: str, repo: str):
        try:
            result = await get_memory(request).normalize(f"{owner}/{repo}")
        except HTTPException:
            raise
        except Exception as e:
            logger.error("Normalization error: %s", e)
            raise HTTPException(status_code=500, detail="Normalization failed")
        return {
            "repository": result.repository,
            "processed": result.processed,
            "normalized": result.normalized,
            "failed": result.failed,
        }

    @app.post("/api/extract/{owner}/{repo}")
    async def extract(
        request: Request,
        owner: str,
        repo: str,
        min_confidence: Optional[float] = Query(None, ge=0.0, le=1.0),
    ):
        try:
            result = await get_memory(request).extract(f"{owner}/{repo}", min_confidence)
        except HTTPException:
            raise
        except Exception as e:
            logger.error("Extraction error: %s", e)
            raise HTTPException(status_code=500, detail="Extraction failed")
        return {"extracted": result.extracted, "skipped": result.skipped}

    return app


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server(config: Optional[MemoryConfig] = None):
    """Run the HTTP server"""
    import uvicorn

    config = config or load_config()
    logger.info("Starting server on %s:%d", config.server.host, config.server.port)
    uvicorn.run(
        create_app(config=config),
        host=config.server.host,
        port=config.server.port,
    )
