"""FastAPI application exposing the router."""

import time
from typing import Any, List, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from query_router import orchestrator
from query_router.config import Settings
from query_router.config import settings as default_settings
from query_router.exceptions import CircuitOpenError, ContextualError, LLMResponseError
from query_router.logging import get_logger
from query_router.models.adapter import ChatAdapter
from query_router.resilience.guard import ResilienceGuard

logger = get_logger(__name__)

VERSION = "0.1.0"


class RouteRequest(BaseModel):
    """Request model for the route endpoint."""

    question: str = Field(..., min_length=1)
    db_schema: Optional[dict[str, Any]] = None
    history: List[dict[str, str]] = []


class RouteResponse(BaseModel):
    """Response model for the route endpoint."""

    task: str
    confidence: float
    raw_confidence: Optional[float] = None
    reason: str
    route_source: str
    intent: Optional[str] = None
    parameters: dict[str, Any] = {}
    template_used: Optional[str] = None
    rule: Optional[str] = None
    sql: Optional[str] = None
    matched_keywords: List[str] = []
    original_question: str
    processing_time_ms: float


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    version: str
    components: dict[str, str]


def _configure_health_endpoint(app: FastAPI) -> None:
    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        cfg: Settings = request.app.state.settings
        breakers = request.app.state.guard.registry.snapshot()
        components = {
            "llm": "configured"
            if (cfg.OPENAI_API_KEY or request.app.state.adapter is not None)
            else "not_configured",
            "llm_model": cfg.LLM_MODEL,
        }
        components.update({f"breaker_{name}": snap["state"] for name, snap in breakers.items()})

        any_open = any(snap["state"] == "OPEN" for snap in breakers.values())
        return HealthResponse(
            status="degraded" if any_open else "healthy",
            version=VERSION,
            components=components,
        )


def _configure_route_endpoint(app: FastAPI) -> None:
    @app.post("/route", response_model=RouteResponse)
    def route_question(body: RouteRequest, request: Request) -> RouteResponse:
        logger.info(f"Routing question: {body.question}")
        start_time = time.perf_counter()
        try:
            decision = orchestrator.route(
                body.question,
                schema=body.db_schema,
                settings=request.app.state.settings,
                history=body.history,
                guard=request.app.state.guard,
                adapter=request.app.state.adapter,
            )
        except CircuitOpenError as e:
            raise HTTPException(
                status_code=503,
                detail=str(e),
                headers={"Retry-After": str(max(1, round(e.retry_after)))},
            ) from e
        except (ContextualError, LLMResponseError) as e:
            raise HTTPException(status_code=502, detail=f"Routing failed: {e}") from e

        processing_time = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Routed to {decision.task} via {decision.route_source} in {processing_time:.2f}ms"
        )
        return RouteResponse(**decision.to_dict(), processing_time_ms=processing_time)


def _configure_breakers_endpoint(app: FastAPI) -> None:
    @app.get("/breakers")
    async def get_breakers(request: Request) -> dict[str, Any]:
        return {"breakers": request.app.state.guard.registry.snapshot()}


def create_app(
    settings: Optional[Settings] = None,
    guard: Optional[ResilienceGuard] = None,
    adapter: Optional[ChatAdapter] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Settings override; defaults to the environment settings
        guard: Resilience guard shared by every request
        adapter: LLM adapter; when omitted one is built from OPENAI_API_KEY on demand

    Returns:
        Configured FastAPI application
    """
    cfg = settings or default_settings
    app = FastAPI(
        title="Query Router API",
        description="Routes operational questions to SQL, document search or the optimizer",
        version=VERSION,
    )
    app.state.settings = cfg
    app.state.guard = guard or ResilienceGuard(settings=cfg)
    app.state.adapter = adapter

    _configure_health_endpoint(app)
    _configure_route_endpoint(app)
    _configure_breakers_endpoint(app)

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
