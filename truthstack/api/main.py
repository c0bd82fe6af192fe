"""FastAPI main application for the TruthStack analysis service."""

import asyncio
import logging
import time as time_module
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from fastapi.security import APIKeyHeader
from pydantic import ValidationError

from ..config import settings
from ..exceptions import AllModelsFailedError, GenerationCancelledError
from ..graph.orchestrator import TruthStackGraph, create_graph
from ..models.schemas import (
    AnalysisResult,
    AnalyzeRequest,
    Claim,
    DebateRequest,
    DebateResponse,
    StreamEvent,
    UsageSummary,
)
from ..services.usage import InMemoryUsageRecorder
from .view import ResultView, ViewRegistry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Rate limiting storage
rate_limit_storage: Dict[str, list] = defaultdict(list)

# Graph instance (singleton)
_graph_instance: Optional[TruthStackGraph] = None

# Displayed results per session
views = ViewRegistry()

# API Key security
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_graph() -> TruthStackGraph:
    """Get or create the graph instance."""
    global _graph_instance
    if _graph_instance is None:
        _graph_instance = create_graph()
    return _graph_instance


async def verify_api_key(api_key: str = Security(api_key_header)) -> bool:
    """Verify API key if authentication is enabled.

    Raises:
        HTTPException: If API key is invalid
    """
    # If no API key configured, allow all requests
    if not settings.API_KEY:
        return True

    if api_key != settings.API_KEY:
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "API key required"}
        )
    return True


async def rate_limit_check(request: Request):
    """Check rate limiting for the request.

    Raises:
        HTTPException: If rate limit exceeded
    """
    client_ip = request.client.host if request.client else "unknown"
    current_time = time_module.time()
    window_start = current_time - settings.RATE_LIMIT_WINDOW

    # Clean old entries
    rate_limit_storage[client_ip] = [
        t for t in rate_limit_storage[client_ip] if t > window_start
    ]

    if len(rate_limit_storage[client_ip]) >= settings.RATE_LIMIT_REQUESTS:
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded. Please try again later."
        )

    rate_limit_storage[client_ip].append(current_time)


def sanitize_error_message(error: Exception) -> str:
    """Sanitize error message to prevent information leakage.

    Exhausted model fallback is the one failure users are meant to see, so
    its diagnostic passes through.
    """
    if settings.DEBUG_MODE or isinstance(error, AllModelsFailedError):
        return str(error)

    error_str = str(error).lower()

    if "api key" in error_str or "authentication" in error_str:
        return "Authentication error occurred"
    elif "timeout" in error_str:
        return "Request timed out"
    elif "connection" in error_str:
        return "Service temporarily unavailable"
    else:
        return "An internal error occurred"


def to_claim(request: AnalyzeRequest) -> Claim:
    """Validate an analysis request into a Claim.

    Raises:
        HTTPException: If the claim is too long or has neither text nor image
    """
    if len(request.text) > settings.MAX_TEXT_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Text too long. Maximum {settings.MAX_TEXT_LENGTH} characters allowed."
        )
    try:
        return request.to_claim()
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))


def sse(event: StreamEvent) -> str:
    return f"event: {event.event_type}\ndata: {event.model_dump_json()}\n\n"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting TruthStack API...")
    logger.info(f"Model fallback chain: {settings.MODEL_FALLBACK_CHAIN}")
    logger.info(f"Prompt contract: {settings.PROMPT_CONTRACT}")
    logger.info(f"Usage recorder: {settings.USAGE_RECORDER}")

    yield

    logger.info("Shutting down TruthStack API...")
    if _graph_instance is not None and _graph_instance.usage_emitter is not None:
        _graph_instance.usage_emitter.shutdown(wait=True)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="TruthStack API",
        description="Layered claim analysis backed by a hosted language model",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    cors_origins = [
        origin.strip()
        for origin in settings.CORS_ORIGINS.split(",")
        if origin.strip()
    ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-Session-Id"],
    )

    return app


# Create app instance
app = create_app()


# ==================== Health Check ====================

@app.get("/health")
async def health_check():
    """Health check endpoint (no auth required)."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "0.1.0"
    }


@app.get("/config")
async def get_config(_: bool = Depends(verify_api_key)):
    """Get current configuration (non-sensitive)."""
    return {
        "models": settings.analysis_models(),
        "debate_models": settings.debate_models(),
        "prompt_contract": settings.PROMPT_CONTRACT,
        "no_source_confidence_cap": settings.NO_SOURCE_CONFIDENCE_CAP,
        "usage_recorder": settings.USAGE_RECORDER,
        "max_text_length": settings.MAX_TEXT_LENGTH,
    }


# ==================== Analysis ====================

@app.post("/analyze", response_model=AnalysisResult)
async def analyze_claim(
    request: AnalyzeRequest,
    http_request: Request,
    _: bool = Depends(verify_api_key)
):
    """Analyze a claim and return the layered result.

    Returns 502 with the last backend error when every model failed.
    """
    await rate_limit_check(http_request)
    claim = to_claim(request)

    logger.info(f"Received analysis request: {claim.text[:100]}...")

    try:
        graph = get_graph()
        result = await graph.arun(claim)

    except AllModelsFailedError as e:
        logger.error(f"Analysis failed: {e}")
        raise HTTPException(status_code=502, detail=sanitize_error_message(e))

    except Exception as e:
        logger.error(f"Analysis failed: {e}")
        raise HTTPException(status_code=500, detail=sanitize_error_message(e))

    logger.info(f"Analysis completed: {result.verdict.status.value} via {result.model_used}")
    return result


# ==================== Streaming Analysis ====================

async def generate_sse_events(claim: Claim, view: ResultView):
    """Generate Server-Sent Events for one analysis.

    Events:
    - start: analysis started
    - layers: placeholder stack (claim plus a loading layer)
    - loading: the loading layer was retitled
    - complete: final result
    - error: every model failed or the pipeline raised
    - superseded: a newer request from the same session replaced this one
    """
    ticket = view.begin(claim)
    yield sse(StreamEvent(event_type="start", data={"message": "Analysis started"}))
    yield sse(StreamEvent(
        event_type="layers",
        data={"result": ticket.placeholder.model_dump(mode="json", by_alias=True)}
    ))

    graph = get_graph()
    task = asyncio.create_task(graph.arun(claim, should_stop=ticket.should_stop))

    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=settings.LOADING_MESSAGE_INTERVAL)
            if done:
                break
            if not view.is_current(ticket):
                continue
            title = view.tick()
            if title:
                yield sse(StreamEvent(
                    event_type="loading",
                    data={"title": title, "index": view.message_index}
                ))

        result = task.result()

    except GenerationCancelledError:
        yield sse(StreamEvent(event_type="superseded", data={"message": "Replaced by a newer request"}))
        return

    except Exception as e:
        logger.error(f"Streaming analysis failed: {e}")
        message = sanitize_error_message(e)
        if view.fail(ticket, message):
            yield sse(StreamEvent(event_type="error", data={"error": message}))
        else:
            yield sse(StreamEvent(event_type="superseded", data={"message": "Replaced by a newer request"}))
        return

    finally:
        if not task.done():
            # Client went away; stop before the next model attempt
            ticket.cancel_event.set()

    if view.resolve(ticket, result):
        yield sse(StreamEvent(
            event_type="complete",
            data={"result": result.model_dump(mode="json", by_alias=True)}
        ))
    else:
        yield sse(StreamEvent(event_type="superseded", data={"message": "Replaced by a newer request"}))


@app.post("/analyze/stream")
async def analyze_claim_stream(
    request: AnalyzeRequest,
    http_request: Request,
    x_session_id: Optional[str] = Header(default=None),
    _: bool = Depends(verify_api_key)
):
    """Stream an analysis using Server-Sent Events.

    Requests sharing an X-Session-Id header supersede each other: only the
    latest one is displayed.
    """
    await rate_limit_check(http_request)
    claim = to_claim(request)

    session_id = x_session_id or (http_request.client.host if http_request.client else "anonymous")
    logger.info(f"Starting streaming analysis (session: {session_id}, length: {len(claim.text)})")

    return StreamingResponse(
        generate_sse_events(claim, views.get(session_id)),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }
    )


# ==================== Follow-up Requests ====================

@app.post("/debate", response_model=DebateResponse)
async def debate(
    request: DebateRequest,
    http_request: Request,
    _: bool = Depends(verify_api_key)
):
    """Generate a short Pro/Con debate about a claim.

    Always succeeds; a failed or malformed transcript is an empty list.
    """
    await rate_limit_check(http_request)

    if len(request.topic) > settings.MAX_TEXT_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Topic too long. Maximum {settings.MAX_TEXT_LENGTH} characters allowed."
        )

    turns = await get_graph().adebate(request.topic)
    return DebateResponse(topic=request.topic, turns=turns)


# ==================== Usage ====================

@app.get("/usage/summary", response_model=UsageSummary)
async def usage_summary(recent: int = 20, _: bool = Depends(verify_api_key)):
    """Aggregated usage records (in-memory recorder only)."""
    recorder = get_graph().usage_recorder
    if not isinstance(recorder, InMemoryUsageRecorder):
        raise HTTPException(
            status_code=404,
            detail="Usage summary requires the in-memory usage recorder"
        )
    return recorder.summarize(recent=max(0, min(recent, 100)))


# ==================== Run Server ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "truthstack.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=True
    )
