"""
Wine Graph API

FastAPI service for read-only queries over the wine review graph.

Usage:
    uvicorn main:app --reload
"""

# Load environment variables from .env file FIRST
from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from winegraph.config import Config

# Configure logging from environment
logging.basicConfig(
    level=getattr(logging, Config.log_level(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)
logger.info(f"Starting with LOG_LEVEL={Config.log_level()}")

from winegraph.db import open_graph_session
from winegraph.routes import search_router
from winegraph.services import QueryService

# Flipped by the lifespan once the graph session is open
_is_ready = False


def is_ready() -> bool:
    """Whether the graph session is open and queries can be served."""
    return _is_ready


def set_ready(ready: bool = True):
    """Mark the service ready (or not) to serve graph queries."""
    global _is_ready
    _is_ready = ready


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the shared graph session for the lifetime of the app."""
    async with open_graph_session() as graph:
        app.state.graph = graph
        app.state.query_service = QueryService(graph)
        set_ready(True)
        logger.info("Service ready to handle requests")
        try:
            yield
        finally:
            set_ready(False)
            app.state.query_service = None
            app.state.graph = None


app = FastAPI(
    title="Wine Graph API",
    description="Search and browse wine reviews stored in a graph",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def warmup_middleware(request: Request, call_next):
    """Answer 503 with a retry hint until the graph session is open."""
    # Liveness probes and docs never wait for the graph
    if request.url.path in ("/health", "/", "/docs", "/openapi.json"):
        return await call_next(request)

    if not is_ready():
        return JSONResponse(
            status_code=503,
            content={
                "error": "Graph store connecting",
                "message": "The wine graph is not reachable yet. Please retry in a few seconds.",
                "retry_after": 10,
            },
            headers={"Retry-After": "10"},
        )

    return await call_next(request)


# Include routers
app.include_router(search_router, tags=["search"])


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Wine Graph API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "healthy"}


@app.get("/health/graph")
async def graph_health(request: Request):
    """Graph store connectivity check."""
    graph = getattr(request.app.state, "graph", None)
    if graph is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "message": "Graph store not connected"},
        )
    result = await graph.health_check()
    status_code = 200 if result["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=result)
