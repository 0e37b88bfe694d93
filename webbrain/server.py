"""FastAPI server for the Web Brain chatbot backend.

Run with:
    uvicorn webbrain.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from webbrain.api.routes import chatbot_router, router
from webbrain.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from webbrain.orchestrator import create_chat_orchestrator
from webbrain.search import SimilaritySearch
from webbrain.services.embeddings import SentenceTransformerEmbedder
from webbrain.services.knowledge_store import Neo4jKnowledgeStore
from webbrain.services.material_requests import create_material_request_queue

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Start-up: build the collaborators once and store them in app state.

    The Neo4j driver and the embedding model are created lazily on first
    use, so start-up does not need the database or the model weights.
    """
    logger.info("Wiring chat orchestrator…")
    store = Neo4jKnowledgeStore()
    search = SimilaritySearch(store, SentenceTransformerEmbedder())
    material_requests = create_material_request_queue()

    application.state.store = store
    application.state.search = search
    application.state.material_requests = material_requests
    application.state.orchestrator = create_chat_orchestrator(search, material_requests)
    logger.info("Chatbot ready.")
    yield
    store.close()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Web Brain Chatbot",
    description=(
        "Skill-graph API and learning assistant — semantic search over "
        "skills and resources, and requests for missing materials."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every request for log correlation.

    The ID is returned in the ``X-Request-ID`` response header so a failed
    chat turn can be matched to its server-side traceback.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info(
        "[%s] %s %s", request_id, request.method, request.url.path,
    )
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Register routes ──────────────────────────────────────────────────
app.include_router(router)
app.include_router(chatbot_router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Web Brain Chatbot",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    logger.info("Starting Web Brain API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "webbrain.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
