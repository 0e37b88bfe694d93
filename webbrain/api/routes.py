"""FastAPI route definitions for the Web Brain chatbot API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Body, HTTPException, Request
from fastapi.responses import JSONResponse

from webbrain.api.schemas import ChatResponse, HealthResponse
from webbrain.config import DEFAULT_SEARCH_LIMIT
from webbrain.orchestrator import ChatRequestError, parse_chat_request, utc_timestamp
from webbrain.tools import coerce_limit

logger = logging.getLogger(__name__)

router = APIRouter()
chatbot_router = APIRouter(prefix="/chatbot")


def _get_state(request: Request, name: str):
    """Retrieve a collaborator the lifespan stored on app state.

    Everything is built once in ``server.lifespan``; until then the
    endpoints answer 503 instead of racing a lazy global.
    """
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=503,
            detail="The service is still starting up. Please try again in a moment.",
        )
    return value


def _request_id(http_request: Request) -> str:
    return getattr(http_request.state, "request_id", "?")


# ── Graph endpoints ──────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.get("/tree")
async def read_tree(http_request: Request):
    """The whole skill graph as ``{nodes, links}``."""
    store = _get_state(http_request, "store")
    return await asyncio.to_thread(store.read_tree)


@router.get("/paths/{start_node_id}/{target_node_id}")
async def read_path(start_node_id: str, target_node_id: str, http_request: Request):
    """Nodes and links on every path between two nodes."""
    store = _get_state(http_request, "store")
    return await asyncio.to_thread(store.read_path, start_node_id, target_node_id)


# ── Chatbot endpoints ────────────────────────────────────────────────


@chatbot_router.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"description": "Invalid message"}, 500: {"description": "Chat failed"}},
)
async def chat(http_request: Request, payload: Any = Body(None)):
    """Run one chat turn: LLM decision, at most one tool round, final answer.

    ``orchestrator.chat()`` blocks on the LLM, Neo4j and the embedding
    model, so it runs on the default thread-pool to keep the event loop
    free for other requests.
    """
    orchestrator = _get_state(http_request, "orchestrator")
    request_id = _request_id(http_request)

    try:
        chat_request = parse_chat_request(payload)
    except ChatRequestError as e:
        logger.info("[%s] Rejected chat request: %s", request_id, e)
        return JSONResponse(status_code=400, content={"error": str(e)})

    try:
        return await asyncio.to_thread(orchestrator.chat, chat_request)
    except ChatRequestError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        # Full traceback stays in the server log; the client only gets the
        # error text for operators to correlate via X-Request-ID.
        logger.exception("[%s] Chat request failed", request_id)
        return JSONResponse(
            status_code=500,
            content={"error": "Chat request failed", "message": str(e)},
        )


@chatbot_router.post("/search")
async def search(http_request: Request, payload: Any = Body(None)):
    """Semantic search over the graph, outside of a chat turn."""
    similarity_search = _get_state(http_request, "search")
    request_id = _request_id(http_request)

    body = payload if isinstance(payload, dict) else {}
    query = body.get("query")
    if not isinstance(query, str) or not query.strip():
        return JSONResponse(
            status_code=400,
            content={"error": "Query is required and must be a string"},
        )
    limit = coerce_limit(body.get("limit"), DEFAULT_SEARCH_LIMIT)

    try:
        result = await asyncio.to_thread(similarity_search.search, query, limit)
    except Exception as e:
        logger.exception("[%s] Search failed", request_id)
        return JSONResponse(
            status_code=500, content={"error": "Search failed", "message": str(e)},
        )
    return {**result, "query": query, "timestamp": utc_timestamp()}


@chatbot_router.post("/material-request")
async def material_request(http_request: Request, payload: Any = Body(None)):
    """Relay a client-built material request embed to the maintainers."""
    material_requests = _get_state(http_request, "material_requests")
    request_id = _request_id(http_request)

    body = payload if isinstance(payload, dict) else {}
    embed, request_details = body.get("embed"), body.get("request")
    if not isinstance(embed, dict) or not isinstance(request_details, dict):
        return JSONResponse(
            status_code=400,
            content={"error": "Both embed and request objects are required"},
        )

    try:
        material_requests.forward(embed)
    except Exception as e:
        logger.exception("[%s] Material request failed", request_id)
        return JSONResponse(
            status_code=500,
            content={"error": "Material request failed", "message": str(e)},
        )
    return {
        "success": True,
        "message": "Material request submitted",
        "timestamp": utc_timestamp(),
    }
