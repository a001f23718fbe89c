"""
FastAPI routes for Chart Orchestrator.

PURPOSE: Thin route handlers that delegate to controller, session and chat.
AI CONTEXT: Routes should be simple - logic lives in the core modules.

ROUTE STRUCTURE:
- /             : Service info
- /api/filters  : Global filter catalog
- /api/view     : Decode the request's query, fetch and present chart data
- /api/view/update : Apply a bulk view update, return the new query
- /api/chat     : Run one chat turn against a view

STATE:
Every request builds a ViewController over a MemoryUrlStore seeded with the
dashboard query it received. The response returns the new query string; the
client's URL remains the only durable state.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from ..__version__ import __version__
from ..chat import ChatAssistant, ChatClient, HttpChatClient
from ..controller import ViewController
from ..fetcher import HttpMetricFetcher
from ..models import ChatMessage, ViewUpdate, ViewUpdateError
from ..orchestrator import FetchOrchestrator
from ..session import DashboardSession
from ..url_store import MemoryUrlStore

__all__ = [
    "router",
    "get_orchestrator",
    "get_chat_client",
]

router = APIRouter()

CHAT_ROLES = frozenset({"user", "assistant"})


# =============================================================================
# Dependency Factory Functions
# =============================================================================


def get_orchestrator() -> FetchOrchestrator:
    """
    Create a FetchOrchestrator backed by the configured data endpoint.

    A new instance per request keeps generation counters request-local.

    Returns:
        FetchOrchestrator using HttpMetricFetcher(Config.get_data_url()).
    """
    return FetchOrchestrator(HttpMetricFetcher())


def get_chat_client() -> ChatClient:
    """Create the chat collaborator from Config (proxy URL or API key)."""
    return HttpChatClient()


def _controller_for(query: str) -> tuple[MemoryUrlStore, ViewController]:
    store = MemoryUrlStore(query)
    return store, ViewController(store)


def _require_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key, "")
    if not isinstance(value, str):
        raise HTTPException(status_code=422, detail=f"'{key}' must be a string")
    return value


# ============================================================================
# Routes
# ============================================================================


@router.get("/")
async def root() -> dict[str, object]:
    """Service name, version and route index."""
    return {
        "name": "chart-orchestrator",
        "version": __version__,
        "endpoints": ["/api/filters", "/api/view", "/api/view/update", "/api/chat"],
    }


@router.get("/api/filters")
async def api_filters(
    orchestrator: Annotated[FetchOrchestrator, Depends(get_orchestrator)],
) -> dict[str, object]:
    """
    Return the global filter catalog for rendering filter controls.

    Example:
        >>> # GET /api/filters
        >>> {"filters": [{"key": "repository", "label": "Repository", ...}, ...]}
    """
    return {"filters": [definition.to_dict() for definition in orchestrator.available_filters()]}


@router.get("/api/view")
async def api_view(
    request: Request,
    orchestrator: Annotated[FetchOrchestrator, Depends(get_orchestrator)],
) -> dict[str, object]:
    """
    Load a dashboard view from its own query string.

    The request query is the dashboard query (c=...&repository=...). An
    empty chart list is replaced by the default layout. All distinct metric
    requests are fetched concurrently; a failing metric marks only the
    charts that use it.

    Business context: Lets any frontend, bot or export job render exactly
    what a shared dashboard URL shows.

    Returns:
        Dict containing:
        - 'query': canonical readable query (including installed defaults)
        - 'view': DashboardViewModel.to_dict() with charts, filters, controls

    Example:
        >>> # GET /api/view?c=[{"t":"bar","m":["prs_opened"]}]&date=7d
        >>> {"query": "c=[...]&date=7d", "view": {"charts": [{"series": [...]}], ...}}
    """
    store, controller = _controller_for(request.url.query)
    session = DashboardSession(controller, orchestrator)
    session.ensure_default_charts()
    view = await session.refresh()
    if view is None:
        raise HTTPException(status_code=409, detail="View changed while loading")
    return {"query": store.read(), "view": view.to_dict()}


@router.post("/api/view/update")
async def api_view_update(
    payload: Annotated[dict[str, Any], Body()],
) -> dict[str, object]:
    """
    Apply a bulk view update to a dashboard query.

    Body:
        {"query": "c=...", "specs": [...], "filters": {...}}
        At least one of specs/filters is required.

    Returns:
        {"query": new query, "state": {"specs": [...], "filters": {...}}}

    Raises:
        HTTPException: 422 when the update has an invalid shape.
    """
    query = _require_str(payload, "query")
    update_payload = {k: v for k, v in payload.items() if k != "query"}
    try:
        update = ViewUpdate.from_dict(update_payload)
    except ViewUpdateError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    store, controller = _controller_for(query)
    controller.apply_view_update(update)
    return {"query": store.read(), "state": controller.snapshot().to_dict()}


@router.post("/api/chat")
async def api_chat(
    payload: Annotated[dict[str, Any], Body()],
    client: Annotated[ChatClient, Depends(get_chat_client)],
) -> dict[str, object]:
    """
    Run one chat turn against a dashboard query.

    Body:
        {"query": "c=...", "message": "Show backend contributors",
         "history": [{"role": "user"|"assistant", "content": "..."}]}

    Returns:
        {"reply": {"role": "assistant", "content": ...},
         "query": possibly updated query, "updated": bool}

    Raises:
        HTTPException: 422 on a malformed body. Chat failures are returned
            as assistant replies, never as HTTP errors.
    """
    query = _require_str(payload, "query")
    message = _require_str(payload, "message")
    history = payload.get("history", [])
    if not isinstance(history, list):
        raise HTTPException(status_code=422, detail="'history' must be a list")

    store, controller = _controller_for(query)
    assistant = ChatAssistant(client, controller)
    for entry in history:
        if (
            not isinstance(entry, dict)
            or entry.get("role") not in CHAT_ROLES
            or not isinstance(entry.get("content"), str)
        ):
            raise HTTPException(status_code=422, detail="malformed history entry")
        assistant.history.append(ChatMessage(entry["role"], entry["content"]))

    reply = await assistant.send(message)
    new_query = store.read()
    return {"reply": reply.to_dict(), "query": new_query, "updated": new_query != query}
