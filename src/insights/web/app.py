"""FastAPI application exposing search and rumination over HTTP."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from insights.config import AppConfig
from insights.service import InsightsService

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Insights", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_service: InsightsService | None = None


class SearchPayload(BaseModel):
    query: str
    top_k: int | None = None


class RuminatePayload(BaseModel):
    force: bool = False


def configure(service: InsightsService) -> None:
    """Install the service used by every endpoint."""
    global _service
    _service = service


def get_service() -> InsightsService:
    global _service
    if _service is None:
        _service = InsightsService.from_config(AppConfig())
    return _service


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    await get_service().start()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    if _service is not None:
        await _service.stop()


@app.post("/search")
async def search_documents(
    payload: SearchPayload, service: InsightsService = Depends(get_service)
) -> dict[str, List[Dict[str, Any]]]:
    query = payload.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")

    top_k = None if payload.top_k is None else max(1, min(payload.top_k, 100))
    results = await service.search(query, top_k=top_k)
    return {"results": [asdict(result) for result in results]}


@app.post("/ruminate")
async def ruminate(
    payload: RuminatePayload, service: InsightsService = Depends(get_service)
) -> dict[str, List[Dict[str, Any]]]:
    suggestions = await service.run_rumination(payload.force)
    return {"suggestions": [asdict(suggestion) for suggestion in suggestions]}


@app.post("/index")
async def rebuild_index(service: InsightsService = Depends(get_service)) -> dict[str, Any]:
    if not await service.rebuild_index():
        raise HTTPException(status_code=500, detail="Index rebuild failed")
    return {"status": "ok", **service.status()}


@app.get("/documents")
async def list_documents(service: InsightsService = Depends(get_service)) -> dict[str, Any]:
    """List the documents of the published index."""
    return {"documents": [asdict(meta) for meta in service.documents()]}


@app.get("/status")
async def status(service: InsightsService = Depends(get_service)) -> dict[str, Any]:
    return service.status()


@app.get("/settings")
async def get_settings(service: InsightsService = Depends(get_service)) -> dict[str, Any]:
    return service.settings.to_dict()


@app.put("/settings")
async def update_settings(
    updates: Dict[str, Any], service: InsightsService = Depends(get_service)
) -> dict[str, Any]:
    try:
        settings = await service.update_settings(updates)
    except ValueError as exc:
        LOGGER.warning("Rejected settings update: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return settings.to_dict()
