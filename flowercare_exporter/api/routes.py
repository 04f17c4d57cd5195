from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from fastapi.responses import RedirectResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

router = APIRouter()


# --- Dependency getters ---
# main.py binds the real registry via app.dependency_overrides.
def get_registry() -> CollectorRegistry:  # overridden in main
    raise RuntimeError("Registry dependency not configured")


# Plain def: FastAPI runs it in its threadpool, so the blocking device read
# inside collect() never stalls the event loop.
@router.get("/metrics")
def metrics(registry: CollectorRegistry = Depends(get_registry)):
    return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)


@router.get("/")
def root():
    return RedirectResponse(url="/metrics", status_code=302)
