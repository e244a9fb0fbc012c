import logging
from typing import Any

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, PlainTextResponse

from ..config import CORS_HEADERS
from ..database import store_configured
from ..services.recompute import RecomputeSettings, RecomputeSetupError, run_recompute_batch

logger = logging.getLogger(__name__)

router = APIRouter()
scaffold_router = APIRouter()

RECOMPUTE_PATH = "/recompute-recommendations"


def _json(body: dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=body, status_code=status_code, headers=CORS_HEADERS)


@scaffold_router.get("/health")
def recompute_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "recompute"}


@router.options(RECOMPUTE_PATH)
def recompute_preflight() -> PlainTextResponse:
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@router.api_route(RECOMPUTE_PATH, methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"])
async def recompute_recommendations(
    batch: str | None = Query(default=None),
    candidates: str | None = Query(default=None),
    timeout_ms: str | None = Query(default=None, alias="timeoutMs"),
) -> JSONResponse:
    if not store_configured():
        logger.error("[RECOMPUTE] missing DATABASE_URL")
        return _json({"error": "Missing DATABASE_URL", "step": "config"}, 500)

    settings = RecomputeSettings.from_query(batch=batch, candidates=candidates, timeout_ms=timeout_ms)
    try:
        summary = await run_recompute_batch(settings)
    except RecomputeSetupError as exc:
        return _json({"error": exc.message, "step": exc.step}, 500)
    return _json(summary.as_response())
