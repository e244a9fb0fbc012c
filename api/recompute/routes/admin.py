from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from .. import repo
from ..config import RECOMPUTE_MAX_ATTEMPTS
from ..deps import parse_uuid, require_admin_token
from ..schemas import EnqueueRequest
from ..services.explanations import build_recommendation_explanation

router = APIRouter(dependencies=[Depends(require_admin_token)])
scaffold_router = APIRouter()


@scaffold_router.get("/health")
def admin_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "admin"}


@router.post("/recompute/enqueue")
def admin_enqueue_recompute(payload: EnqueueRequest) -> dict[str, Any]:
    user_id = parse_uuid(payload.user_id, "user_id")
    job = repo.enqueue_recompute(user_id)
    return {"job": job.model_dump(mode="json")}


@router.get("/recompute/queue")
def admin_list_queue(state: str = "all", limit: int = 100, offset: int = 0) -> dict[str, Any]:
    try:
        jobs = repo.list_queue_jobs(state=state, max_attempts=RECOMPUTE_MAX_ATTEMPTS, limit=limit, offset=offset)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {
        "jobs": [j.model_dump(mode="json") for j in jobs],
        "stats": repo.queue_stats(max_attempts=RECOMPUTE_MAX_ATTEMPTS),
    }


@router.post("/recompute/queue/{job_id}/requeue")
def admin_requeue_job(job_id: str) -> dict[str, Any]:
    job = repo.requeue_job(parse_uuid(job_id, "job_id"))
    if not job:
        raise HTTPException(status_code=404, detail="Queue job not found")
    return {"job": job.model_dump(mode="json")}


@router.get("/users/{user_id}/recommendations")
def admin_list_recommendations(user_id: str, limit: int = 20) -> dict[str, Any]:
    rows = repo.list_recommendations(parse_uuid(user_id, "user_id"), limit=limit)
    items = []
    for row in rows:
        item = dict(row)
        item["explanation"] = build_recommendation_explanation(item.get("reasons"), item.get("score"))
        items.append(item)
    return {"data": items}


@router.post("/users/{user_id}/recommendations/{recommendation_id}/viewed")
def admin_mark_recommendation_viewed(user_id: str, recommendation_id: str) -> dict[str, Any]:
    row = repo.mark_recommendation_viewed(
        parse_uuid(user_id, "user_id"),
        parse_uuid(recommendation_id, "recommendation_id"),
    )
    if not row:
        raise HTTPException(status_code=404, detail="Recommendation not found")
    return {"status": "viewed", "recommendation": row}
