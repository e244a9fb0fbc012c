import json
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import text

from .database import SessionLocal
from .schemas import InterestProfile, PreferenceProfile, Profile, QueueJob
from .services.scoring import ScoredCandidate

logger = logging.getLogger(__name__)

QUEUE_COLUMNS = "id, user_id, attempts, created_at, locked_at, locked_by, processed_at, last_error"
CLAIM_RETURNING = "q.id, q.user_id, q.attempts, q.created_at, q.locked_at, q.locked_by, q.processed_at, q.last_error"
PROFILE_COLUMNS = "id, age, gender, location, intent"
RECOMMENDATION_COLUMNS = "id, user_id, recommended_user_id, score, reasons, status, created_at, updated_at"
MAX_ERROR_LENGTH = 2000

QUEUE_STATES = ("pending", "locked", "processed", "failed", "dead", "all")


@contextmanager
def _session(timeout_ms: int | None = None) -> Iterator[Any]:
    with SessionLocal() as db:
        if timeout_ms and db.get_bind().dialect.name == "postgresql":
            db.execute(
                text("SELECT set_config('statement_timeout', :ms, true)"),
                {"ms": str(int(timeout_ms))},
            )
        yield db


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))



def claim_recompute_jobs(
    limit: int,
    lock_id: str,
    *,
    max_attempts: int = 0,
    timeout_ms: int | None = None,
) -> list[QueueJob]:
    with _session(timeout_ms) as db:
        rows = db.execute(
            text(
                f"""
                UPDATE recommendation_recompute_queue q
                SET locked_at = NOW(), locked_by = :lock_id
                WHERE q.id IN (
                  SELECT id
                  FROM recommendation_recompute_queue
                  WHERE processed_at IS NULL
                    AND locked_at IS NULL
                    AND (:max_attempts <= 0 OR attempts < :max_attempts)
                  ORDER BY created_at ASC
                  LIMIT :limit
                  FOR UPDATE SKIP LOCKED
                )
                  AND q.processed_at IS NULL
                  AND q.locked_at IS NULL
                RETURNING {CLAIM_RETURNING}
                """
            ),
            {"lock_id": lock_id, "limit": _clamp(limit, 1, 50), "max_attempts": int(max_attempts or 0)},
        ).mappings().all()
        db.commit()
    jobs = [QueueJob.model_validate(dict(r)) for r in rows]
    jobs.sort(key=lambda j: (j.created_at is None, j.created_at))
    return jobs


def mark_job_processed(job_id: str, *, timeout_ms: int | None = None) -> None:
    with _session(timeout_ms) as db:
        db.execute(
            text(
                """
                UPDATE recommendation_recompute_queue
                SET processed_at = NOW(),
                    locked_at = NULL,
                    locked_by = NULL,
                    last_error = NULL
                WHERE id = CAST(:id AS uuid)
                """
            ),
            {"id": job_id},
        )
        db.commit()


def mark_job_failed(job_id: str, error: str, *, timeout_ms: int | None = None) -> None:
    with _session(timeout_ms) as db:
        db.execute(
            text(
                """
                UPDATE recommendation_recompute_queue
                SET attempts = attempts + 1,
                    locked_at = NULL,
                    locked_by = NULL,
                    last_error = :error
                WHERE id = CAST(:id AS uuid)
                """
            ),
            {"id": job_id, "error": str(error or "")[:MAX_ERROR_LENGTH]},
        )
        db.commit()


def release_jobs(job_ids: list[str], lock_id: str, *, timeout_ms: int | None = None) -> int:
    if not job_ids:
        return 0
    with _session(timeout_ms) as db:
        result = db.execute(
            text(
                """
                UPDATE recommendation_recompute_queue
                SET locked_at = NULL, locked_by = NULL
                WHERE id = ANY(CAST(:ids AS uuid[]))
                  AND locked_by = :lock_id
                  AND processed_at IS NULL
                """
            ),
            {"ids": list(job_ids), "lock_id": lock_id},
        )
        db.commit()
    return int(result.rowcount or 0)


def release_stale_locks(ttl_seconds: int, *, timeout_ms: int | None = None) -> int:
    if ttl_seconds <= 0:
        return 0
    with _session(timeout_ms) as db:
        result = db.execute(
            text(
                """
                UPDATE recommendation_recompute_queue
                SET locked_at = NULL, locked_by = NULL
                WHERE processed_at IS NULL
                  AND locked_at IS NOT NULL
                  AND locked_at < NOW() - make_interval(secs => :ttl_seconds)
                """
            ),
            {"ttl_seconds": int(ttl_seconds)},
        )
        db.commit()
    freed = int(result.rowcount or 0)
    if freed:
        logger.info("[QUEUE] cleared %s locks older than %ss", freed, ttl_seconds)
    return freed


def enqueue_recompute(user_id: str) -> QueueJob:
    """Queue a recompute for ``user_id``.

    An unclaimed job for the user is reused and gets a fresh attempt budget,
    so a dead-lettered job comes back on the next data change.
    """
    with SessionLocal() as db:
        revived = db.execute(
            text(
                f"""
                UPDATE recommendation_recompute_queue
                SET attempts = 0, last_error = NULL
                WHERE id = (
                  SELECT id
                  FROM recommendation_recompute_queue
                  WHERE user_id = CAST(:user_id AS uuid)
                    AND processed_at IS NULL
                    AND locked_at IS NULL
                  ORDER BY created_at ASC
                  LIMIT 1
                )
                RETURNING {QUEUE_COLUMNS}
                """
            ),
            {"user_id": user_id},
        ).mappings().first()
        if revived:
            db.commit()
            logger.debug("[QUEUE] reused pending job user_id=%s", user_id)
            return QueueJob.model_validate(dict(revived))

        row = db.execute(
            text(
                f"""
                INSERT INTO recommendation_recompute_queue (id, user_id, attempts, created_at)
                VALUES (CAST(:id AS uuid), CAST(:user_id AS uuid), 0, NOW())
                RETURNING {QUEUE_COLUMNS}
                """
            ),
            {"id": str(uuid.uuid4()), "user_id": user_id},
        ).mappings().first()
        db.commit()
    return QueueJob.model_validate(dict(row))


def _queue_state_filter(state: str) -> str:
    if state == "pending":
        return "processed_at IS NULL AND locked_at IS NULL AND (:max_attempts <= 0 OR attempts < :max_attempts)"
    if state == "locked":
        return "processed_at IS NULL AND locked_at IS NOT NULL"
    if state == "processed":
        return "processed_at IS NOT NULL"
    if state == "failed":
        return "processed_at IS NULL AND last_error IS NOT NULL AND (:max_attempts <= 0 OR attempts < :max_attempts)"
    if state == "dead":
        return "processed_at IS NULL AND :max_attempts > 0 AND attempts >= :max_attempts"
    return "TRUE"


def list_queue_jobs(
    *,
    state: str = "all",
    max_attempts: int = 0,
    limit: int = 100,
    offset: int = 0,
) -> list[QueueJob]:
    state = (state or "all").strip().lower()
    if state not in QUEUE_STATES:
        raise ValueError(f"unknown queue state: {state}")
    with SessionLocal() as db:
        rows = db.execute(
            text(
                f"""
                SELECT {QUEUE_COLUMNS}
                FROM recommendation_recompute_queue
                WHERE {_queue_state_filter(state)}
                ORDER BY created_at ASC
                OFFSET :offset
                LIMIT :limit
                """
            ),
            {"max_attempts": int(max_attempts or 0), "limit": _clamp(limit, 1, 500), "offset": max(0, int(offset))},
        ).mappings().all()
    return [QueueJob.model_validate(dict(r)) for r in rows]


def queue_stats(*, max_attempts: int = 0) -> dict[str, int]:
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                SELECT
                  COUNT(1) AS total,
                  SUM(CASE WHEN processed_at IS NULL AND locked_at IS NULL
                            AND (:max_attempts <= 0 OR attempts < :max_attempts) THEN 1 ELSE 0 END) AS pending,
                  SUM(CASE WHEN processed_at IS NULL AND locked_at IS NOT NULL THEN 1 ELSE 0 END) AS locked,
                  SUM(CASE WHEN processed_at IS NOT NULL THEN 1 ELSE 0 END) AS processed,
                  SUM(CASE WHEN processed_at IS NULL AND last_error IS NOT NULL
                            AND (:max_attempts <= 0 OR attempts < :max_attempts) THEN 1 ELSE 0 END) AS failed,
                  SUM(CASE WHEN processed_at IS NULL AND :max_attempts > 0
                            AND attempts >= :max_attempts THEN 1 ELSE 0 END) AS dead
                FROM recommendation_recompute_queue
                """
            ),
            {"max_attempts": int(max_attempts or 0)},
        ).mappings().first() or {}
    return {k: int(row.get(k) or 0) for k in ("total", "pending", "locked", "processed", "failed", "dead")}


def requeue_job(job_id: str) -> QueueJob | None:
    with SessionLocal() as db:
        row = db.execute(
            text(
                f"""
                UPDATE recommendation_recompute_queue
                SET attempts = 0,
                    locked_at = NULL,
                    locked_by = NULL,
                    last_error = NULL,
                    processed_at = NULL
                WHERE id = CAST(:id AS uuid)
                RETURNING {QUEUE_COLUMNS}
                """
            ),
            {"id": job_id},
        ).mappings().first()
        db.commit()
    if row:
        logger.info("[QUEUE] requeued job_id=%s", job_id)
    return QueueJob.model_validate(dict(row)) if row else None



def get_profile(user_id: str, *, timeout_ms: int | None = None) -> Profile | None:
    with _session(timeout_ms) as db:
        row = db.execute(
            text(f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE id = CAST(:id AS uuid)"),
            {"id": user_id},
        ).mappings().first()
    return Profile.model_validate(dict(row)) if row else None


def get_interests(user_id: str, *, timeout_ms: int | None = None) -> InterestProfile | None:
    with _session(timeout_ms) as db:
        row = db.execute(
            text("SELECT * FROM user_interests WHERE user_id = CAST(:user_id AS uuid)"),
            {"user_id": user_id},
        ).mappings().first()
    return InterestProfile.model_validate(dict(row)) if row else None


def get_preferences(user_id: str, *, timeout_ms: int | None = None) -> PreferenceProfile | None:
    with _session(timeout_ms) as db:
        row = db.execute(
            text("SELECT * FROM user_preferences WHERE user_id = CAST(:user_id AS uuid)"),
            {"user_id": user_id},
        ).mappings().first()
    return PreferenceProfile.model_validate(dict(row)) if row else None


def list_candidate_profiles(user_id: str, limit: int, *, timeout_ms: int | None = None) -> list[Profile]:
    with _session(timeout_ms) as db:
        rows = db.execute(
            text(
                f"""
                SELECT {PROFILE_COLUMNS}
                FROM profiles
                WHERE id <> CAST(:user_id AS uuid)
                LIMIT :limit
                """
            ),
            {"user_id": user_id, "limit": max(1, int(limit))},
        ).mappings().all()
    return [Profile.model_validate(dict(r)) for r in rows]


def get_interests_for_users(user_ids: list[str], *, timeout_ms: int | None = None) -> dict[str, InterestProfile]:
    if not user_ids:
        return {}
    with _session(timeout_ms) as db:
        rows = db.execute(
            text("SELECT * FROM user_interests WHERE user_id = ANY(CAST(:ids AS uuid[]))"),
            {"ids": list(user_ids)},
        ).mappings().all()
    out: dict[str, InterestProfile] = {}
    for r in rows:
        record = InterestProfile.model_validate(dict(r))
        out[record.user_id] = record
    return out


def get_preferences_for_users(user_ids: list[str], *, timeout_ms: int | None = None) -> dict[str, PreferenceProfile]:
    if not user_ids:
        return {}
    with _session(timeout_ms) as db:
        rows = db.execute(
            text("SELECT * FROM user_preferences WHERE user_id = ANY(CAST(:ids AS uuid[]))"),
            {"ids": list(user_ids)},
        ).mappings().all()
    out: dict[str, PreferenceProfile] = {}
    for r in rows:
        record = PreferenceProfile.model_validate(dict(r))
        out[record.user_id] = record
    return out



def upsert_recommendations(
    user_id: str,
    scored: list[ScoredCandidate],
    *,
    timeout_ms: int | None = None,
) -> int:
    if not scored:
        return 0
    params = [
        {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "recommended_user_id": c.candidate_id,
            "score": int(c.score),
            "reasons": json.dumps(c.reasons),
        }
        for c in scored
    ]
    with _session(timeout_ms) as db:
        db.execute(
            text(
                """
                INSERT INTO match_recommendations
                  (id, user_id, recommended_user_id, score, reasons, status, created_at, updated_at)
                VALUES (
                  CAST(:id AS uuid),
                  CAST(:user_id AS uuid),
                  CAST(:recommended_user_id AS uuid),
                  :score,
                  CAST(:reasons AS jsonb),
                  'active',
                  NOW(),
                  NOW()
                )
                ON CONFLICT (user_id, recommended_user_id)
                DO UPDATE SET
                  score = EXCLUDED.score,
                  reasons = EXCLUDED.reasons,
                  status = EXCLUDED.status,
                  updated_at = NOW()
                """
            ),
            params,
        )
        db.commit()
    return len(params)


def list_recommendations(user_id: str, *, limit: int = 20, status: str = "active") -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                f"""
                SELECT {RECOMMENDATION_COLUMNS}
                FROM match_recommendations
                WHERE user_id = CAST(:user_id AS uuid)
                  AND status = :status
                ORDER BY score DESC, updated_at DESC
                LIMIT :limit
                """
            ),
            {"user_id": user_id, "status": status, "limit": _clamp(limit, 1, 50)},
        ).mappings().all()
    return [dict(r) for r in rows]


def mark_recommendation_viewed(user_id: str, recommendation_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text(
                f"""
                UPDATE match_recommendations
                SET status = 'viewed', updated_at = NOW()
                WHERE id = CAST(:id AS uuid)
                  AND user_id = CAST(:user_id AS uuid)
                RETURNING {RECOMMENDATION_COLUMNS}
                """
            ),
            {"id": recommendation_id, "user_id": user_id},
        ).mappings().first()
        db.commit()
    return dict(row) if row else None
