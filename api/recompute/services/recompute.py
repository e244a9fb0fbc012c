"""
Recommendation recompute worker.

One run claims a bounded batch of queue jobs under a run-scoped lock token and
processes them one at a time: load the requester, pull a capped candidate
pool, bulk-load candidate interests and preferences, score, keep the top K and
upsert. Each job succeeds or fails on its own; only setup errors (stale-lock
release, claim) abort the run.

Every store call runs in a worker thread under its own timeout so a slow
query surfaces as a labelled error on the job instead of hanging the run.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from ..config import (
    BATCH_BOUNDS,
    CANDIDATE_BOUNDS,
    RECOMPUTE_DEFAULT_BATCH,
    RECOMPUTE_DEFAULT_CANDIDATES,
    RECOMPUTE_DEFAULT_TIMEOUT_MS,
    RECOMPUTE_LOCK_TTL_SECONDS,
    RECOMPUTE_MAX_ATTEMPTS,
    RECOMPUTE_RUN_BUDGET_MS,
    RECOMPUTE_TOP_K,
    TIMEOUT_BOUNDS_MS,
)
from .. import repo
from ..schemas import QueueJob, RecomputeResponse
from .scoring import UserSnapshot, rank_candidates

logger = logging.getLogger(__name__)


class CallTimeout(Exception):
    def __init__(self, label: str, timeout_ms: int):
        self.label = label
        self.timeout_ms = timeout_ms
        super().__init__(f"{label}_timeout_{timeout_ms}ms")


class RecomputeSetupError(Exception):
    """Raised when the run cannot claim work; no job has been touched."""

    def __init__(self, step: str, message: str):
        self.step = step
        self.message = message
        super().__init__(message)


def parse_bounded_int(raw: Any, default: int, low: int, high: int) -> int:
    """Parse a loosely-typed numeric input.

    Missing, unparseable and zero values take the default; the result is then
    clamped into ``[low, high]``.
    """
    try:
        value = float(raw) if raw is not None and str(raw).strip() != "" else 0.0
    except (TypeError, ValueError):
        value = 0.0
    if not math.isfinite(value) or value == 0:
        value = float(default)
    return max(low, min(high, int(value)))


@dataclass
class RecomputeSettings:
    batch_size: int = RECOMPUTE_DEFAULT_BATCH
    candidates_cap: int = RECOMPUTE_DEFAULT_CANDIDATES
    call_timeout_ms: int = RECOMPUTE_DEFAULT_TIMEOUT_MS
    top_k: int = RECOMPUTE_TOP_K
    max_attempts: int = RECOMPUTE_MAX_ATTEMPTS
    lock_ttl_seconds: int = RECOMPUTE_LOCK_TTL_SECONDS
    run_budget_ms: int = RECOMPUTE_RUN_BUDGET_MS

    @classmethod
    def from_query(cls, batch: Any = None, candidates: Any = None, timeout_ms: Any = None) -> "RecomputeSettings":
        return cls(
            batch_size=parse_bounded_int(batch, RECOMPUTE_DEFAULT_BATCH, *BATCH_BOUNDS),
            candidates_cap=parse_bounded_int(candidates, RECOMPUTE_DEFAULT_CANDIDATES, *CANDIDATE_BOUNDS),
            call_timeout_ms=parse_bounded_int(timeout_ms, RECOMPUTE_DEFAULT_TIMEOUT_MS, *TIMEOUT_BOUNDS_MS),
        )


@dataclass
class RecomputeSummary:
    lock_id: str
    processed: int = 0
    failed: int = 0
    claimed: int = 0
    released: int = 0
    elapsed_ms: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    def as_response(self) -> dict[str, Any]:
        return RecomputeResponse(
            ok=True,
            processed=self.processed,
            failed=self.failed,
            claimed=self.claimed,
            released=self.released,
            lockId=self.lock_id,
            elapsedMs=self.elapsed_ms,
        ).model_dump()


class RecomputeWorker:
    def __init__(self, store: Any = None, settings: RecomputeSettings | None = None, clock: Callable[[], float] = time.monotonic):
        self.store = store if store is not None else repo
        self.settings = settings or RecomputeSettings()
        self._clock = clock

    async def _call(self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        timeout_ms = int(self.settings.call_timeout_ms)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args, timeout_ms=timeout_ms, **kwargs),
                timeout=timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            raise CallTimeout(label, timeout_ms) from None

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)

    async def run(self) -> RecomputeSummary:
        started = self._clock()
        s = self.settings
        summary = RecomputeSummary(lock_id=str(uuid.uuid4()))
        logger.info("[RECOMPUTE] start lock_id=%s batch=%s candidates=%s timeout_ms=%s", summary.lock_id, s.batch_size, s.candidates_cap, s.call_timeout_ms)

        try:
            freed = await self._call("release_stale_locks", self.store.release_stale_locks, s.lock_ttl_seconds)
        except Exception as exc:
            logger.error("[RECOMPUTE] stale lock release failed: %s", exc)
            raise RecomputeSetupError("release_stale_locks", str(exc)) from exc
        if freed:
            logger.warning("[RECOMPUTE] released %s stale queue locks", freed)

        try:
            jobs: list[QueueJob] = await self._call(
                "claim_queue",
                self.store.claim_recompute_jobs,
                s.batch_size,
                summary.lock_id,
                max_attempts=s.max_attempts,
            )
        except Exception as exc:
            logger.error("[RECOMPUTE] claim failed: %s", exc)
            raise RecomputeSetupError("claim_queue", str(exc)) from exc

        summary.claimed = len(jobs)
        if not jobs:
            summary.elapsed_ms = self._elapsed_ms(started)
            logger.info("[RECOMPUTE] no jobs elapsed_ms=%s", summary.elapsed_ms)
            return summary

        for index, job in enumerate(jobs):
            if s.run_budget_ms > 0 and self._elapsed_ms(started) >= s.run_budget_ms:
                await self._release_remaining(jobs[index:], summary)
                break
            try:
                await self._process_job(job)
                summary.processed += 1
            except Exception as exc:
                summary.failed += 1
                summary.errors[job.id] = str(exc)
                logger.warning("[RECOMPUTE] job failed job_id=%s user_id=%s error=%s", job.id, job.user_id, exc)
                await self._mark_failed(job, exc)

        summary.elapsed_ms = self._elapsed_ms(started)
        logger.info(
            "[RECOMPUTE] done processed=%s failed=%s released=%s elapsed_ms=%s",
            summary.processed,
            summary.failed,
            summary.released,
            summary.elapsed_ms,
        )
        if summary.errors:
            logger.warning("[RECOMPUTE] failed jobs lock_id=%s errors=%s", summary.lock_id, summary.errors)
        return summary

    async def _process_job(self, job: QueueJob) -> None:
        s = self.settings
        user_id = job.user_id
        logger.debug("[RECOMPUTE] processing user_id=%s job_id=%s", user_id, job.id)

        me, my_interests, my_prefs = await asyncio.gather(
            self._call("load_me", self.store.get_profile, user_id),
            self._call("load_my_interests", self.store.get_interests, user_id),
            self._call("load_my_prefs", self.store.get_preferences, user_id),
        )
        if me is None or my_interests is None or my_prefs is None:
            logger.info("[RECOMPUTE] user not ready user_id=%s", user_id)
            await self._call("mark_not_ready", self.store.mark_job_processed, job.id)
            return

        candidates = await self._call("load_candidates", self.store.list_candidate_profiles, user_id, s.candidates_cap)
        candidate_ids = [c.id for c in candidates if c.id]

        interests_by_user: dict = {}
        prefs_by_user: dict = {}
        if candidate_ids:
            interests_by_user, prefs_by_user = await asyncio.gather(
                self._call("load_candidate_interests", self.store.get_interests_for_users, candidate_ids),
                self._call("load_candidate_prefs", self.store.get_preferences_for_users, candidate_ids),
            )

        top = rank_candidates(
            UserSnapshot(profile=me, interests=my_interests, preferences=my_prefs),
            candidates,
            interests_by_user,
            prefs_by_user,
            top_k=s.top_k,
        )
        if top:
            await self._call("upsert_recommendations", self.store.upsert_recommendations, user_id, top)

        await self._call("mark_processed", self.store.mark_job_processed, job.id)
        logger.debug("[RECOMPUTE] stored %s recommendations for user_id=%s", len(top), user_id)

    async def _mark_failed(self, job: QueueJob, exc: Exception) -> None:
        try:
            await self._call("mark_failed", self.store.mark_job_failed, job.id, str(exc))
        except Exception:
            logger.exception("[RECOMPUTE] could not record failure job_id=%s; lock expires after ttl", job.id)

    async def _release_remaining(self, remaining: list[QueueJob], summary: RecomputeSummary) -> None:
        ids = [j.id for j in remaining]
        logger.warning("[RECOMPUTE] run budget exhausted, releasing %s jobs", len(ids))
        try:
            await self._call("release_jobs", self.store.release_jobs, ids, summary.lock_id)
            summary.released = len(ids)
        except Exception:
            logger.exception("[RECOMPUTE] could not release jobs; locks expire after ttl")


async def run_recompute_batch(settings: RecomputeSettings | None = None, store: Any = None) -> RecomputeSummary:
    return await RecomputeWorker(store=store, settings=settings).run()
