from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from ..config import ALGORITHM_VERSION
from ..schemas import InterestProfile, PreferenceProfile, Profile
from .interests import INTEREST_CATALOG, InterestCategory, InterestKind

GENDER_BOOST = 3
AGE_GAP_BOOST = 3
LOCATION_BOOST = 3
LANGUAGE_BOOST_BASE = 2
LANGUAGE_BOOST_CAP = 5
MATCH_PCT_FLOOR = 0.2
MATCH_PCT_SPAN = 0.8


@dataclass
class UserSnapshot:
    profile: Profile
    interests: InterestProfile
    preferences: PreferenceProfile | None = None

    @property
    def user_id(self) -> str:
        return self.profile.id


@dataclass
class CompatibilityScore:
    score: int
    reasons: dict[str, Any]


@dataclass
class ScoredCandidate:
    candidate_id: str
    score: int
    reasons: dict[str, Any]


@dataclass
class InterestOverlap:
    common: list[str]
    overlap: int
    considered: int


def _normalize_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def _normalized_set(values: list[str]) -> set[str]:
    out: set[str] = set()
    for v in values or []:
        n = _normalize_text(v)
        if n:
            out.add(n)
    return out


def _plain_number(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


def _category_matches(category: InterestCategory, mine: Any, theirs: Any) -> bool:
    if category.kind is InterestKind.SINGLE:
        a = _normalize_text(mine)
        b = _normalize_text(theirs)
        return bool(a and b and a == b)
    return bool(_normalized_set(mine) & _normalized_set(theirs))


def compute_interest_overlap(mine: InterestProfile, theirs: InterestProfile) -> InterestOverlap:
    """Every catalog entry counts towards ``considered``, filled or not."""
    common: list[str] = []
    overlap = 0
    considered = 0
    for category in INTEREST_CATALOG:
        considered += 1
        if _category_matches(category, getattr(mine, category.field), getattr(theirs, category.field)):
            overlap += 1
            if category.label not in common:
                common.append(category.label)
    return InterestOverlap(common=common, overlap=overlap, considered=considered)


def base_match_percentage(overlap: int, considered: int) -> float:
    if not considered:
        return 0.0
    pct = MATCH_PCT_FLOOR + (overlap / considered) * MATCH_PCT_SPAN
    return max(0.0, min(1.0, pct))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_soft_boosts(
    me: Profile,
    other: Profile,
    my_prefs: PreferenceProfile | None,
    other_prefs: PreferenceProfile | None,
) -> tuple[int, dict[str, Any]]:
    boost = 0
    breakdown: dict[str, Any] = {}
    my_prefs = my_prefs or PreferenceProfile(user_id=me.id)

    pref_gender = _normalize_text(my_prefs.gender_preference)
    other_gender = _normalize_text(other.gender)
    if pref_gender and pref_gender != "both" and other_gender:
        match = pref_gender == other_gender
        breakdown["gender_match"] = match
        if match:
            boost += GENDER_BOOST

    gap = my_prefs.preferred_age_gap
    if gap is not None and gap > 0 and me.age is not None and other.age is not None:
        diff = abs(me.age - other.age)
        within = diff <= gap
        breakdown["age_within_gap"] = within
        breakdown["preferred_age_gap"] = _plain_number(gap)
        breakdown["age_diff"] = diff
        if within:
            boost += AGE_GAP_BOOST

    my_langs = _normalized_set(my_prefs.spoken_languages)
    other_langs = _normalized_set(other_prefs.spoken_languages if other_prefs else [])
    if my_langs and other_langs:
        shared = len(my_langs & other_langs)
        breakdown["shared_languages"] = shared
        if shared > 0:
            boost += min(LANGUAGE_BOOST_CAP, LANGUAGE_BOOST_BASE + shared)

    my_loc = _normalize_text(me.location)
    other_loc = _normalize_text(other.location)
    dist_pref = my_prefs.distance_preference
    if dist_pref is not None and dist_pref > 0 and my_loc and other_loc:
        same = my_loc == other_loc
        breakdown["same_location"] = same
        breakdown["distance_preference"] = _plain_number(dist_pref)
        if same:
            boost += LOCATION_BOOST

    return boost, breakdown


def score_candidate(me: UserSnapshot, other: UserSnapshot) -> CompatibilityScore:
    overlap = compute_interest_overlap(me.interests, other.interests)
    match_pct = base_match_percentage(overlap.overlap, overlap.considered)
    base_score = round_half_up(match_pct * 100)

    boost, breakdown = compute_soft_boosts(me.profile, other.profile, me.preferences, other.preferences)
    final = max(0, min(100, base_score + boost))

    return CompatibilityScore(
        score=int(final),
        reasons={
            "version": ALGORITHM_VERSION,
            "match_percentage": match_pct,
            "base_score": base_score,
            "boost": boost,
            "boost_breakdown": breakdown,
            "common_interests": overlap.common,
        },
    )


def rank_candidates(
    me: UserSnapshot,
    candidates: list[Profile],
    interests_by_user: dict[str, InterestProfile],
    prefs_by_user: dict[str, PreferenceProfile],
    top_k: int = 50,
) -> list[ScoredCandidate]:
    scored: list[ScoredCandidate] = []
    for candidate in candidates:
        if candidate.id == me.user_id:
            continue
        interests = interests_by_user.get(candidate.id)
        if interests is None:
            continue
        result = score_candidate(
            me,
            UserSnapshot(profile=candidate, interests=interests, preferences=prefs_by_user.get(candidate.id)),
        )
        scored.append(ScoredCandidate(candidate_id=candidate.id, score=result.score, reasons=result.reasons))

    scored.sort(key=lambda c: (-c.score, c.candidate_id))
    return scored[: max(0, int(top_k))]
