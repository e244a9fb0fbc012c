from recompute.schemas import InterestProfile, PreferenceProfile, Profile
from recompute.services.interests import LIST_INTEREST_FIELDS, SINGLE_INTEREST_FIELDS
from recompute.services.scoring import (
    UserSnapshot,
    base_match_percentage,
    compute_interest_overlap,
    compute_soft_boosts,
    rank_candidates,
    round_half_up,
    score_candidate,
)


def _interests(user_id: str, **fields) -> InterestProfile:
    return InterestProfile.model_validate({"user_id": user_id, **fields})


def _snapshot(user_id: str, interests: dict | None = None, prefs: dict | None = None, **profile) -> UserSnapshot:
    return UserSnapshot(
        profile=Profile.model_validate({"id": user_id, **profile}),
        interests=_interests(user_id, **(interests or {})),
        preferences=PreferenceProfile.model_validate({"user_id": user_id, **(prefs or {})}),
    )


def test_half_of_single_fields_shared_scores_against_whole_catalog():
    mine = {f: f"{f}-v" for f in SINGLE_INTEREST_FIELDS}
    theirs = {f: (f"{f}-v" if i < 12 else f"{f}-other") for i, f in enumerate(SINGLE_INTEREST_FIELDS)}
    result = score_candidate(_snapshot("me", mine), _snapshot("them", theirs))

    expected_pct = 0.2 + (12 / 47) * 0.8
    assert abs(result.reasons["match_percentage"] - expected_pct) < 1e-9
    assert result.reasons["base_score"] == 40
    assert result.score == 40
    assert result.reasons["boost"] == 0
    assert result.reasons["boost_breakdown"] == {}
    assert result.reasons["version"] == "v2_interests_plus_soft_prefs"
    assert len(result.reasons["common_interests"]) == 12


def test_half_overlap_percentage():
    assert abs(base_match_percentage(12, 24) - 0.6) < 1e-9
    assert round_half_up(base_match_percentage(12, 24) * 100) == 60
    assert base_match_percentage(0, 0) == 0.0


def test_one_shared_field_between_sparse_profiles_stays_low():
    result = score_candidate(_snapshot("me", {"sport": "tennis"}), _snapshot("them", {"sport": "Tennis"}))
    assert result.reasons["common_interests"] == ["Sport"]
    assert result.score == 22


def test_all_soft_boosts_add_thirteen():
    me = _snapshot(
        "me",
        prefs={
            "gender_preference": "male",
            "preferred_age_gap": 5,
            "spoken_languages": ["English", "Arabic", "French"],
            "distance_preference": 50,
        },
        age=30,
        gender="female",
        location="Cairo",
    )
    other = _snapshot(
        "them",
        prefs={"spoken_languages": ["english", "arabic"]},
        age=33,
        gender="Male",
        location=" cairo ",
    )
    result = score_candidate(me, other)

    assert result.reasons["base_score"] == 20
    assert result.reasons["boost"] == 13
    assert result.score == 33
    assert result.reasons["boost_breakdown"] == {
        "gender_match": True,
        "age_within_gap": True,
        "preferred_age_gap": 5,
        "age_diff": 3,
        "shared_languages": 2,
        "same_location": True,
        "distance_preference": 50,
    }


def test_nothing_filled_scores_the_floor():
    result = score_candidate(_snapshot("me"), _snapshot("them"))
    assert result.score == 20
    assert abs(result.reasons["match_percentage"] - 0.2) < 1e-9
    assert result.reasons["common_interests"] == []


def test_every_catalog_category_is_considered():
    overlap = compute_interest_overlap(_interests("me", sport="tennis"), _interests("them"))
    assert overlap.considered == 47
    assert overlap.overlap == 0
    assert round_half_up(base_match_percentage(overlap.overlap, overlap.considered) * 100) == 20


def test_matching_is_case_and_whitespace_insensitive():
    overlap = compute_interest_overlap(
        _interests("me", favorite_movie="  Inception "),
        _interests("them", favorite_movie="inception"),
    )
    assert overlap.overlap == 1
    assert overlap.common == ["Movie"]


def test_label_listed_once_when_single_and_list_both_match():
    overlap = compute_interest_overlap(
        _interests("me", favorite_song="Yesterday", additional_song=["Hey Jude", "Help"]),
        _interests("them", favorite_song="yesterday", additional_song=["help"]),
    )
    assert overlap.overlap == 2
    assert overlap.considered == 47
    assert overlap.common == ["Song"]


def test_language_boost_is_capped():
    me = Profile(id="me")
    other = Profile(id="them")
    langs = ["en", "ar", "fr", "de"]
    boost, breakdown = compute_soft_boosts(
        me,
        other,
        PreferenceProfile(user_id="me", spoken_languages=langs),
        PreferenceProfile(user_id="them", spoken_languages=[x.upper() for x in langs]),
    )
    assert boost == 5
    assert breakdown == {"shared_languages": 4}


def test_gender_preference_both_gives_no_boost():
    boost, breakdown = compute_soft_boosts(
        Profile(id="me"),
        Profile(id="them", gender="female"),
        PreferenceProfile(user_id="me", gender_preference="both"),
        None,
    )
    assert boost == 0
    assert "gender_match" not in breakdown


def test_mismatches_are_recorded_without_boost():
    boost, breakdown = compute_soft_boosts(
        Profile(id="me", age=25, location="Paris"),
        Profile(id="them", age=40, gender="female", location="Lyon"),
        PreferenceProfile(user_id="me", gender_preference="male", preferred_age_gap=3, distance_preference=10),
        None,
    )
    assert boost == 0
    assert breakdown["gender_match"] is False
    assert breakdown["age_within_gap"] is False
    assert breakdown["age_diff"] == 15
    assert breakdown["same_location"] is False


def test_score_is_clamped_at_one_hundred():
    full = {f: f"{f}-v" for f in SINGLE_INTEREST_FIELDS}
    full.update({f: ["x"] for f in LIST_INTEREST_FIELDS})
    prefs = {
        "gender_preference": "male",
        "preferred_age_gap": 5,
        "spoken_languages": ["a", "b", "c"],
        "distance_preference": 5,
    }
    me = _snapshot("me", full, prefs, age=30, location="x")
    other = _snapshot("them", full, {"spoken_languages": ["a", "b", "c"]}, age=30, gender="male", location="x")
    result = score_candidate(me, other)
    assert result.reasons["base_score"] == 100
    assert result.reasons["boost"] == 14
    assert result.score == 100


def test_rank_candidates_skips_self_and_missing_interests_and_breaks_ties_by_id():
    me = _snapshot("me", {"sport": "tennis"})
    candidates = [Profile(id=cid) for cid in ("me", "c3", "c1", "c2", "c4")]
    interests = {
        "me": _interests("me", sport="tennis"),
        "c1": _interests("c1", sport="golf"),
        "c2": _interests("c2", sport="tennis"),
        "c3": _interests("c3", sport="golf"),
    }
    ranked = rank_candidates(me, candidates, interests, {}, top_k=2)

    assert [c.candidate_id for c in ranked] == ["c2", "c1"]
    assert ranked[0].score == 22
    assert ranked[1].score == 20
