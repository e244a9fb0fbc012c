from __future__ import annotations

import re
from typing import Any

from .interests import LABEL_DISPLAY_NAMES

_FALLBACK_BULLET = "Your profiles show meaningful compatibility potential."


def _safe_num(v: Any, default: float = 0.0) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def _clean_text(line: str) -> str:
    txt = " ".join(str(line or "").split())
    # Never leak raw column names into user-facing copy.
    if re.search(r"\b[a-z]+_[a-z0-9_]+\b", txt):
        return _FALLBACK_BULLET
    return txt.strip()


def _headline(score: float) -> str:
    if score >= 80:
        return "A standout match for you."
    if score >= 60:
        return "You two have a lot in common."
    if score >= 40:
        return "Some promising common ground."
    return "A different perspective worth exploring."


def _interest_bullets(common: list[str]) -> list[str]:
    names = [LABEL_DISPLAY_NAMES.get(label) for label in common]
    names = [n for n in names if n]
    bullets = [f"You share a taste in {n}." for n in names[:3]]
    if len(names) > 3:
        bullets.append(f"Plus {len(names) - 3} more interests in common.")
    return bullets


def _boost_bullets(breakdown: dict[str, Any]) -> list[str]:
    out: list[str] = []
    shared = int(_safe_num(breakdown.get("shared_languages")))
    if shared == 1:
        out.append("You speak a language in common.")
    elif shared > 1:
        out.append(f"You speak {shared} languages in common.")
    if breakdown.get("same_location") is True:
        out.append("You're based in the same place.")
    if breakdown.get("age_within_gap") is True:
        out.append("Your ages fit the gap you're looking for.")
    if breakdown.get("gender_match") is True:
        out.append("They match the gender you're interested in.")
    return out


def build_recommendation_explanation(reasons: dict[str, Any] | None, score: Any = None) -> dict[str, Any]:
    reasons = reasons if isinstance(reasons, dict) else {}
    common = [str(c) for c in reasons.get("common_interests") or []]
    breakdown = reasons.get("boost_breakdown") if isinstance(reasons.get("boost_breakdown"), dict) else {}

    if score is None:
        score = _safe_num(reasons.get("base_score")) + _safe_num(reasons.get("boost"))

    bullets = _interest_bullets(common) + _boost_bullets(breakdown)
    if not bullets:
        bullets = [_FALLBACK_BULLET]

    return {
        "headline": _headline(_safe_num(score)),
        "bullets": [_clean_text(b) for b in bullets],
    }
