import math
from datetime import datetime
from typing import Any
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


def _to_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_optional_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def to_string_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(v) for v in value if v]
    return [str(value)]


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Profile(_Row):
    id: str
    age: int | None = None
    gender: str | None = None
    location: str | None = None
    intent: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> str:
        return str(v)

    @field_validator("age", mode="before")
    @classmethod
    def _age(cls, v: Any) -> int | None:
        number = _to_optional_number(v)
        return int(number) if number is not None else None

    @field_validator("gender", "location", "intent", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str | None:
        return _to_optional_str(v)


class InterestProfile(_Row):
    user_id: str

    music_category: str | None = None
    favorite_song: str | None = None
    favorite_singer: str | None = None
    singer_groups: str | None = None
    singer_idols: str | None = None
    music_bands: str | None = None
    favorite_movie: str | None = None
    movie_category: str | None = None
    tv_series: str | None = None
    tv_series_category: str | None = None
    favorite_book: str | None = None
    book_category: str | None = None
    cartoon: str | None = None
    travel_destination: str | None = None
    travel_category: str | None = None
    food_cuisine: str | None = None
    food_category: str | None = None
    sport: str | None = None
    athlete: str | None = None
    video_game: str | None = None
    tech_gadget: str | None = None
    shopping_brand: str | None = None
    hobby_interest: str | None = None
    habit: str | None = None

    additional_music_category: list[str] = Field(default_factory=list)
    additional_song: list[str] = Field(default_factory=list)
    additional_singer: list[str] = Field(default_factory=list)
    additional_singer_groups: list[str] = Field(default_factory=list)
    additional_singer_idols: list[str] = Field(default_factory=list)
    additional_music_bands: list[str] = Field(default_factory=list)
    additional_movie: list[str] = Field(default_factory=list)
    additional_movie_category: list[str] = Field(default_factory=list)
    additional_tv_series: list[str] = Field(default_factory=list)
    additional_tv_series_category: list[str] = Field(default_factory=list)
    additional_book: list[str] = Field(default_factory=list)
    additional_book_category: list[str] = Field(default_factory=list)
    additional_cartoon: list[str] = Field(default_factory=list)
    additional_travel_destination: list[str] = Field(default_factory=list)
    additional_travel_category: list[str] = Field(default_factory=list)
    additional_food_cuisine: list[str] = Field(default_factory=list)
    additional_food_category: list[str] = Field(default_factory=list)
    additional_sport: list[str] = Field(default_factory=list)
    additional_athlete: list[str] = Field(default_factory=list)
    additional_video_game: list[str] = Field(default_factory=list)
    additional_tech_gadget: list[str] = Field(default_factory=list)
    additional_shopping_brand: list[str] = Field(default_factory=list)
    additional_hobby_interest: list[str] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def _coerce(cls, v: Any, info: ValidationInfo) -> Any:
        if info.field_name == "user_id":
            return str(v)
        if info.field_name.startswith("additional_"):
            return to_string_list(v)
        return _to_optional_str(v)


class PreferenceProfile(_Row):
    user_id: str
    gender_preference: str | None = None
    preferred_age_gap: float | None = None
    spoken_languages: list[str] = Field(default_factory=list)
    distance_preference: float | None = None

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id_as_str(cls, v: Any) -> str:
        return str(v)

    @field_validator("gender_preference", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str | None:
        return _to_optional_str(v)

    @field_validator("preferred_age_gap", "distance_preference", mode="before")
    @classmethod
    def _number(cls, v: Any) -> float | None:
        return _to_optional_number(v)

    @field_validator("spoken_languages", mode="before")
    @classmethod
    def _languages(cls, v: Any) -> list[str]:
        return to_string_list(v)


class QueueJob(_Row):
    id: str
    user_id: str
    attempts: int = 0
    created_at: datetime | None = None
    locked_at: datetime | None = None
    locked_by: str | None = None
    processed_at: datetime | None = None
    last_error: str | None = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _ids_as_str(cls, v: Any) -> str:
        return str(v)

    @field_validator("attempts", mode="before")
    @classmethod
    def _attempts(cls, v: Any) -> int:
        return int(v or 0)


class EnqueueRequest(BaseModel):
    user_id: str


class RecomputeResponse(BaseModel):
    ok: bool
    processed: int
    failed: int
    claimed: int
    released: int
    lockId: str
    elapsedMs: int
