from __future__ import annotations

from enum import Enum
from typing import NamedTuple


class InterestKind(str, Enum):
    SINGLE = "single"
    LIST = "list"


class InterestCategory(NamedTuple):
    field: str
    label: str
    kind: InterestKind


_SINGLE_FIELDS: tuple[tuple[str, str], ...] = (
    ("music_category", "MusicCategory"),
    ("favorite_song", "Song"),
    ("favorite_singer", "Singer"),
    ("singer_groups", "SingerGroups"),
    ("singer_idols", "SingerIdols"),
    ("music_bands", "MusicBands"),
    ("favorite_movie", "Movie"),
    ("movie_category", "MovieCategory"),
    ("tv_series", "TVSeries"),
    ("tv_series_category", "TVSeriesCategory"),
    ("favorite_book", "Book"),
    ("book_category", "BookCategory"),
    ("cartoon", "Cartoon"),
    ("travel_destination", "TravelDestination"),
    ("travel_category", "TravelDestinationCategory"),
    ("food_cuisine", "FoodCuisine"),
    ("food_category", "FoodCuisineCategory"),
    ("sport", "Sport"),
    ("athlete", "Athlete"),
    ("video_game", "VideoGame"),
    ("tech_gadget", "TechGadget"),
    ("shopping_brand", "ShoppingBrand"),
    ("hobby_interest", "HobbyInterest"),
    ("habit", "Habit"),
)

# Habits have no list-valued counterpart.
_LIST_FIELDS: tuple[tuple[str, str], ...] = (
    ("additional_music_category", "MusicCategory"),
    ("additional_song", "Song"),
    ("additional_singer", "Singer"),
    ("additional_singer_groups", "SingerGroups"),
    ("additional_singer_idols", "SingerIdols"),
    ("additional_music_bands", "MusicBands"),
    ("additional_movie", "Movie"),
    ("additional_movie_category", "MovieCategory"),
    ("additional_tv_series", "TVSeries"),
    ("additional_tv_series_category", "TVSeriesCategory"),
    ("additional_book", "Book"),
    ("additional_book_category", "BookCategory"),
    ("additional_cartoon", "Cartoon"),
    ("additional_travel_destination", "TravelDestination"),
    ("additional_travel_category", "TravelDestinationCategory"),
    ("additional_food_cuisine", "FoodCuisine"),
    ("additional_food_category", "FoodCuisineCategory"),
    ("additional_sport", "Sport"),
    ("additional_athlete", "Athlete"),
    ("additional_video_game", "VideoGame"),
    ("additional_tech_gadget", "TechGadget"),
    ("additional_shopping_brand", "ShoppingBrand"),
    ("additional_hobby_interest", "HobbyInterest"),
)

INTEREST_CATALOG: tuple[InterestCategory, ...] = tuple(
    [InterestCategory(f, label, InterestKind.SINGLE) for f, label in _SINGLE_FIELDS]
    + [InterestCategory(f, label, InterestKind.LIST) for f, label in _LIST_FIELDS]
)

SINGLE_INTEREST_FIELDS: tuple[str, ...] = tuple(f for f, _ in _SINGLE_FIELDS)
LIST_INTEREST_FIELDS: tuple[str, ...] = tuple(f for f, _ in _LIST_FIELDS)

# Human-readable names for explanations, keyed by label.
LABEL_DISPLAY_NAMES: dict[str, str] = {
    "MusicCategory": "music genres",
    "Song": "songs",
    "Singer": "singers",
    "SingerGroups": "singing groups",
    "SingerIdols": "idols",
    "MusicBands": "bands",
    "Movie": "movies",
    "MovieCategory": "movie genres",
    "TVSeries": "TV series",
    "TVSeriesCategory": "TV genres",
    "Book": "books",
    "BookCategory": "book genres",
    "Cartoon": "cartoons",
    "TravelDestination": "travel destinations",
    "TravelDestinationCategory": "kinds of trips",
    "FoodCuisine": "cuisines",
    "FoodCuisineCategory": "food styles",
    "Sport": "sports",
    "Athlete": "athletes",
    "VideoGame": "video games",
    "TechGadget": "gadgets",
    "ShoppingBrand": "brands",
    "HobbyInterest": "hobbies",
    "Habit": "habits",
}
