"""Pydantic models for the upstream provider payloads.

These models describe only the fields this service reads. Unknown fields are
ignored; a payload missing a required field (identifier or scientific name)
fails validation and the call is treated as a failed attempt.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


def names_of(values: list[Any] | None) -> list[str]:
    """Flatten a list of synonym strings or ``{"name": ...}`` objects."""
    names: list[str] = []
    for value in values or []:
        if isinstance(value, str):
            names.append(value)
        elif isinstance(value, dict) and isinstance(value.get("name"), str):
            names.append(value["name"])
    return names


# ---------------------------------------------------------------------------
# Trefle: https://docs.trefle.io/
# ---------------------------------------------------------------------------


class TrefleSource(BaseModel):
    name: str
    url: str | None = None
    citation: str | None = None


class TrefleSpecifications(BaseModel):
    growth_habit: str | None = None
    growth_form: str | None = None
    growth_rate: str | None = None
    toxicity: str | None = None
    average_height: dict[str, Any] | None = None


class TrefleDistributions(BaseModel):
    native: list[Any] = Field(default_factory=list)
    introduced: list[Any] = Field(default_factory=list)


class TrefleMainSpecies(BaseModel):
    synonyms: list[str] = Field(default_factory=list)
    edible: bool | None = None
    edible_part: list[str] | None = None
    vegetable: bool | None = None
    image_url: str | None = None
    specifications: TrefleSpecifications | None = None
    distributions: TrefleDistributions | None = None
    sources: list[TrefleSource] = Field(default_factory=list)

    @field_validator("synonyms", mode="before")
    @classmethod
    def flatten_synonyms(cls, value: Any) -> list[str]:
        return names_of(value)


class TreflePlant(BaseModel):
    id: int
    scientific_name: str = Field(..., min_length=1)
    common_name: str | None = None
    slug: str | None = None
    family: str | None = None
    genus: str | None = None
    family_common_name: str | None = None
    author: str | None = None
    year: int | None = None
    bibliography: str | None = None
    image_url: str | None = None
    synonyms: list[str] = Field(default_factory=list)

    @field_validator("synonyms", mode="before")
    @classmethod
    def flatten_synonyms(cls, value: Any) -> list[str]:
        return names_of(value)


class TreflePlantDetail(TreflePlant):
    main_species: TrefleMainSpecies | None = None
    sources: list[TrefleSource] = Field(default_factory=list)


class TrefleLinks(BaseModel):
    next: str | None = None


class TrefleListPayload(BaseModel):
    data: list[TreflePlant]
    links: TrefleLinks = Field(default_factory=TrefleLinks)
    meta: dict[str, Any] = Field(default_factory=dict)


class TrefleDetailPayload(BaseModel):
    data: TreflePlantDetail


# ---------------------------------------------------------------------------
# Perenual: https://perenual.com/docs/api
# ---------------------------------------------------------------------------


class PerenualImage(BaseModel):
    regular_url: str | None = None
    thumbnail: str | None = None


class PerenualSpecies(BaseModel):
    id: int
    common_name: str | None = None
    scientific_name: list[str] = Field(..., min_length=1)
    other_name: list[str] | None = None
    cycle: str | None = None
    watering: str | None = None
    sunlight: list[str] | None = None
    default_image: PerenualImage | None = None

    @field_validator("scientific_name", mode="before")
    @classmethod
    def wrap_single_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list):
            return [name for name in value if not isinstance(name, str) or name.strip()]
        return value


class PerenualSpeciesDetail(PerenualSpecies):
    # The free tier replaces premium fields with upgrade notices, so the
    # descriptive extras are passed through untyped.
    family: str | None = None
    genus: str | None = None
    origin: Any = None
    type: Any = None
    care_level: Any = None
    growth_rate: Any = None
    maintenance: Any = None
    soil: Any = None
    propagation: Any = None
    attracts: Any = None
    indoor: Any = None
    drought_tolerant: Any = None
    medicinal: Any = None
    cuisine: Any = None
    edible_fruit: Any = None
    edible_leaf: Any = None
    poisonous_to_humans: Any = None
    poisonous_to_pets: Any = None
    description: Any = None


class PerenualListPayload(BaseModel):
    data: list[PerenualSpecies]
    current_page: int = 1
    last_page: int = 1
    per_page: int | None = None
    total: int | None = None
