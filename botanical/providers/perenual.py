"""Perenual client (https://perenual.com/api).

Authenticates with a ``key`` query parameter. Species are addressed by
positive integer id; listings report ``current_page``/``last_page``.
"""

from __future__ import annotations

from typing import Any

from botanical.models.records import EnrichmentRecord, SourceAttribution
from botanical.models.upstream import (
    PerenualListPayload,
    PerenualSpecies,
    PerenualSpeciesDetail,
)
from botanical.providers.base import BotanicalClient, ProviderRequest

SPECIES_PAGE_URL = "https://perenual.com/plant-species-database-search-finder/species/{id}"


def _as_list(value: Any) -> list:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _flag(value: Any) -> bool:
    # Perenual reports some flags as 0/1 integers and others as booleans.
    return value is True or value == 1


class PerenualClient(BotanicalClient):
    """Client for the Perenual species database."""

    provider = "perenual"
    display_name = "Perenual"
    auth_param = "key"
    default_base_url = "https://perenual.com/api"

    def build_search_request(self, name: str, page: int) -> ProviderRequest:
        return ProviderRequest("search", "/species-list", {"q": name, "page": page})

    def build_detail_request(self, identifier: str) -> ProviderRequest:
        return ProviderRequest("get_species", f"/species/details/{identifier}")

    def build_list_request(self, page: int) -> ProviderRequest:
        return ProviderRequest(
            "list_species", "/species-list", {"page": page, "per_page": self.page_size}
        )

    def parse_search(self, payload: Any) -> list[EnrichmentRecord]:
        parsed = self._validate_payload(PerenualListPayload, payload)
        return [self._map_species(species) for species in parsed.data]

    def parse_list(self, payload: Any) -> tuple[list[EnrichmentRecord], bool]:
        parsed = self._validate_payload(PerenualListPayload, payload)
        records = [self._map_species(species) for species in parsed.data]
        return records, parsed.current_page < parsed.last_page

    def parse_detail(self, payload: Any) -> EnrichmentRecord:
        species = self._validate_payload(PerenualSpeciesDetail, payload)
        return self._map_detail(species)

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def _map_species(self, species: PerenualSpecies) -> EnrichmentRecord:
        scientific_name, *alternates = species.scientific_name
        synonyms = [*alternates, *(species.other_name or [])]
        image = species.default_image
        return EnrichmentRecord(
            provider=self.provider,
            identifier=str(species.id),
            scientific_name=scientific_name,
            common_name=species.common_name,
            genus=scientific_name.split(" ", 1)[0],
            synonyms=[name for name in synonyms if name],
            image_url=image.regular_url if image else None,
            sources=[
                SourceAttribution(name="Perenual", url=SPECIES_PAGE_URL.format(id=species.id))
            ],
            details={
                "cycle": species.cycle,
                "watering": species.watering,
                "sunlight": species.sunlight or [],
            },
        )

    def _map_detail(self, species: PerenualSpeciesDetail) -> EnrichmentRecord:
        record = self._map_species(species)
        details = {
            "origin": _as_list(species.origin),
            "type": species.type,
            "description": species.description,
            "medicinal": _flag(species.medicinal),
            "cuisine": _flag(species.cuisine),
            "edible": _flag(species.edible_fruit) or _flag(species.edible_leaf),
            "poisonous": {
                "to_humans": _flag(species.poisonous_to_humans),
                "to_pets": _flag(species.poisonous_to_pets),
            },
            "attracts": _as_list(species.attracts),
            "cultivation": {
                "cycle": species.cycle or "Unknown",
                "watering": species.watering or "Average",
                "sunlight": species.sunlight or [],
                "soil": _as_list(species.soil),
                "maintenance": species.maintenance or "Unknown",
                "care_level": species.care_level or "Unknown",
                "growth_rate": species.growth_rate or "Unknown",
                "indoor": _flag(species.indoor),
                "drought_tolerant": _flag(species.drought_tolerant),
                "propagation": _as_list(species.propagation),
            },
        }
        return record.model_copy(
            update={
                "family": species.family,
                "genus": species.genus or record.genus,
                "details": details,
            }
        )
