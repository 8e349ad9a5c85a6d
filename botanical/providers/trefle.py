"""Trefle client (https://trefle.io/api/v1).

Authenticates with a ``token`` query parameter. Plants are addressed either
by numeric id or by slug; listings advance via ``links.next``.
"""

from __future__ import annotations

from typing import Any

from botanical.middleware.error_handler import ValidationError
from botanical.models.records import EnrichmentRecord, SourceAttribution
from botanical.models.upstream import (
    TrefleDetailPayload,
    TrefleListPayload,
    TreflePlant,
    TreflePlantDetail,
    names_of,
)
from botanical.providers.base import (
    BotanicalClient,
    ProviderRequest,
    is_slug,
    parse_positive_int,
)


class TrefleClient(BotanicalClient):
    """Client for the Trefle plant database."""

    provider = "trefle"
    display_name = "Trefle"
    auth_param = "token"
    default_base_url = "https://trefle.io/api/v1"

    def build_search_request(self, name: str, page: int) -> ProviderRequest:
        return ProviderRequest("search", "/plants/search", {"q": name, "page": page})

    def build_detail_request(self, identifier: str) -> ProviderRequest:
        return ProviderRequest("get_plant", f"/plants/{identifier}")

    def build_list_request(self, page: int) -> ProviderRequest:
        return ProviderRequest("list_plants", "/plants", {"page": page, "limit": self.page_size})

    def normalize_identifier(self, identifier: str | int) -> str:
        """Accept a positive numeric id or a lowercase slug."""
        text = str(identifier).strip()
        value = parse_positive_int(text)
        if value is not None:
            return str(value)
        if is_slug(text) and not text.isdigit():
            return text
        raise ValidationError(
            "Trefle identifier must be a positive integer or a plant slug",
            provider=self.provider,
            identifier=str(identifier),
        )

    def parse_search(self, payload: Any) -> list[EnrichmentRecord]:
        parsed = self._validate_payload(TrefleListPayload, payload)
        return [self._map_plant(plant) for plant in parsed.data]

    def parse_list(self, payload: Any) -> tuple[list[EnrichmentRecord], bool]:
        parsed = self._validate_payload(TrefleListPayload, payload)
        return [self._map_plant(plant) for plant in parsed.data], parsed.links.next is not None

    def parse_detail(self, payload: Any) -> EnrichmentRecord:
        plant = self._validate_payload(TrefleDetailPayload, payload).data
        return self._map_detail(plant)

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def _attribution(self, plant: TreflePlant) -> SourceAttribution:
        return SourceAttribution(
            name="Trefle",
            url=f"https://trefle.io/api/v1/plants/{plant.slug or plant.id}",
        )

    def _map_plant(self, plant: TreflePlant) -> EnrichmentRecord:
        return EnrichmentRecord(
            provider=self.provider,
            identifier=str(plant.id),
            scientific_name=plant.scientific_name,
            common_name=plant.common_name,
            family=plant.family,
            genus=plant.genus,
            synonyms=plant.synonyms,
            image_url=plant.image_url,
            sources=[self._attribution(plant)],
            details={
                "slug": plant.slug,
                "author": plant.author,
                "year": plant.year,
                "bibliography": plant.bibliography,
                "family_common_name": plant.family_common_name,
            },
        )

    def _map_detail(self, plant: TreflePlantDetail) -> EnrichmentRecord:
        record = self._map_plant(plant)
        species = plant.main_species

        sources = [
            SourceAttribution(name=source.name, url=source.url, citation=source.citation)
            for source in (plant.sources or (species.sources if species else []))
        ] or [self._attribution(plant)]

        details = dict(record.details)
        synonyms = list(record.synonyms)
        image_url = record.image_url

        if species is not None:
            specs = species.specifications
            distributions = species.distributions
            details.update(
                {
                    "edible": bool(species.edible),
                    "edible_part": species.edible_part or [],
                    "vegetable": bool(species.vegetable),
                    "toxicity": (specs.toxicity if specs else None) or "none",
                    "growth_habit": specs.growth_habit if specs else None,
                    "growth_form": specs.growth_form if specs else None,
                    "growth_rate": specs.growth_rate if specs else None,
                    "average_height": specs.average_height if specs else None,
                    "distributions": {
                        "native": names_of(distributions.native) if distributions else [],
                        "introduced": names_of(distributions.introduced) if distributions else [],
                    },
                }
            )
            for synonym in species.synonyms:
                if synonym not in synonyms:
                    synonyms.append(synonym)
            image_url = image_url or species.image_url

        return record.model_copy(
            update={
                "synonyms": synonyms,
                "image_url": image_url,
                "sources": sources,
                "details": details,
            }
        )
