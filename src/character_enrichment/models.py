from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator

from character_enrichment.exceptions import AIInvocationError, ErrorKind


class CacheCategory(str, Enum):
    """Category tag for cached AI computations."""

    CHARACTER_ENRICHMENT = "character_enrichment"
    RELATIONSHIP_ANALYSIS = "relationship_analysis"
    TIMELINE_ANALYSIS = "timeline_analysis"


class NormalizedModel(BaseModel):
    """Model whose blank strings and empty lists are normalized to None."""

    model_config = {"extra": "ignore"}

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        if isinstance(value, list):
            cleaned = [v.strip() if isinstance(v, str) else v for v in value]
            cleaned = [v for v in cleaned if v not in ("", None)]
            return cleaned or None
        return value

    @field_validator("*", mode="after")
    @classmethod
    def _empty_section_to_none(cls, value: Any) -> Any:
        if isinstance(value, BaseModel) and not value.model_dump(exclude_none=True):
            return None
        return value


class EnrichmentPayload(NormalizedModel):
    """Base class for structured AI results.

    Every field is optional since the model may omit sections.
    """

    def non_empty_fields(self) -> dict[str, Any]:
        """Top-level fields that carry content, in JSON-compatible form."""
        return self.model_dump(mode="json", exclude_none=True)

    @property
    def is_empty(self) -> bool:
        return not self.non_empty_fields()


class Relationship(BaseModel):
    related_character_name: str
    relationship_description: str
    relation_type: str


class Ability(BaseModel):
    ability_name: str
    ability_description: str
    power_level: str | None = None


class PsychologicalProfile(NormalizedModel):
    personality_type: str | None = None
    core_fears: list[str] | None = None
    core_desires: list[str] | None = None
    emotional_triggers: list[str] | None = None
    coping_mechanisms: list[str] | None = None
    mental_health_aspects: str | None = None
    trauma_history: str | None = None
    defense_mechanisms: list[str] | None = None


class SpecialTechnique(BaseModel):
    name: str
    description: str
    power_level: str | None = None
    limitations: str | None = None


class CombatProfile(NormalizedModel):
    fighting_style: str | None = None
    preferred_weapons: list[str] | None = None
    combat_strengths: list[str] | None = None
    combat_weaknesses: list[str] | None = None
    battle_tactics: str | None = None
    power_scaling: str | None = None
    special_techniques: list[SpecialTechnique] | None = None


class SocialDynamics(NormalizedModel):
    social_class: str | None = None
    cultural_background: str | None = None
    social_influence: str | None = None
    leadership_style: str | None = None
    communication_style: str | None = None
    social_connections: list[str] | None = None
    reputation: str | None = None
    public_image: str | None = None


class CharacterArchetype(NormalizedModel):
    primary_archetype: str | None = None
    secondary_archetypes: list[str] | None = None
    character_tropes: list[str] | None = None
    subverted_tropes: list[str] | None = None
    character_role: str | None = None
    narrative_function: str | None = None


class CharacterImpact(NormalizedModel):
    influence_on_story: str | None = None
    influence_on_other_characters: str | None = None
    cultural_impact: str | None = None
    fanbase_reception: str | None = None
    merchandise_popularity: str | None = None
    cosplay_popularity: str | None = None
    meme_status: str | None = None
    legacy_in_anime: str | None = None


class CharacterEnrichment(EnrichmentPayload):
    """Structured result for character enrichment."""

    personality_analysis: str | None = None
    key_relationships: list[Relationship] | None = None
    detailed_abilities: list[Ability] | None = None
    major_character_arcs: list[str] | None = None
    trivia: list[str] | None = None
    backstory_details: str | None = None
    character_development: str | None = None
    notable_quotes: list[str] | None = None
    symbolism: str | None = None
    fan_reception: str | None = None
    cultural_significance: str | None = None
    # Extended profile sections
    psychological_profile: PsychologicalProfile | None = None
    combat_profile: CombatProfile | None = None
    social_dynamics: SocialDynamics | None = None
    character_archetype: CharacterArchetype | None = None
    character_impact: CharacterImpact | None = None


class AdvancedRelationship(BaseModel):
    character_name: str
    relationship_type: str
    emotional_dynamics: str
    key_moments: list[str] | None = None
    relationship_evolution: str | None = None
    impact_on_story: str | None = None


class RelationshipAnalysis(EnrichmentPayload):
    """Structured result for relationship analysis."""

    advanced_relationships: list[AdvancedRelationship] | None = None


class TimelinePhase(BaseModel):
    phase: str
    description: str
    character_state: str
    key_events: list[str] | None = None
    character_growth: str | None = None
    challenges: str | None = None


class TimelineAnalysis(EnrichmentPayload):
    """Structured result for development timeline analysis."""

    development_timeline: list[TimelinePhase] | None = None


PAYLOAD_SCHEMAS: dict[CacheCategory, type[EnrichmentPayload]] = {
    CacheCategory.CHARACTER_ENRICHMENT: CharacterEnrichment,
    CacheCategory.RELATIONSHIP_ANALYSIS: RelationshipAnalysis,
    CacheCategory.TIMELINE_ANALYSIS: TimelineAnalysis,
}


def parse_payload(category: CacheCategory, data: Mapping[str, Any] | EnrichmentPayload) -> EnrichmentPayload:
    """Validate raw data against the schema of a category.

    Raises:
        AIInvocationError: classified as malformed_response if the shape is invalid
    """
    schema = PAYLOAD_SCHEMAS[category]
    if isinstance(data, schema):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    if not isinstance(data, Mapping):
        raise AIInvocationError(
            ErrorKind.MALFORMED_RESPONSE,
            f"Expected a JSON object for {category.value}, got {type(data).__name__}",
        )
    try:
        return schema.model_validate(dict(data))
    except ValidationError as e:
        raise AIInvocationError(
            ErrorKind.MALFORMED_RESPONSE,
            f"Response does not match {category.value} schema: {e.error_count()} error(s)",
        ) from e


@dataclass
class CacheMetrics:
    """Track hit/miss counters for cache lookups."""

    lookups: int = 0
    hits: int = 0
    misses: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        if self.lookups == 0:
            return 0.0
        return self.hits / self.lookups

    def record_hit(self) -> None:
        self.lookups += 1
        self.hits += 1

    def record_miss(self) -> None:
        self.lookups += 1
        self.misses += 1

    def record_error(self) -> None:
        self.errors += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "lookups": self.lookups,
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
            "hit_rate": self.hit_rate,
        }
