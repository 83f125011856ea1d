"""
Tests for the enrichment payload schemas.
"""

import pytest

from character_enrichment.exceptions import AIInvocationError, ErrorKind
from character_enrichment.models import CacheCategory, CharacterEnrichment, parse_payload


def test_extended_sections_alone_are_a_valid_result():
    payload = CharacterEnrichment.model_validate({
        "psychological_profile": {"personality_type": "INTP", "core_fears": ["the past"]},
        "combat_profile": {
            "fighting_style": "Jeet Kune Do",
            "special_techniques": [{"name": "Counter", "description": "Reads the opponent"}],
        },
    })

    assert not payload.is_empty
    assert payload.non_empty_fields() == {
        "psychological_profile": {"personality_type": "INTP", "core_fears": ["the past"]},
        "combat_profile": {
            "fighting_style": "Jeet Kune Do",
            "special_techniques": [{"name": "Counter", "description": "Reads the opponent"}],
        },
    }


def test_blank_sections_are_unset():
    payload = CharacterEnrichment.model_validate({
        "personality_analysis": "Laid back",
        "social_dynamics": {"reputation": "  ", "social_connections": ["", None]},
        "character_impact": {},
    })

    assert payload.social_dynamics is None
    assert payload.character_impact is None
    assert payload.non_empty_fields() == {"personality_analysis": "Laid back"}


def test_reply_of_only_blank_sections_is_malformed():
    payload = parse_payload(
        CacheCategory.CHARACTER_ENRICHMENT,
        {"character_archetype": {"primary_archetype": ""}, "trivia": []},
    )

    assert payload.is_empty


def test_invalid_section_shape_is_malformed():
    with pytest.raises(AIInvocationError) as exc_info:
        parse_payload(CacheCategory.CHARACTER_ENRICHMENT, {"combat_profile": "strong"})

    assert exc_info.value.kind == ErrorKind.MALFORMED_RESPONSE
