"""OpenAI-compatible AI invoker.

Calls a chat-completions endpoint (OpenAI or any compatible server) with a
JSON response format and validates the reply against the schema of the
requested category.

Requirements:
    - OPENAI_API_KEY set for api.openai.com
    - Or AI_BASE_URL pointing to a compatible server (e.g. a local gateway)

Failure classification:
- HTTP 429 -> rate_limited
- timeouts, connection errors, 5xx -> transient_network
- content_filter finish reason or policy error codes -> content_policy_rejected
- unparseable or schema-violating replies -> malformed_response
"""

import json
import logging

import httpx

from character_enrichment.config import settings
from character_enrichment.entities import EntityContext
from character_enrichment.exceptions import AIInvocationError, ErrorKind
from character_enrichment.models import CacheCategory, EnrichmentPayload, parse_payload

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an anime expert writing accurate, spoiler-aware character analysis. "
    "Reply with a single JSON object using exactly the keys requested. "
    "Omit keys you have no reliable information for."
)

CATEGORY_INSTRUCTIONS = {
    CacheCategory.CHARACTER_ENRICHMENT: (
        "Enrich this character. Keys: personality_analysis (string), "
        "key_relationships (list of {related_character_name, relationship_description, relation_type}), "
        "detailed_abilities (list of {ability_name, ability_description, power_level}), "
        "major_character_arcs (list of strings), trivia (list of strings), "
        "backstory_details (string), character_development (string), "
        "notable_quotes (list of strings), symbolism (string), fan_reception (string), "
        "cultural_significance (string), "
        "psychological_profile ({personality_type, core_fears, core_desires, emotional_triggers, "
        "coping_mechanisms, mental_health_aspects, trauma_history, defense_mechanisms}), "
        "combat_profile ({fighting_style, preferred_weapons, combat_strengths, combat_weaknesses, "
        "battle_tactics, power_scaling, special_techniques: list of {name, description, power_level, "
        "limitations}}), "
        "social_dynamics ({social_class, cultural_background, social_influence, leadership_style, "
        "communication_style, social_connections, reputation, public_image}), "
        "character_archetype ({primary_archetype, secondary_archetypes, character_tropes, "
        "subverted_tropes, character_role, narrative_function}), "
        "character_impact ({influence_on_story, influence_on_other_characters, cultural_impact, "
        "fanbase_reception, merchandise_popularity, cosplay_popularity, meme_status, legacy_in_anime})."
    ),
    CacheCategory.RELATIONSHIP_ANALYSIS: (
        "Analyze the relationships of this character. Key: advanced_relationships "
        "(list of {character_name, relationship_type, emotional_dynamics, key_moments, "
        "relationship_evolution, impact_on_story})."
    ),
    CacheCategory.TIMELINE_ANALYSIS: (
        "Describe how this character develops over the story. Key: development_timeline "
        "(list of {phase, description, character_state, key_events, character_growth, challenges})."
    ),
}

POLICY_ERROR_CODES = {"content_filter", "content_policy_violation"}


def build_prompt(category: CacheCategory, context: EntityContext) -> str:
    """Build the user prompt for one entity."""
    lines = [f"Character: {context.name}"]
    if context.parent_title:
        lines.append(f"Anime: {context.parent_title}")
    for key, value in context.attributes.items():
        if value in (None, "", [], {}):
            continue
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        lines.append(f"{key.replace('_', ' ').capitalize()}: {value}")
    lines.append("")
    lines.append(CATEGORY_INSTRUCTIONS[category])
    return "\n".join(lines)


class OpenAIInvoker:
    """OpenAI chat-completions implementation of the AIInvoker protocol.

    This class satisfies the AIInvoker protocol through structural
    typing - no explicit inheritance needed.

    One invoke() is exactly one HTTP request: no retries and no caching.

    Example:
        ```python
        invoker = OpenAIInvoker.create()
        payload = await invoker.invoke(CacheCategory.CHARACTER_ENRICHMENT, context)
        print(payload.non_empty_fields())
        ```
    """

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the invoker.

        Args:
            model_name: Chat model name. Defaults to settings.ai_model.
            base_url: API base URL. Defaults to settings.ai_base_url.
            api_key: Bearer token. Defaults to settings.openai_api_key.
            timeout: Request timeout in seconds. Defaults to settings.ai_call_timeout.
            client: Preconfigured HTTP client (tests inject a MockTransport client).
        """
        self._model_name = model_name or settings.ai_model
        self._base_url = (base_url or settings.ai_base_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.openai_api_key
        self._timeout = timeout or settings.ai_call_timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    @classmethod
    def create(
        cls,
        model_name: str | None = None,
        base_url: str | None = None,
    ) -> "OpenAIInvoker":
        """Factory method to create OpenAIInvoker with defaults.

        Args:
            model_name: Model name. If None, uses settings.
            base_url: API URL. If None, uses settings.

        Returns:
            Configured OpenAIInvoker
        """
        return cls(model_name=model_name, base_url=base_url)

    @property
    def model_name(self) -> str:
        return self._model_name

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def invoke(self, category: CacheCategory, context: EntityContext) -> EnrichmentPayload:
        """Run one chat completion and validate the reply.

        Raises:
            AIInvocationError: classified failure
        """
        body = {
            "model": self._model_name,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(category, context)},
            ],
            "response_format": {"type": "json_object"},
            "temperature": 0.3,
        }

        try:
            response = await self.client.post(
                f"{self._base_url}/chat/completions",
                json=body,
                headers=self._headers(),
            )
        except httpx.TimeoutException as e:
            raise AIInvocationError(ErrorKind.TRANSIENT_NETWORK, f"Request timed out: {e}") from e
        except httpx.TransportError as e:
            raise AIInvocationError(ErrorKind.TRANSIENT_NETWORK, f"Connection failed: {e}") from e

        self._raise_for_status(response)
        return self._parse_response(category, response)

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        if status == 429:
            raise AIInvocationError(ErrorKind.RATE_LIMITED, "Rate limit exceeded (HTTP 429)")
        if status >= 500:
            raise AIInvocationError(ErrorKind.TRANSIENT_NETWORK, f"Server error (HTTP {status})")

        code = ""
        try:
            error = response.json().get("error") or {}
            code = str(error.get("code") or error.get("type") or "")
        except (ValueError, AttributeError):
            pass
        if code in POLICY_ERROR_CODES:
            raise AIInvocationError(ErrorKind.CONTENT_POLICY_REJECTED, f"Request rejected by content policy ({code})")
        # Other client errors will not succeed on retry
        raise AIInvocationError(ErrorKind.MALFORMED_RESPONSE, f"Request rejected (HTTP {status}) {code}".strip())

    @staticmethod
    def _parse_response(category: CacheCategory, response: httpx.Response) -> EnrichmentPayload:
        try:
            choice = response.json()["choices"][0]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIInvocationError(ErrorKind.MALFORMED_RESPONSE, "Response has no choices") from e

        if choice.get("finish_reason") == "content_filter":
            raise AIInvocationError(ErrorKind.CONTENT_POLICY_REJECTED, "Completion stopped by content filter")

        message = choice.get("message") or {}
        if message.get("refusal"):
            raise AIInvocationError(ErrorKind.CONTENT_POLICY_REJECTED, str(message["refusal"]))

        content = message.get("content")
        if not content:
            raise AIInvocationError(ErrorKind.MALFORMED_RESPONSE, "Empty completion content")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise AIInvocationError(ErrorKind.MALFORMED_RESPONSE, f"Completion is not valid JSON: {e.msg}") from e

        payload = parse_payload(category, data)
        if payload.is_empty:
            raise AIInvocationError(ErrorKind.MALFORMED_RESPONSE, "Completion contains no usable fields")
        return payload

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
