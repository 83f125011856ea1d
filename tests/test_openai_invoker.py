"""
Tests for the OpenAI-compatible invoker using httpx.MockTransport.
"""

import json

import httpx
import pytest

from character_enrichment.entities import EnrichmentRecord, EntityContext
from character_enrichment.exceptions import AIInvocationError, ErrorKind
from character_enrichment.models import CacheCategory, CharacterEnrichment
from character_enrichment.protocols import AIInvoker
from character_enrichment.repositories import OpenAIInvoker
from character_enrichment.repositories.openai_invoker import build_prompt

CONTEXT = EntityContext(
    entity_id="spike",
    name="Spike Spiegel",
    record=EnrichmentRecord(entity_id="spike"),
    parent_id="bebop",
    parent_title="Cowboy Bebop",
    attributes={"role": "Main", "voice_actors": ["Koichi Yamadera"], "description": ""},
)


def completion(content, finish_reason: str = "stop") -> dict:
    return {
        "choices": [
            {"index": 0, "finish_reason": finish_reason, "message": {"role": "assistant", "content": content}}
        ]
    }


def make_invoker(handler) -> OpenAIInvoker:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIInvoker(
        model_name="gpt-test",
        base_url="https://llm.example/v1/",
        api_key="sk-test",
        timeout=5.0,
        client=client,
    )


async def invoke_with(handler, category=CacheCategory.CHARACTER_ENRICHMENT):
    invoker = make_invoker(handler)
    try:
        return await invoker.invoke(category, CONTEXT)
    finally:
        await invoker.close()


def test_satisfies_protocol():
    assert isinstance(OpenAIInvoker(api_key="x"), AIInvoker)


def test_build_prompt_includes_context():
    prompt = build_prompt(CacheCategory.CHARACTER_ENRICHMENT, CONTEXT)

    assert "Character: Spike Spiegel" in prompt
    assert "Anime: Cowboy Bebop" in prompt
    assert "Role: Main" in prompt
    assert "Voice actors: Koichi Yamadera" in prompt
    assert "Description" not in prompt
    assert "personality_analysis" in prompt
    assert "combat_profile" in prompt


@pytest.mark.asyncio
async def test_successful_completion():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        content = json.dumps({"personality_analysis": "Laid back", "trivia": ["Jeet Kune Do"], "unknown": 1})
        return httpx.Response(200, json=completion(content))

    payload = await invoke_with(handler)

    assert isinstance(payload, CharacterEnrichment)
    assert payload.non_empty_fields() == {"personality_analysis": "Laid back", "trivia": ["Jeet Kune Do"]}
    assert seen["url"] == "https://llm.example/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "gpt-test"
    assert seen["body"]["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code,body,kind",
    [
        (429, {"error": {"message": "slow down"}}, ErrorKind.RATE_LIMITED),
        (500, {}, ErrorKind.TRANSIENT_NETWORK),
        (503, {}, ErrorKind.TRANSIENT_NETWORK),
        (400, {"error": {"code": "content_policy_violation"}}, ErrorKind.CONTENT_POLICY_REJECTED),
        (400, {"error": {"code": "invalid_request"}}, ErrorKind.MALFORMED_RESPONSE),
    ],
)
async def test_http_errors_are_classified(status_code, body, kind):
    def handler(request):
        return httpx.Response(status_code, json=body)

    with pytest.raises(AIInvocationError) as exc_info:
        await invoke_with(handler)
    assert exc_info.value.kind == kind


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [httpx.ConnectError("refused"), httpx.ReadTimeout("slow")])
async def test_transport_errors_are_transient(error):
    def handler(request):
        raise error

    with pytest.raises(AIInvocationError) as exc_info:
        await invoke_with(handler)
    assert exc_info.value.kind == ErrorKind.TRANSIENT_NETWORK
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_content_filter_finish_reason():
    def handler(request):
        return httpx.Response(200, json=completion(None, finish_reason="content_filter"))

    with pytest.raises(AIInvocationError) as exc_info:
        await invoke_with(handler)
    assert exc_info.value.kind == ErrorKind.CONTENT_POLICY_REJECTED
    assert not exc_info.value.retryable


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        completion("this is not json"),
        completion(json.dumps({"key_relationships": "everyone"})),
        completion(json.dumps({"personality_analysis": ""})),
        completion(json.dumps(["a list"])),
        completion(""),
        {"choices": []},
    ],
)
async def test_malformed_responses(response):
    def handler(request):
        return httpx.Response(200, json=response)

    with pytest.raises(AIInvocationError) as exc_info:
        await invoke_with(handler)
    assert exc_info.value.kind == ErrorKind.MALFORMED_RESPONSE


@pytest.mark.asyncio
async def test_relationship_category():
    def handler(request):
        content = json.dumps({
            "advanced_relationships": [
                {"character_name": "Vicious", "relationship_type": "rival", "emotional_dynamics": "bitter"}
            ]
        })
        return httpx.Response(200, json=completion(content))

    payload = await invoke_with(handler, CacheCategory.RELATIONSHIP_ANALYSIS)

    assert payload.advanced_relationships[0].character_name == "Vicious"
