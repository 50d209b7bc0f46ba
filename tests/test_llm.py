import json

import httpx
import pytest

from config import Settings
from conftest import make_item
from llm import (
    OPENROUTER_URL,
    LLMConfigSynthesizer,
    LLMResponseError,
    LLMSimilarityComparator,
    LLMUnavailableError,
    _extract_json,
    responses,
)
from models import SimilarityScore
from retailers import COMMON_SELECTORS

SETTINGS = Settings(openrouter_api_key="test-key", llm_model="test/model")


def _reply(content: str, seen: list | None = None) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_extract_json_tolerates_fences_and_prose():
    assert _extract_json('```json\n[{"index": 0}]\n```') == [{"index": 0}]
    assert _extract_json('Here you go: {"brand": "Zara"} hope it helps') == {"brand": "Zara"}
    with pytest.raises(LLMResponseError):
        _extract_json("no idea")


@pytest.mark.asyncio
async def test_responses_posts_to_openrouter_and_validates():
    seen = []
    content = '```json\n[{"index": 0, "score": 0.8, "reason": "Both dresses"}]\n```'
    async with _reply(content, seen) as client:
        scores = await responses(
            model="test/model",
            input=[{"role": "user", "content": "hi"}],
            text_format=list[SimilarityScore],
            settings=SETTINGS,
            client=client,
        )

    assert scores == [SimilarityScore(index=0, score=0.8, reason="Both dresses")]
    request = seen[0]
    assert str(request.url) == OPENROUTER_URL
    assert request.headers["authorization"] == "Bearer test-key"
    assert json.loads(request.content)["model"] == "test/model"


@pytest.mark.asyncio
async def test_responses_without_key():
    with pytest.raises(LLMUnavailableError):
        await responses(model="m", input=[], text_format=list[SimilarityScore], settings=Settings())


@pytest.mark.asyncio
async def test_responses_wrong_shape():
    async with _reply('[{"index": "first", "score": 3}]') as client:
        with pytest.raises(LLMResponseError):
            await responses(model="m", input=[], text_format=list[SimilarityScore], settings=SETTINGS, client=client)


@pytest.mark.asyncio
async def test_responses_http_error_propagates():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    async with client:
        with pytest.raises(httpx.HTTPStatusError):
            await responses(model="m", input=[], text_format=list[SimilarityScore], settings=SETTINGS, client=client)


@pytest.mark.asyncio
async def test_compare_drops_out_of_range_indices():
    content = json.dumps(
        [
            {"index": 1, "score": 0.9, "reason": "Same dress"},
            {"index": 5, "score": 0.7, "reason": "Hallucinated"},
        ]
    )
    async with _reply(content) as client:
        scores = await LLMSimilarityComparator(SETTINGS, client).compare("Vestido rojo", ["Pantalón", "Red dress"])

    assert [s.index for s in scores] == [1]


@pytest.mark.asyncio
async def test_compare_skips_call_without_candidates():
    # no key and no client: returning early is the only way this passes
    assert await LLMSimilarityComparator(Settings()).compare("Vestido", []) == []


@pytest.mark.asyncio
async def test_judge_parses_camel_case_verdicts():
    content = '[{"index": 0, "confidence": 0.92, "isDuplicate": true, "reason": "Same dress"}]'
    candidate = make_item("1", "Vestido Negro", color="black")
    async with _reply(content) as client:
        verdicts = await LLMSimilarityComparator(SETTINGS, client).judge(candidate, [make_item("2", "Black Dress")])

    assert verdicts[0].is_duplicate
    assert verdicts[0].confidence == pytest.approx(0.92)


@pytest.mark.asyncio
async def test_synthesizer_merges_common_selectors():
    content = json.dumps(
        {
            "brand": "Atelier Lola",
            "currency": "EUR",
            "name": [".pdp-title"],
            "price": [".pdp-price"],
            "color": [],
            "image": [".pdp-gallery img"],
            "brand_selectors": [],
        }
    )
    async with _reply(content) as client:
        config = await LLMConfigSynthesizer(SETTINGS, client).synthesize("https://www.atelier-lola.com/p/1")

    assert config.name == "Atelier Lola"
    assert config.brand_default == "Atelier Lola"
    assert config.selectors.name[0] == ".pdp-title"
    assert config.selectors.name[1:] == COMMON_SELECTORS.name
    assert config.selectors.color == COMMON_SELECTORS.color
