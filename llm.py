"""
LLM client and the two LLM-backed capabilities.

responses() posts an OpenAI-compatible chat request to OpenRouter and
validates the JSON reply against a pydantic schema. Both capabilities built on
it are fallible: callers catch and degrade, nothing here retries.
"""

import json
import logging
import re
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from config import Settings, get_settings
from models import (
    DuplicateVerdict,
    RetailerConfig,
    SelectorSet,
    SimilarityScore,
    SynthesizedSelectors,
    WardrobeItem,
)
from retailers import COMMON_SELECTORS, guess_brand, normalize_host

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


class LLMUnavailableError(RuntimeError):
    """No API key configured."""


class LLMResponseError(ValueError):
    """The model replied, but not with JSON matching the requested schema."""


# =====================================================================
# Client
# =====================================================================


def _extract_json(text: str) -> Any:
    """JSON value from a model reply, tolerating markdown fences and prose."""
    cleaned = re.sub(r"```(?:json)?\s*\n?", "", text)
    cleaned = re.sub(r"\n?```", "", cleaned).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Outermost array or object, whichever opens first
    starts = [i for i in (cleaned.find("["), cleaned.find("{")) if i != -1]
    if not starts:
        raise LLMResponseError(f"No JSON in model reply: {text[:200]!r}")
    start = min(starts)
    end = cleaned.rfind("]" if cleaned[start] == "[" else "}")
    try:
        return json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Malformed JSON in model reply: {e}") from e


async def responses(
    model: str,
    input: list[dict[str, str]],
    text_format: Any,
    timeout: float = 30.0,
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
):
    """One chat completion, parsed into `text_format` (a model or list[model]).

    Raises LLMUnavailableError without an API key, LLMResponseError for a
    reply that does not validate; httpx errors propagate.
    """
    settings = settings or get_settings()
    if not settings.openrouter_api_key:
        raise LLMUnavailableError("No OpenRouter API key (OPENROUTER_API_KEY)")

    headers = {
        "Authorization": f"Bearer {settings.openrouter_api_key}",
        "Content-Type": "application/json",
    }
    payload = {
        "model": model,
        "messages": input,
        "temperature": 0.2,
        "max_tokens": 2000,
    }

    if client is None:
        async with httpx.AsyncClient() as owned:
            resp = await owned.post(OPENROUTER_URL, headers=headers, json=payload, timeout=timeout)
    else:
        resp = await client.post(OPENROUTER_URL, headers=headers, json=payload, timeout=timeout)
    resp.raise_for_status()
    data = resp.json()

    choices = data.get("choices") or []
    if not choices:
        raise LLMResponseError("OpenRouter returned no choices")
    content = choices[0].get("message", {}).get("content") or ""

    try:
        return TypeAdapter(text_format).validate_python(_extract_json(content))
    except ValidationError as e:
        raise LLMResponseError(f"Reply does not match {text_format}: {e.error_count()} error(s)") from e


# =====================================================================
# Similarity / duplicate comparator
# =====================================================================

SIMILARITY_SYSTEM = (
    "You compare clothing and accessory names to find items that would clash "
    "if two guests wore them to the same event. Names may be in Spanish, "
    "English, French or Italian.\n"
    "Rules:\n"
    "1. Same kind of garment with a different description = similar.\n"
    "2. Same brand or style in a different color or size = similar.\n"
    "3. Different kinds of garment = not similar.\n"
    "4. Accessory vs garment = not similar.\n"
    'Examples: "Vestido rojo largo" vs "Red maxi dress" = similar. '
    '"Zapatos negros tacón" vs "Black high heels" = similar. '
    '"Vestido" vs "Pantalón" = not similar.'
)

DUPLICATE_SYSTEM = (
    "You detect duplicate fashion items: the same product listed under a "
    "different name.\n"
    "Rules:\n"
    "1. Same brand + same color + same type = probably a duplicate.\n"
    '2. The same item named in another language is a duplicate ("Vestido Negro" = "Black Dress").\n'
    '3. A different description of the same item is a duplicate ("Vestido Formal" = "Formal Dress").\n'
    "4. Different sizes of the same item are duplicates."
)


def _describe(item: WardrobeItem) -> str:
    type_name = item.type.name if item.type else "Unknown"
    return (
        f'"{item.name}" (brand: {item.brand or "Unknown"}, color: {item.color or "Unknown"}, '
        f"type: {type_name}, owner: {item.owner_name or 'Unknown User'})"
    )


def _in_range(rows: list, count: int, what: str) -> list:
    kept = [row for row in rows if 0 <= row.index < count]
    if len(kept) != len(rows):
        logger.warning(f"Dropped {len(rows) - len(kept)} {what} row(s) with out-of-range index")
    return kept


class LLMSimilarityComparator:
    """Batched similarity scoring and duplicate judgement via the LLM."""

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self.client = client

    async def compare(self, item_text: str, candidate_texts: list[str]) -> list[SimilarityScore]:
        if not candidate_texts:
            return []
        numbered = "\n".join(f'{i}. "{text}"' for i, text in enumerate(candidate_texts))
        user = (
            f'NEW ITEM: "{item_text}"\n\nEXISTING ITEMS:\n{numbered}\n\n'
            "Return a JSON array of objects "
            '{"index": <number from the list above>, "score": <0.0-1.0>, "reason": <short reason>}. '
            "0.8-1.0 = very similar, 0.6-0.79 = somewhat similar, below 0.6 = not similar. "
            "Only include items scoring 0.6 or more."
        )
        scores = await responses(
            model=self.settings.llm_model,
            input=[
                {"role": "system", "content": SIMILARITY_SYSTEM},
                {"role": "user", "content": user},
            ],
            text_format=list[SimilarityScore],
            timeout=self.settings.llm_timeout,
            settings=self.settings,
            client=self.client,
        )
        return _in_range(scores, len(candidate_texts), "similarity")

    async def judge(self, item: WardrobeItem, candidates: list[WardrobeItem]) -> list[DuplicateVerdict]:
        if not candidates:
            return []
        numbered = "\n".join(f"{i}. {_describe(c)}" for i, c in enumerate(candidates))
        user = (
            f"NEW ITEM: {_describe(item)}\n\nEXISTING ITEMS TO COMPARE:\n{numbered}\n\n"
            "Return a JSON array of objects "
            '{"index": <number from the list above>, "confidence": <0.0-1.0>, '
            '"isDuplicate": <true|false>, "reason": <short reason>}, one per existing item.'
        )
        verdicts = await responses(
            model=self.settings.llm_model,
            input=[
                {"role": "system", "content": DUPLICATE_SYSTEM},
                {"role": "user", "content": user},
            ],
            text_format=list[DuplicateVerdict],
            timeout=self.settings.llm_timeout,
            settings=self.settings,
            client=self.client,
        )
        return _in_range(verdicts, len(candidates), "duplicate verdict")


# =====================================================================
# Retailer config synthesizer
# =====================================================================

SYNTHESIZE_SYSTEM = (
    "You write CSS selectors for scraping product pages of online fashion "
    "retailers. Given a product URL, return the selectors the retailer most "
    "likely uses for the product name, price, selected color, main image and "
    "brand, most specific first. Use only standard CSS selectors."
)


class LLMConfigSynthesizer:
    """Builds a RetailerConfig for an unknown host from LLM-suggested selectors."""

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self.client = client

    async def synthesize(self, url: str) -> RetailerConfig:
        host = normalize_host(url)
        user = (
            f"Product URL: {url}\n\n"
            'Return a JSON object {"brand": <brand name or null>, "currency": "EUR" or "USD", '
            '"name": [...], "price": [...], "color": [...], "image": [...], "brand_selectors": [...]}.'
        )
        result: SynthesizedSelectors = await responses(
            model=self.settings.llm_model,
            input=[
                {"role": "system", "content": SYNTHESIZE_SYSTEM},
                {"role": "user", "content": user},
            ],
            text_format=SynthesizedSelectors,
            timeout=self.settings.llm_timeout,
            settings=self.settings,
            client=self.client,
        )

        own = SelectorSet(
            name=result.name,
            price=result.price,
            color=result.color,
            image=result.image,
            brand=result.brand_selectors,
        )
        return RetailerConfig(
            name=result.brand or guess_brand(host),
            default_currency=result.currency,
            selectors=own.merged_with(COMMON_SELECTORS),
            brand_default=result.brand,
        )
