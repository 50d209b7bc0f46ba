"""
Product extractor: retailer selectors -> ExtractedProduct.

extract() works on an already-parsed document and never touches the network.
extract_from_url() is the outer pipeline: clean the URL, resolve the retailer
config, fetch (with retries), parse, extract.
"""

import asyncio
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import httpx

import colors
import images
import taxonomy
from config import get_settings
from models import ExtractedProduct, RetailerConfig
from parser import ParsedDocument, parse_html
from retailers import RetailerResolver, default_headers

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ["name", "image_url", "price", "currency", "color", "brand", "description", "type"]

ImageSelector = Callable[[ParsedDocument, str, RetailerConfig], str | None]


class ExtractionError(Exception):
    """The page does not yield a product (no name selector matched)."""


class InvalidProductURLError(ValueError):
    pass


class ProductPageFetchError(Exception):
    def __init__(self, url: str, reason: str, status_code: int | None = None):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


# ===== Metrics =====


@dataclass
class ExtractionMetrics:
    """Per-page provenance and timing collected during extraction."""

    url: str = ""
    retailer: str = ""
    # field -> what produced it (a selector, "json-ld", "meta", "config", ...)
    field_sources: dict[str, str] = field(default_factory=dict)
    fields_missing: list[str] = field(default_factory=list)
    fetch_attempts: int = 0
    fetch_time: float = 0.0
    parse_time: float = 0.0
    extract_time: float = 0.0
    total_time: float = 0.0
    from_api: bool = False

    def record(self, field_name: str, source: str | None) -> None:
        if source:
            self.field_sources[field_name] = source


# =====================================================================
# Field helpers
# =====================================================================


def extract_text_with_source(document: ParsedDocument, selectors: list[str]) -> tuple[str | None, str | None]:
    """(value, selector) for the first selector yielding non-empty text.

    Only the first matching element of each selector is considered: its
    trimmed text, else its trimmed content attribute.
    """
    for selector in selectors:
        element = document.select_one(selector)
        if element is None:
            continue
        text = element.text().strip()
        if text:
            return text, selector
        content = (element.attribute("content") or "").strip()
        if content:
            return content, selector
    return None, None


def extract_text(document: ParsedDocument, selectors: list[str]) -> str | None:
    return extract_text_with_source(document, selectors)[0]


_PRICE_RE = re.compile(r"(\d+)[,.](\d{2})")
_LEADING_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?")


def parse_price(text: str | None) -> float | None:
    """'49,99 €' -> 49.99. Thousands separators are not understood."""
    if not text:
        return None

    match = _PRICE_RE.search(text)
    if match:
        return int(match.group(1)) + int(match.group(2)) / 100

    # Plain number: keep digits and separators, comma as decimal point
    normalized = re.sub(r"[^\d.,]", "", text).replace(",", ".", 1)
    number = _LEADING_NUMBER_RE.match(normalized)
    return float(number.group(0)) if number else None


_COLOR_ATTRIBUTES = ("content", "data-color", "data-selected-color", "data-value")


def extract_color(document: ParsedDocument, url: str, config: RetailerConfig, name: str | None = None) -> tuple[str | None, str | None]:
    """(canonical color, source). Selectors, JSON-LD, meta, then free text."""
    for selector in config.selectors.color:
        element = document.select_one(selector)
        if element is None:
            continue
        text = element.text().strip()
        color = colors.normalize(text) if text else None
        if color:
            return color, selector
        for attr in _COLOR_ATTRIBUTES:
            value = element.attribute(attr)
            color = colors.normalize(value) if value else None
            if color:
                return color, f"{selector}[{attr}]"

    product = document.json_ld_product()
    if product:
        raw = product.get("color")
        if isinstance(raw, list):
            raw = raw[0] if raw else None
        color = colors.normalize(raw) if isinstance(raw, str) else None
        if color:
            return color, "json-ld"

    raw = document.meta("product:color")
    color = colors.normalize(raw) if raw else None
    if color:
        return color, "meta"

    for source, text in (("name", name), ("url", url)):
        color = colors.find_color_in_text(text)
        if color:
            return color, source

    return None, None


def extract_currency(document: ParsedDocument, config: RetailerConfig) -> tuple[str, str]:
    for key in ("product:price:currency", "og:price:currency"):
        value = (document.meta(key) or "").strip().upper()
        if value in ("EUR", "USD"):
            return value, "meta"
    return config.default_currency, "config"


# =====================================================================
# Extraction
# =====================================================================


def extract(
    document: ParsedDocument,
    url: str,
    config: RetailerConfig,
    select_image: ImageSelector = images.select_image,
    metrics: ExtractionMetrics | None = None,
) -> ExtractedProduct:
    """Build an ExtractedProduct from a parsed page.

    Raises ExtractionError("no name found") when no name selector matches.
    Every other field degrades to None.
    """
    metrics = metrics if metrics is not None else ExtractionMetrics(url=url, retailer=config.name)
    t0 = time.monotonic()

    name, source = extract_text_with_source(document, config.selectors.name)
    if not name:
        logger.warning(f"No product name found on {url} ({config.name})")
        raise ExtractionError("no name found")
    metrics.record("name", source)

    image_url = select_image(document, url, config)
    metrics.record("image_url", "images" if image_url else None)

    price_text, source = extract_text_with_source(document, config.selectors.price)
    price = parse_price(price_text)
    metrics.record("price", source if price is not None else None)

    currency, source = extract_currency(document, config)
    metrics.record("currency", source)

    color, source = extract_color(document, url, config, name)
    metrics.record("color", source)

    if config.brand_default:
        brand, source = config.brand_default, "config"
    else:
        brand, source = extract_text_with_source(document, config.selectors.brand)
    metrics.record("brand", source)

    description, source = extract_text_with_source(document, config.selectors.description)
    metrics.record("description", source)

    product_type = taxonomy.detect(name)
    metrics.record("type", product_type.subcategory)

    product = ExtractedProduct(
        name=name,
        type=product_type,
        image_url=image_url,
        price=price,
        currency=currency,
        color=color,
        brand=brand,
        description=description,
        source_url=url,
    )

    metrics.fields_missing = [f for f in PRODUCT_FIELDS if getattr(product, f) is None]
    metrics.extract_time = time.monotonic() - t0
    return product


def extract_from_api_payload(data: dict, url: str, config: RetailerConfig, metrics: ExtractionMetrics | None = None) -> ExtractedProduct:
    """Build a product from a retailer's product JSON API (e.g. Carolina Herrera)."""
    if not isinstance(data, dict):
        raise ExtractionError("no name found")

    name = data.get("name") or data.get("title") or data.get("displayName")
    if not isinstance(name, str) or not name.strip():
        logger.warning(f"No product name in API payload for {url}")
        raise ExtractionError("no name found")

    image = None
    if isinstance(data.get("images"), list) and data["images"]:
        first = data["images"][0]
        image = (first.get("url") or first.get("src")) if isinstance(first, dict) else first
    elif isinstance(data.get("image"), dict):
        image = data["image"].get("url") or data["image"].get("src")
    image_url = images.process_image_url(image, url) if isinstance(image, str) else None

    raw_price = data.get("price")
    if isinstance(raw_price, dict):
        raw_price = raw_price.get("value")
    if isinstance(raw_price, (int, float)) and not isinstance(raw_price, bool):
        price = float(raw_price)
    else:
        price = parse_price(str(raw_price)) if raw_price is not None else None

    raw_color = data.get("color")
    if isinstance(raw_color, dict):
        raw_color = raw_color.get("name")
    raw_color = raw_color or data.get("colorName")
    color = colors.normalize(raw_color) if isinstance(raw_color, str) else None

    description = data.get("description") or data.get("shortDescription")
    description = description.strip() if isinstance(description, str) and description.strip() else None

    if metrics is not None:
        metrics.from_api = True
        for f in ("name", "image_url", "price", "color", "description"):
            metrics.record(f, "api")

    product = ExtractedProduct(
        name=name,
        type=taxonomy.detect(name),
        image_url=image_url,
        price=price,
        currency=config.default_currency,
        color=color,
        brand=config.brand_default,
        description=description,
        source_url=url,
    )
    if metrics is not None:
        metrics.fields_missing = [f for f in PRODUCT_FIELDS if getattr(product, f) is None]
    return product


# =====================================================================
# URL cleaning
# =====================================================================

_TRACKING_PARAMS = {"fbclid", "gclid", "ref", "sid", "session", "token", "_ga"}
_TRACKING_PREFIXES = ("utm_", "ga_")


def clean_url(url: str) -> str:
    """Normalize a product URL: https, no tracking params, no trailing slash.

    Raises InvalidProductURLError for anything that is not an http(s) URL
    with a hostname.
    """
    if not url or not isinstance(url, str) or not url.strip():
        raise InvalidProductURLError("Invalid URL format: empty URL")

    candidate = url.strip()
    if not re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", candidate):
        if re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*:(?!\d)", candidate):
            raise InvalidProductURLError(f"Invalid URL format: unsupported scheme in {url!r}")
        candidate = "https://" + candidate.lstrip("/")

    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in ("http", "https"):
        raise InvalidProductURLError(
            f"Invalid URL format: only HTTP and HTTPS are supported, got {parsed.scheme!r}"
        )
    if not parsed.hostname or "." not in parsed.hostname:
        raise InvalidProductURLError(f"Invalid URL format: no hostname in {url!r}")

    query = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if key.lower() not in _TRACKING_PARAMS and not key.lower().startswith(_TRACKING_PREFIXES)
    ]
    path = parsed.path.rstrip("/") if not query else parsed.path
    cleaned = urlunparse(("https", parsed.netloc.lower(), path, parsed.params, urlencode(query), ""))
    return cleaned.rstrip("?&")


# =====================================================================
# Fetch pipeline
# =====================================================================

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}
RETRY_BACKOFF = 0.5  # seconds, doubled per attempt


async def fetch_page(
    client: httpx.AsyncClient,
    url: str,
    config: RetailerConfig,
    retries: int,
    timeout: float,
    metrics: ExtractionMetrics | None = None,
) -> httpx.Response:
    """GET with browser headers, retrying transient failures with backoff."""
    headers = {**default_headers(), **config.headers}
    last_error = "no attempt made"
    last_status: int | None = None

    for attempt in range(retries + 1):
        if metrics is not None:
            metrics.fetch_attempts = attempt + 1
        if attempt:
            await asyncio.sleep(RETRY_BACKOFF * 2 ** (attempt - 1))
        try:
            response = await client.get(url, headers=headers, timeout=timeout, follow_redirects=True)
        except httpx.TransportError as e:
            last_error = f"{type(e).__name__}: {e}"
            logger.warning(f"Fetch attempt {attempt + 1} for {url} failed: {last_error}")
            continue

        if response.status_code == 200:
            return response
        last_status = response.status_code
        last_error = f"HTTP {response.status_code}"
        if response.status_code not in _RETRYABLE_STATUS:
            break
        logger.warning(f"Fetch attempt {attempt + 1} for {url} returned {response.status_code}")

    raise ProductPageFetchError(url, last_error, last_status)


async def extract_from_url(
    url: str,
    resolver: RetailerResolver,
    client: httpx.AsyncClient | None = None,
    retries: int | None = None,
    timeout: float | None = None,
) -> tuple[ExtractedProduct, ExtractionMetrics]:
    """Clean URL -> resolve config -> fetch -> parse -> extract."""
    settings = get_settings()
    retries = settings.fetch_retries if retries is None else retries
    timeout = settings.fetch_timeout if timeout is None else timeout

    t_start = time.monotonic()
    cleaned = clean_url(url)
    config = await resolver.resolve(cleaned)
    metrics = ExtractionMetrics(url=cleaned, retailer=config.name)
    fetch_url = config.transform_url(cleaned)
    if fetch_url != cleaned:
        logger.info(f"Fetching {cleaned} via {fetch_url}")

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient()
    try:
        t0 = time.monotonic()
        response = await fetch_page(client, fetch_url, config, retries, timeout, metrics)
        metrics.fetch_time = time.monotonic() - t0
    finally:
        if owns_client:
            await client.aclose()

    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            payload = response.json()
        except ValueError as e:
            raise ProductPageFetchError(fetch_url, f"malformed JSON response: {e}") from e
        product = extract_from_api_payload(payload, cleaned, config, metrics)
    else:
        t0 = time.monotonic()
        document = parse_html(response.text)
        metrics.parse_time = time.monotonic() - t0
        product = extract(document, cleaned, config, metrics=metrics)

    metrics.total_time = time.monotonic() - t_start
    logger.info(
        f"Extracted {product.name!r} from {config.name}: "
        f"{product.price} {product.currency} | {product.color} | {product.type.name}"
    )
    return product, metrics
