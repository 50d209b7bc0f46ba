"""
Retailer selector registry and per-host configuration resolver.

Static configs cover the retailers we see most; anything else gets either an
LLM-synthesized config (optional, fallible) or a generic config built from
commonly seen product-page selectors. Resolved configs are cached per
normalized hostname for the lifetime of the resolver instance.
"""

import logging
import re
from collections.abc import MutableMapping
from typing import Protocol
from urllib.parse import urlparse

from models import RetailerConfig, SelectorSet

logger = logging.getLogger(__name__)

# =====================================================================
# Common selectors (fallbacks appended to every config)
# =====================================================================

COMMON_SELECTORS = SelectorSet(
    name=[
        'h1[itemprop="name"]',
        ".product-name h1",
        ".product-title h1",
        ".pdp-title h1",
        '[data-testid="product-name"]',
        '[data-testid="product-title"]',
        ".product-detail-name",
        ".product-info__name",
        ".product-title",
        ".product-name",
        'meta[property="og:title"]',
        'meta[name="twitter:title"]',
        'meta[property="product:title"]',
        "h1",
    ],
    price=[
        '[itemprop="price"]',
        ".product-price",
        ".price__amount",
        ".price-value",
        '[data-testid="product-price"]',
        ".current-price",
        ".price-current",
        ".price-amount",
        ".money-amount",
        ".price",
        'meta[property="product:price:amount"]',
        'meta[property="og:price:amount"]',
    ],
    color=[
        '[itemprop="color"]',
        ".selected-color",
        ".color-selector .active",
        ".product-color",
        ".color-name",
        '[data-testid="selected-color"]',
        ".color-picker__selected",
        ".variant-color",
        'meta[property="product:color"]',
    ],
    image=[
        '[itemprop="image"]',
        ".product-image img",
        ".gallery-image img",
        ".pdp-image img",
        ".media-image img",
        '[data-testid="product-image"]',
        "picture source[srcset]",
        'meta[property="og:image"]',
        'meta[property="og:image:secure_url"]',
        'meta[name="twitter:image"]',
    ],
    brand=[
        '[itemprop="brand"]',
        ".product-brand",
        ".brand-name",
        ".designer",
        '[data-testid="product-brand"]',
        'meta[property="product:brand"]',
        'meta[property="og:brand"]',
    ],
    description=[
        '[itemprop="description"]',
        ".product-description",
        ".pdp-description",
        '[data-testid="product-description"]',
        'meta[name="description"]',
        'meta[property="og:description"]',
    ],
)

# Brand guesses for hosts that have no dedicated config.
BRAND_BY_DOMAIN = {
    "bimbaylola.com": "Bimba y Lola",
    "zara.com": "Zara",
    "hm.com": "H&M",
    "mango.com": "Mango",
    "massimodutti.com": "Massimo Dutti",
    "cos.com": "COS",
    "asos.com": "ASOS",
    "pullandbear.com": "Pull & Bear",
    "bershka.com": "Bershka",
    "stradivarius.com": "Stradivarius",
    "oysho.com": "Oysho",
    "uterque.com": "Uterque",
    "bimani.com": "BIMANI",
    "miphai.com": "Miphai",
    "mariquitatrasquila.com": "Mariquita Trasquila",
    "matildecano.es": "Matilde Cano",
    "ladypipa.com": "Lady Pipa",
    "dolorespromesas.com": "Dolores Promesas",
    "hossintropia.com": "Hoss Intropia",
    "hugoboss.com": "Hugo Boss",
    "tedbaker.com": "Ted Baker",
    "scalperscompany.com": "Scalpers",
}


def default_headers() -> dict[str, str]:
    """Browser-like request headers for fetching product pages."""
    return {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "es-ES,es;q=0.9,en;q=0.8",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
    }


# =====================================================================
# URL transforms
# =====================================================================

_CH_SKU_RE = re.compile(r"sku=(\d+)")


def strip_query(url: str) -> str:
    return url.split("?", 1)[0]


def carolina_herrera_api_url(url: str) -> str:
    """Ready-to-wear pages with a SKU are served from the product JSON API."""
    if "/p-ready-to-wear/" in url:
        match = _CH_SKU_RE.search(url)
        if match:
            return f"https://www.carolinaherrera.com/api/products/{match.group(1)}"
    return url


# =====================================================================
# Static registry
# =====================================================================


def _retailer(
    name: str,
    *,
    name_selectors: list[str] | None = None,
    price: list[str] | None = None,
    color: list[str] | None = None,
    image: list[str] | None = None,
    brand: list[str] | None = None,
    brand_default: str | None = None,
    currency: str = "EUR",
    url_transform=None,
    headers: dict[str, str] | None = None,
) -> RetailerConfig:
    """Build a config whose own selectors run before COMMON_SELECTORS."""
    own = SelectorSet(
        name=name_selectors or [],
        price=price or [],
        color=color or [],
        image=image or [],
        brand=brand or [],
    )
    return RetailerConfig(
        name=name,
        default_currency=currency,
        selectors=own.merged_with(COMMON_SELECTORS),
        brand_default=brand_default,
        url_transform=url_transform,
        headers=headers or {},
    )


REGISTRY: dict[str, RetailerConfig] = {
    # ----- Spanish high street -----
    "zara.com": _retailer(
        "Zara",
        name_selectors=[".product-detail-info h1", '[data-qa-id="product-name"]', ".product-name-wrapper h1"],
        price=[".price__amount", '[data-qa-id="product-price"]'],
        color=[
            ".product-detail-color-selector__selected",
            '[data-qa-id="selected-color"]',
            ".product-detail-selected-color",
        ],
        image=[".media-image img", ".product-detail-image img", '[data-qa-id="product-detail-image"]'],
        brand_default="Zara",
    ),
    "mango.com": _retailer(
        "Mango",
        name_selectors=[".product-name.text-title", ".name-title", "h1.product-name"],
        price=[".product-prices__price", ".price-sale"],
        color=[".color-selector__selected-color", ".product-colors .active"],
        image=[".product-images__image img", ".image-container img"],
        brand_default="Mango",
        url_transform=strip_query,
    ),
    "hm.com": _retailer(
        "H&M",
        name_selectors=[".product-detail-name", ".pdp-heading", "h1.product-name"],
        price=[".product-price-value", "[data-price]"],
        color=[".product-input-label", ".product-detail-colour-picker__selected", ".color-selector .selected"],
        image=[".product-detail-main-image-container img", ".product-images img"],
        brand_default="H&M",
        url_transform=strip_query,
    ),
    "cos.com": _retailer(
        "COS",
        name_selectors=['[data-test-id="product-title"]', ".product-detail-title", ".product-hero h1"],
        price=['[data-test-id="product-price"]', ".pdp-price"],
        color=['[data-test-id="selected-color"]', ".product-color-name"],
        image=[".product-detail-main-image img"],
        brand_default="COS",
        url_transform=strip_query,
    ),
    "massimodutti.com": _retailer(
        "Massimo Dutti",
        name_selectors=[".product-name h1", '[data-qa-anchor="productName"]'],
        price=['[data-qa-anchor="productItemPrice"]'],
        color=['[data-qa-anchor="productColorName"]'],
        brand_default="Massimo Dutti",
        url_transform=strip_query,
    ),
    "elcorteingles.es": _retailer(
        "El Corte Inglés",
        name_selectors=[".product-title h1", ".pdp-title", 'h1[data-testid="product-title"]'],
        price=[".price-amount", ".current-price"],
        color=[".product-color-name", ".color-selector .selected"],
        image=[".product-image__main img", ".product-gallery__image"],
    ),
    "pronovias.com": _retailer(
        "Pronovias",
        name_selectors=[".product-name h1", ".pdp-title", "h1.product-title"],
        price=[".product-price", ".price-current"],
        color=[".product-color"],
        image=[".product-gallery__image", ".pdp-main-image img"],
        brand_default="Pronovias",
    ),
    "sfera.com": _retailer(
        "Sfera",
        name_selectors=[".product-name", ".pdp-title", "h1.product-title"],
        price=[".product-price", ".price-amount"],
        color=[".color-selector .selected"],
        image=[".product-image img", ".gallery-image"],
        brand_default="Sfera",
    ),
    "rosaclara.es": _retailer(
        "Rosa Clará",
        name_selectors=[".product-name h1", ".product-info h1"],
        price=[".product-price .price"],
        color=[".swatch-option.selected", ".color-selected"],
        image=[".product-image-photo", ".fotorama__img"],
        brand_default="Rosa Clará",
    ),
    "bimani.com": _retailer(
        "BIMANI",
        price=[".price-value", ".product-price .price"],
        color=[".color-selector .selected"],
        brand_default="BIMANI",
    ),
    "miphai.com": _retailer(
        "Miphai",
        color=[".color-option.selected", ".variant-color"],
        brand_default="Miphai",
    ),
    "mariquitatrasquila.com": _retailer(
        "Mariquita Trasquila",
        color=[".color-variant.active"],
        image=[".product-image-main img", ".featured-image img"],
        brand_default="Mariquita Trasquila",
    ),
    "matildecano.es": _retailer(
        "Matilde Cano",
        color=[".color-selection .active"],
        image=[".product-image img", ".main-image img"],
        brand_default="Matilde Cano",
    ),
    # ----- Luxury -----
    "carolinaherrera.com": _retailer(
        "Carolina Herrera",
        name_selectors=[".product-name h1", '[data-testid="product-name"]', ".pdp-title"],
        price=[".product-price", '[data-testid="product-price"]', ".price-value"],
        color=[".selected-color", '[data-testid="selected-color"]', ".color-selector .active"],
        image=[".product-image img", '[data-testid="product-image"]'],
        brand_default="Carolina Herrera",
        url_transform=carolina_herrera_api_url,
        headers={"Accept": "application/json", "X-Requested-With": "XMLHttpRequest"},
    ),
    "louisvuitton.com": _retailer(
        "Louis Vuitton",
        name_selectors=[".lv-product__title", '[data-testid="product-name"]'],
        price=[".lv-product__price", '[data-testid="product-price"]'],
        color=[".lv-product-variations__selected", ".lv-product__color"],
        image=[".lv-product-visual img", ".lv-smart-picture img"],
        brand_default="Louis Vuitton",
        url_transform=strip_query,
    ),
    # ----- International marketplaces -----
    "asos.com": _retailer(
        "ASOS",
        name_selectors=['[data-test-id="product-title"]', ".product-hero h1"],
        price=['[data-test-id="current-price"]', ".product-price-amount"],
        color=['[data-test-id="colour-size-select"]', ".product-colour", ".colour-section"],
        brand=['[data-test-id="product-brand"]', ".brand-description"],
        currency="USD",
        url_transform=strip_query,
    ),
    "net-a-porter.com": _retailer(
        "Net-a-Porter",
        name_selectors=[".product-title", ".pdp-title"],
        price=[".price-sales"],
        color=[".selected-color"],
        brand=[".designer-name"],
        url_transform=strip_query,
    ),
    "matchesfashion.com": _retailer(
        "Matches Fashion",
        name_selectors=[".pdp-header__product-name"],
        price=[".pdp-price"],
        color=[".pdp-colour"],
        brand=[".pdp-header__designer"],
        url_transform=strip_query,
    ),
    "selfridges.com": _retailer(
        "Selfridges",
        name_selectors=[".product-description__name"],
        price=[".product-price__amount"],
        color=[".product-description__colour"],
        brand=[".product-description__brand"],
        url_transform=strip_query,
    ),
    "mytheresa.com": _retailer(
        "Mytheresa",
        name_selectors=[".product-name"],
        price=[".price-box"],
        color=[".color-label"],
        brand=[".product-brand"],
        url_transform=strip_query,
    ),
    "farfetch.com": _retailer(
        "Farfetch",
        name_selectors=['[data-component="ProductName"]'],
        price=['[data-component="Price"]'],
        color=['[data-component="ColorName"]'],
        brand=['[data-component="BrandName"]'],
        url_transform=strip_query,
    ),
    "revolve.com": _retailer(
        "Revolve",
        name_selectors=[".product-name"],
        price=[".product-price"],
        color=[".color-selection-title"],
        brand=[".brand-name"],
        currency="USD",
        url_transform=strip_query,
    ),
}

# Longest keys first so partial matching prefers the most specific domain.
_REGISTRY_KEYS_LONGEST_FIRST = sorted(REGISTRY, key=len, reverse=True)


# =====================================================================
# Host handling and generic fallback
# =====================================================================


def normalize_host(url: str) -> str:
    """Lowercased hostname without a leading 'www.'. Raises ValueError."""
    if not url or not isinstance(url, str):
        raise ValueError(f"Invalid URL: {url!r}")
    candidate = url.strip()
    if "://" not in candidate:
        candidate = "https://" + candidate
    host = (urlparse(candidate).hostname or "").lower()
    if not host or "." not in host:
        raise ValueError(f"Invalid URL: {url!r}")
    return re.sub(r"^www\d*\.", "", host)


def _on_domain(host: str, domain: str) -> bool:
    """host is domain, a subdomain of it, or domain plus a country suffix (zara.com.mx)."""
    return host == domain or host.endswith("." + domain) or host.startswith(domain + ".")


def lookup(host: str) -> RetailerConfig | None:
    """Static registry lookup: exact domain first, then whole-label matches."""
    config = REGISTRY.get(host)
    if config is not None:
        return config
    for key in _REGISTRY_KEYS_LONGEST_FIRST:
        if _on_domain(host, key):
            return REGISTRY[key]
    return None


def guess_brand(host: str) -> str:
    for domain, brand in BRAND_BY_DOMAIN.items():
        if _on_domain(host, domain):
            return brand
    label = host.split(".")[0] if host else ""
    return label.capitalize() if label else "Unknown"


def generic_config(host: str) -> RetailerConfig:
    """Fallback config for hosts with no registry entry."""
    brand = guess_brand(host)
    return RetailerConfig(
        name=brand if host else "Generic Retailer",
        default_currency="EUR",
        selectors=COMMON_SELECTORS,
        brand_default=brand if host else None,
    )


# =====================================================================
# Resolver
# =====================================================================


class ConfigSynthesizer(Protocol):
    """Builds a config for an unknown retailer (LLM-backed, may fail)."""

    async def synthesize(self, url: str) -> RetailerConfig: ...


class RetailerResolver:
    """Resolves a URL to a RetailerConfig, caching per normalized hostname.

    The cache is any mutable mapping and has no eviction. Two concurrent
    resolutions of the same unseen host may both synthesize; last write wins.
    """

    def __init__(
        self,
        cache: MutableMapping[str, RetailerConfig] | None = None,
        synthesizer: ConfigSynthesizer | None = None,
    ):
        self.cache: MutableMapping[str, RetailerConfig] = cache if cache is not None else {}
        self.synthesizer = synthesizer

    async def resolve(self, url: str) -> RetailerConfig:
        try:
            host = normalize_host(url)
        except ValueError:
            logger.warning(f"Could not parse host from {url!r}, using generic selectors")
            return generic_config("")

        cached = self.cache.get(host)
        if cached is not None:
            return cached

        config = lookup(host)
        if config is None and self.synthesizer is not None:
            config = await self._synthesize(url, host)
        if config is None:
            logger.info(f"No retailer config for {host}, using generic selectors")
            config = generic_config(host)

        self.cache[host] = config
        return config

    async def _synthesize(self, url: str, host: str) -> RetailerConfig | None:
        try:
            config = await self.synthesizer.synthesize(url)
        except Exception as e:
            logger.warning(f"Config synthesis failed for {host}, falling back to generic: {e}")
            return None
        logger.info(f"Synthesized retailer config for {host}: {config.name}")
        return config

    def cached_hosts(self) -> list[str]:
        return sorted(self.cache)
