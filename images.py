"""
Product image selection.

Candidates are gathered from JSON-LD, Open Graph and the retailer's image
selectors, ranked by source, and the best one that looks like a product photo
wins. Purely structural: no requests are made to check the image.
"""

import logging
import re
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

from models import RetailerConfig
from parser import ParsedDocument, best_from_srcset

logger = logging.getLogger(__name__)

JSON_LD_PRIORITY = 20
OG_IMAGE_PRIORITY = 15
SELECTOR_PRIORITY = 10

VALID_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".avif")

CDN_DOMAINS = (
    # luxury
    "media.louisvuitton.com",
    "assets.burberry.com",
    "images.ralphlauren.com",
    "images.coach.com",
    "assets.hermes.com",
    "media.gucci.com",
    "assets.prada.com",
    "images.chanel.com",
    # spanish retailers
    "static.zara.net",
    "static.massimodutti.net",
    "static.bershka.net",
    "static.pullandbear.net",
    "static.e-stradivarius.net",
    "images.elcorteingles.es",
    "assets.pronovias.com",
    "images.cortefiel.com",
    "static.sfera.com",
    "images.bimbaylola.com",
    # common CDNs
    "cloudinary.com",
    "cloudfront.net",
    "amazonaws.com",
    "akamaized.net",
    "imgix.net",
    "cdn.shopify.com",
    "images.unsplash.com",
    "images.asos-media.com",
    "cdn-images.farfetch-contents.com",
    "images.selfridges.com",
)

# Attributes that may carry an image URL on a matched element, in read order.
_URL_ATTRIBUTES = ("src", "data-src", "data-zoom-image", "data-image", "data-original", "content")
_SRCSET_ATTRIBUTES = ("srcset", "data-srcset")

# Site chrome rather than product photos.
_NON_PRODUCT_PATH = re.compile(
    r"(favicon|logo|[-_/]icons?[-_./]|sprite|spinner|loading|spacer|pixel|tracking|"
    r"analytics|placeholder|badge|banner|1x1)",
    re.IGNORECASE,
)


@dataclass
class ImageCandidate:
    url: str
    priority: int
    source: str


def collect_candidates(document: ParsedDocument, config: RetailerConfig) -> list[ImageCandidate]:
    """Raw (unresolved) candidates, highest priority first, document order within a tier."""
    candidates: list[ImageCandidate] = []

    product = document.json_ld_product()
    if product:
        url = _json_ld_image(product.get("image"))
        if url:
            candidates.append(ImageCandidate(url, JSON_LD_PRIORITY, "json-ld"))

    for key in ("og:image", "og:image:secure_url"):
        url = document.meta(key)
        if url:
            candidates.append(ImageCandidate(url, OG_IMAGE_PRIORITY, key))

    for selector in config.selectors.image:
        for element in document.select(selector):
            for attr in _SRCSET_ATTRIBUTES:
                url = best_from_srcset(element.attribute(attr))
                if url:
                    candidates.append(ImageCandidate(url, SELECTOR_PRIORITY, selector))
            for attr in _URL_ATTRIBUTES:
                url = element.attribute(attr)
                if url:
                    candidates.append(ImageCandidate(url, SELECTOR_PRIORITY, selector))

    candidates.sort(key=lambda c: c.priority, reverse=True)
    return candidates


def select_image(document: ParsedDocument, page_url: str, config: RetailerConfig) -> str | None:
    """Best product image URL for the page, or None."""
    seen: set[str] = set()
    for candidate in collect_candidates(document, config):
        url = process_image_url(candidate.url, page_url)
        if url is None or url in seen:
            continue
        seen.add(url)
        if is_plausible_product_image(url):
            logger.debug(f"Image from {candidate.source}: {url}")
            return url
    return None


def process_image_url(raw: str, page_url: str) -> str | None:
    """Absolute https URL for a candidate, or None when it cannot be resolved."""
    url = raw.strip()
    if not url:
        return None
    if url.startswith("data:image/"):
        return url
    if url.startswith("//"):
        url = "https:" + url
    elif not url.startswith("http"):
        if not page_url:
            return None
        url = urljoin(page_url, url)
    if url.startswith("http:"):
        url = "https:" + url[5:]
    return url if urlparse(url).hostname else None


def is_plausible_product_image(url: str) -> bool:
    if url.startswith("data:image/"):
        return True
    parsed = urlparse(url)
    path = parsed.path.lower()
    if _NON_PRODUCT_PATH.search(path):
        return False
    if path.endswith(VALID_IMAGE_EXTENSIONS):
        return True
    host = parsed.hostname or ""
    return any(domain in host for domain in CDN_DOMAINS)


def _json_ld_image(value) -> str | None:
    """JSON-LD 'image' may be a string, a list, or an ImageObject."""
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        value = value.get("url") or value.get("contentUrl")
    return value if isinstance(value, str) and value else None
