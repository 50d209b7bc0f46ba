"""
HTML parsing for product pages.

Wraps BeautifulSoup in a small query interface (select / text / attribute) so
the extractor never touches bs4 directly, and pulls out the structured data
sources product pages commonly carry: JSON-LD blocks and meta tags.
"""

import json
import logging
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

logger = logging.getLogger(__name__)


class Element:
    """A matched element. Only text and attribute reads are exposed."""

    __slots__ = ("_tag",)

    def __init__(self, tag: Tag):
        self._tag = tag

    def text(self) -> str:
        return self._tag.get_text(separator=" ", strip=True)

    def attribute(self, name: str) -> str | None:
        value = self._tag.get(name)
        if isinstance(value, list):
            # bs4 returns multi-valued attributes (class, rel) as lists
            value = " ".join(value)
        return value if value else None

    def __repr__(self) -> str:
        return f"Element(<{self._tag.name}>)"


@dataclass
class ParsedDocument:
    """A parsed page plus its JSON-LD blocks and meta tags."""

    soup: BeautifulSoup
    json_ld: list[dict] = field(default_factory=list)
    meta_tags: dict[str, str] = field(default_factory=dict)

    def select(self, selector: str) -> list[Element]:
        """Elements matching a CSS selector, in document order.

        Selectors come from retailer configs (some LLM-written), so a
        selector soupsieve rejects matches nothing instead of raising.
        """
        try:
            return [Element(tag) for tag in self.soup.select(selector)]
        except (SelectorSyntaxError, ValueError, NotImplementedError) as e:
            logger.debug(f"Ignoring unsupported selector {selector!r}: {e}")
            return []

    def select_one(self, selector: str) -> Element | None:
        found = self.select(selector)
        return found[0] if found else None

    def meta(self, key: str) -> str | None:
        """Content of a meta tag by property= or name= (e.g. 'og:image')."""
        return self.meta_tags.get(key)

    def json_ld_product(self) -> dict | None:
        """First JSON-LD node typed Product (including ProductGroup)."""
        for block in self.json_ld:
            types = block.get("@type")
            if isinstance(types, str):
                types = [types]
            if isinstance(types, list) and any(t in ("Product", "ProductGroup") for t in types):
                return block
        return None


def parse_html(html: str) -> ParsedDocument:
    soup = BeautifulSoup(html or "", "lxml")
    return ParsedDocument(
        soup=soup,
        json_ld=_extract_json_ld(soup),
        meta_tags=_extract_meta_tags(soup),
    )


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------


def _extract_json_ld(soup: BeautifulSoup) -> list[dict]:
    """All JSON-LD nodes on the page, with arrays and @graph flattened."""
    results: list[dict] = []
    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        text = tag.string
        if not text:
            continue
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError):
            logger.debug("Skipping malformed JSON-LD block")
            continue
        _flatten_json_ld(data, results)
    return results


def _flatten_json_ld(data, results: list[dict]) -> None:
    if isinstance(data, list):
        for entry in data:
            _flatten_json_ld(entry, results)
    elif isinstance(data, dict):
        graph = data.get("@graph")
        if isinstance(graph, list):
            _flatten_json_ld(graph, results)
        else:
            results.append(data)


# ---------------------------------------------------------------------------
# Meta tags
# ---------------------------------------------------------------------------


def _extract_meta_tags(soup: BeautifulSoup) -> dict[str, str]:
    """Meta tag content keyed by property= or name=. First occurrence wins."""
    tags: dict[str, str] = {}
    for meta in soup.find_all("meta"):
        key = meta.get("property") or meta.get("name") or meta.get("itemprop")
        if not isinstance(key, str):
            continue
        content = meta.get("content")
        if not content:
            continue
        tags.setdefault(key.strip().lower(), content.strip())
    return tags


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------


def best_from_srcset(srcset: str | None) -> str | None:
    """Highest-resolution URL in a srcset attribute.

    Handles width ('800w') and density ('2x') descriptors; entries without a
    descriptor count as 1.
    """
    if not srcset or not isinstance(srcset, str):
        return None

    best_url: str | None = None
    best_value: float = 0

    for entry in srcset.split(","):
        parts = entry.strip().split()
        if not parts or not parts[0]:
            continue
        url = parts[0]

        if len(parts) >= 2:
            descriptor = parts[-1].strip().lower()
            try:
                value = float(descriptor[:-1]) if descriptor[-1:] in ("w", "x") else 0
            except ValueError:
                value = 0
        else:
            value = 1

        if value >= best_value:
            best_url = url
            best_value = value

    return best_url
