from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Wire format is camelCase (the route layer's JSON), Python side is snake_case.
_WIRE = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_WIRE_FROZEN = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

Currency = Literal["EUR", "USD"]
FindingKind = Literal["exact", "partial", "similar"]


class ProductType(BaseModel):
    """(category, subcategory, display name) triple.

    Only taxonomy.detect() builds these, so labels stay consistent.
    """

    model_config = _WIRE_FROZEN

    category: str
    subcategory: str
    name: str


# =====================================================================
# Retailer configuration
# =====================================================================


class SelectorSet(BaseModel):
    """Ordered CSS selector lists per product field (most specific first)."""

    model_config = _WIRE_FROZEN

    name: list[str] = []
    price: list[str] = []
    color: list[str] = []
    image: list[str] = []
    brand: list[str] = []
    description: list[str] = []

    def merged_with(self, fallback: "SelectorSet") -> "SelectorSet":
        """Append fallback selectors after our own, skipping repeats."""
        merged = {}
        for field_name in type(self).model_fields:
            own = getattr(self, field_name)
            extra = [s for s in getattr(fallback, field_name) if s not in own]
            merged[field_name] = own + extra
        return SelectorSet(**merged)


class RetailerConfig(BaseModel):
    model_config = _WIRE_FROZEN

    name: str
    default_currency: Currency = "EUR"
    selectors: SelectorSet
    brand_default: str | None = None
    url_transform: Callable[[str], str] | None = Field(default=None, exclude=True)
    headers: dict[str, str] = {}

    def transform_url(self, url: str) -> str:
        if self.url_transform is None:
            return url
        return self.url_transform(url)


# =====================================================================
# Extraction output
# =====================================================================


class ExtractedProduct(BaseModel):
    model_config = _WIRE_FROZEN

    name: str
    type: ProductType
    image_url: str | None = None
    price: float | None = None
    currency: Currency | None = None
    color: str | None = None
    brand: str | None = None
    description: str | None = None
    source_url: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v


# =====================================================================
# Wardrobe items and duplicate findings
# =====================================================================


class WardrobeItem(BaseModel):
    """An item owned by the surrounding app; the engine only reads it."""

    model_config = _WIRE_FROZEN

    id: str
    name: str
    color: str | None = None
    brand: str | None = None
    type: ProductType | None = None
    owner_id: str
    owner_name: str | None = None
    event_id: str | None = None


class DuplicateItemRef(BaseModel):
    model_config = _WIRE

    id: str
    owner_id: str
    owner_name: str = "Unknown User"
    color: str | None = None

    @classmethod
    def from_item(cls, item: WardrobeItem) -> "DuplicateItemRef":
        return cls(
            id=item.id,
            owner_id=item.owner_id,
            owner_name=item.owner_name or "Unknown User",
            color=item.color,
        )


class DuplicateFinding(BaseModel):
    model_config = _WIRE

    group_name: str
    items: list[DuplicateItemRef]
    kind: FindingKind
    similarity: float | None = Field(default=None, ge=0.0, le=1.0)
    reason: str | None = None

    @model_validator(mode="after")
    def similar_needs_reason(self) -> "DuplicateFinding":
        if self.kind == "similar" and not self.reason:
            raise ValueError("similar findings must carry a reason")
        return self


class ConfirmedDuplicate(BaseModel):
    """Authoritative is-duplicate verdict for one existing item."""

    model_config = _WIRE

    item: DuplicateItemRef
    item_name: str
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str = ""
    duplicate_type: Literal["exact", "similar"]


# =====================================================================
# Comparator response schema
# =====================================================================


class SimilarityScore(BaseModel):
    """One scored candidate from the similarity comparator (0-based index)."""

    index: int
    score: float = Field(ge=0.0, le=1.0)
    reason: str = ""


class DuplicateVerdict(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    index: int
    confidence: float = Field(ge=0.0, le=1.0)
    is_duplicate: bool = Field(alias="isDuplicate")
    reason: str = ""


class SynthesizedSelectors(BaseModel):
    """LLM output when asked to write selectors for an unknown retailer."""

    brand: str | None = None
    currency: Currency = "EUR"
    name: list[str] = []
    price: list[str] = []
    color: list[str] = []
    image: list[str] = []
    brand_selectors: list[str] = []


# =====================================================================
# Route-layer request shapes
# =====================================================================


class ExtractionRequest(BaseModel):
    url: str


class DuplicateCheckRequest(BaseModel):
    model_config = _WIRE

    candidate: WardrobeItem
    existing_items: list[WardrobeItem] = []


class EventScanRequest(BaseModel):
    items: list[WardrobeItem]
