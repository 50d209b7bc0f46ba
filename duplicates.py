"""
Duplicate and similarity detection among wardrobe items of one event.

Tiers, applied to a candidate against the existing items:

  1. exact / partial   same normalized name; grouped by normalized color
  2. rules             same brand + color, or same subcategory + color
  3. similarity        one batched comparator call for everything left over
  4. confirmation      stricter comparator verdicts (confirm_duplicates only)

The comparator is optional and fallible. When it is missing or fails, tiers
3 and 4 contribute nothing and the rest of the result is returned as usual.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

import colors
import taxonomy
from models import (
    ConfirmedDuplicate,
    DuplicateFinding,
    DuplicateItemRef,
    DuplicateVerdict,
    SimilarityScore,
    WardrobeItem,
)

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.6
DUPLICATE_THRESHOLD = 0.7
EXACT_CONFIDENCE = 0.9

UNKNOWN_COLOR = "unknown"

T = TypeVar("T")


class SimilarityComparator(Protocol):
    async def compare(self, item_text: str, candidate_texts: list[str]) -> list[SimilarityScore]: ...

    async def judge(self, item: WardrobeItem, candidates: list[WardrobeItem]) -> list[DuplicateVerdict]: ...


@dataclass
class CapabilityResult(Generic[T]):
    """Either a value from the comparator or the reason there is none."""

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# =====================================================================
# Normalization helpers
# =====================================================================


def normalized_name(item: WardrobeItem) -> str:
    return item.name.strip().lower()


def color_key(item: WardrobeItem) -> str:
    """Canonical color for grouping; raw lowercase text if it is off-palette."""
    if not item.color or not item.color.strip():
        return UNKNOWN_COLOR
    canonical = colors.normalize(item.color)
    return canonical.lower() if canonical else item.color.strip().lower()


def subcategory_of(item: WardrobeItem) -> str:
    if item.type is not None:
        return item.type.subcategory
    return taxonomy.detect(item.name).subcategory


def rule_match(candidate: WardrobeItem, other: WardrobeItem) -> str | None:
    """Reason string when two items look like the same thing, else None."""
    candidate_color, other_color = color_key(candidate), color_key(other)
    if candidate_color == UNKNOWN_COLOR or candidate_color != other_color:
        return None

    if candidate.brand and other.brand and candidate.brand.strip().lower() == other.brand.strip().lower():
        return f"Same brand ({other.brand}) and color ({other.color})"

    subcategory = subcategory_of(candidate)
    # "other" means detection found nothing, which says nothing about likeness
    if subcategory != taxonomy.DEFAULT_TYPE.subcategory and subcategory == subcategory_of(other):
        return f"Same type ({subcategory}) and color ({other.color})"

    return None


def _ref(item: WardrobeItem) -> DuplicateItemRef:
    return DuplicateItemRef.from_item(item)


def _pair_finding(a: WardrobeItem, b: WardrobeItem, reason: str, similarity: float | None = None) -> DuplicateFinding:
    return DuplicateFinding(
        group_name=f"{a.name} / {b.name}",
        items=[_ref(a), _ref(b)],
        kind="similar",
        similarity=similarity,
        reason=reason,
    )


# =====================================================================
# Engine
# =====================================================================


class DuplicateEngine:
    def __init__(self, comparator: SimilarityComparator | None = None):
        self.comparator = comparator

    async def _call(self, what: str, fn: Callable[..., Awaitable[T]], *args) -> CapabilityResult[T]:
        try:
            return CapabilityResult(value=await fn(*args))
        except Exception as e:
            logger.warning(f"Comparator {what} failed, skipping tier: {type(e).__name__}: {e}")
            return CapabilityResult(error=str(e) or type(e).__name__)

    # ----- tier 1 -----

    def exact_findings(self, candidate: WardrobeItem, others: list[WardrobeItem]) -> list[DuplicateFinding]:
        """'exact' per color sub-group of 2+, plus one 'partial' across colors."""
        name = normalized_name(candidate)
        group = [candidate] + [o for o in others if normalized_name(o) == name]
        if len(group) < 2:
            return []

        by_color: dict[str, list[WardrobeItem]] = {}
        for item in group:
            by_color.setdefault(color_key(item), []).append(item)

        findings = [
            DuplicateFinding(group_name=candidate.name, items=[_ref(i) for i in members], kind="exact")
            for members in by_color.values()
            if len(members) > 1
        ]
        if len(by_color) > 1:
            findings.append(
                DuplicateFinding(group_name=candidate.name, items=[_ref(i) for i in group], kind="partial")
            )
        return findings

    # ----- tier 3 -----

    async def similarity_findings(self, candidate: WardrobeItem, others: list[WardrobeItem]) -> list[DuplicateFinding]:
        if not others:
            return []
        if self.comparator is None:
            logger.debug("No similarity comparator configured, skipping similarity tier")
            return []

        result = await self._call("compare", self.comparator.compare, candidate.name, [o.name for o in others])
        if not result.ok:
            return []

        findings = []
        for score in result.value or []:
            if not 0 <= score.index < len(others) or score.score < SIMILARITY_THRESHOLD:
                continue
            reason = score.reason.strip() or f"Similarity {score.score:.2f}"
            findings.append(_pair_finding(candidate, others[score.index], reason, score.score))
        return findings

    # ----- public API -----

    async def find_duplicates(self, candidate: WardrobeItem, existing: list[WardrobeItem]) -> list[DuplicateFinding]:
        """Tiers 1-3 for one candidate. Never raises because of the comparator."""
        others = [o for o in existing if o.id != candidate.id]
        findings = self.exact_findings(candidate, others)

        name = normalized_name(candidate)
        remaining: list[WardrobeItem] = []
        for other in others:
            if normalized_name(other) == name:
                continue
            reason = rule_match(candidate, other)
            if reason:
                findings.append(_pair_finding(candidate, other, reason))
            else:
                remaining.append(other)

        findings.extend(await self.similarity_findings(candidate, remaining))
        logger.info(f"Duplicate check for {candidate.name!r}: {len(findings)} finding(s) over {len(others)} item(s)")
        return findings

    async def confirm_duplicates(self, candidate: WardrobeItem, existing: list[WardrobeItem]) -> list[ConfirmedDuplicate]:
        """Authoritative duplicate verdicts (tier 4). Empty without a comparator."""
        prefiltered = [o for o in existing if o.id != candidate.id and rule_match(candidate, o)]
        if not prefiltered or self.comparator is None:
            return []

        result = await self._call("judge", self.comparator.judge, candidate, prefiltered)
        if not result.ok:
            return []

        confirmed = []
        for verdict in result.value or []:
            if not 0 <= verdict.index < len(prefiltered):
                continue
            if not verdict.is_duplicate or verdict.confidence < DUPLICATE_THRESHOLD:
                continue
            item = prefiltered[verdict.index]
            confirmed.append(
                ConfirmedDuplicate(
                    item=_ref(item),
                    item_name=item.name,
                    confidence=verdict.confidence,
                    reason=verdict.reason,
                    duplicate_type="exact" if verdict.confidence >= EXACT_CONFIDENCE else "similar",
                )
            )
        return confirmed

    async def scan_event(self, items: list[WardrobeItem]) -> list[DuplicateFinding]:
        """Every item against all later items, in list order. No cross-pair dedup."""
        findings: list[DuplicateFinding] = []
        for i, item in enumerate(items):
            later = items[i + 1 :]
            if not later:
                break
            findings.extend(self.exact_findings(item, later))
            name = normalized_name(item)
            findings.extend(
                await self.similarity_findings(item, [o for o in later if normalized_name(o) != name])
            )
        logger.info(f"Event scan over {len(items)} item(s): {len(findings)} finding(s)")
        return findings
