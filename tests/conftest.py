import pytest

from config import get_settings
from models import DuplicateVerdict, ProductType, RetailerConfig, SelectorSet, SimilarityScore, WardrobeItem


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """No real API key leaks into tests; settings are re-read per test."""
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_item(
    id: str,
    name: str,
    color: str | None = None,
    brand: str | None = None,
    type: ProductType | None = None,
    owner: str = "u1",
) -> WardrobeItem:
    return WardrobeItem(
        id=id,
        name=name,
        color=color,
        brand=brand,
        type=type,
        owner_id=owner,
        owner_name=f"User {owner}",
        event_id="evt-1",
    )


class FakeComparator:
    """Records calls; returns canned scores and verdicts."""

    def __init__(self, scores: list[SimilarityScore] | None = None, verdicts: list[DuplicateVerdict] | None = None):
        self.scores = scores or []
        self.verdicts = verdicts or []
        self.compare_calls: list[tuple[str, list[str]]] = []
        self.judge_calls: list[tuple[WardrobeItem, list[WardrobeItem]]] = []

    async def compare(self, item_text, candidate_texts):
        self.compare_calls.append((item_text, list(candidate_texts)))
        return self.scores

    async def judge(self, item, candidates):
        self.judge_calls.append((item, list(candidates)))
        return self.verdicts


class FailingComparator:
    def __init__(self, exc: Exception | None = None):
        self.exc = exc or RuntimeError("comparator down")
        self.calls = 0

    async def compare(self, item_text, candidate_texts):
        self.calls += 1
        raise self.exc

    async def judge(self, item, candidates):
        self.calls += 1
        raise self.exc


class FakeSynthesizer:
    def __init__(self, config: RetailerConfig | None = None, exc: Exception | None = None):
        self.config = config or RetailerConfig(
            name="Synth Shop",
            selectors=SelectorSet(name=[".synth-title"]),
            brand_default="Synth",
        )
        self.exc = exc
        self.calls: list[str] = []

    async def synthesize(self, url):
        self.calls.append(url)
        if self.exc is not None:
            raise self.exc
        return self.config


@pytest.fixture
def fake_comparator():
    return FakeComparator()


@pytest.fixture
def failing_comparator():
    return FailingComparator()
