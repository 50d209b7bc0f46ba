import httpx
import pytest
import pytest_asyncio

import server
from config import Settings
from conftest import FakeComparator, make_item
from duplicates import DuplicateEngine
from extractor import ExtractionError, InvalidProductURLError, ProductPageFetchError
from models import SimilarityScore
from retailers import RetailerResolver

PAGE = """
<html><head><meta property="og:image" content="https://www.tienda.com/img/vestido.jpg"></head>
<body><h1>Vestido Rojo</h1><span class="price">59,95 €</span></body></html>
"""


@pytest.fixture
def comparator():
    return FakeComparator(scores=[SimilarityScore(index=0, score=0.8, reason="Both red dresses")])


@pytest.fixture
def app(comparator):
    return server.create_app(Settings(), RetailerResolver(), DuplicateEngine(comparator))


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def _wire(item):
    return item.model_dump(by_alias=True)


# ===== /api/extract =====


@pytest.mark.asyncio
async def test_extract_end_to_end(app, client):
    app.state.http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text=PAGE))
    )

    resp = await client.post("/api/extract", json={"url": "https://www.tienda.com/vestido-rojo?utm_source=ig"})

    await app.state.http_client.aclose()
    assert resp.status_code == 200
    body = resp.json()
    assert body["name"] == "Vestido Rojo"
    assert body["imageUrl"] == "https://www.tienda.com/img/vestido.jpg"
    assert body["price"] == pytest.approx(59.95)
    assert body["color"] == "Red"
    assert body["sourceUrl"] == "https://www.tienda.com/vestido-rojo"
    assert body["type"]["subcategory"] == "dresses"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exc, status",
    [
        (ExtractionError("no name found"), 422),
        (InvalidProductURLError("Unsupported URL scheme"), 400),
        (ProductPageFetchError("https://x.com/p", "HTTP 503", 503), 502),
    ],
)
async def test_extract_error_mapping(monkeypatch, client, exc, status):
    async def failing_extract(*args, **kwargs):
        raise exc

    monkeypatch.setattr(server, "extract_from_url", failing_extract)

    resp = await client.post("/api/extract", json={"url": "https://x.com/p"})

    assert resp.status_code == status
    assert resp.json() == {"error": str(exc)}


@pytest.mark.asyncio
async def test_extract_requires_url(client):
    resp = await client.post("/api/extract", json={})
    assert resp.status_code == 422


# ===== duplicates =====


@pytest.mark.asyncio
async def test_find_duplicates_route(client, comparator):
    candidate = make_item("1", "Vestido rojo", color="red", owner="u1")
    existing = [
        make_item("2", "vestido rojo", color="Rojo", owner="u2"),
        make_item("3", "Red gown", color="burgundy", owner="u3"),
    ]

    resp = await client.post(
        "/api/duplicates",
        json={"candidate": _wire(candidate), "existingItems": [_wire(i) for i in existing]},
    )

    assert resp.status_code == 200
    findings = resp.json()
    assert [f["kind"] for f in findings] == ["exact", "similar"]
    assert findings[0]["groupName"] == "Vestido rojo"
    assert findings[0]["items"][1]["ownerId"] == "u2"
    assert findings[1]["similarity"] == pytest.approx(0.8)
    assert comparator.compare_calls == [("Vestido rojo", ["Red gown"])]


@pytest.mark.asyncio
async def test_confirm_route_without_verdicts(client):
    candidate = make_item("1", "Vestido", color="red", brand="Zara")
    resp = await client.post(
        "/api/duplicates/confirm",
        json={"candidate": _wire(candidate), "existingItems": [_wire(make_item("2", "Dress", color="red", brand="Zara"))]},
    )
    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.asyncio
async def test_event_scan_route(client):
    items = [make_item("1", "Top", color="white", owner="u1"), make_item("2", "top", color="white", owner="u2")]
    resp = await client.post("/api/events/duplicates", json={"items": [_wire(i) for i in items]})
    assert resp.status_code == 200
    assert [f["kind"] for f in resp.json()] == ["exact"]


# ===== lookups =====


@pytest.mark.asyncio
async def test_health_reports_cached_retailers(app, client):
    await app.state.resolver.resolve("https://www.zara.com/es/vestido.html")

    resp = await client.get("/api/health")

    assert resp.json() == {"status": "ok", "llm_configured": False, "cached_retailers": ["zara.com"]}


@pytest.mark.asyncio
async def test_categories_and_colors(client):
    categories = (await client.get("/api/categories")).json()
    assert "clothes" in [c["id"] for c in categories]

    palette = (await client.get("/api/colors")).json()
    assert {"name": "Red", "value": "#FF0000"} in palette


@pytest.mark.asyncio
async def test_single_category(client):
    resp = await client.get("/api/categories/accessories")
    assert resp.status_code == 200
    body = resp.json()
    assert body["name"] == "Accessories"
    assert "bags" in [s["id"] for s in body["subcategories"]]

    missing = await client.get("/api/categories/furniture")
    assert missing.status_code == 404
    assert missing.json() == {"detail": "Category not found"}
