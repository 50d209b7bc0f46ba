import httpx
import pytest

import extractor
from extractor import (
    ExtractionError,
    ExtractionMetrics,
    InvalidProductURLError,
    ProductPageFetchError,
    clean_url,
    extract,
    extract_from_url,
    extract_text,
    parse_price,
)
from parser import parse_html
from retailers import REGISTRY, RetailerResolver, generic_config

ZARA_PAGE = """
<html><head>
<meta property="og:image" content="//static.zara.net/photos/og.jpg">
<meta property="product:price:currency" content="EUR">
<script type="application/ld+json">
{"@context": "https://schema.org", "@type": "Product", "name": "Vestido",
 "image": ["https://static.zara.net/photos/main.jpg"], "color": "Rojo"}
</script>
</head><body>
<div class="product-detail-info"><h1> Vestido midi satinado </h1></div>
<span class="price__amount">49,99 €</span>
<span class="product-detail-color-selector__selected" data-color="azul marino"></span>
<div class="product-description">Tirantes finos y escote en pico.</div>
</body></html>
"""

OG_ONLY_PAGE = """
<html><head>
<meta property="og:title" content="Vestido largo de seda">
</head><body><div class="content">Nada más</div></body></html>
"""


@pytest.mark.parametrize(
    "text, expected",
    [
        ("49,99 €", 49.99),
        ("€ 120.00", 120.0),
        ("1.234,56", 1.23),
        ("€120", 120.0),
        ("12,5", 12.5),
        ("USD 89.5", 89.5),
    ],
)
def test_parse_price(text, expected):
    assert parse_price(text) == pytest.approx(expected)


@pytest.mark.parametrize("text", [None, "", "Gratis"])
def test_parse_price_nothing_numeric(text):
    assert parse_price(text) is None


def test_extract_full_page():
    document = parse_html(ZARA_PAGE)
    url = "https://www.zara.com/es/es/vestido-midi-satinado-p0123.html"
    metrics = ExtractionMetrics()

    product = extract(document, url, REGISTRY["zara.com"], metrics=metrics)

    assert product.name == "Vestido midi satinado"
    assert product.price == pytest.approx(49.99)
    assert product.currency == "EUR"
    # selector data attribute wins over JSON-LD color
    assert product.color == "Navy Blue"
    assert product.brand == "Zara"
    assert product.description == "Tirantes finos y escote en pico."
    assert product.type.subcategory == "dresses"
    assert product.image_url == "https://static.zara.net/photos/main.jpg"
    assert product.source_url == url
    assert metrics.field_sources["name"] == ".product-detail-info h1"
    assert metrics.field_sources["brand"] == "config"
    assert metrics.fields_missing == []


def test_og_title_only_page_still_yields_name_and_type():
    document = parse_html(OG_ONLY_PAGE)
    product = extract(document, "https://tienda-nueva.com/p/1", generic_config("tienda-nueva.com"))

    assert product.name == "Vestido largo de seda"
    assert product.type.category == "clothes"
    assert product.type.subcategory == "dresses"
    assert product.price is None
    assert product.image_url is None
    assert product.brand == "Tienda-nueva"


def test_missing_name_raises():
    document = parse_html("<html><body><p>Sin producto</p></body></html>")
    with pytest.raises(ExtractionError, match="no name found"):
        extract(document, "https://tienda.com/p/1", generic_config("tienda.com"))


def test_color_falls_back_to_json_ld_then_meta():
    json_ld_page = """
    <html><head><script type="application/ld+json">
    {"@graph": [{"@type": "WebPage"}, {"@type": "Product", "name": "Top", "color": "Verde"}]}
    </script></head><body><h1>Top de punto</h1></body></html>
    """
    config = generic_config("tienda.com")
    assert extract(parse_html(json_ld_page), "https://tienda.com/p", config).color == "Green"

    meta_page = """
    <html><head><meta property="product:color" content="Beige"></head>
    <body><h1>Top de punto</h1></body></html>
    """
    assert extract(parse_html(meta_page), "https://tienda.com/p", config).color == "Beige"


def test_color_from_name_then_url():
    config = generic_config("tienda.com")
    named = parse_html("<html><body><h1>Vestido Negro Largo</h1></body></html>")
    assert extract(named, "https://tienda.com/p/1", config).color == "Black"

    plain = parse_html("<html><body><h1>Vestido largo</h1></body></html>")
    assert extract(plain, "https://tienda.com/vestido-rojo-99", config).color == "Red"


def test_brand_from_selector_without_default():
    page = '<html><body><h1>Bolso</h1><span itemprop="brand"> Sézane </span></body></html>'
    product = extract(parse_html(page), "https://x.com/p", generic_config(""))
    assert product.brand == "Sézane"


def test_custom_image_selector_is_used():
    page = "<html><body><h1>Bolso tote</h1></body></html>"
    calls = []

    def pick_image(document, url, config):
        calls.append(url)
        return "https://cdn.example.com/tote.jpg"

    product = extract(parse_html(page), "https://x.com/p", generic_config("x.com"), select_image=pick_image)
    assert product.image_url == "https://cdn.example.com/tote.jpg"
    assert calls == ["https://x.com/p"]


def test_extract_text_prefers_text_then_content():
    document = parse_html(
        '<html><head><meta name="twitter:title" content="Desde meta"></head>'
        '<body><h2 class="empty"></h2></body></html>'
    )
    assert extract_text(document, [".empty", 'meta[name="twitter:title"]']) == "Desde meta"
    assert extract_text(document, [".missing"]) is None


def test_invalid_selector_matches_nothing():
    document = parse_html("<html><body><h1>Vestido</h1></body></html>")
    assert extract_text(document, ["h1[[", "h1"]) == "Vestido"


# ===== URL cleaning =====


def test_clean_url_strips_tracking():
    assert (
        clean_url("zara.com/es/vestido?utm_source=ig&color=rojo&fbclid=abc")
        == "https://zara.com/es/vestido?color=rojo"
    )
    assert clean_url("http://www.mango.com/es/p/123/") == "https://www.mango.com/es/p/123"
    assert clean_url("https://hm.com/p?gclid=1&_ga=2&ga_session=3") == "https://hm.com/p"


@pytest.mark.parametrize("url", ["", "ftp://zara.com/a", "javascript:alert(1)", "https://localhost/x"])
def test_clean_url_rejects(url):
    with pytest.raises(InvalidProductURLError):
        clean_url(url)


# ===== Fetch pipeline =====


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_extract_from_url_fetches_and_extracts():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=ZARA_PAGE, headers={"content-type": "text/html; charset=utf-8"})

    async with _client(handler) as client:
        product, metrics = await extract_from_url(
            "https://www.zara.com/es/es/vestido-p0123.html?utm_medium=social",
            RetailerResolver(),
            client=client,
            retries=0,
        )

    assert product.name == "Vestido midi satinado"
    assert product.source_url == "https://www.zara.com/es/es/vestido-p0123.html"
    assert metrics.retailer == "Zara"
    assert metrics.fetch_attempts == 1
    assert seen[0].headers["user-agent"].startswith("Mozilla/5.0")


@pytest.mark.asyncio
async def test_extract_from_url_retries_transient_errors(monkeypatch):
    monkeypatch.setattr(extractor, "RETRY_BACKOFF", 0)
    responses = iter([httpx.Response(503), httpx.Response(200, text=OG_ONLY_PAGE)])

    async with _client(lambda request: next(responses)) as client:
        product, metrics = await extract_from_url("https://tienda-nueva.com/p/1", RetailerResolver(), client=client, retries=2)

    assert product.name == "Vestido largo de seda"
    assert metrics.fetch_attempts == 2


@pytest.mark.asyncio
async def test_extract_from_url_does_not_retry_404():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404)

    async with _client(handler) as client:
        with pytest.raises(ProductPageFetchError) as info:
            await extract_from_url("https://tienda-nueva.com/p/1", RetailerResolver(), client=client, retries=3)

    assert info.value.status_code == 404
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_extract_from_url_rejects_bad_url():
    with pytest.raises(InvalidProductURLError):
        await extract_from_url("mailto:someone@example.com", RetailerResolver())


@pytest.mark.asyncio
async def test_api_backed_retailer():
    def handler(request):
        assert str(request.url) == "https://www.carolinaherrera.com/api/products/12345"
        return httpx.Response(
            200,
            json={
                "name": "Vestido de crepé",
                "images": [{"url": "/media/ch-vestido.jpg"}],
                "price": {"value": 1290},
                "color": {"name": "Negro"},
            },
        )

    async with _client(handler) as client:
        product, metrics = await extract_from_url(
            "https://www.carolinaherrera.com/es/es/p-ready-to-wear/vestido?sku=12345",
            RetailerResolver(),
            client=client,
            retries=0,
        )

    assert metrics.from_api
    assert product.name == "Vestido de crepé"
    assert product.image_url == "https://www.carolinaherrera.com/media/ch-vestido.jpg"
    assert product.price == 1290.0
    assert product.color == "Black"
    assert product.brand == "Carolina Herrera"
    assert product.type.subcategory == "dresses"


def test_color_selector_reads_content_attribute():
    page = '<html><head><meta property="og:title" content="Blusa de seda"><meta itemprop="color" content="Rojo"></head></html>'
    metrics = ExtractionMetrics()
    product = extract(parse_html(page), "https://tienda.com/p/1", generic_config("tienda.com"), metrics=metrics)
    assert product.color == "Red"
    assert metrics.field_sources["color"] == '[itemprop="color"][content]'


def test_type_comes_from_name_only():
    page = """
    <html><head>
    <meta property="og:title" content="Wool Coat">
    <meta name="description" content="A long coat to wear over any dress this winter.">
    </head></html>
    """
    product = extract(parse_html(page), "https://tienda.com/p/1", generic_config("tienda.com"))
    assert product.description == "A long coat to wear over any dress this winter."
    assert product.type.subcategory == "outerwear"
