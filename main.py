"""
Product extraction runner.

Extracts every target concurrently with asyncio.gather and prints a report.
Targets are product URLs or saved HTML pages; with no arguments, every
data/*.html file is processed.

    python main.py https://www.zara.com/es/es/vestido-midi-p0123.html data/*.html
"""

import asyncio
import logging
import sys
import time
from pathlib import Path

import httpx
import orjson

from config import get_settings
from extractor import PRODUCT_FIELDS, ExtractionMetrics, extract, extract_from_url
from llm import LLMConfigSynthesizer
from models import ExtractedProduct
from parser import ParsedDocument, parse_html
from retailers import RetailerResolver

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
OUTPUT_FILE = Path(__file__).parent / "products.json"


def page_url(document: ParsedDocument, filepath: Path) -> str:
    """Best guess at where a saved page came from."""
    url = document.meta("og:url")
    if url:
        return url
    canonical = document.select_one('link[rel="canonical"]')
    if canonical and canonical.attribute("href"):
        return canonical.attribute("href")
    return filepath.name


async def process_file(filepath: Path, resolver: RetailerResolver) -> tuple[ExtractedProduct, ExtractionMetrics]:
    logger.info(f"Processing {filepath.name}...")
    t0 = time.monotonic()
    document = parse_html(filepath.read_text(encoding="utf-8"))
    parse_time = time.monotonic() - t0

    url = page_url(document, filepath)
    config = await resolver.resolve(url)
    metrics = ExtractionMetrics(url=url, retailer=config.name, parse_time=parse_time)
    product = extract(document, url, config, metrics=metrics)
    metrics.total_time = time.monotonic() - t0
    return product, metrics


async def process_target(target: str, resolver: RetailerResolver, client: httpx.AsyncClient):
    path = Path(target)
    if path.suffix.lower() in (".html", ".htm") and path.exists():
        return await process_file(path, resolver)
    return await extract_from_url(target, resolver, client=client)


async def process_all(targets: list[str]):
    settings = get_settings()
    synthesizer = LLMConfigSynthesizer(settings) if settings.synthesize_configs and settings.llm_configured else None
    resolver = RetailerResolver(synthesizer=synthesizer)

    async with httpx.AsyncClient() as client:
        results = await asyncio.gather(
            *[process_target(t, resolver, client) for t in targets],
            return_exceptions=True,
        )

    products: list[ExtractedProduct] = []
    all_metrics: list[ExtractionMetrics] = []
    failures: list[tuple[str, str]] = []

    for target, result in zip(targets, results):
        if isinstance(result, Exception):
            logger.error(f"Failed to process {target}: {result}")
            failures.append((target, f"{type(result).__name__}: {result}"))
        else:
            product, metrics = result
            products.append(product)
            all_metrics.append(metrics)

    return products, all_metrics, failures


def print_report(
    products: list[ExtractedProduct],
    all_metrics: list[ExtractionMetrics],
    failures: list[tuple[str, str]],
    wall_clock: float,
) -> None:
    total = len(products) + len(failures)
    n = len(products)

    print(f"\n{'='*70}")
    print("EXTRACTION REPORT")
    print(f"{'='*70}")

    print("\n── Reliability ──")
    print(f"  Targets attempted: {total}")
    print(f"  Succeeded:         {n}")
    print(f"  Failed:            {len(failures)}")
    if total:
        print(f"  Success rate:      {n/total*100:.0f}%")
    for target, reason in failures:
        print(f"    {target:<50} {reason}")

    if not n:
        print("\n  No successful extractions to report on.")
        return

    print("\n── Field coverage ──")
    print(f"  {'Field':<14} {'Found':>6}")
    print(f"  {'-'*21}")
    for field in PRODUCT_FIELDS:
        found = sum(1 for m in all_metrics if field not in m.fields_missing)
        print(f"  {field:<14} {found:>3}/{n}")

    print("\n── Products ──")
    for p, m in zip(products, all_metrics):
        price = f"{p.price:.2f} {p.currency}" if p.price is not None else "-"
        print(f"  {p.name[:40]:<40} {m.retailer[:16]:<16} {p.type.name:<18} {p.color or '-':<12} {price}")

    print("\n── Timing ──")
    print(f"  Wall clock (total): {wall_clock:.2f}s")
    print(f"  {'Target':<45} {'Fetch':>8} {'Parse':>8} {'Extract':>8} {'Total':>8}")
    print(f"  {'-'*81}")
    for m in all_metrics:
        print(f"  {m.url[-45:]:<45} {m.fetch_time:>7.3f}s {m.parse_time:>7.3f}s "
              f"{m.extract_time:>7.3f}s {m.total_time:>7.3f}s")

    print(f"\n{'='*70}")


async def main(argv: list[str]) -> None:
    targets = argv or [str(p) for p in sorted(DATA_DIR.glob("*.html"))]
    if not targets:
        print("Nothing to do: pass product URLs or HTML files, or add pages to data/")
        return

    t_wall_start = time.monotonic()
    products, all_metrics, failures = await process_all(targets)
    wall_clock = time.monotonic() - t_wall_start

    OUTPUT_FILE.write_bytes(
        orjson.dumps([p.model_dump(by_alias=True) for p in products], option=orjson.OPT_INDENT_2)
    )
    logger.info(f"Wrote {len(products)} products to {OUTPUT_FILE}")

    print_report(products, all_metrics, failures, wall_clock)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main(sys.argv[1:]))
