"""
Diagnostic: selector coverage for saved product pages (no network, no LLM).

For each data/*.html file, reports which of the retailer config's selectors
match, and what the extractor makes of the page.
"""

import sys
from pathlib import Path

from extractor import ExtractionError, ExtractionMetrics, extract
from main import page_url
from parser import parse_html
from retailers import generic_config, lookup, normalize_host

DATA_DIR = Path(__file__).parent / "data"
SELECTOR_FIELDS = ["name", "price", "color", "image", "brand", "description"]


def config_for(url: str):
    try:
        host = normalize_host(url)
    except ValueError:
        return generic_config("")
    return lookup(host) or generic_config(host)


def diagnose_file(filepath: Path) -> dict:
    document = parse_html(filepath.read_text(encoding="utf-8"))
    url = page_url(document, filepath)
    config = config_for(url)

    report = {
        "file": filepath.name,
        "url": url,
        "retailer": config.name,
        "json_ld_blocks": len(document.json_ld),
        "meta_tags": len(document.meta_tags),
        "selectors": {},
        "product": None,
        "missing": [],
        "error": None,
    }

    for field in SELECTOR_FIELDS:
        selectors = getattr(config.selectors, field)
        report["selectors"][field] = {
            "total": len(selectors),
            "matched": [s for s in selectors if document.select(s)],
        }

    metrics = ExtractionMetrics(url=url, retailer=config.name)
    try:
        product = extract(document, url, config, metrics=metrics)
    except ExtractionError as e:
        report["error"] = str(e)
    else:
        report["product"] = product.model_dump()
        report["missing"] = metrics.fields_missing
        report["sources"] = metrics.field_sources

    return report


def main(argv: list[str]) -> None:
    html_files = [Path(a) for a in argv] or sorted(DATA_DIR.glob("*.html"))
    print(f"Diagnosing {len(html_files)} files (selectors only, NO network)\n")

    all_reports = []
    for filepath in html_files:
        report = diagnose_file(filepath)
        all_reports.append(report)

        print(f"{'=' * 70}")
        print(f"  {report['file']}  ->  {report['retailer']} ({report['url']})")
        print(f"{'=' * 70}")
        print(f"  Parser: {report['json_ld_blocks']} JSON-LD | {report['meta_tags']} meta tags")

        print("\n  Selector hits:")
        for field, hits in report["selectors"].items():
            first = hits["matched"][0] if hits["matched"] else "-"
            print(f"    {field:<12} {len(hits['matched']):>2}/{hits['total']:<3} first: {first}")

        if report["error"]:
            print(f"\n  FAILED: {report['error']}")
        else:
            product = report["product"]
            print(f"\n  Extracted: {product['name']} | {product['type']['name']} | "
                  f"{product['color'] or '-'} | {product['price'] or '-'} {product['currency'] or ''}")
            for field, source in report["sources"].items():
                print(f"    {field:<12} <- {source}")
            if report["missing"]:
                print(f"\n  MISSING ({len(report['missing'])}): {report['missing']}")
            else:
                print("\n  All fields filled!")
        print()

    print(f"\n{'=' * 70}")
    print("SUMMARY: selector fields with at least one hit")
    print(f"{'=' * 70}")
    print(f"{'Field':<14} ", end="")
    for r in all_reports:
        print(f"{r['file'][:12]:<14}", end="")
    print()
    print("-" * 90)
    for field in SELECTOR_FIELDS:
        print(f"{field:<14} ", end="")
        for r in all_reports:
            print(f"{'OK' if r['selectors'][field]['matched'] else 'MISSING':<14}", end="")
        print()


if __name__ == "__main__":
    main(sys.argv[1:])
