"""SEOgenix - Citation Tracker

Simple CLI for running a citation search against one site.
"""

import argparse
import asyncio
import uuid

from seogenix.errors import InvalidSiteURLError
from seogenix.models.citation import Site
from seogenix.pipeline.citations import CitationPipeline


async def run_tracking(url: str, site_id: str | None = None, persist: bool = True):
    """Run citation tracking for the given URL."""
    print(f"Tracking citations for: {url}")
    print("-" * 50)

    site = Site(id=site_id or str(uuid.uuid4()), url=url)
    pipeline = CitationPipeline(persist=persist)

    try:
        result = await pipeline.run(site)
    except InvalidSiteURLError as e:
        print(f"\n[!] Error: {e}")
        return 1

    summary = result.search_summary
    print(f"\n[*] Platforms checked: {', '.join(result.platforms_checked)}")
    print(f"   Google results: {summary.google_results}")
    print(f"   News results: {summary.news_results}")
    print(f"   Reddit results: {summary.reddit_results}")
    print(f"   High authority citations: {summary.high_authority_citations}")

    print(f"\n[+] Citations ({len(result.citations)}, {result.new_citations_found} new):")
    for i, citation in enumerate(result.citations, 1):
        print(f"  {i}. [{citation.source_type}] {citation.url}")
        print(f"     {citation.snippet_text[:120]}")

    print(f"\n{'='*50}")
    print(f"ASSISTANT RESPONSE ({result.assistant_response.generated_by.value}):")
    print(f"{'='*50}")
    print(result.assistant_response.text)
    return 0


def main():
    parser = argparse.ArgumentParser(description="SEOgenix Citation Tracker")
    parser.add_argument("--url", "-u", required=True, help="Site URL, e.g. https://acme.com")
    parser.add_argument("--site-id", help="Existing site id to attach citations to")
    parser.add_argument("--no-persist", action="store_true", help="Do not write citations to Supabase")

    args = parser.parse_args()

    raise SystemExit(asyncio.run(run_tracking(args.url, args.site_id, persist=not args.no_persist)))


if __name__ == "__main__":
    main()
