#!/usr/bin/env python3
"""Fetch and print the current review feed for one or more apps.

Handy for checking what the poller would ingest without touching the
review store.

Usage
-----
::

    python scripts/dump_reviews.py 284882215 389801252
    python scripts/dump_reviews.py --json --country gb 284882215
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from appreviews import FetchError, ITunesReviewsFetcher  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dump App Store reviews as the poller would parse them")
    parser.add_argument("app_ids", nargs="+", help="App Store application ids")
    parser.add_argument("--country", default="us", help="Storefront (default: us)")
    parser.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    failures = 0
    dumped: dict[str, list[dict[str, object]]] = {}
    async with ITunesReviewsFetcher(country=args.country) as fetcher:
        for app_id in args.app_ids:
            try:
                reviews = await fetcher.fetch_reviews(app_id)
            except FetchError as exc:
                print(f"{app_id}: fetch failed: {exc}", file=sys.stderr)
                failures += 1
                continue

            if args.json:
                dumped[app_id] = [review.model_dump(mode="json") for review in reviews]
                continue

            print(f"\n== {app_id}: {len(reviews)} reviews")
            for review in reviews:
                print(f"  [{review.rating}] {review.submitted_at:%Y-%m-%d %H:%M} {review.author}: {review.content[:80]!r}")

    if args.json:
        print(json.dumps(dumped, indent=2, ensure_ascii=False))
    return 1 if failures else 0


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
