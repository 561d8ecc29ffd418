#!/usr/bin/env python
"""
Discover an unfamiliar JSON feed and infer its relational schema.

Usage:
    python scripts/discover_feed.py --url https://api.example.com/v1/feed
    python scripts/discover_feed.py --max-pages 5 --sample-size 50
    python scripts/discover_feed.py --url https://api.example.com/v1/feed --dry-run

Without --url the first entry of FEED_ENDPOINTS is used. Artifacts are
written under FEED_STORAGE_BASE_DIR (raw/ and analysis/).
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from feed_inference.config import get_settings
from feed_inference.services.feed_pipeline import FeedPipeline, PipelineOptions, PipelineResult
from feed_inference.utils.exceptions import FeedInferenceError
from feed_inference.utils.logging_config import setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Discover a JSON feed and build report.json",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--url", help="Primary feed URL (defaults to the first FEED_ENDPOINTS entry)")
    parser.add_argument(
        "--max-pages",
        type=int,
        default=settings.discovery.max_pages,
        help="Maximum pages to download",
    )
    parser.add_argument(
        "--sample-size",
        type=int,
        default=settings.schema_mapping.array_sample_size,
        help="List items inspected per list during schema mapping",
    )
    parser.add_argument("--no-probe", action="store_true", help="Skip probing entity sub-endpoints")
    parser.add_argument("--no-region", action="store_true", help="Skip region filter detection")
    parser.add_argument("--dry-run", action="store_true", help="Print the plan without downloading")
    return parser.parse_args(argv)


def print_summary(result: PipelineResult) -> None:
    manifest = result.manifest
    print("\n" + "=" * 64)
    print(f"Run {result.run_id}")
    print("=" * 64)
    if manifest is not None:
        print(f"  Files collected : {manifest.total_files} ({manifest.total_size_mb} MB)")
        print(f"  Endpoints       : {manifest.total_endpoints}")
        print(f"  Errors          : {len(manifest.errors)}")
        for error in manifest.errors[:10]:
            print(f"    [!] {error.label}: {error.message}")

    if result.completeness is not None and result.completeness.entity_counts:
        print("\n  Entity counts:")
        for name, count in sorted(result.completeness.entity_counts.items()):
            print(f"    {name:<30} {count}")

    report = result.report
    if report is None:
        return

    print(f"\n  Entities        : {report.meta.total_entities_detected}")
    print(f"  Fields          : {report.meta.total_fields_analyzed}")
    print(f"  Foreign keys    : {len(report.relationships.foreign_keys)}")
    print(f"  Index hints     : {len(report.index_recommendations)}")
    if report.relationships.suggested_table_order:
        print("  Table order     : " + " -> ".join(report.relationships.suggested_table_order))
    if "report.json" in result.artifacts:
        print(f"\n[+] Report saved: {result.artifacts['report.json']}")


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    primary_url = args.url or next(iter(settings.endpoints), None)
    if not primary_url:
        print("[!] No feed endpoint configured. Set FEED_ENDPOINTS or pass --url.")
        return 1

    print(f"Primary endpoint: {primary_url}")
    if args.dry_run:
        print("[DRY-RUN] No data will be downloaded.")
        print(f"  Max pages   : {args.max_pages}")
        print(f"  Sample size : {args.sample_size}")
        print(f"  Probe subs  : {'NO' if args.no_probe else 'YES'}")
        print(f"  Region check: {'NO' if args.no_region else 'YES'}")
        return 0

    options = PipelineOptions(
        max_pages=args.max_pages,
        sample_size=args.sample_size,
        probe_entities=settings.discovery.probe_entities and not args.no_probe,
        detect_region=settings.discovery.detect_region and not args.no_region,
    )

    async with FeedPipeline.from_settings(settings) as pipeline:
        try:
            result = await pipeline.run(primary_url, options)
        except FeedInferenceError as e:
            print(f"\n[!] Error: {e}")
            return 1

    print_summary(result)
    if result.manifest is None or not result.manifest.collected_files:
        print("\n[!] No files collected. Cannot proceed.")
        return 1
    if not result.ok:
        print("\n[!] Schema analysis produced no results.")
        return 1
    return 0


def main() -> None:
    args = parse_args()
    setup_logging(level=get_settings().log_level)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
