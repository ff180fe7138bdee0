#!/usr/bin/env python3
"""
Devotional Studio - Batch Generation CLI

Usage:
    python tools/batch_generate.py seeds.ndjson [--category CATEGORY_ID] [--created-by USER_ID]

Each line of the input file is a JSON object:
    {"title": "...", "biblical_base": "...", "topic": "...", "playlists": ["..."]}

Items run one after another through a single generator session; failures
are reported and the batch continues.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv

load_dotenv()

from studio.utils.logfire_config import configure_logfire
configure_logfire()

from studio.models.results import BatchItemResult
from studio.services.batch_runner import BatchRunner, parse_ndjson
from studio.services.generator_session import GeneratorSession
from studio.storage.supabase import ContentRepository, get_supabase_client


def print_progress(index: int, total: int, item: BatchItemResult) -> None:
    mark = "✓" if item.ok else "✗"
    detail = item.asset_id if item.ok else item.error
    print(f"  [{index}/{total}] {mark} {item.topic} -> {detail}")
    if item.ok and item.playlists:
        print(f"          playlists: {', '.join(item.playlists)}")


async def main(path: str, category_id: str = None, created_by: str = None) -> int:
    lines = parse_ndjson(Path(path).read_text(encoding="utf-8"))
    invalid = [line for line in lines if line.error]
    for line in invalid:
        print(f"  skipped: {line.error}: {line.raw[:80]}")

    session = await GeneratorSession.create(created_by=created_by)
    repository = ContentRepository(await get_supabase_client())
    runner = BatchRunner(session, repository, progress=print_progress)

    print(f"\nGenerating {len(lines) - len(invalid)} items...")
    results = await runner.run(lines, category_id)
    await session.persister.wait_for_follow_ups()

    failed = [r for r in results if not r.ok]
    print(f"\nDone: {len(results) - len(failed)} succeeded, {len(failed)} failed")
    return 1 if failed else 0


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Generate prayers in batch from an NDJSON file")
    parser.add_argument("path", help="NDJSON file with one seed per line")
    parser.add_argument("--category", dest="category_id", default=None, help="Category id for every record")
    parser.add_argument("--created-by", dest="created_by", default=None, help="Admin user id")
    args = parser.parse_args()

    sys.exit(asyncio.run(main(args.path, args.category_id, args.created_by)))
