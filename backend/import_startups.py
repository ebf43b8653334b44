"""
Bulk-load startups from a CSV or JSON file (an earlier export works as input).

Usage:
    python -m backend.import_startups --file startups.csv
    python -m backend.import_startups --file MAGIC-Startups-2024-01-31.json
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from backend.database import async_session, init_db
from backend.services.startups import import_startups
from utils.importer import parse_import_file


async def run_import(path: str) -> int:
    source = Path(path)
    if not source.is_file():
        print(f"File not found: {source}")
        return 1

    rows = parse_import_file(source.name, source.read_bytes())
    print(f"Read {len(rows)} row(s) from {source.name}")

    print("Initialising database schema ...")
    await init_db()

    async with async_session() as session:
        summary = await import_startups(session, rows, actor="cli")

    for result in summary["results"]:
        if result["status"] == "failed":
            print(f"  row {result['row']} ({result.get('name') or '?'}): {result['message']}")
    print(f"Import complete: {summary['created']} created, {summary['failed']} failed.")
    return 0 if summary["failed"] == 0 else 2


def main():
    parser = argparse.ArgumentParser(description="Import startups from CSV or JSON")
    parser.add_argument("--file", required=True, help="path to a .csv or .json file")
    args = parser.parse_args()
    sys.exit(asyncio.run(run_import(args.file)))


if __name__ == "__main__":
    main()
