#!/usr/bin/env python3
"""
Sticker CLI - Talk to a running sticker service

Commands:
    generate  Generate one sticker and write it to a PNG file
    submit    Submit a CSV of messages as one batch job, save the job description
    download  Download every sticker of a submitted batch as 001.png, 002.png, ...

Examples:
    python scripts/sticker_cli.py generate --message "ありがとう" --keyword "餅" --out thanks.png
    python scripts/sticker_cli.py submit stickers.csv --save batch.json
    python scripts/sticker_cli.py download batch.json --out-dir ./data/storage

Environment variables:
    STICKER_SERVICE_URL: Service base URL (default: http://localhost:8000)
"""

import os
import sys
import asyncio
import argparse
from pathlib import Path

import httpx

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.client.csv_items import read_csv_items
from src.client.sticker_client import (
    DOWNLOAD_TIMEOUT_MS,
    SINGLE_TIMEOUT_MS,
    StickerClient,
)
from src.core.config import get_settings
from src.core.exceptions import StickerBaseException
from src.core.logging import get_logger, setup_logging
from src.core.storage import LocalStorage
from src.engines.batch.schemas import BatchSubmitResponse

logger = get_logger("sticker_cli")


async def cmd_generate(client: StickerClient, args) -> int:
    png = await client.generate(args.message, args.keyword, timeout_ms=args.timeout_ms or SINGLE_TIMEOUT_MS)
    Path(args.out).write_bytes(png)
    print(f"Saved {args.out} ({len(png)} bytes)")
    return 0


async def cmd_submit(client: StickerClient, args) -> int:
    text = Path(args.csv).read_text(encoding="utf-8-sig")
    items = read_csv_items(text, default_keyword=args.keyword)
    if not items:
        print("No valid rows in CSV (is the message column empty?)", file=sys.stderr)
        return 1

    submission = await client.submit_items(items)
    Path(args.save).write_text(submission.model_dump_json(indent=2), encoding="utf-8")
    print(f"Submitted {len(submission.items)} items as {submission.job_id}; saved to {args.save}")
    return 0


async def cmd_download(client: StickerClient, args) -> int:
    submission = BatchSubmitResponse.model_validate_json(Path(args.submission).read_text(encoding="utf-8"))
    storage = LocalStorage(args.out_dir)

    def progress(done: int, total: int):
        print(f"  {done}/{total}")

    keys = await client.download_all(
        submission,
        storage,
        folder=args.folder,
        timeout_ms=args.timeout_ms or DOWNLOAD_TIMEOUT_MS,
        on_progress=progress,
    )
    print(f"Downloaded {len(keys)} stickers into {Path(args.out_dir) / args.folder}")
    return 0


COMMANDS = {
    "generate": cmd_generate,
    "submit": cmd_submit,
    "download": cmd_download,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sticker service client")
    parser.add_argument(
        "--base-url",
        default=os.environ.get("STICKER_SERVICE_URL", "http://localhost:8000"),
        help="Sticker service base URL",
    )
    parser.add_argument("--timeout-ms", type=int, default=None, help="Override the polling budget")
    parser.add_argument("--verbose", action="store_true", help="Log polling progress")
    sub = parser.add_subparsers(dest="command", required=True)

    generate = sub.add_parser("generate", help="Generate one sticker")
    generate.add_argument("--message", default="", help="Japanese text on the sticker")
    generate.add_argument("--keyword", default="", help="Character theme")
    generate.add_argument("--out", default="sticker.png", help="Output PNG path")

    submit = sub.add_parser("submit", help="Submit a CSV as one batch job")
    submit.add_argument("csv", help="CSV with message[,keyword] rows")
    submit.add_argument("--keyword", default="", help="Theme for rows without one")
    submit.add_argument("--save", default="batch.json", help="Where to save the job description")

    download = sub.add_parser("download", help="Download a submitted batch")
    download.add_argument("submission", help="Job description saved by 'submit'")
    download.add_argument(
        "--out-dir",
        default=get_settings().LOCAL_STORAGE_PATH,
        help="Storage root (default: LOCAL_STORAGE_PATH)",
    )
    download.add_argument("--folder", default="stickers", help="Folder under the storage root")

    return parser


async def run(args) -> int:
    async with StickerClient(base_url=args.base_url) as client:
        return await COMMANDS[args.command](client, args)


def main() -> int:
    args = build_parser().parse_args()
    setup_logging(log_level="INFO" if args.verbose else "WARNING", json_format=False)

    try:
        return asyncio.run(run(args))
    except StickerBaseException as e:
        logger.error("sticker_cli_failed", error=e.message, code=e.code, details=e.details)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except httpx.HTTPError as e:
        logger.error("sticker_service_unreachable", base_url=args.base_url, error=str(e))
        print(f"Error: cannot reach {args.base_url}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
