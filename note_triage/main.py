import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from typing import List, Optional

from dotenv import load_dotenv

from note_triage.core.config import get_categories, get_settings, load_config
from note_triage.core.errors import ConfigError, NoProviderAvailableError
from note_triage.core.models import ClassificationRequest
from note_triage.core.pipeline import build_service
from note_triage.core.utils import split_note_lines

# --- Configuration & Setup ---

# Configure logging structure; results go to stdout, logs to stderr
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger("TriageRunner")

# Load environment variables
load_dotenv()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Classify notes, one per line, into a category taxonomy.")
    parser.add_argument("file", nargs="?", help="File with one note per line (default: stdin)")
    parser.add_argument("--categories", help="Comma-separated categories (default: triage.categories in config.yaml)")
    parser.add_argument("--config", default=os.getenv("CONFIG_PATH", "config.yaml"), help="Path to config.yaml")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logger.info("--- Starting Note Triage Runner ---")

    # 1. Load Configuration (Fail fast if config is bad)
    try:
        app_config = load_config(args.config)
        settings = get_settings(app_config)
        if args.categories:
            categories = [c.strip() for c in args.categories.split(",") if c.strip()]
        else:
            categories = get_categories(app_config)
        logger.info(f"Loaded {len(categories)} classification categories.")
    except (FileNotFoundError, ConfigError) as e:
        logger.critical(f"Failed to load configuration: {e}")
        return 1

    logging.getLogger().setLevel(settings.log_level)
    service = build_service(settings)

    # 2. Read the notes
    if args.file:
        with open(args.file, "r", encoding="utf-8") as handle:
            lines = split_note_lines(handle.read())
    else:
        lines = split_note_lines(sys.stdin.read())

    if not lines:
        logger.info("No notes found. Nothing to classify.")
        return 0

    logger.info(f"Found {len(lines)} notes pending classification.")
    request = ClassificationRequest(
        text="",
        categories=categories,
        subcategories_by_category=(app_config.get("triage") or {}).get("subcategories_by_category") or {},
    )

    # 3. Process
    try:
        results = service.classify_lines(request, lines)
    except NoProviderAvailableError as e:
        logger.critical(f"Classification failed: {e}")
        return 1

    cache_hits = 0
    for result, cached in results:
        cache_hits += int(cached)
        print(json.dumps({**asdict(result), "cached": cached}, ensure_ascii=False))

    # 4. Report
    logger.info("--- Batch Processing Complete ---")
    logger.info(f"Total Processed: {len(results)}")
    logger.info(f"AI Calls Made: {len(results) - cache_hits}")
    logger.info(f"Cache Hits (Savings): {cache_hits}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
