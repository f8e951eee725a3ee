#!/usr/bin/env python3
"""Command-line import worker.

Runs one import outside the web app:
- articles: scraped article nodes from one or more JSON files
- announcements: the calls-for-applications page from one JSON file

Prints the result as JSON; exits non-zero when anything failed.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from anrsi.config import Settings
from anrsi.errors import ContentImportError, DatabaseError
from anrsi.importing.announcements import AnnouncementImporter
from anrsi.importing.articles import ArticleImporter
from anrsi.importing.assets import AssetLocalizer
from anrsi.seed import ensure_default_state
from anrsi.storage.content_store import ContentStore


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import legacy JSON content into the ANRSI datastore")
    sub = parser.add_subparsers(dest="kind", required=True)
    articles = sub.add_parser("articles", help="import scraped article nodes")
    articles.add_argument("files", nargs="+")
    announcements = sub.add_parser("announcements", help="import the calls-for-applications page")
    announcements.add_argument("file")
    return parser


def run(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings or Settings.from_env()
    if not settings.datastore_configured:
        logger.error("Datastore not configured (DB_PATH is empty)")
        return 2

    store = ContentStore(settings.db_path)
    ensure_default_state(store, settings)
    localizer = AssetLocalizer(
        settings.upload_dir,
        context_path=settings.context_path,
        connect_timeout=settings.image_connect_timeout,
        read_timeout=settings.image_read_timeout,
    )

    if args.kind == "articles":
        result = ArticleImporter(store, localizer, base_dirs=settings.import_base_dirs).import_files(args.files)
    else:
        try:
            result = AnnouncementImporter(store, localizer, base_dirs=settings.import_base_dirs).import_file(args.file)
        except (ContentImportError, DatabaseError) as e:
            logger.error(f"Announcement import failed: {e}")
            print(json.dumps({"success": False, "error": str(e)}, ensure_ascii=False))
            return 1

    print(json.dumps({"success": True, **result.to_dict()}, ensure_ascii=False, indent=2))
    logger.info(f"[import] kind={args.kind} ok={result.success_count} failed={result.failure_count} downloads={localizer.downloads}")
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(run())
