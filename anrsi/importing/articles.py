"""Multi-file article import: read, group by node, merge, localize, upsert."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Dict, Iterable, Optional, Sequence

from anrsi.errors import DatabaseError, NodeImportError
from anrsi.importing.assets import AssetLocalizer
from anrsi.importing.grouping import group_by_node
from anrsi.importing.merge import ARTICLE_EXCERPT_CHARS, merge_node
from anrsi.importing.records import SourceRecord, read_article_files
from anrsi.importing.result import ImportResult
from anrsi.storage.content_store import ContentStore


logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = "ANRSI"


class ArticleImporter:
    def __init__(
        self,
        store: ContentStore,
        localizer: AssetLocalizer,
        *,
        now: Optional[datetime] = None,
        base_dirs: Sequence[str] = (),
        author: str = DEFAULT_AUTHOR,
    ):
        self.store = store
        self.localizer = localizer
        self.now = now
        self.base_dirs = tuple(base_dirs)
        self.author = author

    def import_files(self, paths: Iterable[str]) -> ImportResult:
        """Import every node found across ``paths``.

        File and node failures are recorded in the result; nodes committed
        before a failure stay committed.
        """
        paths = list(paths)
        files, read_errors = read_article_files(paths, self.base_dirs)
        groups, group_errors = group_by_node(files)
        result = ImportResult(
            total=len(groups),
            files_processed=len(paths),
            errors=read_errors + group_errors,
        )
        logger.info(f"Importing {len(groups)} nodes from {len(files)}/{len(paths)} files")

        for node_id, records in groups.items():
            try:
                self._import_node(node_id, records)
                result.success_count += 1
            except (NodeImportError, DatabaseError, ValueError) as e:
                logger.warning(f"Node {node_id} not imported: {e}")
                result.errors.append(f"Node {node_id}: {e}")
            except Exception as e:
                logger.error(f"Unexpected error importing node {node_id}: {e}", exc_info=True)
                result.errors.append(f"Node {node_id}: {e}")

        logger.info(
            f"Article import done: total={result.total} ok={result.success_count} failed={result.failure_count}"
        )
        return result

    def _import_node(self, node_id: int, records: Dict[str, SourceRecord]) -> None:
        merged = merge_node(node_id, records, now=self.now or datetime.now(), budget=ARTICLE_EXCERPT_CHARS)
        image_url = self.localizer.localize(merged.image_url)
        article_id, created = self.store.upsert_article_by_node(
            node_id,
            {lang: asdict(tr) for lang, tr in merged.translations.items()},
            author=self.author,
            publish_date=merged.publish_date,
            image_url=image_url,
            published=True,
            featured=False,
            fallback_languages=merged.fallback_languages,
        )
        action = "Created" if created else "Updated"
        logger.info(
            f"{action} article {article_id} for node {node_id} "
            f"with languages {sorted(merged.translations)} (fallback: {merged.fallback_languages})"
        )
