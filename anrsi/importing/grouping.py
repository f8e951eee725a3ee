"""Group scraped records by external node id and language."""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from anrsi.importing.languages import language_from_url
from anrsi.importing.records import SourceRecord


NodeGroups = Dict[int, Dict[str, SourceRecord]]


def group_by_node(files: Iterable[Tuple[str, Iterable[SourceRecord]]]) -> Tuple[NodeGroups, List[str]]:
    """Group records across files by node id, keyed by language inferred from the URL.

    Files are consumed in order; a later record for the same (node, language)
    replaces the earlier one. Records without a node id are reported, not grouped.
    """
    groups: NodeGroups = {}
    errors: List[str] = []
    for path, records in files:
        for rec in records:
            if rec.node_id is None:
                errors.append(f"Node with null node_id found in file: {path}")
                continue
            lang = language_from_url(rec.url)
            groups.setdefault(rec.node_id, {})[lang] = rec
    return groups, errors
