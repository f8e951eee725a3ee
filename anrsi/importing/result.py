from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ImportResult:
    """Outcome of one import run; partial success is a normal outcome."""

    total: int = 0
    success_count: int = 0
    errors: List[str] = field(default_factory=list)
    files_processed: int = 0

    @property
    def failure_count(self) -> int:
        return self.total - self.success_count

    @property
    def ok(self) -> bool:
        return self.failure_count == 0 and not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalNodes": self.total,
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "errors": list(self.errors),
            "filesProcessed": self.files_processed,
        }
