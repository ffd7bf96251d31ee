"""Result models returned to callers of the sync and lookup operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from spybridge.models.customer import Customer


class SyncMode(str, Enum):
    """How much of the customer listing a sync run covers."""

    QUICK = "quick"  # First listing page only
    FULL = "full"  # Every page, following "next" links
    PREVIEW = "preview"  # First page, nothing persisted
    ENHANCED = "enhanced"  # Show-all expansion plus a validation pass


@dataclass
class SyncResult:
    """Uniform outcome of one sync invocation."""

    success: bool = False
    mode: SyncMode = SyncMode.QUICK
    customers_found: int = 0
    customers_saved: int = 0
    errors: list[str] = field(default_factory=list)
    last_sync: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: int = 0
    debug_info: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict suitable for JSON output."""
        return {
            "success": self.success,
            "mode": self.mode.value,
            "customersFound": self.customers_found,
            "customersSaved": self.customers_saved,
            "errors": self.errors,
            "lastSync": self.last_sync.isoformat(),
            "durationMs": self.duration_ms,
            "debugInfo": self.debug_info,
        }


@dataclass
class SearchResult:
    """Ranked customer suggestions for a free-text query."""

    query: str = ""
    exact_match: Customer | None = None
    suggestions: list[Customer] = field(default_factory=list)
    confidence: float = 0.0
    scores: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "exactMatch": self.exact_match.to_dict() if self.exact_match else None,
            "suggestions": [c.to_dict() for c in self.suggestions],
            "confidence": self.confidence,
        }
