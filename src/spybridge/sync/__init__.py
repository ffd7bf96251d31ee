"""Customer sync orchestration, status and health."""

from __future__ import annotations

from spybridge.sync.orchestrator import (
    HealthReport,
    SyncOrchestrator,
    SyncStatus,
    health_check,
    sync_status,
)

__all__ = ["HealthReport", "SyncOrchestrator", "SyncStatus", "health_check", "sync_status"]
