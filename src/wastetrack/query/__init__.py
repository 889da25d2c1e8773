"""Pull-based snapshot reads."""

from wastetrack.query.snapshot import SnapshotQueryService, SnapshotResult

__all__ = ["SnapshotQueryService", "SnapshotResult"]
