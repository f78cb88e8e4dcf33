"""
Per-run sync statistics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from django.utils import timezone


def format_bytes(num_bytes: int) -> str:
    """Format a byte count as "1.5 KB" style text."""
    if num_bytes <= 0:
        return "0 B"
    sizes = ["B", "KB", "MB", "GB", "TB"]
    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(sizes) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {sizes[i]}"


@dataclass
class SyncStatistics:
    """
    Counters for a single run.

    files_processed counts every attempted action. The per-kind counters
    only count successes.
    """

    files_processed: int = 0
    files_uploaded: int = 0
    files_downloaded: int = 0
    files_deleted: int = 0
    total_bytes: int = 0
    start_time: datetime = field(default_factory=timezone.now)
    end_time: datetime | None = None

    def finish(self) -> None:
        if self.end_time is None:
            self.end_time = timezone.now()

    @property
    def duration(self) -> float:
        """Seconds between start and end (or now, while running)."""
        end = self.end_time or timezone.now()
        return (end - self.start_time).total_seconds()

    def as_dict(self) -> dict:
        return {
            "files_processed": self.files_processed,
            "files_uploaded": self.files_uploaded,
            "files_downloaded": self.files_downloaded,
            "files_deleted": self.files_deleted,
            "total_bytes": self.total_bytes,
            "duration": round(self.duration, 1),
        }

    def summary(self) -> str:
        return (
            f"{self.files_processed} processed, "
            f"{self.files_uploaded} uploaded, "
            f"{self.files_downloaded} downloaded, "
            f"{self.files_deleted} deleted, "
            f"{format_bytes(self.total_bytes)} in {self.duration:.1f}s"
        )
