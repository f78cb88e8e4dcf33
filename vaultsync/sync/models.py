"""
Models for tracking sync runs and per-action events.
"""

from django.db import models

from vaultsync.models import Vault


class SyncSession(models.Model):
    """
    Records each sync run for audit and debugging.

    Tracks the complete lifecycle of a run including statistics
    on files processed, bytes transferred, and any fatal error.
    """

    vault = models.ForeignKey(
        Vault, on_delete=models.CASCADE, related_name="sessions"
    )
    started_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    mode = models.CharField(
        max_length=20,
        choices=[
            ("sync", "Two-way Sync"),
            ("upload_all", "Upload All"),
            ("download_all", "Download All"),
            ("retry", "Retry"),
        ],
        default="sync",
    )

    # Status
    status = models.CharField(
        max_length=20,
        choices=[
            ("running", "Running"),
            ("completed", "Completed"),
            ("failed", "Failed"),
            ("partial", "Partial Success"),
            ("retried", "Retried"),
        ],
        default="running",
    )

    # Statistics
    files_processed = models.PositiveIntegerField(default=0)
    files_uploaded = models.PositiveIntegerField(default=0)
    files_downloaded = models.PositiveIntegerField(default=0)
    files_deleted = models.PositiveIntegerField(default=0)
    total_bytes = models.BigIntegerField(default=0)

    # Error tracking
    error_message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["vault", "-started_at"]),
            models.Index(fields=["status"]),
        ]
        ordering = ["-started_at"]

    def __str__(self):
        return f"{self.get_mode_display()} of {self.vault.name} - {self.get_status_display()}"


class SyncEvent(models.Model):
    """
    One attempted action during a sync session.

    Failed events carry the action kind so a later retry can rebuild
    the exact action that failed.
    """

    session = models.ForeignKey(
        SyncSession, on_delete=models.CASCADE, related_name="events"
    )
    timestamp = models.DateTimeField(auto_now_add=True)

    action = models.CharField(max_length=20)
    path = models.TextField(blank=True)
    status = models.CharField(
        max_length=10,
        choices=[
            ("success", "Success"),
            ("error", "Error"),
        ],
    )
    message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["session", "timestamp"]),
            models.Index(fields=["status"]),
        ]
        ordering = ["timestamp", "id"]

    def __str__(self):
        return f"{self.action} {self.path or 'N/A'}: {self.get_status_display()}"
