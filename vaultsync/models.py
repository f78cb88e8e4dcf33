from django.db import models


class OrphanPolicy(models.TextChoices):
    SKIP = "skip", "Skip"
    DOWNLOAD = "download", "Download"
    DELETE = "delete", "Delete Remote"


class Vault(models.Model):
    """
    A local directory tree paired with a B2 bucket.

    Application keys are stored externally in the secrets file,
    not in the database. See vaultsync/secrets.py.
    """

    name = models.CharField(max_length=255)
    local_root = models.CharField(max_length=1024)
    bucket_id = models.CharField(max_length=255)
    bucket_name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Unattended runs have nobody to ask about remote-only files
    orphan_policy = models.CharField(
        max_length=20,
        choices=OrphanPolicy.choices,
        default=OrphanPolicy.SKIP,
        help_text="How scheduled syncs treat remote files missing locally.",
    )

    # Per-vault sync scheduling
    auto_sync = models.BooleanField(default=False)
    sync_interval_minutes = models.PositiveIntegerField(
        default=60,
        help_text="Minutes between automatic syncs."
    )
    next_sync_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Next scheduled sync time."
    )
    last_sync_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = [["bucket_name", "local_root"]]
        indexes = [
            models.Index(fields=["is_active", "auto_sync", "next_sync_at"]),
        ]

    def __str__(self):
        return f"{self.name} ({self.bucket_name})"


class TrackedFile(models.Model):
    """Last known synced state of a single path in a vault."""

    vault = models.ForeignKey(
        Vault, on_delete=models.CASCADE, related_name="tracked_files"
    )
    path = models.TextField()
    digest = models.CharField(max_length=71)  # sha256:<64 hex chars>
    size_bytes = models.BigIntegerField(default=0)
    modified_at = models.DateTimeField(null=True, blank=True)
    synced_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [["vault", "path"]]
        ordering = ["path"]

    def __str__(self):
        return f"{self.path} @ {self.digest[:20]}..."

