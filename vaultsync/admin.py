from django.contrib import admin

from .models import TrackedFile, Vault
from .sync.models import SyncEvent, SyncSession


@admin.register(Vault)
class VaultAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "bucket_name",
        "local_root",
        "is_active",
        "auto_sync",
        "sync_interval_minutes",
        "orphan_policy",
        "last_sync_at",
    ]
    list_filter = ["is_active", "auto_sync", "orphan_policy"]
    list_editable = ["sync_interval_minutes"]
    search_fields = ["name", "bucket_name", "local_root"]
    readonly_fields = ["next_sync_at", "last_sync_at"]


@admin.register(TrackedFile)
class TrackedFileAdmin(admin.ModelAdmin):
    list_display = ["path", "vault", "size_bytes", "modified_at", "synced_at"]
    list_filter = ["vault"]
    search_fields = ["path", "digest"]


@admin.register(SyncSession)
class SyncSessionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "vault",
        "mode",
        "status",
        "started_at",
        "completed_at",
        "files_processed",
        "files_uploaded",
        "files_downloaded",
        "files_deleted",
    ]
    list_filter = ["status", "mode", "started_at"]
    search_fields = ["vault__name", "vault__bucket_name"]
    readonly_fields = ["started_at", "completed_at"]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("vault")


@admin.register(SyncEvent)
class SyncEventAdmin(admin.ModelAdmin):
    list_display = ["id", "session", "action", "status", "timestamp", "path"]
    list_filter = ["action", "status", "timestamp"]
    search_fields = ["path", "message"]
    readonly_fields = ["timestamp"]
    raw_id_fields = ["session"]
