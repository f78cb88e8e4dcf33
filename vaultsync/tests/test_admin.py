"""Tests for model registration."""

from django.apps import apps
from django.contrib import admin
from django.test import TestCase

from vaultsync.models import TrackedFile, Vault
from vaultsync.sync.models import SyncEvent, SyncSession


class AdminRegistrationTests(TestCase):
    def test_models_registered(self):
        for model in (Vault, TrackedFile, SyncSession, SyncEvent):
            self.assertTrue(admin.site.is_registered(model), model.__name__)

    def test_sync_models_belong_to_app(self):
        self.assertIs(apps.get_model("vaultsync", "SyncSession"), SyncSession)
        self.assertIs(apps.get_model("vaultsync", "SyncEvent"), SyncEvent)
