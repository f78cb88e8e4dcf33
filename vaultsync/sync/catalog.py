"""
Point-in-time snapshot of the remote bucket.
"""

from __future__ import annotations

import logging

from vaultsync.providers.b2 import B2Authorization, B2Client, B2Error, RemoteObject
from vaultsync.sync.exceptions import RemoteUnavailableError

logger = logging.getLogger(__name__)


class RemoteCatalog:
    """
    Lists every live object in a bucket.

    A snapshot is stale as soon as any upload, download or delete runs;
    callers take a new one for each sync run.
    """

    def __init__(self, client: B2Client):
        self.client = client

    def list(self, auth: B2Authorization) -> list[RemoteObject]:
        """
        Return all objects in the bucket, exhausting pagination.

        Raises:
            RemoteUnavailableError: If any listing call fails. Carries the
                raw provider message. Not retried here.
        """
        try:
            objects = self.client.list_objects(auth)
        except B2Error as e:
            logger.error(f"Listing bucket {self.client.bucket_name} failed: {e}")
            raise RemoteUnavailableError(str(e), status=e.status) from e

        logger.debug(f"Listed {len(objects)} objects in {self.client.bucket_name}")
        return objects

    def snapshot(self, auth: B2Authorization) -> dict[str, RemoteObject]:
        """Return the listing keyed by path."""
        return {obj.path: obj for obj in self.list(auth)}
