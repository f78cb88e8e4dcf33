"""
Backblaze B2 native API client for vault sync.

Provides account authorization, paginated file and version listing,
uploads, downloads, and version deletion over the v2 API.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator
from urllib.parse import quote

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_AUTHORIZE_URL = "https://api.backblazeb2.com/b2api/v2/b2_authorize_account"

# B2 only computes SHA-1 itself; the SHA-256 fingerprint rides along as file info
FINGERPRINT_INFO_KEY = "sha256"

# Uploads skip provider-side checksum verification
UNVERIFIED_SHA1 = "do_not_verify"


class B2Error(Exception):
    """Base exception for B2 operations."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class B2AuthorizationError(B2Error):
    """Raised when account authorization is rejected."""

    pass


class B2RequestError(B2Error):
    """Raised when an API call fails or returns a non-success status."""

    pass


@dataclass
class B2Authorization:
    """Result of b2_authorize_account. Tokens live for at most 24 hours."""

    account_id: str
    api_url: str
    download_url: str
    token: str
    authorized_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_api_response(cls, data: dict) -> "B2Authorization":
        return cls(
            account_id=data.get("accountId", ""),
            api_url=data["apiUrl"],
            download_url=data["downloadUrl"],
            token=data["authorizationToken"],
        )


@dataclass
class UploadTarget:
    """A bucket upload URL and its dedicated token."""

    upload_url: str
    token: str


@dataclass
class RemoteObject:
    """A file version as listed by B2."""

    path: str
    fingerprint: str | None
    file_id: str
    size: int
    uploaded_at: datetime | None
    content_sha1: str | None = None
    deleted: bool = False

    @classmethod
    def from_api_response(cls, data: dict) -> "RemoteObject":
        """Create RemoteObject from a b2_list_file_* entry."""
        file_info = data.get("fileInfo") or {}
        sha256 = file_info.get(FINGERPRINT_INFO_KEY)
        timestamp = data.get("uploadTimestamp")
        return cls(
            path=data["fileName"],
            fingerprint=f"sha256:{sha256}" if sha256 else None,
            file_id=data.get("fileId", ""),
            size=int(data.get("contentLength") or 0),
            uploaded_at=datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
            if timestamp
            else None,
            content_sha1=data.get("contentSha1"),
            # hide markers, folders and unfinished large files
            deleted=data.get("action", "upload") != "upload",
        )


@dataclass
class ListPage:
    """A page of objects from a B2 listing call."""

    objects: list[RemoteObject]
    next_file_name: str | None
    next_file_id: str | None = None

    @property
    def has_more(self) -> bool:
        return self.next_file_name is not None


def _error_message(response: requests.Response) -> str:
    """Pull the provider's message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    return body.get("message") or body.get("code") or response.text


def _read_json(response: requests.Response, error_class: type[B2Error] = B2RequestError) -> dict:
    """Decode a success response body, which B2 always sends as a JSON object."""
    try:
        data = response.json()
    except ValueError as e:
        raise error_class(f"Malformed response from B2: {e}", status=response.status_code) from e
    if not isinstance(data, dict):
        raise error_class("Malformed response from B2: expected an object", status=response.status_code)
    return data


def _remote_objects(entries: list, call: str) -> list[RemoteObject]:
    try:
        return [RemoteObject.from_api_response(entry) for entry in entries]
    except (KeyError, TypeError, AttributeError) as e:
        raise B2RequestError(f"Malformed {call} response: {e!r}") from e


class B2Client:
    """
    Client for B2 API operations.

    Every call except authorize() takes the B2Authorization it should use,
    so callers decide when a fresh token is needed.
    """

    def __init__(
        self,
        application_key_id: str,
        application_key: str,
        bucket_id: str,
        bucket_name: str,
        session: requests.Session | None = None,
    ):
        self.application_key_id = application_key_id
        self.application_key = application_key
        self.bucket_id = bucket_id
        self.bucket_name = bucket_name
        self.session = session or requests.Session()
        self.timeout = getattr(settings, "VAULTSYNC_REQUEST_TIMEOUT", 60)
        self.page_size = getattr(settings, "VAULTSYNC_LIST_PAGE_SIZE", 1000)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Send a request, converting transport failures and bad statuses."""
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise B2RequestError(f"Request to {url} failed: {e}") from e

        if response.status_code != 200:
            raise B2RequestError(_error_message(response), status=response.status_code)
        return response

    def _api_call(self, auth: B2Authorization, name: str, payload: dict) -> dict:
        response = self._request(
            "POST",
            f"{auth.api_url}/b2api/v2/{name}",
            headers={"Authorization": auth.token},
            json=payload,
        )
        return _read_json(response)

    def authorize(self) -> B2Authorization:
        """
        Authorize the account with the application key.

        Raises:
            B2AuthorizationError: If B2 does not return a success status
        """
        url = getattr(settings, "B2_AUTHORIZE_URL", DEFAULT_AUTHORIZE_URL)
        try:
            response = self.session.get(
                url,
                auth=(self.application_key_id, self.application_key),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise B2AuthorizationError(f"Failed to authorize with B2: {e}") from e

        if response.status_code != 200:
            raise B2AuthorizationError(
                f"Failed to authorize with B2: {_error_message(response)}",
                status=response.status_code,
            )

        data = _read_json(response, B2AuthorizationError)
        try:
            auth = B2Authorization.from_api_response(data)
        except KeyError as e:
            raise B2AuthorizationError(
                f"Failed to authorize with B2: response missing {e}",
                status=response.status_code,
            ) from e
        logger.debug(f"Authorized B2 account {auth.account_id} at {auth.api_url}")
        return auth

    def list_file_names(
        self,
        auth: B2Authorization,
        start_file_name: str | None = None,
        prefix: str | None = None,
    ) -> ListPage:
        """
        List one page of live file names in the bucket.

        Args:
            auth: Authorization to use
            start_file_name: The nextFileName from the previous page
            prefix: Optional name prefix filter

        Returns:
            ListPage of objects and the next start name
        """
        payload = {"bucketId": self.bucket_id, "maxFileCount": self.page_size}
        if start_file_name:
            payload["startFileName"] = start_file_name
        if prefix:
            payload["prefix"] = prefix

        data = self._api_call(auth, "b2_list_file_names", payload)
        objects = [
            obj
            for obj in _remote_objects(data.get("files", []), "b2_list_file_names")
            if not obj.deleted
        ]
        return ListPage(objects=objects, next_file_name=data.get("nextFileName"))

    def iter_objects(self, auth: B2Authorization, prefix: str | None = None) -> Iterator[RemoteObject]:
        """
        Iterate over every live object in the bucket, following pagination.

        Yields:
            RemoteObject for each file
        """
        start_file_name = None

        while True:
            page = self.list_file_names(auth, start_file_name=start_file_name, prefix=prefix)
            yield from page.objects

            if not page.has_more:
                break
            start_file_name = page.next_file_name

    def list_objects(self, auth: B2Authorization) -> list[RemoteObject]:
        """Return a complete listing of the bucket."""
        return list(self.iter_objects(auth))

    def list_file_versions(
        self,
        auth: B2Authorization,
        prefix: str,
        start_file_name: str | None = None,
        start_file_id: str | None = None,
    ) -> ListPage:
        """List one page of stored versions under a prefix."""
        payload = {
            "bucketId": self.bucket_id,
            "prefix": prefix,
            "startFileName": start_file_name or prefix,
            "maxFileCount": self.page_size,
        }
        if start_file_id:
            payload["startFileId"] = start_file_id

        data = self._api_call(auth, "b2_list_file_versions", payload)
        return ListPage(
            objects=_remote_objects(data.get("files", []), "b2_list_file_versions"),
            next_file_name=data.get("nextFileName"),
            next_file_id=data.get("nextFileId"),
        )

    def iter_versions(self, auth: B2Authorization, prefix: str) -> Iterator[RemoteObject]:
        """Iterate over every stored version under a prefix."""
        start_file_name = None
        start_file_id = None

        while True:
            page = self.list_file_versions(
                auth,
                prefix,
                start_file_name=start_file_name,
                start_file_id=start_file_id,
            )
            yield from page.objects

            if not page.has_more:
                break
            start_file_name = page.next_file_name
            start_file_id = page.next_file_id

    def list_versions(self, auth: B2Authorization, path: str) -> list[RemoteObject]:
        """Return every stored version whose name is exactly path."""
        return [v for v in self.iter_versions(auth, path) if v.path == path]

    def get_upload_target(self, auth: B2Authorization) -> UploadTarget:
        data = self._api_call(auth, "b2_get_upload_url", {"bucketId": self.bucket_id})
        try:
            return UploadTarget(upload_url=data["uploadUrl"], token=data["authorizationToken"])
        except KeyError as e:
            raise B2RequestError(f"Malformed b2_get_upload_url response: missing {e}") from e

    def upload_object(
        self,
        target: UploadTarget,
        path: str,
        content: bytes,
        fingerprint: str,
    ) -> RemoteObject:
        """
        Upload a file to the bucket.

        The provider-side SHA-1 check is deliberately disabled; a corrupted
        upload shows up as a fingerprint mismatch on the next sync.

        Args:
            target: Upload URL and token from get_upload_target()
            path: Bucket file name
            content: Bytes to upload
            fingerprint: "sha256:<hex>" of content, stored as file info

        Returns:
            RemoteObject describing the new version
        """
        _, hex_value = fingerprint.split(":", 1)
        response = self._request(
            "POST",
            target.upload_url,
            headers={
                "Authorization": target.token,
                "X-Bz-File-Name": quote(path, safe="/"),
                "Content-Type": "b2/x-auto",
                "X-Bz-Content-Sha1": UNVERIFIED_SHA1,
                f"X-Bz-Info-{FINGERPRINT_INFO_KEY}": hex_value,
            },
            data=content,
        )
        return _remote_objects([_read_json(response)], "b2_upload_file")[0]

    def download_object(self, auth: B2Authorization, path: str) -> bytes:
        """
        Download a file's content by exact name.

        Returns:
            The file content
        """
        url = f"{auth.download_url}/file/{quote(self.bucket_name)}/{quote(path, safe='/')}"
        response = self._request("GET", url, headers={"Authorization": auth.token})
        return response.content

    def delete_object_version(self, auth: B2Authorization, file_id: str, path: str) -> None:
        """Delete one stored version of a file."""
        self._api_call(
            auth,
            "b2_delete_file_version",
            {"fileId": file_id, "fileName": path},
        )
