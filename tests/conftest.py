"""In-memory stand-ins for the blob storage and Media Services clients."""

from __future__ import annotations

import base64
import itertools
from types import SimpleNamespace
from typing import Any

import pytest

from assetcopy.asset_schema import AccessPolicy, Asset, AssetFile, Locator, LocatorType
from assetcopy.config import load_settings

TEST_KEY = base64.b64encode(b"not-a-real-storage-key").decode()

TEST_ENV = {
    "MEDIA_SERVICES_ACCOUNT_NAME": "amsaccount",
    "MEDIA_SERVICES_ACCOUNT_KEY": "amskey",
    "MEDIA_SERVICES_STORAGE_ACCOUNT_NAME": "amsstorage",
    "MEDIA_SERVICES_STORAGE_ACCOUNT_KEY": TEST_KEY,
    "EXTERNAL_STORAGE_ACCOUNT_NAME": "externalstorage",
    "EXTERNAL_STORAGE_ACCOUNT_KEY": TEST_KEY,
}


class FakeBlobClient:
    def __init__(self, container: FakeContainerClient, name: str) -> None:
        self.container = container
        self.name = name
        self.url = f"{container.account_url}/{container.container_name}/{name}"

    def exists(self) -> bool:
        if self.name in self.container.fail_exists:
            raise RuntimeError("exists check failed")
        return self.name in self.container.blobs

    def upload_blob(self, data, overwrite: bool = False) -> None:
        if self.name in self.container.fail_uploads:
            raise RuntimeError("upload rejected")
        if not overwrite and self.exists():
            raise AssertionError(f"blob {self.name} exists and overwrite is off")
        payload = data.read() if hasattr(data, "read") else data
        self.container.blobs[self.name] = payload

    def start_copy_from_url(self, source_url: str) -> dict:
        self.container.copy_requests.append((self.name, source_url))
        if self.name in self.container.fail_copies:
            raise RuntimeError("copy rejected")
        self.container.blobs[self.name] = b""
        return {"copy_status": "pending"}


class FakeContainerClient:
    def __init__(self, container_name: str, account_url: str, exists: bool = False) -> None:
        self.container_name = container_name
        self.account_url = account_url
        self.created = exists
        self.create_calls = 0
        self.public_access = None
        self.blobs: dict[str, bytes] = {}
        self.copy_requests: list[tuple[str, str]] = []
        self.fail_copies: set[str] = set()
        self.fail_uploads: set[str] = set()
        self.fail_exists: set[str] = set()

    def exists(self) -> bool:
        return self.created

    def create_container(self) -> None:
        self.create_calls += 1
        self.created = True

    def set_container_access_policy(self, signed_identifiers, public_access=None) -> None:
        self.public_access = public_access

    def get_blob_client(self, name: str) -> FakeBlobClient:
        return FakeBlobClient(self, name)

    def list_blobs(self):
        for name, payload in self.blobs.items():
            yield SimpleNamespace(name=name, size=len(payload))


class FakeBlobServiceClient:
    def __init__(self, account_name: str) -> None:
        self.account_url = f"https://{account_name}.blob.core.windows.net"
        self.containers: dict[str, FakeContainerClient] = {}

    def get_container_client(self, name: str) -> FakeContainerClient:
        if name not in self.containers:
            self.containers[name] = FakeContainerClient(name, self.account_url)
        return self.containers[name]


class FakeMediaServices:
    """Records every call in order so tests can check sequencing."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.assets: dict[str, Asset] = {}
        self.files: dict[str, AssetFile] = {}
        self.policies: dict[str, AccessPolicy] = {}
        self.locators: dict[str, Locator] = {}
        self._ids = itertools.count(1)

    def _id(self, prefix: str) -> str:
        return f"nb:{prefix}:UUID:{next(self._ids)}"

    def create_asset(self, name, options=0):
        asset = Asset(id=self._id("cid"), name=name, options=int(options))
        self.assets[asset.id] = asset
        self.calls.append(("create_asset", name))
        return asset

    def create_asset_file(self, asset_id, name):
        asset_file = AssetFile(id=self._id("cid"), name=name, parent_asset_id=asset_id)
        self.files[asset_file.id] = asset_file
        self.calls.append(("create_asset_file", name))
        return asset_file.model_copy()

    def update_asset_file(self, asset_file):
        self.files[asset_file.id] = asset_file.model_copy()
        self.calls.append(("update_asset_file", asset_file.name))

    def list_asset_files(self, asset_id):
        return [f.model_copy() for f in self.files.values() if f.parent_asset_id == asset_id]

    def add_file(self, asset_id, name, size=0):
        asset_file = AssetFile(id=self._id("cid"), name=name, parent_asset_id=asset_id, content_file_size=size)
        self.files[asset_file.id] = asset_file
        return asset_file

    def create_access_policy(self, name, duration_in_minutes, permissions):
        policy = AccessPolicy(id=self._id("pid"), name=name, duration_in_minutes=duration_in_minutes,
                              permissions=int(permissions))
        self.policies[policy.id] = policy
        self.calls.append(("create_access_policy", name))
        return policy

    def delete_access_policy(self, policy_id):
        del self.policies[policy_id]
        self.calls.append(("delete_access_policy", policy_id))

    def create_locator(self, locator_type, asset_id, access_policy_id, start_time=None):
        locator_id = self._id("lid")
        if locator_type == LocatorType.SAS:
            path = "https://amsstorage.blob.core.windows.net/asset-0001?sv=2012-02-12&sr=c&sp=w"
        else:
            path = f"http://amsaccount.origin.mediaservices.windows.net/{locator_id}/"
        locator = Locator(
            id=locator_id,
            path=path,
            type=int(locator_type),
            asset_id=asset_id,
            access_policy_id=access_policy_id,
            start_time=start_time.isoformat() if start_time else None,
        )
        self.locators[locator.id] = locator
        self.calls.append(("create_locator", int(locator_type)))
        return locator

    def delete_locator(self, locator_id):
        del self.locators[locator_id]
        self.calls.append(("delete_locator", locator_id))


@pytest.fixture
def settings(tmp_path):
    env = dict(TEST_ENV, LOCAL_MEDIA_DIR=str(tmp_path / "streamingfiles"))
    return load_settings(env)


@pytest.fixture
def media() -> FakeMediaServices:
    return FakeMediaServices()


@pytest.fixture
def source_service() -> FakeBlobServiceClient:
    return FakeBlobServiceClient("externalstorage")


@pytest.fixture
def destination_service() -> FakeBlobServiceClient:
    return FakeBlobServiceClient("amsstorage")


@pytest.fixture
def ctx(settings, media, source_service, destination_service):
    from assetcopy.migration import MigrationContext

    return MigrationContext(
        settings=settings,
        media=media,
        source_blob_client=source_service,
        destination_blob_client=destination_service,
    )


@pytest.fixture
def media_dir(tmp_path):
    directory = tmp_path / "streamingfiles"
    directory.mkdir()
    (directory / "content.ism").write_text("<smil/>")
    (directory / "content.ismc").write_text("<SmoothStreamingMedia/>")
    (directory / "video_400.ismv").write_bytes(b"\x00" * 400)
    (directory / "video_800.ismv").write_bytes(b"\x01" * 800)
    return directory
