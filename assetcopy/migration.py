"""The four migration stages: upload, assemble asset, pick manifest, publish locator.

Every stage runs sequentially against a MigrationContext built once per run.
A fatal error anywhere leaves already-created assets, locators and policies
in place; nothing is rolled back.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from assetcopy.asset_schema import (
    AccessPermissions,
    Asset,
    AssetCreationOptions,
    AssetFile,
    CopySummary,
    LocatorType,
    MigrationResult,
)
from assetcopy.config import MigrationSettings
from assetcopy.media import MediaServicesClient
from assetcopy.storage import (
    copy_blob,
    ensure_container_exists,
    get_blob_service_client,
    make_blob_public,
    upload_directory,
)

logger = logging.getLogger(__name__)

WRITE_POLICY_NAME = "writePolicy"
WRITE_POLICY_DURATION = timedelta(hours=24)
STREAMING_POLICY_NAME = "Streaming policy"
STREAMING_POLICY_DURATION = timedelta(days=30)
# Origin locators start slightly in the past so clock skew doesn't reject them.
STREAMING_LOCATOR_BACKDATE = timedelta(minutes=5)
MANIFEST_SUFFIX = "/manifest"


class ManifestSelectionError(ValueError):
    """The asset does not contain exactly one manifest file."""


@dataclass
class MigrationContext:
    settings: MigrationSettings
    media: MediaServicesClient
    source_blob_client: object        # external storage account
    destination_blob_client: object   # storage account behind Media Services


def build_context(settings: MigrationSettings) -> MigrationContext:
    return MigrationContext(
        settings=settings,
        media=MediaServicesClient(settings.media_services),
        source_blob_client=get_blob_service_client(settings.external_storage),
        destination_blob_client=get_blob_service_client(settings.media_storage),
    )


def _minutes(delta: timedelta) -> float:
    return delta.total_seconds() / 60


# ------------------------------------------------------------------------------
# STAGE 1: UPLOAD
# ------------------------------------------------------------------------------

def upload_content_to_storage_account(ctx: MigrationContext, local_path) -> object:
    """Uploads the files in local_path to the source container of the external account."""
    container_client, _ = ensure_container_exists(ctx.source_blob_client, ctx.settings.source_container)
    count = upload_directory(container_client, local_path)
    logger.info("Uploaded %d file(s) from %s to container '%s'", count, local_path,
                ctx.settings.source_container)
    return container_client


# ------------------------------------------------------------------------------
# STAGE 2: ASSEMBLE
# ------------------------------------------------------------------------------

def container_name_from_locator_path(path: str) -> str:
    """First path segment of a SAS locator URL, e.g. https://acct.blob.../asset-1234?sv=... -> asset-1234."""
    segments = [s for s in urlparse(path).path.split("/") if s]
    if not segments:
        raise ValueError(f"Locator path has no container segment: {path}")
    return segments[0]


def create_asset_from_existing_blobs(ctx: MigrationContext, source_container) -> Tuple[Asset, CopySummary]:
    """Creates a new asset and copies every blob of source_container into it.

    Each copied blob is registered as an asset file whose size is taken from
    the source blob when the copy is started, whether or not it completes.
    """
    media = ctx.media
    # 1. --- New asset, named with a unique suffix ---
    asset = media.create_asset(ctx.settings.asset_name_prefix + str(uuid.uuid4()), AssetCreationOptions.NONE)
    logger.info("Created asset %s (%s)", asset.name, asset.id)

    # 2. --- Short-lived write access to the container behind the asset ---
    write_policy = media.create_access_policy(WRITE_POLICY_NAME, _minutes(WRITE_POLICY_DURATION),
                                              AccessPermissions.WRITE)
    destination_locator = media.create_locator(LocatorType.SAS, asset.id, write_policy.id)

    # The SAS locator path is <account url>/<container>?<token>
    destination_container_name = container_name_from_locator_path(destination_locator.path)
    asset_container, created = ensure_container_exists(ctx.destination_blob_client, destination_container_name)
    if created:
        make_blob_public(asset_container)

    # 3. --- Register and copy every source blob ---
    summary = CopySummary()
    for source_blob in source_container.list_blobs():
        asset_file = media.create_asset_file(asset.id, source_blob.name)
        # A failed copy is recorded in the summary, the loop keeps going.
        result = copy_blob(ctx.settings.external_storage, source_container, source_blob.name,
                           asset_container, size=source_blob.size)
        summary.add(result)
        # Size comes from the source; the copy may still be running.
        asset_file.content_file_size = source_blob.size
        media.update_asset_file(asset_file)

    # 4. --- Drop the write access once all copies are started ---
    media.delete_locator(destination_locator.id)
    media.delete_access_policy(write_policy.id)

    # 5. --- The .ism manifest is the entry point for streaming ---
    set_manifest_file_as_primary(media, asset, ctx.settings.manifest_extension)
    return asset, summary


# ------------------------------------------------------------------------------
# STAGE 3: PRIMARY FILE
# ------------------------------------------------------------------------------

def find_manifest_files(files: List[AssetFile], extension: str) -> List[AssetFile]:
    extension = extension.lower()
    return [f for f in files if f.name.lower().endswith(extension)]


def set_manifest_file_as_primary(media: MediaServicesClient, asset: Asset, extension: str = ".ism") -> AssetFile:
    manifests = find_manifest_files(media.list_asset_files(asset.id), extension)
    if len(manifests) != 1:
        raise ManifestSelectionError(f"The asset should have only one, {extension} file")

    manifest = manifests[0]
    manifest.is_primary = True
    media.update_asset_file(manifest)
    return manifest


# ------------------------------------------------------------------------------
# STAGE 4: STREAMING LOCATOR
# ------------------------------------------------------------------------------

def build_streaming_url(locator_path: str, manifest_name: str) -> str:
    return locator_path + manifest_name + MANIFEST_SUFFIX


def create_streaming_locator(media: MediaServicesClient, asset: Asset, extension: str = ".ism",
                             now: Optional[datetime] = None) -> str:
    """Creates a 30-day on-demand origin locator and returns the Smooth Streaming URL."""
    manifests = find_manifest_files(media.list_asset_files(asset.id), extension)
    if not manifests:
        raise ManifestSelectionError(f"The asset has no {extension} file")

    policy = media.create_access_policy(STREAMING_POLICY_NAME, _minutes(STREAMING_POLICY_DURATION),
                                        AccessPermissions.READ)
    now = now or datetime.now(timezone.utc)
    origin_locator = media.create_locator(LocatorType.ON_DEMAND_ORIGIN, asset.id, policy.id,
                                          start_time=now - STREAMING_LOCATOR_BACKDATE)
    return build_streaming_url(origin_locator.path, manifests[0].name)


def run_migration(ctx: MigrationContext, local_path=None) -> MigrationResult:
    local_path = Path(local_path or ctx.settings.local_media_dir)
    source_container = upload_content_to_storage_account(ctx, local_path)
    asset, summary = create_asset_from_existing_blobs(ctx, source_container)
    streaming_url = create_streaming_locator(ctx.media, asset, ctx.settings.manifest_extension)
    return MigrationResult(asset=asset, summary=summary, streaming_url=streaming_url)
