import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Tuple

from azure.storage.blob import (
    BlobSasPermissions,
    BlobServiceClient,
    PublicAccess,
    generate_blob_sas,
)

from assetcopy.asset_schema import CopyResult, CopyStatus
from assetcopy.config import StorageAccount

logger = logging.getLogger(__name__)

# Lifetime of the read SAS handed to the copy service for each source blob.
SOURCE_SAS_HOURS = 24


# ------------------------------------------------------------------------------
# CLIENTS
# ------------------------------------------------------------------------------

def get_blob_service_client(account: StorageAccount) -> BlobServiceClient:
    """Creates a BlobServiceClient authenticated with the account's shared key."""
    return BlobServiceClient(
        account_url=account.account_url,
        credential={"account_name": account.name, "account_key": account.key},
    )


def ensure_container_exists(client, container_name: str) -> Tuple[object, bool]:
    """Ensures the container exists.

    Returns the container client and whether this call created it.
    """
    container_client = client.get_container_client(container_name)
    if container_client.exists():
        return container_client, False
    container_client.create_container()
    return container_client, True


# ------------------------------------------------------------------------------
# UPLOAD
# ------------------------------------------------------------------------------

def upload_directory(container_client, local_path) -> int:
    """Uploads every file directly inside local_path, named after the file.

    Sub-directories are ignored and existing blobs are overwritten.
    Returns the number of files uploaded.
    """
    directory = Path(local_path)
    if not directory.is_dir():
        raise NotADirectoryError(f"Upload source is not a directory: {directory}")

    uploaded = 0
    for entry in sorted(directory.iterdir()):
        if not entry.is_file():
            continue
        blob_client = container_client.get_blob_client(entry.name)
        with open(entry, "rb") as data:
            blob_client.upload_blob(data, overwrite=True)
        logger.debug("Uploaded %s to %s", entry, blob_client.url)
        uploaded += 1
    return uploaded


def make_blob_public(container_client) -> None:
    """Allows anonymous read access to the container's blobs (not to listing)."""
    container_client.set_container_access_policy(signed_identifiers={}, public_access=PublicAccess.BLOB)


# ------------------------------------------------------------------------------
# COPY
# ------------------------------------------------------------------------------

def generate_read_sas(account: StorageAccount, container_name: str, blob_name: str, now=None) -> str:
    """Returns a read-only SAS token (no leading '?') valid for SOURCE_SAS_HOURS."""
    now = now or datetime.now(timezone.utc)
    return generate_blob_sas(
        account_name=account.name,
        container_name=container_name,
        blob_name=blob_name,
        account_key=account.key,
        permission=BlobSasPermissions(read=True),
        expiry=now + timedelta(hours=SOURCE_SAS_HOURS),
    )


def copy_blob(source_account: StorageAccount, source_container, blob_name: str, destination_container,
              size=None) -> CopyResult:
    """Starts a server-side copy of one blob into destination_container.

    A blob already present at the destination is left untouched. Failure to
    start the copy is reported in the result instead of raised. The copy runs
    asynchronously on the storage service and its completion is not awaited.
    """
    # Same blob name on both sides.
    source_blob = source_container.get_blob_client(blob_name)
    destination_blob = destination_container.get_blob_client(blob_name)

    # The destination account has no access to the source account, so the copy
    # service reads the source through a short-lived read-only signature.
    signature = generate_read_sas(source_account, source_container.container_name, blob_name)

    result = CopyResult(
        name=blob_name,
        status=CopyStatus.COPIED,
        source_uri=source_blob.url,
        destination_uri=destination_blob.url,
        size=size,
    )

    # Already there from an earlier run: leave it alone.
    if destination_blob.exists():
        logger.info("Destination blob '%s' already exists. Skipping.", destination_blob.url)
        result.status = CopyStatus.SKIPPED
        return result

    # Only starting the copy may fail softly; it then completes on the service side.
    try:
        logger.info("Copy blob '%s' to '%s'", source_blob.url, destination_blob.url)
        destination_blob.start_copy_from_url(f"{source_blob.url}?{signature}")
    except Exception as e:
        logger.error("Error copying blob '%s': %s", blob_name, e)
        result.status = CopyStatus.FAILED
        result.error = str(e)
    return result
