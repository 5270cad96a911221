import os
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel

# Media Services v2 REST endpoints
DEFAULT_MEDIA_API_URL = "https://media.windows.net/"
DEFAULT_ACS_URL = "https://wamsprodglobal001acs.accesscontrol.windows.net/v2/OAuth2-13"
DEFAULT_ACS_SCOPE = "urn:WindowsAzureMediaServices"

# Relative to the directory the tool is run from
DEFAULT_LOCAL_MEDIA_DIR = Path("supportFiles") / "streamingfiles"
DEFAULT_SOURCE_CONTAINER = "streamingfiles"
DEFAULT_ASSET_NAME_PREFIX = "Burrito_"
DEFAULT_MANIFEST_EXTENSION = ".ism"

REQUIRED_VARS = (
    "MEDIA_SERVICES_ACCOUNT_NAME",
    "MEDIA_SERVICES_ACCOUNT_KEY",
    "MEDIA_SERVICES_STORAGE_ACCOUNT_NAME",
    "MEDIA_SERVICES_STORAGE_ACCOUNT_KEY",
    "EXTERNAL_STORAGE_ACCOUNT_NAME",
    "EXTERNAL_STORAGE_ACCOUNT_KEY",
)


class StorageAccount(BaseModel):
    name: str
    key: str
    use_https: bool = True

    @property
    def account_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.name}.blob.core.windows.net"


class MediaServicesAccount(BaseModel):
    name: str
    key: str
    api_url: str = DEFAULT_MEDIA_API_URL
    acs_url: str = DEFAULT_ACS_URL
    acs_scope: str = DEFAULT_ACS_SCOPE


class MigrationSettings(BaseModel):
    media_services: MediaServicesAccount
    media_storage: StorageAccount       # storage account backing Media Services
    external_storage: StorageAccount    # where the local files get uploaded first
    local_media_dir: Path = DEFAULT_LOCAL_MEDIA_DIR
    source_container: str = DEFAULT_SOURCE_CONTAINER
    asset_name_prefix: str = DEFAULT_ASSET_NAME_PREFIX
    manifest_extension: str = DEFAULT_MANIFEST_EXTENSION


def _env_bool(env, name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(environ: Optional[dict] = None) -> MigrationSettings:
    """Builds the run settings from environment variables.

    Only presence of the account names and keys is checked; nothing is
    validated against Azure until the first call goes out.
    """
    if environ is None:
        # A .env next to where the tool is run is picked up, real environment variables win.
        load_dotenv(find_dotenv(usecwd=True))
    env = os.environ if environ is None else environ

    missing = [name for name in REQUIRED_VARS if not env.get(name)]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")

    return MigrationSettings(
        media_services=MediaServicesAccount(
            name=env["MEDIA_SERVICES_ACCOUNT_NAME"],
            key=env["MEDIA_SERVICES_ACCOUNT_KEY"],
            api_url=env.get("MEDIA_SERVICES_API_URL", DEFAULT_MEDIA_API_URL),
            acs_url=env.get("MEDIA_SERVICES_ACS_URL", DEFAULT_ACS_URL),
            acs_scope=env.get("MEDIA_SERVICES_ACS_SCOPE", DEFAULT_ACS_SCOPE),
        ),
        # The Media Services storage account is addressed over plain http by default.
        media_storage=StorageAccount(
            name=env["MEDIA_SERVICES_STORAGE_ACCOUNT_NAME"],
            key=env["MEDIA_SERVICES_STORAGE_ACCOUNT_KEY"],
            use_https=_env_bool(env, "MEDIA_SERVICES_STORAGE_USE_HTTPS", False),
        ),
        external_storage=StorageAccount(
            name=env["EXTERNAL_STORAGE_ACCOUNT_NAME"],
            key=env["EXTERNAL_STORAGE_ACCOUNT_KEY"],
            use_https=_env_bool(env, "EXTERNAL_STORAGE_USE_HTTPS", True),
        ),
        local_media_dir=Path(env.get("LOCAL_MEDIA_DIR", str(DEFAULT_LOCAL_MEDIA_DIR))),
        source_container=env.get("SOURCE_CONTAINER", DEFAULT_SOURCE_CONTAINER),
        asset_name_prefix=env.get("ASSET_NAME_PREFIX", DEFAULT_ASSET_NAME_PREFIX),
        manifest_extension=env.get("MANIFEST_EXTENSION", DEFAULT_MANIFEST_EXTENSION),
    )
