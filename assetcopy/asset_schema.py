from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from enum import Enum, IntEnum


class AccessPermissions(IntEnum):
    NONE = 0
    READ = 1
    WRITE = 2
    DELETE = 4
    LIST = 8


class LocatorType(IntEnum):
    NONE = 0
    SAS = 1
    ON_DEMAND_ORIGIN = 2


class AssetCreationOptions(IntEnum):
    NONE = 0
    STORAGE_ENCRYPTED = 1
    COMMON_ENCRYPTION_PROTECTED = 2
    ENVELOPE_ENCRYPTION_PROTECTED = 4


class CopyStatus(str, Enum):
    COPIED = "copied"
    SKIPPED = "skipped"
    FAILED = "failed"


class MediaEntity(BaseModel):
    # Media Services speaks PascalCase; accept both the wire names and ours.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Asset(MediaEntity):
    id: str = Field(alias="Id")
    name: str = Field(alias="Name")
    uri: Optional[str] = Field(default=None, alias="Uri")
    options: int = Field(default=AssetCreationOptions.NONE, alias="Options")


class AssetFile(MediaEntity):
    id: str = Field(alias="Id")
    name: str = Field(alias="Name")
    parent_asset_id: str = Field(alias="ParentAssetId")
    # Sent and returned as a string by the REST API
    content_file_size: int = Field(default=0, alias="ContentFileSize")
    is_primary: bool = Field(default=False, alias="IsPrimary")
    is_encrypted: bool = Field(default=False, alias="IsEncrypted")
    mime_type: Optional[str] = Field(default=None, alias="MimeType")


class AccessPolicy(MediaEntity):
    id: str = Field(alias="Id")
    name: str = Field(alias="Name")
    duration_in_minutes: float = Field(alias="DurationInMinutes")
    permissions: int = Field(alias="Permissions")


class Locator(MediaEntity):
    id: str = Field(alias="Id")
    path: str = Field(alias="Path")
    type: int = Field(alias="Type")
    asset_id: str = Field(alias="AssetId")
    access_policy_id: str = Field(alias="AccessPolicyId")
    start_time: Optional[str] = Field(default=None, alias="StartTime")
    expiration_date_time: Optional[str] = Field(default=None, alias="ExpirationDateTime")


class CopyResult(BaseModel):
    name: str
    status: CopyStatus
    source_uri: str
    destination_uri: str
    size: Optional[int] = None
    error: Optional[str] = None


class CopySummary(BaseModel):
    results: List[CopyResult] = []

    def add(self, result: CopyResult) -> None:
        self.results.append(result)

    def count(self, status: CopyStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def copied(self) -> int:
        return self.count(CopyStatus.COPIED)

    @property
    def skipped(self) -> int:
        return self.count(CopyStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(CopyStatus.FAILED)


class MigrationResult(BaseModel):
    asset: Asset
    summary: CopySummary
    streaming_url: str
