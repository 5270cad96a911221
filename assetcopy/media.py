"""Thin client for the Azure Media Services v2 REST API.

Covers the handful of entities a blob-to-asset migration needs: assets,
asset files, access policies and locators. Authentication uses the legacy
ACS account-key flow (account name as client id, key as client secret).
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from assetcopy.asset_schema import AccessPolicy, Asset, AssetCreationOptions, AssetFile, Locator
from assetcopy.config import MediaServicesAccount

logger = logging.getLogger(__name__)

API_VERSION = "2.19"
ODATA_JSON = "application/json;odata=verbose"

# Refresh the ACS token this many seconds before it actually expires.
TOKEN_REFRESH_MARGIN = 60

TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _unwrap(payload: Dict[str, Any]) -> Any:
    """Strips the verbose OData envelope: {"d": {...}} or {"d": {"results": [...]}}."""
    data = payload.get("d", payload)
    if isinstance(data, dict) and "results" in data:
        return data["results"]
    return data


def _key(entity_id: str) -> str:
    return "('" + entity_id.replace("'", "''") + "')"


class MediaServicesClient:
    """Media Services account client over a requests session."""

    def __init__(self, account: MediaServicesAccount, session: Optional[requests.Session] = None, clock=time.time):
        self.account = account
        self.base_url = account.api_url
        self.session = session or requests.Session()
        self.session.headers.update({
            "x-ms-version": API_VERSION,
            "DataServiceVersion": "3.0",
            "MaxDataServiceVersion": "3.0",
            "Accept": ODATA_JSON,
        })
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._endpoint_resolved = False

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def authenticate(self) -> str:
        """Fetches a fresh bearer token from ACS."""
        response = self.session.post(
            self.account.acs_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.account.name,
                "client_secret": self.account.key,
                "scope": self.account.acs_scope,
            },
        )
        response.raise_for_status()
        body = response.json()
        self._token = body["access_token"]
        self._token_expires_at = self._clock() + float(body.get("expires_in", 0))
        logger.debug("Obtained Media Services token for %s", self.account.name)
        return self._token

    def _auth_header(self) -> Dict[str, str]:
        if self._token is None or self._clock() >= self._token_expires_at - TOKEN_REFRESH_MARGIN:
            self.authenticate()
        return {"Authorization": f"Bearer {self._token}"}

    def resolve_endpoint(self) -> str:
        """Follows the one-time cluster redirect Media Services issues for an account.

        Requests must go to the redirected URL directly; replaying POSTs
        through the redirect is not supported by the service.
        """
        response = self.session.get(self.base_url, headers=self._auth_header(), allow_redirects=False)
        if response.status_code == 301 and response.headers.get("Location"):
            self.base_url = response.headers["Location"]
            logger.debug("Media Services endpoint redirected to %s", self.base_url)
        else:
            response.raise_for_status()
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        self._endpoint_resolved = True
        return self.base_url

    def _request(self, method: str, resource: str, payload: Optional[dict] = None) -> requests.Response:
        if not self._endpoint_resolved:
            self.resolve_endpoint()
        headers = self._auth_header()
        if payload is not None:
            headers["Content-Type"] = ODATA_JSON
        response = self.session.request(method, self.base_url + resource, json=payload, headers=headers)
        response.raise_for_status()
        return response

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def create_asset(self, name: str, options: int = AssetCreationOptions.NONE) -> Asset:
        response = self._request("POST", "Assets", {"Name": name, "Options": int(options)})
        return Asset.model_validate(_unwrap(response.json()))

    def list_asset_files(self, asset_id: str) -> List[AssetFile]:
        response = self._request("GET", f"Assets{_key(asset_id)}/Files")
        return [AssetFile.model_validate(item) for item in _unwrap(response.json())]

    def create_asset_file(self, asset_id: str, name: str) -> AssetFile:
        response = self._request("POST", "Files", {
            "IsEncrypted": "false",
            "IsPrimary": "false",
            "MimeType": "application/octet-stream",
            "Name": name,
            "ParentAssetId": asset_id,
        })
        return AssetFile.model_validate(_unwrap(response.json()))

    def update_asset_file(self, asset_file: AssetFile) -> None:
        """Persists size and primary flag (MERGE, the service answers 204)."""
        self._request("MERGE", f"Files{_key(asset_file.id)}", {
            "ContentFileSize": str(asset_file.content_file_size),
            "IsPrimary": asset_file.is_primary,
            "MimeType": asset_file.mime_type or "application/octet-stream",
            "Name": asset_file.name,
            "ParentAssetId": asset_file.parent_asset_id,
        })

    # ------------------------------------------------------------------
    # Access policies and locators
    # ------------------------------------------------------------------

    def create_access_policy(self, name: str, duration_in_minutes: float, permissions: int) -> AccessPolicy:
        response = self._request("POST", "AccessPolicies", {
            "Name": name,
            "DurationInMinutes": str(duration_in_minutes),
            "Permissions": int(permissions),
        })
        return AccessPolicy.model_validate(_unwrap(response.json()))

    def delete_access_policy(self, policy_id: str) -> None:
        self._request("DELETE", f"AccessPolicies{_key(policy_id)}")

    def create_locator(self, locator_type: int, asset_id: str, access_policy_id: str,
                       start_time: Optional[datetime] = None) -> Locator:
        payload = {
            "AccessPolicyId": access_policy_id,
            "AssetId": asset_id,
            "StartTime": start_time.strftime(TIME_FORMAT) if start_time else None,
            "Type": int(locator_type),
        }
        response = self._request("POST", "Locators", payload)
        return Locator.model_validate(_unwrap(response.json()))

    def delete_locator(self, locator_id: str) -> None:
        self._request("DELETE", f"Locators{_key(locator_id)}")
