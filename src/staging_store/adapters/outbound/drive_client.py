"""Resumable upload client for a Drive-style object storage API.

Implements the UploadTransport port over httpx:

    GET  /drive/v3/files/generateIds?count=1          -> {"ids": ["..."]}
    POST /drive/v3/files?supportsAllDrives=true        -> folder {"id": "..."}
    POST /upload/drive/v3/files?uploadType=resumable   -> Location: <locator>
    PUT  <locator>  Content-Range: bytes a-b/(total|*)  -> 200/201 | 308 + Range

Credential acquisition is not handled here; the caller supplies an
already-authorized ``httpx.Client`` or a bearer token.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Optional

import httpx

from staging_store.domain.exceptions import SessionNegotiationError, TransferError
from staging_store.infrastructure.logging import get_logger
from staging_store.ports.outbound import TransferResponse

if TYPE_CHECKING:
    from staging_store.infrastructure.config import UploadConfig

logger = get_logger("drive_client")

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


def build_http_client(config: "UploadConfig") -> httpx.Client:
    """Create an httpx client for the upload endpoint.
    
    Args:
        config: Upload configuration.
        
    Returns:
        Client with base URL, bearer token and timeout applied.
    """
    headers = {}
    if config.access_token:
        headers["Authorization"] = f"Bearer {config.access_token}"
    
    timeout = httpx.Timeout(config.request_timeout) if config.request_timeout else httpx.Timeout(None)
    return httpx.Client(base_url=config.api_base_url, headers=headers, timeout=timeout)


class DriveUploadClient:
    """Upload transport speaking the resumable upload protocol."""
    
    def __init__(self, client: httpx.Client):
        """Initialize the client.
        
        Args:
            client: Authorized httpx client with the API base URL set.
        """
        self._client = client
    
    def close(self) -> None:
        self._client.close()
    
    def generate_id(self) -> str:
        try:
            response = self._client.get("/drive/v3/files/generateIds", params={"count": 1})
        except httpx.HTTPError as e:
            raise SessionNegotiationError(f"Failed to generate object id: {e}") from e
        
        if response.status_code != 200:
            raise SessionNegotiationError(
                f"Id generation returned {response.status_code}: {response.text}"
            )
        
        ids = self._json(response).get("ids") or []
        if not ids:
            raise SessionNegotiationError("Id generation response has no ids")
        
        logger.info("upload_id_generated", file_id=ids[0])
        return str(ids[0])
    
    def create_folder(self, name: str, parent_container: str) -> str:
        metadata = {
            "mimeType": FOLDER_MIME_TYPE,
            "name": name,
            "parents": [parent_container],
        }
        try:
            response = self._client.post(
                "/drive/v3/files",
                params={"supportsAllDrives": "true"},
                json=metadata,
            )
        except httpx.HTTPError as e:
            raise SessionNegotiationError(f"Failed to create folder {name!r}: {e}") from e
        
        if response.status_code != 200:
            raise SessionNegotiationError(
                f"Folder creation returned {response.status_code}: {response.text}"
            )
        
        folder_id = self._json(response).get("id")
        if not folder_id:
            raise SessionNegotiationError("Folder creation response has no id")
        return str(folder_id)
    
    def initiate(self, metadata: dict[str, Any], mime_type: str) -> Optional[str]:
        try:
            response = self._client.post(
                "/upload/drive/v3/files",
                params={"uploadType": "resumable", "supportsAllDrives": "true"},
                content=json.dumps(metadata).encode("utf-8"),
                headers={
                    "Content-Type": "application/json; charset=UTF-8",
                    "X-Upload-Content-Type": mime_type,
                },
            )
        except httpx.HTTPError as e:
            raise SessionNegotiationError(f"Failed to initiate upload: {e}") from e
        
        locator = response.headers.get("Location")
        if not locator:
            logger.error(
                "upload_initiate_rejected",
                status=response.status_code,
                body=response.text[:1024],
            )
        return locator
    
    def put_range(
        self, locator: str, data: bytes | memoryview, content_range: str
    ) -> TransferResponse:
        headers = {"Content-Range": content_range, "Content-Length": str(len(data))}
        # httpx only takes bytes directly; a window view is streamed as one part
        content = data if isinstance(data, bytes) else iter((data,))
        try:
            response = self._client.put(locator, content=content, headers=headers)
        except httpx.HTTPError as e:
            raise TransferError(f"Transfer of {content_range} failed: {e}") from e
        
        return TransferResponse(
            status_code=response.status_code,
            range_header=response.headers.get("Range"),
            body=response.text if response.status_code not in (200, 201, 308) else "",
        )
    
    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise SessionNegotiationError(f"Malformed response body: {e}") from e
        if not isinstance(payload, dict):
            raise SessionNegotiationError("Unexpected response payload")
        return payload
