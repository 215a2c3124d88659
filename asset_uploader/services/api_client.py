"""HTTP adapter for the share site API."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import PermanentRequestError, TransientNetworkError

logger = logging.getLogger(__name__)

REMOTE_API = {
    "verify": "/api/v1/auth/verify",
    "share_doc_init": "/api/v1/shares/doc/init",
    "share_notebook_init": "/api/v1/shares/notebook/init",
    "asset_chunk": "/api/v1/shares/asset/chunk",
    "upload_complete": "/api/v1/shares/upload/complete",
    "upload_cancel": "/api/v1/shares/upload/cancel",
}


def normalize_site_url(site_url: str) -> str:
    value = (site_url or "").strip().rstrip("/")
    if not value.startswith(("http://", "https://")):
        raise ValueError(f"site url must start with http:// or https://: {site_url!r}")
    return value


class ShareAPIClient:
    """
    HTTP client adapter for the share site.

    Implements IShareAPIClient protocol. Every call is single-shot; retries
    are the caller's business (see RetryPolicy).
    """

    def __init__(
        self,
        site_url: str,
        api_key: str,
        timeout: float = 120,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self._base_url = normalize_site_url(site_url)
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={"X-Api-Key": self._api_key},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _post(self, endpoint: str, **kwargs) -> Any:
        if not self._client:
            raise RuntimeError("ShareAPIClient not initialized. Use 'async with' context.")

        try:
            response = await self._client.post(endpoint, **kwargs)
        except httpx.RequestError as exc:
            raise TransientNetworkError(f"POST {endpoint} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.is_success or not isinstance(payload, dict) or payload.get("code") != 0:
            message = payload.get("msg") if isinstance(payload, dict) else None
            raise TransientNetworkError(
                message or f"Remote request failed ({response.status_code}) on POST {endpoint}",
                status_code=response.status_code,
            )
        return payload.get("data")

    async def verify(self) -> Dict[str, Any]:
        """Handshake: returns {user, limits?}."""
        data = await self._post(REMOTE_API["verify"], json={})
        return data if isinstance(data, dict) else {}

    async def init_upload(
        self,
        metadata: Dict[str, Any],
        manifest: List[Dict[str, Any]],
        notebook: bool = False,
    ) -> str:
        endpoint = REMOTE_API["share_notebook_init" if notebook else "share_doc_init"]
        data = await self._post(endpoint, json={"metadata": metadata, "assets": manifest})
        upload_id = data.get("uploadId") if isinstance(data, dict) else None
        if not upload_id:
            raise PermanentRequestError("Remote request failed: missing upload id")
        return str(upload_id)

    async def upload_chunk(
        self,
        upload_id: str,
        asset_path: str,
        chunk_index: int,
        total_chunks: int,
        total_size: int,
        data: bytes,
        asset_doc_id: Optional[str] = None,
    ) -> None:
        form = {
            "uploadId": str(upload_id),
            "assetPath": asset_path,
            "chunkIndex": str(chunk_index),
            "totalChunks": str(total_chunks),
            "totalSize": str(total_size),
        }
        if asset_doc_id:
            form["assetDocId"] = str(asset_doc_id)
        files = {"chunk": (asset_path, data, "application/octet-stream")}
        await self._post(REMOTE_API["asset_chunk"], data=form, files=files)

    async def complete_upload(self, upload_id: str) -> None:
        await self._post(REMOTE_API["upload_complete"], json={"uploadId": upload_id})

    async def cancel_upload(self, upload_id: str) -> None:
        await self._post(REMOTE_API["upload_cancel"], json={"uploadId": upload_id})
