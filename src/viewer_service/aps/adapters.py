import asyncio
import logging
import math
from typing import Any, BinaryIO, Optional, Sequence
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .errors import AuthFailure, BackendFailure, NotFoundRecoverable, PlatformError, TransportFailure
from .interfaces import AuthenticationGateway, DerivativeGateway, StorageGateway
from .models import BucketDetails, Manifest, ObjectDetails, ObjectPage, PageCursor, TokenGrant, TranslationJob

logger = logging.getLogger(__name__)

PLATFORM_BASE_URL = "https://developer.api.autodesk.com"

# S3 requires every part but the last to be at least 5 MB
UPLOAD_CHUNK_SIZE = 5 * 1024 * 1024
MAX_SIGNED_URLS_PER_REQUEST = 25


def raise_for_platform_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    request = response.request
    message = f"{request.method} {request.url.path} returned {response.status_code}"
    if response.status_code == 404:
        raise NotFoundRecoverable(message, body=response.text)
    raise BackendFailure(message, response.status_code, body=response.text)


class _HttpGateway:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def _request(
        self,
        method: str,
        url: str,
        *,
        access_token: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        merged = dict(headers or {})
        if access_token:
            merged["Authorization"] = f"Bearer {access_token}"
        try:
            response = await self._client.request(method, url, headers=merged, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportFailure(f"{method} {url} timed out") from e
        except httpx.RequestError as e:
            raise TransportFailure(f"{method} {url} failed: {e}") from e
        raise_for_platform_status(response)
        return response


class HttpAuthenticationClient(_HttpGateway, AuthenticationGateway):
    async def get_two_legged_token(
        self, client_id: str, client_secret: str, scopes: Sequence[str]
    ) -> TokenGrant:
        try:
            response = await self._request(
                "POST",
                "/authentication/v2/token",
                data={"grant_type": "client_credentials", "scope": " ".join(scopes)},
                auth=(client_id, client_secret),
                headers={"Accept": "application/json"},
            )
        except PlatformError as e:
            raise AuthFailure(f"token request failed: {e.message}", details=e.details) from e
        try:
            return TokenGrant.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AuthFailure(f"malformed token response: {e}") from e


class HttpOssClient(_HttpGateway, StorageGateway):
    @staticmethod
    def _bucket_path(bucket_key: str) -> str:
        return f"/oss/v2/buckets/{quote(bucket_key, safe='')}"

    async def get_bucket_details(self, bucket_key: str, *, access_token: str) -> BucketDetails:
        response = await self._request(
            "GET", f"{self._bucket_path(bucket_key)}/details", access_token=access_token
        )
        return BucketDetails.model_validate(response.json())

    async def create_bucket(
        self, bucket_key: str, policy_key: str, *, region: str, access_token: str
    ) -> BucketDetails:
        response = await self._request(
            "POST",
            "/oss/v2/buckets",
            json={"bucketKey": bucket_key, "policyKey": policy_key},
            headers={"x-ads-region": region},
            access_token=access_token,
        )
        return BucketDetails.model_validate(response.json())

    async def get_objects(
        self, bucket_key: str, limit: int, *, cursor: Optional[PageCursor], access_token: str
    ) -> ObjectPage:
        params: dict[str, Any] = {"limit": limit}
        if cursor is not None:
            params["startAt"] = cursor.start_at
        response = await self._request(
            "GET", f"{self._bucket_path(bucket_key)}/objects", params=params, access_token=access_token
        )
        return ObjectPage.model_validate(response.json())

    async def upload(
        self, bucket_key: str, object_key: str, stream: BinaryIO, *, access_token: str
    ) -> ObjectDetails:
        """Upload through signed S3 URLs: fetch part URLs, PUT each part, then complete."""
        endpoint = f"{self._bucket_path(bucket_key)}/objects/{quote(object_key, safe='')}/signeds3upload"
        size = await asyncio.to_thread(_stream_size, stream)
        parts = max(1, math.ceil(size / UPLOAD_CHUNK_SIZE))
        logger.debug("Uploading %s (%d bytes) in %d part(s)", object_key, size, parts)

        upload_key: Optional[str] = None
        uploaded = 0
        while uploaded < parts:
            params: dict[str, Any] = {
                "parts": min(MAX_SIGNED_URLS_PER_REQUEST, parts - uploaded),
                "firstPart": uploaded + 1,
            }
            if upload_key:
                params["uploadKey"] = upload_key
            signed = (
                await self._request("GET", endpoint, params=params, access_token=access_token)
            ).json()
            upload_key = signed.get("uploadKey")
            urls = signed.get("urls") or []
            if not upload_key or not urls:
                raise BackendFailure(
                    f"GET {endpoint} returned no signed upload URLs", 502, body=str(signed)
                )
            for url in urls:
                chunk = await asyncio.to_thread(stream.read, UPLOAD_CHUNK_SIZE)
                # signed URLs carry their own authorization
                await self._request("PUT", url, content=bytes(chunk))
                uploaded += 1

        response = await self._request(
            "POST", endpoint, json={"uploadKey": upload_key}, access_token=access_token
        )
        return ObjectDetails.model_validate(response.json())


class HttpModelDerivativeClient(_HttpGateway, DerivativeGateway):
    async def start_job(
        self, payload: dict[str, Any], *, region: str, access_token: str
    ) -> TranslationJob:
        response = await self._request(
            "POST",
            "/modelderivative/v2/designdata/job",
            json=payload,
            headers={"region": region},
            access_token=access_token,
        )
        return TranslationJob.model_validate(response.json())

    async def get_manifest(self, urn: str, *, access_token: str) -> Manifest:
        response = await self._request(
            "GET",
            f"/modelderivative/v2/designdata/{quote(urn, safe='')}/manifest",
            access_token=access_token,
        )
        return Manifest.model_validate(response.json())


def _stream_size(stream: BinaryIO) -> int:
    start = stream.tell()
    stream.seek(0, 2)
    end = stream.tell()
    stream.seek(start)
    return end - start
