import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, BinaryIO, Callable, Optional, Sequence, TypeVar

from .errors import NotFoundRecoverable
from .interfaces import AuthenticationGateway, DerivativeGateway, StorageGateway
from .models import (
    Credential,
    Lookup,
    ObjectDetails,
    PageCursor,
    TranslationJob,
    TranslationStatus,
    base64_encode,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

PUBLIC_SCOPES = ("viewables:read",)
INTERNAL_SCOPES = ("bucket:create", "bucket:read", "data:read", "data:write", "data:create")


class PolicyKey:
    PERSISTENT = "persistent"


class Region:
    US = "US"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_bucket_name(client_id: str) -> str:
    return f"{client_id.lower()}-basic-app"


def build_job_payload(object_id: str, root_filename: Optional[str] = None) -> dict[str, Any]:
    """Translation job request for a stored object: SVF2 output with 2D and 3D views.

    A root filename marks the input as a compressed bundle with that entry point.
    """
    job_input: dict[str, Any] = {"urn": base64_encode(object_id)}
    if root_filename:
        job_input["rootFilename"] = root_filename
        job_input["compressedUrn"] = True
    return {
        "input": job_input,
        "output": {"formats": [{"type": "svf2", "views": ["2d", "3d"]}]},
    }


class PlatformService:
    """Facade over the platform's authentication, storage and derivative APIs.

    Owns two token caches (public viewer token and internal read/write token),
    each refreshed lazily once it expires. Refreshes are not synchronized:
    concurrent callers may both fetch a token, and the last one wins.
    """

    PAGE_SIZE = 64

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        bucket: Optional[str] = None,
        *,
        auth: AuthenticationGateway,
        storage: StorageGateway,
        derivatives: DerivativeGateway,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._bucket = bucket or default_bucket_name(client_id)
        self._auth = auth
        self._storage = storage
        self._derivatives = derivatives
        self._clock = clock
        self._public_token: Optional[Credential] = None
        self._internal_token: Optional[Credential] = None

    @property
    def bucket(self) -> str:
        return self._bucket

    def now(self) -> datetime:
        return self._clock()

    # Auth

    async def _get_token(self, scopes: Sequence[str]) -> Credential:
        grant = await self._auth.get_two_legged_token(self._client_id, self._client_secret, scopes)
        credential = Credential(grant.access_token, self._clock() + timedelta(seconds=grant.expires_in))
        logger.debug("Issued token for scopes %s, expires at %s", " ".join(scopes), credential.expires_at.isoformat())
        return credential

    async def get_public_token(self) -> Credential:
        if self._public_token is None or not self._public_token.is_valid(self._clock()):
            self._public_token = await self._get_token(PUBLIC_SCOPES)
        return self._public_token

    async def get_internal_token(self) -> Credential:
        if self._internal_token is None or not self._internal_token.is_valid(self._clock()):
            self._internal_token = await self._get_token(INTERNAL_SCOPES)
        return self._internal_token

    @staticmethod
    async def _lookup(call: Awaitable[T]) -> Lookup[T]:
        try:
            return Lookup.hit(await call)
        except NotFoundRecoverable:
            return Lookup.miss()

    # Object storage

    async def ensure_bucket_exists(self, bucket_key: str) -> None:
        auth = await self.get_internal_token()
        details = await self._lookup(
            self._storage.get_bucket_details(bucket_key, access_token=auth.access_token)
        )
        if details.found:
            return
        logger.info("Bucket %s not found, creating it", bucket_key)
        await self._storage.create_bucket(
            bucket_key, PolicyKey.PERSISTENT, region=Region.US, access_token=auth.access_token
        )

    async def upload_model(self, object_name: str, stream: BinaryIO) -> ObjectDetails:
        await self.ensure_bucket_exists(self._bucket)
        auth = await self.get_internal_token()
        details = await self._storage.upload(
            self._bucket, object_name, stream, access_token=auth.access_token
        )
        logger.info("Uploaded %s to bucket %s", object_name, self._bucket)
        return details

    async def list_objects(self) -> list[ObjectDetails]:
        await self.ensure_bucket_exists(self._bucket)
        auth = await self.get_internal_token()
        results: list[ObjectDetails] = []
        cursor: Optional[PageCursor] = None
        pages = 0
        while True:
            page = await self._storage.get_objects(
                self._bucket, self.PAGE_SIZE, cursor=cursor, access_token=auth.access_token
            )
            pages += 1
            results.extend(page.items)
            cursor = PageCursor.from_next_link(page.next)
            if cursor is None:
                if page.next:
                    logger.warning("Stopping listing: next link without startAt cursor: %s", page.next)
                break
        logger.debug("Listed %d object(s) from %s in %d page(s)", len(results), self._bucket, pages)
        return results

    # Model derivative

    async def translate_model(self, object_id: str, root_filename: Optional[str] = None) -> TranslationJob:
        auth = await self.get_internal_token()
        payload = build_job_payload(object_id, root_filename)
        job = await self._derivatives.start_job(payload, region=Region.US, access_token=auth.access_token)
        logger.info("Submitted translation job for %s (result=%s)", job.urn, job.result)
        return job

    async def get_translation_status(self, urn: str) -> TranslationStatus:
        auth = await self.get_internal_token()
        manifest = await self._lookup(self._derivatives.get_manifest(urn, access_token=auth.access_token))
        if not manifest.found:
            return TranslationStatus.not_available()
        return TranslationStatus(manifest.value.status, manifest.value.progress, [])
