from typing import Any, BinaryIO, Optional, Protocol, Sequence

from .models import BucketDetails, Manifest, ObjectDetails, ObjectPage, PageCursor, TokenGrant, TranslationJob


class AuthenticationGateway(Protocol):
    async def get_two_legged_token(
        self, client_id: str, client_secret: str, scopes: Sequence[str]
    ) -> TokenGrant:
        """Issue an app-only token for the given scopes.

        Raises AuthFailure when the platform refuses or cannot be reached.
        """


class StorageGateway(Protocol):
    async def get_bucket_details(self, bucket_key: str, *, access_token: str) -> BucketDetails:
        ...

    async def create_bucket(
        self, bucket_key: str, policy_key: str, *, region: str, access_token: str
    ) -> BucketDetails:
        ...

    async def upload(
        self, bucket_key: str, object_key: str, stream: BinaryIO, *, access_token: str
    ) -> ObjectDetails:
        ...

    async def get_objects(
        self, bucket_key: str, limit: int, *, cursor: Optional[PageCursor], access_token: str
    ) -> ObjectPage:
        ...


class DerivativeGateway(Protocol):
    async def start_job(
        self, payload: dict[str, Any], *, region: str, access_token: str
    ) -> TranslationJob:
        ...

    async def get_manifest(self, urn: str, *, access_token: str) -> Manifest:
        ...
