import base64
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Optional, TypeVar
from urllib.parse import parse_qs, urlsplit

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


def base64_encode(plain_text: str) -> str:
    """Encode an object id into the URN form expected by the derivative API.

    Standard Base64 over the UTF-8 bytes with the trailing '=' padding removed.
    The result may contain '+' and '/', so callers quote it before using it in a path.
    """
    return base64.b64encode(plain_text.encode("utf-8")).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class Credential:
    access_token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        # expiring exactly now counts as expired
        return now < self.expires_at

    def expires_in(self, now: datetime) -> int:
        return round((self.expires_at - now).total_seconds())


@dataclass(frozen=True)
class TranslationStatus:
    status: str
    progress: str
    messages: Optional[list[str]]

    @classmethod
    def not_available(cls) -> "TranslationStatus":
        return cls(status="n/a", progress="", messages=None)


@dataclass(frozen=True)
class PageCursor:
    """Continuation token threaded between object listing calls."""

    start_at: str

    @classmethod
    def from_next_link(cls, next_link: Optional[str]) -> Optional["PageCursor"]:
        """Extract the `startAt` cursor from a page's opaque `next` URL.

        Returns None when there is no further page.
        """
        if not next_link:
            return None
        values = parse_qs(urlsplit(next_link).query).get("startAt")
        if not values or not values[0]:
            return None
        return cls(start_at=values[0])


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """Result of a lookup where "not found" is an expected answer."""

    value: Optional[T] = None
    found: bool = False

    @classmethod
    def hit(cls, value: T) -> "Lookup[T]":
        return cls(value=value, found=True)

    @classmethod
    def miss(cls) -> "Lookup[T]":
        return cls()


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class TokenGrant(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class ObjectDetails(_WireModel):
    bucket_key: str
    object_key: str
    object_id: str
    sha1: Optional[str] = None
    size: Optional[int] = None
    location: Optional[str] = None


class ObjectPage(_WireModel):
    items: list[ObjectDetails] = Field(default_factory=list)
    next: Optional[str] = None


class BucketDetails(_WireModel):
    bucket_key: str
    policy_key: Optional[str] = None
    bucket_owner: Optional[str] = None
    created_date: Optional[int] = None


class TranslationJob(_WireModel):
    result: str
    urn: str
    accepted_jobs: Optional[dict] = None


class Manifest(_WireModel):
    urn: Optional[str] = None
    status: str
    progress: str = ""
    has_thumbnail: Optional[str] = None
