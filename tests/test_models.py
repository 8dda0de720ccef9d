from datetime import datetime, timedelta, timezone

import pytest

from viewer_service.aps.models import (
    Credential,
    Lookup,
    ObjectDetails,
    ObjectPage,
    PageCursor,
    TranslationStatus,
    base64_encode,
)

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestBase64Encode:
    def test_known_identifier(self):
        assert base64_encode("urn:example:123") == "dXJuOmV4YW1wbGU6MTIz"

    def test_repeatable(self):
        assert base64_encode("urn:example:123") == base64_encode("urn:example:123")

    def test_padding_stripped(self):
        # 16 bytes would normally end in "=="
        encoded = base64_encode("urn:example:1234")
        assert not encoded.endswith("=")
        assert encoded == "dXJuOmV4YW1wbGU6MTIzNA"

    def test_standard_alphabet(self):
        assert base64_encode("~~~") == "fn5+"

    def test_object_id_with_plus_in_encoding(self):
        encoded = base64_encode("urn:adsk.objects:os.object:testclient-basic-app/rack?>.rvt")
        assert encoded.endswith("cmFjaz8+LnJ2dA")


@pytest.mark.unit
class TestCredential:
    def test_valid_before_expiry(self):
        credential = Credential("abc", NOW + timedelta(seconds=1))
        assert credential.is_valid(NOW)

    def test_expired_at_exact_expiry(self):
        credential = Credential("abc", NOW)
        assert not credential.is_valid(NOW)

    def test_expires_in_rounds_to_seconds(self):
        credential = Credential("abc", NOW + timedelta(seconds=119, milliseconds=600))
        assert credential.expires_in(NOW) == 120


@pytest.mark.unit
class TestPageCursor:
    def test_extracts_start_at(self):
        link = "https://developer.api.autodesk.com/oss/v2/buckets/b/objects?startAt=model%2B2.rvt&limit=64"
        assert PageCursor.from_next_link(link) == PageCursor(start_at="model+2.rvt")

    @pytest.mark.parametrize("link", [None, ""])
    def test_no_link_ends_listing(self, link):
        assert PageCursor.from_next_link(link) is None

    def test_link_without_start_at(self):
        assert PageCursor.from_next_link("https://example.com/objects?limit=64") is None


@pytest.mark.unit
def test_translation_status_sentinel():
    status = TranslationStatus.not_available()
    assert (status.status, status.progress, status.messages) == ("n/a", "", None)


@pytest.mark.unit
def test_lookup_variants():
    assert Lookup.hit(5).found and Lookup.hit(5).value == 5
    assert not Lookup.miss().found and Lookup.miss().value is None


@pytest.mark.unit
def test_object_page_parses_wire_fields():
    page = ObjectPage.model_validate(
        {
            "items": [
                {
                    "bucketKey": "b",
                    "objectKey": "house.rvt",
                    "objectId": "urn:adsk.objects:os.object:b/house.rvt",
                    "sha1": "abc",
                    "size": 1024,
                    "location": "https://example.com/house.rvt",
                    "contentType": "application/octet-stream",
                }
            ],
            "next": "https://example.com/objects?startAt=x",
        }
    )
    item = page.items[0]
    assert isinstance(item, ObjectDetails)
    assert item.object_key == "house.rvt"
    assert item.size == 1024
    # unknown fields are passed through
    assert item.model_extra["contentType"] == "application/octet-stream"
