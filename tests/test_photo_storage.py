"""
Tests for S3 photo storage.

The S3 client is replaced with a MagicMock so no network access happens.
"""

import base64
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from cargo_api.services.storage.photos import (
    PhotoStorage,
    PhotoStorageError,
    decode_photo,
)

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-body"
JPEG_BASE64 = base64.b64encode(JPEG_BYTES).decode()


@pytest.fixture
def s3_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def storage(s3_client: MagicMock) -> PhotoStorage:
    return PhotoStorage(
        client=s3_client,
        bucket="order-photo-bucket",
        key_prefix="order-photos/",
        public_base_url="https://cdn.cargo.test/",
        max_bytes=1024,
    )


class TestDecodePhoto:
    def test_plain_base64(self):
        assert decode_photo(JPEG_BASE64, 1024) == JPEG_BYTES

    def test_data_uri_prefix_stripped(self):
        payload = f"data:image/jpeg;base64,{JPEG_BASE64}"

        assert decode_photo(payload, 1024) == JPEG_BYTES

    @pytest.mark.parametrize("payload", ["", "   ", "data:image/jpeg;base64,"])
    def test_empty_rejected(self, payload):
        with pytest.raises(PhotoStorageError, match="No photo provided"):
            decode_photo(payload, 1024)

    def test_invalid_base64(self):
        with pytest.raises(PhotoStorageError, match="not valid base64"):
            decode_photo("%%%not base64%%%", 1024)

    def test_oversized(self):
        with pytest.raises(PhotoStorageError) as exc_info:
            decode_photo(JPEG_BASE64, 4)

        assert exc_info.value.context["size"] == len(JPEG_BYTES)
        assert exc_info.value.context["max_bytes"] == 4


class TestUpload:
    def test_upload_writes_jpeg(self, storage, s3_client):
        url = storage.upload_order_photo(JPEG_BASE64, "HS12")

        kwargs = s3_client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "order-photo-bucket"
        assert kwargs["Body"] == JPEG_BYTES
        assert kwargs["ContentType"] == "image/jpeg"
        assert kwargs["Key"].startswith("order-photos/HS12_")
        assert kwargs["Key"].endswith(".jpg")
        assert url == f"https://cdn.cargo.test/{kwargs['Key']}"

    def test_default_public_url(self, s3_client):
        storage = PhotoStorage(
            client=s3_client,
            bucket="bucket-a",
            key_prefix="photos",
            public_base_url=None,
        )
        storage.public_base_url = None

        url = storage.public_url("photos/HS12_1.jpg")

        assert url.startswith("https://bucket-a.s3.")
        assert url.endswith(".amazonaws.com/photos/HS12_1.jpg")

    def test_invalid_payload_never_uploads(self, storage, s3_client):
        with pytest.raises(PhotoStorageError):
            storage.upload_order_photo("%%%", "HS12")

        s3_client.put_object.assert_not_called()

    def test_client_error(self, storage, s3_client):
        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )

        with pytest.raises(PhotoStorageError) as exc_info:
            storage.upload_order_photo(JPEG_BASE64, "HS12")

        assert exc_info.value.context["error_code"] == "AccessDenied"

    def test_connection_error(self, storage, s3_client):
        s3_client.put_object.side_effect = EndpointConnectionError(
            endpoint_url="https://s3.invalid"
        )

        with pytest.raises(PhotoStorageError):
            storage.upload_order_photo(JPEG_BASE64, "HS12")


class TestDelete:
    def test_delete_by_url(self, storage, s3_client):
        deleted = storage.delete_photo("https://cdn.cargo.test/order-photos/HS12_1.jpg")

        assert deleted
        s3_client.delete_object.assert_called_once_with(
            Bucket="order-photo-bucket", Key="order-photos/HS12_1.jpg"
        )

    def test_delete_without_url(self, storage, s3_client):
        assert not storage.delete_photo(None)
        s3_client.delete_object.assert_not_called()

    def test_delete_failure_reported(self, storage, s3_client):
        s3_client.delete_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "DeleteObject"
        )

        assert not storage.delete_photo("https://cdn.cargo.test/order-photos/x.jpg")


class TestClientConstruction:
    def test_client_built_from_settings(self):
        with patch("cargo_api.services.storage.photos.boto3.client") as factory:
            storage = PhotoStorage(bucket="bucket-a")

        factory.assert_called_once()
        assert factory.call_args.args == ("s3",)
        assert "endpoint_url" in factory.call_args.kwargs
        assert storage.bucket == "bucket-a"
        assert storage.key_prefix == "order-photos"


class TestDeleteOnlyOwnPhotos:
    @pytest.mark.parametrize(
        "photo_url",
        [
            "https://elsewhere.example.org/anything/HS12_1700000000000.jpg",
            "https://elsewhere.example.org/order-photos/HS12_1700000000000.jpg",
            "https://cdn.cargo.test/other-folder/HS12_1700000000000.jpg",
            "https://cdn.cargo.test/order-photos/nested/HS12_1700000000000.jpg",
            "https://cdn.cargo.test.evil.org/order-photos/HS12_1700000000000.jpg",
        ],
    )
    def test_foreign_url_never_deleted(self, storage, s3_client, photo_url):
        assert not storage.delete_photo(photo_url)
        s3_client.delete_object.assert_not_called()

    def test_key_round_trips_through_public_url(self, storage):
        key = storage.build_key("HS12")

        assert storage.key_from_url(storage.public_url(key)) == key
