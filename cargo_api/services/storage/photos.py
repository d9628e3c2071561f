"""
S3 photo storage for order package photos.

Photos arrive from the mobile client as base64 text, optionally wrapped in a
``data:image/jpeg;base64,`` URI. They are decoded, size checked, written to
the configured bucket under ``<prefix>/<order_number>_<unix-ms>.jpg`` and
served back through a public URL.
"""

import base64
import binascii
import time
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cargo_api.core.config import get_settings
from cargo_api.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


class PhotoStorageError(Exception):
    """Raised when a photo cannot be decoded or stored."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context


def decode_photo(payload: str, max_bytes: int) -> bytes:
    """
    Decode a base64 photo payload.

    Raises:
        PhotoStorageError: If payload is empty, not base64 or too large
    """
    data = payload.strip() if payload else ""
    if "," in data:
        data = data.split(",", 1)[1]

    if not data:
        raise PhotoStorageError("No photo provided")

    try:
        image_bytes = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise PhotoStorageError("Photo is not valid base64", error=str(e)) from e

    if not image_bytes:
        raise PhotoStorageError("Photo is empty")

    if len(image_bytes) > max_bytes:
        raise PhotoStorageError(
            f"Photo size exceeds {max_bytes} byte limit",
            size=len(image_bytes),
            max_bytes=max_bytes,
        )

    return image_bytes


class PhotoStorage:
    """
    S3 client wrapper for order photos.

    Works against AWS or any S3 compatible endpoint set through
    ``storage_endpoint_url``.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        bucket: Optional[str] = None,
        key_prefix: Optional[str] = None,
        public_base_url: Optional[str] = None,
        max_bytes: Optional[int] = None,
    ) -> None:
        """
        Initialize photo storage.

        Args:
            client: Preconfigured S3 client (built from settings if omitted)
            bucket: Bucket name (defaults to settings)
            key_prefix: Key prefix inside the bucket (defaults to settings)
            public_base_url: Base URL photos are served from
            max_bytes: Largest accepted decoded photo
        """
        self.bucket = bucket or settings.photo_bucket
        self.key_prefix = (key_prefix or settings.photo_key_prefix).strip("/")
        self.public_base_url = public_base_url or settings.photo_public_base_url
        self.max_bytes = max_bytes or settings.photo_max_bytes

        self._client = client or boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
            endpoint_url=settings.storage_endpoint_url,
        )

        logger.info(
            "Photo storage initialized",
            bucket=self.bucket,
            key_prefix=self.key_prefix,
        )

    def build_key(self, order_number: str) -> str:
        timestamp_ms = int(time.time() * 1000)
        return f"{self.key_prefix}/{order_number}_{timestamp_ms}.jpg"

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        return f"https://{self.bucket}.s3.{settings.aws_region}.amazonaws.com/{key}"

    def key_from_url(self, photo_url: str) -> Optional[str]:
        """
        Map a URL issued by ``public_url`` back to its object key.

        URLs on any other host or outside the photo prefix map to ``None``.
        """
        base = self.public_url("")
        if not photo_url.startswith(base):
            return None

        key = photo_url[len(base):]
        folder, _, file_name = key.rpartition("/")
        if folder != self.key_prefix or not file_name or file_name in (".", ".."):
            return None
        return key

    def upload_order_photo(self, photo_base64: str, order_number: str) -> str:
        """
        Store a photo for an order and return its public URL.

        Raises:
            PhotoStorageError: If decoding or the upload fails
        """
        image_bytes = decode_photo(photo_base64, self.max_bytes)
        key = self.build_key(order_number)

        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=image_bytes,
                ContentType="image/jpeg",
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.warning(
                "S3 client error during photo upload",
                error_code=error_code,
                key=key,
            )
            raise PhotoStorageError(
                "Photo upload failed",
                error_code=error_code,
                key=key,
            ) from e
        except BotoCoreError as e:
            logger.warning("S3 connection error during photo upload", error=str(e))
            raise PhotoStorageError(
                "Photo upload failed",
                key=key,
                error=str(e),
            ) from e

        url = self.public_url(key)
        logger.info(
            "Photo uploaded",
            order_number=order_number,
            key=key,
            size=len(image_bytes),
        )
        return url

    def delete_photo(self, photo_url: Optional[str]) -> bool:
        """
        Remove a stored photo; failures are logged and reported as ``False``.
        """
        if not photo_url:
            return False

        key = self.key_from_url(photo_url)
        if key is None:
            logger.warning(
                "Photo URL not issued by this store, not deleting",
                photo_url=photo_url,
            )
            return False

        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.warning("Photo delete failed", key=key, error=str(e))
            return False

        logger.info("Photo deleted", key=key)
        return True
