"""
Asset Storage Service - Blob buckets for uploaded documents and generated videos
"""

import hashlib
import hmac
import os
import re
import time
from typing import AsyncIterator, Optional
from pathlib import Path
from urllib.parse import urlencode

from vidifolio.config.settings import settings
from vidifolio.core.errors import BlobStorageError
from vidifolio.services.observability import logger


class AssetStorage:
    """
    Manages blob paths, public URLs and signed URLs for the storage buckets

    Buckets are directories under the static root; blob paths are
    "{user_id}/{timestamp}_{name}" so concurrent uploads never collide.
    """

    def __init__(
        self,
        static_root: Optional[str] = None,
        signing_secret: Optional[str] = None,
    ):
        """Initialize asset storage"""
        self.static_root = static_root or settings.static_root
        self.signing_secret = (signing_secret or settings.blob_signing_secret).encode()
        self.public_base_url = settings.public_base_url.rstrip("/")
        self.static_url_prefix = settings.static_url_prefix
        self.buckets = [settings.portfolio_bucket, settings.video_bucket]

        # Ensure directories exist
        self._ensure_directories()

    def _ensure_directories(self):
        """Create bucket directories if they don't exist"""
        for bucket in self.buckets:
            Path(self.static_root, bucket).mkdir(parents=True, exist_ok=True)

    def resolve_path(self, bucket: str, path: str) -> str:
        """
        Get absolute file path for a blob

        Args:
            bucket: Bucket name
            path: Blob path inside the bucket

        Returns:
            Absolute file path

        Raises:
            BlobStorageError: If bucket is unknown or path escapes the bucket
        """
        if bucket not in self.buckets:
            raise BlobStorageError(f"Unknown bucket: {bucket}")

        bucket_root = Path(self.static_root, bucket).resolve()
        target = (bucket_root / path).resolve()
        if bucket_root != target and bucket_root not in target.parents:
            raise BlobStorageError(f"Invalid blob path: {path}")
        return str(target)

    @staticmethod
    def build_portfolio_path(user_id: str, filename: str) -> str:
        """Blob path for an uploaded source document"""
        safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", os.path.basename(filename)) or "document"
        return f"{user_id}/{int(time.time() * 1000)}_{safe_name}"

    @staticmethod
    def build_video_path(user_id: str, video_id: str) -> str:
        """Blob path for a generated video"""
        return f"{user_id}/{video_id}_{int(time.time() * 1000)}.mp4"

    async def upload_stream(
        self,
        bucket: str,
        path: str,
        chunks: AsyncIterator[bytes],
        upsert: bool = True,
    ) -> str:
        """
        Stream bytes into a blob

        Args:
            bucket: Bucket name
            path: Blob path inside the bucket
            chunks: Async iterator of byte chunks
            upsert: Overwrite an existing blob

        Returns:
            Blob path

        Raises:
            BlobStorageError: If the blob exists and upsert is False, or writing fails
        """
        target = self.resolve_path(bucket, path)
        if not upsert and os.path.exists(target):
            raise BlobStorageError(f"Blob already exists: {bucket}/{path}")

        Path(target).parent.mkdir(parents=True, exist_ok=True)
        size_bytes = 0
        try:
            with open(target, "wb") as f:
                async for chunk in chunks:
                    f.write(chunk)
                    size_bytes += len(chunk)
        except OSError as e:
            logger.error("blob_upload_failed", bucket=bucket, path=path, error=str(e))
            raise BlobStorageError(f"Upload to {bucket}/{path} failed: {e}") from e

        logger.info("blob_uploaded", bucket=bucket, path=path, size_bytes=size_bytes)
        return path

    def exists(self, bucket: str, path: str) -> bool:
        return os.path.isfile(self.resolve_path(bucket, path))

    def delete(self, bucket: str, path: str) -> bool:
        """Delete a blob, returning False if it did not exist"""
        target = self.resolve_path(bucket, path)
        if not os.path.isfile(target):
            return False
        os.remove(target)
        logger.info("blob_deleted", bucket=bucket, path=path)
        return True

    def get_public_url(self, bucket: str, path: str) -> str:
        """
        Get URL for a publicly served blob

        Args:
            bucket: Bucket name
            path: Blob path inside the bucket

        Returns:
            Absolute URL under the static mount
        """
        return f"{self.public_base_url}{self.static_url_prefix}/{bucket}/{path}"

    def _sign(self, bucket: str, path: str, expires: int) -> str:
        message = f"{bucket}/{path}:{expires}".encode()
        return hmac.new(self.signing_secret, message, hashlib.sha256).hexdigest()

    def create_signed_url(
        self,
        bucket: str,
        path: str,
        expires_in: Optional[int] = None,
    ) -> str:
        """
        Get a time-limited URL for a private blob

        Args:
            bucket: Bucket name
            path: Blob path inside the bucket
            expires_in: Lifetime in seconds (default: settings.signed_url_ttl_s)

        Returns:
            Absolute URL served by the /blobs route
        """
        if not self.exists(bucket, path):
            raise BlobStorageError(f"Blob not found: {bucket}/{path}")

        expires = int(time.time()) + (expires_in or settings.signed_url_ttl_s)
        query = urlencode({"expires": expires, "signature": self._sign(bucket, path, expires)})
        return f"{self.public_base_url}/blobs/{bucket}/{path}?{query}"

    def verify_signature(
        self,
        bucket: str,
        path: str,
        expires: int,
        signature: str,
    ) -> bool:
        """Check a signed URL's signature and expiry"""
        if expires < int(time.time()):
            return False
        expected = self._sign(bucket, path, expires)
        return hmac.compare_digest(expected, signature)
