"""
Video Downloader - Copy provider artifacts into the video bucket
"""

import httpx
from typing import Optional

from vidifolio.config.constants import DOWNLOAD_CHUNK_SIZE, DOWNLOAD_TIMEOUT_S
from vidifolio.config.settings import settings
from vidifolio.core.errors import BlobStorageError
from vidifolio.services.asset_storage import AssetStorage
from vidifolio.services.observability import logger


class VideoDownloader:
    """
    Download generated videos from transient provider URLs into the blob store
    """

    def __init__(self, asset_storage: AssetStorage, client: Optional[httpx.AsyncClient] = None):
        """Initialize downloader"""
        self.asset_storage = asset_storage
        self.client = client or httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT_S, follow_redirects=True)

    async def download_to_storage(
        self,
        video_url: str,
        path: str,
        bucket: Optional[str] = None,
    ) -> str:
        """
        Stream a provider video into the blob store

        Args:
            video_url: Transient URL returned by the provider
            path: Blob path inside the bucket
            bucket: Target bucket (default: video bucket)

        Returns:
            Public URL of the stored video

        Raises:
            httpx.HTTPError: If download fails
            BlobStorageError: If the response is empty or writing fails
        """
        bucket = bucket or settings.video_bucket
        try:
            logger.info(
                "video_download_start",
                url=video_url,
                bucket=bucket,
                path=path,
            )

            # Download with streaming
            async with self.client.stream("GET", video_url) as response:
                response.raise_for_status()
                await self.asset_storage.upload_stream(
                    bucket,
                    path,
                    response.aiter_bytes(chunk_size=DOWNLOAD_CHUNK_SIZE),
                )

            if not self.asset_storage.exists(bucket, path):
                raise BlobStorageError(f"Downloaded video missing from {bucket}/{path}")

            public_url = self.asset_storage.get_public_url(bucket, path)
            logger.info(
                "video_download_complete",
                url=video_url,
                public_url=public_url,
            )

            return public_url

        except Exception as e:
            logger.error(
                "video_download_failed",
                url=video_url,
                error=str(e),
            )
            raise

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()
