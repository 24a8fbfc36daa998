"""
Unit Tests for AssetStorage
"""

import os
import time
import pytest
from urllib.parse import parse_qs, urlparse

from vidifolio.config.settings import settings
from vidifolio.core.errors import BlobStorageError
from vidifolio.services.asset_storage import AssetStorage


async def _chunks(*parts):
    for part in parts:
        yield part


def test_buckets_created(asset_storage: AssetStorage):
    assert os.path.isdir(os.path.join(asset_storage.static_root, settings.portfolio_bucket))
    assert os.path.isdir(os.path.join(asset_storage.static_root, settings.video_bucket))


def test_blob_paths():
    """Paths are namespaced by user and timestamped."""
    portfolio_path = AssetStorage.build_portfolio_path("user1", "My CV (final).pdf")
    video_path = AssetStorage.build_video_path("user1", "video1")

    assert portfolio_path.startswith("user1/")
    assert portfolio_path.endswith("_My_CV__final_.pdf")
    assert video_path.startswith("user1/video1_")
    assert video_path.endswith(".mp4")


def test_portfolio_path_strips_directories():
    path = AssetStorage.build_portfolio_path("user1", "../../etc/passwd")
    assert path.startswith("user1/")
    assert ".." not in path


async def test_upload_and_public_url(asset_storage: AssetStorage):
    path = await asset_storage.upload_stream(settings.video_bucket, "user1/v.mp4", _chunks(b"abc", b"def"))

    with open(asset_storage.resolve_path(settings.video_bucket, path), "rb") as f:
        assert f.read() == b"abcdef"
    assert asset_storage.get_public_url(settings.video_bucket, path) == "http://test/static/videos/user1/v.mp4"


async def test_upload_without_upsert_rejects_existing(asset_storage: AssetStorage):
    await asset_storage.upload_stream(settings.portfolio_bucket, "u/doc.pdf", _chunks(b"1"))

    with pytest.raises(BlobStorageError):
        await asset_storage.upload_stream(settings.portfolio_bucket, "u/doc.pdf", _chunks(b"2"), upsert=False)


def test_resolve_path_guards(asset_storage: AssetStorage):
    with pytest.raises(BlobStorageError):
        asset_storage.resolve_path("secrets", "a.txt")
    with pytest.raises(BlobStorageError):
        asset_storage.resolve_path(settings.video_bucket, "../portfolios/u/doc.pdf")


async def test_signed_url_roundtrip(asset_storage: AssetStorage):
    await asset_storage.upload_stream(settings.portfolio_bucket, "u/doc.pdf", _chunks(b"%PDF"))

    url = asset_storage.create_signed_url(settings.portfolio_bucket, "u/doc.pdf", expires_in=60)
    parsed = urlparse(url)
    query = parse_qs(parsed.query)

    assert parsed.path == "/blobs/portfolios/u/doc.pdf"
    expires = int(query["expires"][0])
    signature = query["signature"][0]
    assert asset_storage.verify_signature(settings.portfolio_bucket, "u/doc.pdf", expires, signature)
    assert not asset_storage.verify_signature(settings.portfolio_bucket, "u/other.pdf", expires, signature)
    assert not asset_storage.verify_signature(settings.portfolio_bucket, "u/doc.pdf", expires, "0" * 64)


def test_expired_signature_rejected(asset_storage: AssetStorage):
    expires = int(time.time()) - 10
    signature = asset_storage._sign(settings.portfolio_bucket, "u/doc.pdf", expires)

    assert not asset_storage.verify_signature(settings.portfolio_bucket, "u/doc.pdf", expires, signature)


def test_signed_url_for_missing_blob(asset_storage: AssetStorage):
    with pytest.raises(BlobStorageError):
        asset_storage.create_signed_url(settings.portfolio_bucket, "u/missing.pdf")


async def test_delete(asset_storage: AssetStorage):
    await asset_storage.upload_stream(settings.portfolio_bucket, "u/doc.pdf", _chunks(b"1"))

    assert asset_storage.delete(settings.portfolio_bucket, "u/doc.pdf") is True
    assert asset_storage.exists(settings.portfolio_bucket, "u/doc.pdf") is False
    assert asset_storage.delete(settings.portfolio_bucket, "u/doc.pdf") is False
