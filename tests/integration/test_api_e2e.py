"""
End-to-End API Tests
"""

import json
from unittest.mock import AsyncMock, Mock, patch
from urllib.parse import urlparse

import httpx
import pytest
import pytest_asyncio

from tests.fixtures import SAMPLE_PDF_BYTES, SAMPLE_RAW_DATA, FakeDownloader, FakeProvider
from vidifolio.config.settings import settings
from vidifolio.core.prompt_deriver import PromptDeriver
from vidifolio.core.strategies import build_strategy
from vidifolio.services.asset_storage import AssetStorage
from vidifolio.services.job_manager import JobManager

pytestmark = pytest.mark.asyncio

OWNER = "user_2owner0000000001"
STRANGER = "user_2stranger000002"


@pytest.fixture
def api_storage():
    """Blob store under the configured static root so the static mount serves it"""
    return AssetStorage()


@pytest.fixture
def provider():
    return FakeProvider(pending_polls=1)


@pytest.fixture
def job_manager(session_factory, api_storage, provider):
    deriver = PromptDeriver(api_key="")
    return JobManager(
        session_factory=session_factory,
        provider=provider,
        prompt_deriver=deriver,
        asset_storage=api_storage,
        downloader=FakeDownloader(api_storage),
        strategy=build_strategy(
            "segmented",
            provider=provider,
            prompt_deriver=deriver,
            asset_storage=api_storage,
        ),
    )


@pytest_asyncio.fixture
async def client(session_factory, api_storage, job_manager):
    """Create test client"""
    from vidifolio.api.deps import get_asset_storage, get_job_manager, get_verifier
    from vidifolio.api.main import app
    from vidifolio.core.auth import CredentialVerifier
    from vidifolio.models import get_db

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_verifier] = lambda: CredentialVerifier(jwks_url="")
    app.dependency_overrides[get_asset_storage] = lambda: api_storage
    app.dependency_overrides[get_job_manager] = lambda: job_manager

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await job_manager.dispatcher.drain()
    app.dependency_overrides.clear()


@pytest.fixture
def owner_headers(token_factory):
    token = token_factory(OWNER, email="jane@example.com", first_name="Jane", last_name="Doe")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def stranger_headers(token_factory):
    return {"Authorization": f"Bearer {token_factory(STRANGER)}"}


async def _create_portfolio(client, headers, title="Jane Doe Portfolio", with_pdf=True):
    files = {"pdf": ("Jane CV.pdf", SAMPLE_PDF_BYTES, "application/pdf")} if with_pdf else None
    response = await client.post(
        "/portfolio",
        data={"title": title, "raw_data": json.dumps(SAMPLE_RAW_DATA)},
        files=files,
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestVideoGeneration:
    """Submit, poll and read generation jobs"""

    async def test_cyber_generation_end_to_end(self, client, job_manager, provider, owner_headers):
        portfolio = await _create_portfolio(client, owner_headers)

        response = await client.post(
            "/videos/generate",
            json={"portfolio_id": portfolio["id"], "visual_style": "cyber"},
            headers=owner_headers,
        )

        assert response.status_code == 201
        created = response.json()
        assert created["status"] == "PROCESSING"
        assert created["video_url"] is None
        assert created["portfolio_id"] == portfolio["id"]

        await job_manager.dispatcher.drain()

        response = await client.get(f"/videos/{created['id']}", headers=owner_headers)
        assert response.status_code == 200
        video = response.json()
        assert video["status"] == "COMPLETED"
        assert video["video_url"].startswith("http://test/static/videos/")
        metadata = video["ai_metadata"]
        assert metadata["visual_style"] == "cyber"
        assert metadata["total_duration_s"] == 20
        assert metadata["extension_count"] == 2
        assert "cyber" in metadata["prompt"]
        assert "error" not in metadata
        assert [r.duration for r in provider.requests] == [8, 8, 4]

        # The stored artifact is publicly served
        artifact = await client.get(urlparse(video["video_url"]).path)
        assert artifact.status_code == 200
        assert artifact.content == b"fake-mp4-bytes"

        by_query = await client.get("/videos", params={"id": created["id"]}, headers=owner_headers)
        assert by_query.json() == video

        listing = await client.get("/videos", headers=owner_headers)
        assert [v["id"] for v in listing.json()] == [created["id"]]

    async def test_failed_generation_reports_error(self, client, job_manager, provider, owner_headers):
        provider.fail_when = lambda request: True
        portfolio = await _create_portfolio(client, owner_headers, with_pdf=False)

        response = await client.post(
            "/videos/generate",
            json={"portfolio_id": portfolio["id"], "visual_style": "tech"},
            headers=owner_headers,
        )
        await job_manager.dispatcher.drain()

        video = (await client.get(f"/videos/{response.json()['id']}", headers=owner_headers)).json()
        assert video["status"] == "FAILED"
        assert video["video_url"] is None
        assert video["ai_metadata"]["error"].startswith("Video operation failed")

    async def test_invalid_style_rejected(self, client, owner_headers):
        portfolio = await _create_portfolio(client, owner_headers, with_pdf=False)

        response = await client.post(
            "/videos/generate",
            json={"portfolio_id": portfolio["id"], "visual_style": "vaporwave"},
            headers=owner_headers,
        )

        assert response.status_code == 400
        assert "visual_style" in response.json()["error"]

    async def test_missing_fields_rejected(self, client, owner_headers):
        response = await client.post("/videos/generate", json={"visual_style": "tech"}, headers=owner_headers)

        assert response.status_code == 400
        assert "portfolio_id" in response.json()["error"]

    async def test_foreign_portfolio_rejected(self, client, owner_headers, stranger_headers):
        portfolio = await _create_portfolio(client, owner_headers, with_pdf=False)

        response = await client.post(
            "/videos/generate",
            json={"portfolio_id": portfolio["id"], "visual_style": "eco"},
            headers=stranger_headers,
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Portfolio not found or unauthorized."}

    async def test_ownership_and_absence_are_indistinguishable(
        self, client, job_manager, owner_headers, stranger_headers
    ):
        portfolio = await _create_portfolio(client, owner_headers, with_pdf=False)
        created = (
            await client.post(
                "/videos/generate",
                json={"portfolio_id": portfolio["id"], "visual_style": "tech"},
                headers=owner_headers,
            )
        ).json()
        await job_manager.dispatcher.drain()

        foreign = await client.get(f"/videos/{created['id']}", headers=stranger_headers)
        missing = await client.get("/videos/00000000-0000-0000-0000-000000000000", headers=owner_headers)
        foreign_query = await client.get("/videos", params={"id": created["id"]}, headers=stranger_headers)

        assert foreign.status_code == missing.status_code == foreign_query.status_code == 404
        assert foreign.json() == missing.json() == foreign_query.json() == {
            "error": "Video not found or unauthorized"
        }

    async def test_patch_video(self, client, job_manager, owner_headers, stranger_headers):
        portfolio = await _create_portfolio(client, owner_headers, with_pdf=False)
        created = (
            await client.post(
                "/videos/generate",
                json={"portfolio_id": portfolio["id"], "visual_style": "tech"},
                headers=owner_headers,
            )
        ).json()
        await job_manager.dispatcher.drain()

        response = await client.patch(
            f"/videos/{created['id']}",
            json={"ai_metadata": {"title": "Showreel 2026"}},
            headers=owner_headers,
        )
        assert response.status_code == 200
        assert response.json()["ai_metadata"]["title"] == "Showreel 2026"
        assert response.json()["status"] == "COMPLETED"

        status_patch = await client.patch(
            f"/videos/{created['id']}",
            json={"status": "FAILED"},
            headers=owner_headers,
        )
        assert status_patch.status_code == 400

        foreign = await client.patch(
            f"/videos/{created['id']}",
            json={"ai_metadata": {"title": "Hijacked"}},
            headers=stranger_headers,
        )
        assert foreign.status_code == 400


class TestAuthAndUsers:
    """Credential handling, sync and credits"""

    async def test_missing_credential(self, client):
        response = await client.get("/videos")

        assert response.status_code == 401
        assert response.json() == {"error": "Missing or invalid Authorization header"}

    async def test_invalid_credential(self, client):
        response = await client.get("/videos", headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}

    async def test_auth_sync_upserts(self, client, token_factory):
        first = await client.post(
            "/auth/sync",
            headers={"Authorization": f"Bearer {token_factory(OWNER, email='old@example.com')}"},
        )
        second = await client.post(
            "/auth/sync",
            headers={"Authorization": f"Bearer {token_factory(OWNER, email='new@example.com', full_name='Jane D')}"},
        )

        assert first.status_code == second.status_code == 200
        assert first.json()["user"]["id"] == second.json()["user"]["id"]
        assert second.json()["user"]["email"] == "new@example.com"
        assert second.json()["user"]["full_name"] == "Jane D"
        assert second.json()["user"]["credits"] == 0

    async def test_auth_sync_placeholder_email(self, client, token_factory):
        response = await client.post("/auth/sync", headers={"Authorization": f"Bearer {token_factory(OWNER)}"})

        assert response.json()["user"]["email"] == "user_00000001@clerk.com"
        assert response.json()["user"]["full_name"] == "User"

    async def test_credit_balance(self, client, owner_headers):
        assert (await client.get("/user/credit", headers=owner_headers)).json() == {"credits": 0}

        response = await client.patch("/user/credit", json={"credits": 5}, headers=owner_headers)
        assert response.status_code == 200
        assert response.json() == {"credits": 5}
        assert (await client.get("/user/credit", headers=owner_headers)).json() == {"credits": 5}

    @pytest.mark.parametrize("body", [{}, {"credits": -1}, {"credits": "5"}])
    async def test_credit_validation(self, client, owner_headers, body):
        response = await client.patch("/user/credit", json=body, headers=owner_headers)

        assert response.status_code == 400
        assert "error" in response.json()


class TestPortfolios:
    """Portfolio upload, listing, deletion and signed blob access"""

    async def test_create_list_delete(self, client, api_storage, owner_headers, stranger_headers):
        portfolio = await _create_portfolio(client, owner_headers)

        assert portfolio["title"] == "Jane Doe Portfolio"
        assert portfolio["raw_data"] == SAMPLE_RAW_DATA
        assert portfolio["pdf_path"].endswith("_Jane_CV.pdf")
        assert api_storage.exists(settings.portfolio_bucket, portfolio["pdf_path"])

        listing = await client.get("/portfolio", headers=owner_headers)
        assert [p["id"] for p in listing.json()] == [portfolio["id"]]
        assert (await client.get("/portfolio", headers=stranger_headers)).json() == []

        foreign = await client.delete("/portfolio", params={"id": portfolio["id"]}, headers=stranger_headers)
        assert foreign.status_code == 400

        deleted = await client.delete("/portfolio", params={"id": portfolio["id"]}, headers=owner_headers)
        assert deleted.status_code == 200
        assert deleted.json() == {"message": "Deleted."}
        assert not api_storage.exists(settings.portfolio_bucket, portfolio["pdf_path"])

    async def test_delete_refused_while_videos_reference_portfolio(
        self, client, job_manager, api_storage, owner_headers
    ):
        portfolio = await _create_portfolio(client, owner_headers)
        generated = await client.post(
            "/videos/generate",
            json={"portfolio_id": portfolio["id"], "visual_style": "tech"},
            headers=owner_headers,
        )
        assert generated.status_code == 201
        await job_manager.dispatcher.drain()

        response = await client.delete("/portfolio", params={"id": portfolio["id"]}, headers=owner_headers)

        assert response.status_code == 400
        assert "cannot be deleted" in response.json()["error"]
        listing = await client.get("/portfolio", headers=owner_headers)
        assert [p["id"] for p in listing.json()] == [portfolio["id"]]
        assert api_storage.exists(settings.portfolio_bucket, portfolio["pdf_path"])
        video = await client.get(f"/videos/{generated.json()['id']}", headers=owner_headers)
        assert video.json()["portfolio_id"] == portfolio["id"]

    async def test_delete_requires_id(self, client, owner_headers):
        response = await client.delete("/portfolio", headers=owner_headers)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing id"}

    async def test_non_multipart_rejected(self, client, owner_headers):
        response = await client.post("/portfolio", json={"title": "JSON body"}, headers=owner_headers)

        assert response.status_code == 400

    async def test_invalid_raw_data_rejected(self, client, owner_headers):
        response = await client.post(
            "/portfolio",
            data={"title": "Bad", "raw_data": "[1, 2"},
            headers=owner_headers,
        )

        assert response.status_code == 400
        assert response.json() == {"error": "raw_data must be a JSON object"}

    async def test_signed_blob_access(self, client, api_storage, owner_headers):
        portfolio = await _create_portfolio(client, owner_headers)
        signed = urlparse(api_storage.create_signed_url(settings.portfolio_bucket, portfolio["pdf_path"]))

        response = await client.get(f"{signed.path}?{signed.query}")
        assert response.status_code == 200
        assert response.content == SAMPLE_PDF_BYTES

        tampered = await client.get(f"{signed.path}?{signed.query[:-4]}0000")
        assert tampered.status_code == 403

        unsigned = await client.get(signed.path)
        assert unsigned.status_code == 403


class TestHttpSurface:
    """CORS, health and unsupported routes"""

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_cors_preflight_allowed_origin(self, client):
        response = await client.options(
            "/videos/generate",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
        assert response.headers["access-control-allow-credentials"] == "true"
        assert "PATCH" in response.headers["access-control-allow-methods"]

    async def test_cors_preflight_unknown_origin(self, client):
        response = await client.options(
            "/videos/generate",
            headers={
                "Origin": "https://evil.example.com",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert "access-control-allow-origin" not in response.headers

    async def test_unsupported_method_and_path(self, client, owner_headers):
        wrong_method = await client.delete("/videos", headers=owner_headers)
        unknown_path = await client.get("/nowhere", headers=owner_headers)

        assert wrong_method.status_code == unknown_path.status_code == 405
        assert wrong_method.json() == {"error": "Method or Path not allowed"}


class TestLifecycle:
    """Application startup and shutdown"""

    async def test_shutdown_closes_shared_job_manager(self):
        from vidifolio.api.main import app

        with patch("vidifolio.api.main.close_job_manager", new_callable=AsyncMock) as close_manager:
            async with app.router.lifespan_context(app):
                close_manager.assert_not_awaited()

        close_manager.assert_awaited_once()

    async def test_close_job_manager_drains_cached_instance(self):
        from vidifolio.api import deps

        deps.get_job_manager.cache_clear()
        await deps.close_job_manager()

        manager = Mock()
        manager.shutdown = AsyncMock()
        with patch("vidifolio.api.deps.JobManager", return_value=manager):
            assert deps.get_job_manager() is manager
            await deps.close_job_manager()

        manager.shutdown.assert_awaited_once()
        assert deps.get_job_manager.cache_info().currsize == 0
