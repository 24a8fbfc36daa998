"""
Pytest Configuration and Fixtures
"""

import os
import sys
import tempfile
import time
import pytest
from pathlib import Path
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

TEST_JWT_SECRET = "test-clerk-secret-key-for-hs256-signing-0123456789"
TEST_SIGNING_SECRET = "test-blob-signing-secret"

# Settings are read at import time
_TEST_ROOT = tempfile.mkdtemp(prefix="vidifolio-tests-")
os.environ.update(
    {
        "DATABASE_URL": f"sqlite:///{_TEST_ROOT}/app.db",
        "STATIC_ROOT": os.path.join(_TEST_ROOT, "static"),
        "PUBLIC_BASE_URL": "http://test",
        "CLERK_SECRET_KEY": TEST_JWT_SECRET,
        "CLERK_JWKS_URL": "",
        "BLOB_SIGNING_SECRET": TEST_SIGNING_SECRET,
        "DASHSCOPE_API_KEY": "test-dashscope-key",
        "LLM_API_KEY": "",
        "TASK_BACKEND": "inline",
        "GENERATION_STRATEGY": "segmented",
        "POLL_INTERVAL_S": "0",
        "MOCK_DELAY_S": "0",
    }
)

import jwt  # noqa: E402

from vidifolio.models import Base  # noqa: E402
from vidifolio.models import user, portfolio, video  # noqa: E402,F401
from vidifolio.services.asset_storage import AssetStorage  # noqa: E402
from vidifolio.services.storage import PortfolioDB, UserDB  # noqa: E402


@pytest.fixture
def test_db_path() -> Generator[str, None, None]:
    """Create temporary database file"""
    with tempfile.NamedTemporaryFile(mode='w', suffix='.db', delete=False) as f:
        db_path = f.name
    yield db_path
    # Cleanup
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def test_db_engine(test_db_path: str) -> Generator:
    """Create test database engine"""
    engine = create_engine(
        f"sqlite:///{test_db_path}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    """Session factory bound to the test database (one session per caller)"""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)


@pytest.fixture
def test_db_session(session_factory) -> Generator[Session, None, None]:
    """Create test database session"""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def asset_storage(tmp_path: Path) -> AssetStorage:
    """Blob store rooted in a temp directory"""
    return AssetStorage(static_root=str(tmp_path / "static"), signing_secret=TEST_SIGNING_SECRET)


@pytest.fixture
def user_factory(test_db_session):
    """Create users by identity subject"""

    def _create(clerk_id: str = "user_test_00000001", credits: int = 0):
        user = UserDB.upsert_user(
            test_db_session,
            clerk_id=clerk_id,
            email=f"{clerk_id}@example.com",
            full_name="Test User",
        )
        if credits:
            user = UserDB.update_credits(test_db_session, clerk_id, credits)
        return user

    return _create


@pytest.fixture
def portfolio_factory(test_db_session):
    """Create portfolios for a user"""

    def _create(user_id: str, title: str = "Jane Doe Portfolio", raw_data=None, pdf_path=None):
        return PortfolioDB.create_portfolio(
            test_db_session,
            user_id=user_id,
            title=title,
            pdf_path=pdf_path,
            raw_data=raw_data if raw_data is not None else {"skills": ["python", "design"]},
        )

    return _create


def make_token(subject: str, secret: str = TEST_JWT_SECRET, expires_in: int = 3600, **claims) -> str:
    """Sign an HS256 identity token"""
    payload = {"sub": subject, "exp": int(time.time()) + expires_in}
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def token_factory():
    return make_token
