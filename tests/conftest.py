import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from course_player.config.settings import Settings
from course_player.database.models import Base
from course_player.playback import MediaSourceResolver, SimulatedEngine
from course_player.storage import StorageClient


@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated from the developer's environment."""
    return Settings(
        storage_url="https://project.supabase.co/",
        storage_key="test-key",
        database_url="sqlite:///:memory:",
        log_file=tmp_path / "logs" / "test.log",
        resolution_timeout=1.0,
    )


@pytest.fixture
def storage():
    """Storage client double with a working signer."""
    client = MagicMock(spec=StorageClient)
    client.get_public_url.side_effect = (
        lambda bucket, path: f"https://project.supabase.co/storage/v1/object/public/{bucket}/{path}"
    )
    client.create_signed_url = AsyncMock(
        return_value="https://project.supabase.co/storage/v1/object/sign/videos/lesson.mp4?token=abc"
    )
    return client


@pytest.fixture
def resolver(storage):
    return MediaSourceResolver(storage)


@pytest.fixture
def engine():
    return SimulatedEngine(duration=1000.0)


@pytest.fixture(scope="function")
def db_session(test_settings):
    """Create a clean database session for each test."""
    # StaticPool shares the in-memory DB across threads
    engine = create_engine(
        test_settings.database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    # Keep get_db() from closing the shared session
    real_close = session.close
    session.close = MagicMock()

    with patch("course_player.database.session._engine", engine), \
         patch("course_player.database.session._SessionLocal", lambda: session), \
         patch("course_player.database.session.init_db"):

        yield session

    real_close()
    Base.metadata.drop_all(engine)
