import os
import tempfile

os.environ["APP_DATABASE_URL"] = "sqlite://"
os.environ["APP_MEDIA_BACKEND"] = "local"
os.environ["APP_MEDIA_ROOT"] = tempfile.mkdtemp(prefix="media-share-tests-")
os.environ.pop("APP_SESSION_KEY", None)

import pytest
from fastapi.testclient import TestClient

from app.core.database import Base, SessionLocal, engine
from app.core.security import Identity
from app.main import app
from app.models import base as _models  # noqa: F401
from app.services.media_storage import MediaSink, MediaSinkError, StoredMedia, get_media_sink


class StubResolver:
    def __init__(self, identity=None):
        self.identity = identity

    def resolve(self, request):
        return self.identity


class FakeSink(MediaSink):
    """Records every call instead of talking to a media service."""

    def __init__(self, duration=42.5, stored_bytes=1234, fail=False, fail_discard=False):
        self.duration = duration
        self.stored_bytes = stored_bytes
        self.fail = fail
        self.fail_discard = fail_discard
        self.calls = []
        self.discarded = []

    def store(self, payload, options):
        self.calls.append((payload, options))
        if self.fail:
            raise MediaSinkError("quota exceeded")
        duration = self.duration if options.resource_type == "video" else None
        public_id = f"{options.folder}/asset-{len(self.calls)}"
        return StoredMedia(
            public_id=public_id,
            url=f"https://media.example.com/{public_id}",
            resource_type=options.resource_type,
            bytes=self.stored_bytes,
            duration=duration,
        )

    def discard(self, stored):
        if self.fail_discard:
            raise MediaSinkError("destroy failed")
        self.discarded.append(stored.public_id)

    def render(self, public_id, social_format):
        return b"\x89PNG fake"


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def resolver():
    previous = app.state.identity_resolver
    stub = StubResolver()
    app.state.identity_resolver = stub
    yield stub
    app.state.identity_resolver = previous


@pytest.fixture
def signed_in(resolver):
    resolver.identity = Identity(user_id="user_2abc|test")
    return resolver.identity


@pytest.fixture
def fake_sink():
    sink = FakeSink()
    app.dependency_overrides[get_media_sink] = lambda: sink
    yield sink
    app.dependency_overrides.pop(get_media_sink, None)


@pytest.fixture
def client(resolver):
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client
