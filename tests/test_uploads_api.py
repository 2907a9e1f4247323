from fastapi.testclient import TestClient

from app.models.video import Video
from app.routers.uploads import get_video_pipeline
from app.main import app
from app.services.media_storage import CloudinaryMediaSink, get_media_sink
from app.services.upload_pipeline import IncomingAsset, VideoUploadPipeline
from app.services.validation import AssetPolicy, UploadPolicy
from app.services.video_store import VideoStore
from conftest import FakeSink

MIB = 1024 * 1024
VIDEO_FORM = {"title": "Trip", "description": "Beach day", "duration": "10", "originalSize": "2048"}


def test_image_upload_returns_public_id_and_url(client, signed_in, fake_sink, db_session):
    response = client.post("/api/image-upload", files={"file": ("cat.jpg", b"\xff" * (5 * MIB), "image/jpeg")})

    assert response.status_code == 200
    body = response.json()
    assert body["publicId"]
    assert body["url"]
    assert len(fake_sink.calls) == 1
    assert db_session.query(Video).count() == 0


def test_image_upload_rejects_unsupported_type(client, signed_in, fake_sink):
    response = client.post("/api/image-upload", files={"file": ("a.svg", b"<svg/>", "image/svg+xml")})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid file type. Only JPEG, PNG, GIF, and WebP are allowed."}
    assert fake_sink.calls == []


def test_image_upload_without_file(client, signed_in, fake_sink):
    response = client.post("/api/image-upload", data={"note": "nothing attached"})

    assert response.status_code == 400
    assert response.json() == {"error": "No file provided"}


def test_image_upload_sink_failure_is_opaque(client, signed_in, fake_sink):
    fake_sink.fail = True
    response = client.post("/api/image-upload", files={"file": ("cat.png", b"png", "image/png")})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to upload image"}


def test_video_upload_persists_sink_metadata(client, signed_in, fake_sink):
    response = client.post(
        "/api/video-upload",
        files={"file": ("clip.mp4", b"\x00" * 2048, "video/mp4")},
        data=VIDEO_FORM,
    )

    assert response.status_code == 200
    body = response.json()
    video = body["video"]
    assert body["publicId"] == video["publicId"]
    assert body["url"]
    assert video["title"] == "Trip"
    assert video["duration"] == 42.5
    assert video["compressedSize"] == 1234
    assert video["originalSize"] == 2048
    assert video["id"]

    gallery = client.get("/api/videos").json()
    assert [item["id"] for item in gallery] == [video["id"]]


def test_video_upload_missing_fields(client, signed_in, fake_sink):
    response = client.post(
        "/api/video-upload",
        files={"file": ("clip.mp4", b"\x00", "video/mp4")},
        data={"title": "Trip"},
    )

    assert response.status_code == 400
    assert response.json() == {
        "error": "Missing required fields: title, description, duration, or originalSize"
    }
    assert fake_sink.calls == []


def test_video_upload_over_limit_is_rejected_before_sink(client, signed_in, fake_sink, db_session):
    small = UploadPolicy(
        image=AssetPolicy(allowed_types=("image/png",), max_bytes=MIB),
        video=AssetPolicy(allowed_types=("video/mp4",), max_bytes=MIB),
    )
    app.dependency_overrides[get_video_pipeline] = lambda: VideoUploadPipeline(
        small, fake_sink, VideoStore(db_session), "media"
    )
    try:
        response = client.post(
            "/api/video-upload",
            files={"file": ("big.mp4", b"\x00" * (MIB + 1), "video/mp4")},
            data=VIDEO_FORM,
        )
    finally:
        app.dependency_overrides.pop(get_video_pipeline, None)

    assert response.status_code == 400
    assert response.json() == {"error": "File size exceeds 1MB limit."}
    assert fake_sink.calls == []


def test_video_upload_sink_failure(client, signed_in, fake_sink, db_session):
    fake_sink.fail = True
    response = client.post(
        "/api/video-upload",
        files={"file": ("clip.mp4", b"\x00", "video/mp4")},
        data=VIDEO_FORM,
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to upload video"}
    assert db_session.query(Video).count() == 0


def test_unconfigured_cloudinary_answers_with_json_error(client, signed_in):
    app.dependency_overrides[get_media_sink] = lambda: CloudinaryMediaSink(None, None, None)
    try:
        response = client.post("/api/image-upload", files={"file": ("cat.png", b"png", "image/png")})
    finally:
        app.dependency_overrides.pop(get_media_sink, None)

    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    assert response.json() == {"error": "Failed to upload image"}


def test_oversize_upload_is_rejected_without_reading_the_payload(client, signed_in, fake_sink, monkeypatch):
    reads = []
    original_read = IncomingAsset.read

    def recording_read(asset):
        payload = original_read(asset)
        reads.append(len(payload))
        return payload

    monkeypatch.setattr(IncomingAsset, "read", recording_read)
    response = client.post("/api/image-upload", files={"file": ("big.png", b"\x00" * (11 * MIB), "image/png")})

    assert response.status_code == 400
    assert response.json() == {"error": "File size exceeds 10MB limit."}
    assert reads == []
    assert fake_sink.calls == []


def test_unexpected_errors_are_rendered_as_json(resolver, signed_in):
    class BrokenSink(FakeSink):
        def store(self, payload, options):
            raise RuntimeError("disk on fire")

    app.dependency_overrides[get_media_sink] = lambda: BrokenSink()
    try:
        with TestClient(app, raise_server_exceptions=False, follow_redirects=False) as test_client:
            response = test_client.post("/api/image-upload", files={"file": ("cat.png", b"png", "image/png")})
    finally:
        app.dependency_overrides.pop(get_media_sink, None)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}
