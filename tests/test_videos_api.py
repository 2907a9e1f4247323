from datetime import datetime

from sqlalchemy import BigInteger

from app.models.video import Video
from app.services.video_store import VideoStore


def _seed(db_session, title, created_at):
    video = Video(
        title=title,
        description=f"{title} description",
        public_id=f"media/video/{title}",
        duration=3.0,
        original_size=100,
        compressed_size=80,
        created_at=created_at,
    )
    db_session.add(video)
    db_session.commit()
    return video


def test_empty_gallery_is_not_an_error(client):
    response = client.get("/api/videos")
    assert response.status_code == 200
    assert response.json() == []


def test_gallery_is_newest_first(client, db_session):
    _seed(db_session, "older", datetime(2024, 1, 1))
    _seed(db_session, "newer", datetime(2025, 6, 1))
    _seed(db_session, "middle", datetime(2024, 9, 1))

    titles = [item["title"] for item in client.get("/api/videos").json()]
    assert titles == ["newer", "middle", "older"]


def test_new_insert_is_listed_first(db_session):
    _seed(db_session, "older", datetime(2024, 1, 1))
    store = VideoStore(db_session)

    created = store.insert(
        title="fresh",
        description="just uploaded",
        public_id="media/video/fresh",
        duration=9.5,
        original_size=500,
        compressed_size=300,
    )

    listed = store.list_all()
    assert listed[0].id == created.id
    assert [video.title for video in listed] == ["fresh", "older"]


def test_gallery_serialises_camel_case_keys(client, db_session):
    _seed(db_session, "clip", datetime(2024, 1, 1))
    item = client.get("/api/videos").json()[0]
    assert set(item) == {
        "id",
        "title",
        "description",
        "publicId",
        "duration",
        "originalSize",
        "compressedSize",
        "createdAt",
    }


def test_sizes_beyond_32_bits_are_stored(client, db_session):
    large = 5 * 2**31
    VideoStore(db_session).insert(
        title="long take",
        description="four hours of footage",
        public_id="media/video/long",
        duration=14400.0,
        original_size=large,
        compressed_size=large - 1,
    )

    item = client.get("/api/videos").json()[0]
    assert item["originalSize"] == large
    assert item["compressedSize"] == large - 1
    assert isinstance(Video.__table__.c.original_size.type, BigInteger)
    assert isinstance(Video.__table__.c.compressed_size.type, BigInteger)
