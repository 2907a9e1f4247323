import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import BinaryIO

from sqlalchemy.exc import SQLAlchemyError

from ..core.security import Identity
from ..models.video import Video
from .media_storage import MediaSink, MediaSinkError, StoredMedia, StoreOptions
from .validation import MISSING_FILE, Rejection, UploadPolicy, validate_image, validate_video
from .video_store import VideoStore

logger = logging.getLogger(__name__)

VIDEO_TRANSFORMATION = [{"quality": "auto", "fetch_format": "mp4"}]

_UNSAFE_FOLDER_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


class UploadRejected(Exception):
    def __init__(self, rejection: Rejection):
        super().__init__(rejection.message)
        self.rejection = rejection


class MetadataStoreError(Exception):
    """The video row could not be written after the media was stored."""


@dataclass(frozen=True)
class IncomingAsset:
    stream: BinaryIO
    content_type: str | None
    size: int
    filename: str | None = None

    def read(self) -> bytes:
        return self.stream.read()


@dataclass(frozen=True)
class ImageUploadResult:
    public_id: str
    url: str


@dataclass(frozen=True)
class VideoUploadResult:
    public_id: str
    url: str
    video: Video


def sanitize_folder_key(user_id: str) -> str:
    return _UNSAFE_FOLDER_CHARS.sub("", user_id)


class ImageUploadPipeline:
    def __init__(self, policy: UploadPolicy, sink: MediaSink, folder: str):
        self.policy = policy
        self.sink = sink
        self.folder = folder

    def run(self, identity: Identity, asset: IncomingAsset | None) -> ImageUploadResult:
        if asset is None:
            raise UploadRejected(MISSING_FILE)
        rejection = validate_image(self.policy, asset.content_type, asset.size)
        if rejection is not None:
            logger.warning("Rejected image upload from %s: %s", identity.user_id, rejection.code)
            raise UploadRejected(rejection)

        stored = self.sink.store(
            asset.read(),
            StoreOptions(
                resource_type="image",
                folder=f"{self.folder}/image",
                filename=asset.filename,
                content_type=asset.content_type,
            ),
        )
        logger.info("Stored image %s (%d bytes)", stored.public_id, stored.bytes)
        return ImageUploadResult(public_id=stored.public_id, url=stored.url)


class VideoUploadPipeline:
    def __init__(self, policy: UploadPolicy, sink: MediaSink, store: VideoStore, folder: str, compensate: bool = True):
        self.policy = policy
        self.sink = sink
        self.store = store
        self.folder = folder
        self.compensate = compensate

    def run(
        self,
        identity: Identity,
        asset: IncomingAsset | None,
        fields: Mapping[str, str | None],
    ) -> VideoUploadResult:
        if asset is None:
            raise UploadRejected(MISSING_FILE)
        outcome = validate_video(self.policy, asset.content_type, asset.size, fields)
        if isinstance(outcome, Rejection):
            logger.warning("Rejected video upload from %s: %s", identity.user_id, outcome.code)
            raise UploadRejected(outcome)

        stored = self.sink.store(
            asset.read(),
            StoreOptions(
                resource_type="video",
                folder=f"{self.folder}/video/{sanitize_folder_key(identity.user_id)}",
                transformation=VIDEO_TRANSFORMATION,
                filename=asset.filename,
                content_type=asset.content_type,
                duration_hint=outcome.duration,
            ),
        )
        logger.info("Stored video %s (%d bytes)", stored.public_id, stored.bytes)

        try:
            video = self.store.insert(
                title=outcome.title,
                description=outcome.description,
                public_id=stored.public_id,
                duration=stored.duration if stored.duration is not None else outcome.duration,
                original_size=outcome.original_size,
                compressed_size=stored.bytes,
            )
        except SQLAlchemyError as exc:
            if self.compensate:
                self._discard_orphan(stored)
            raise MetadataStoreError(f"Saving video {stored.public_id} failed") from exc

        return VideoUploadResult(public_id=stored.public_id, url=stored.url, video=video)

    def _discard_orphan(self, stored: StoredMedia) -> None:
        try:
            self.sink.discard(stored)
        except MediaSinkError:
            logger.error("Could not discard orphaned media %s", stored.public_id, exc_info=True)
        else:
            logger.info("Discarded orphaned media %s", stored.public_id)
