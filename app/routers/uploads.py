import logging
import os

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.database import get_db
from ..core.security import Identity, require_identity
from ..schemas.media import ImageUploadResponse, VideoRead, VideoUploadResponse
from ..services.media_storage import MediaSink, MediaSinkError, get_media_sink
from ..services.upload_pipeline import (
    ImageUploadPipeline,
    IncomingAsset,
    MetadataStoreError,
    UploadRejected,
    VideoUploadPipeline,
)
from ..services.video_store import VideoStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])


def _incoming_asset(file: UploadFile | None) -> IncomingAsset | None:
    if file is None or not file.filename:
        return None
    size = file.size
    if size is None:
        # measure the spooled file without loading it
        file.file.seek(0, os.SEEK_END)
        size = file.file.tell()
        file.file.seek(0)
    return IncomingAsset(stream=file.file, content_type=file.content_type, size=size, filename=file.filename)


def get_image_pipeline(sink: MediaSink = Depends(get_media_sink)) -> ImageUploadPipeline:
    settings = get_settings()
    return ImageUploadPipeline(settings.upload_policy(), sink, settings.media_folder)


def get_video_pipeline(sink: MediaSink = Depends(get_media_sink), db: Session = Depends(get_db)) -> VideoUploadPipeline:
    settings = get_settings()
    return VideoUploadPipeline(
        settings.upload_policy(),
        sink,
        VideoStore(db),
        settings.media_folder,
        compensate=settings.compensate_orphaned_media,
    )


@router.post("/image-upload", response_model=ImageUploadResponse)
def upload_image(
    file: UploadFile | None = File(None),
    identity: Identity = Depends(require_identity),
    pipeline: ImageUploadPipeline = Depends(get_image_pipeline),
):
    try:
        result = pipeline.run(identity, _incoming_asset(file))
    except UploadRejected as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.rejection.message)
    except MediaSinkError:
        logger.exception("Error uploading image")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to upload image")
    return ImageUploadResponse(public_id=result.public_id, url=result.url)


@router.post("/video-upload", response_model=VideoUploadResponse)
def upload_video(
    file: UploadFile | None = File(None),
    title: str | None = Form(None),
    description: str | None = Form(None),
    duration: str | None = Form(None),
    original_size: str | None = Form(None, alias="originalSize"),
    identity: Identity = Depends(require_identity),
    pipeline: VideoUploadPipeline = Depends(get_video_pipeline),
):
    fields = {"title": title, "description": description, "duration": duration, "originalSize": original_size}
    try:
        result = pipeline.run(identity, _incoming_asset(file), fields)
    except UploadRejected as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.rejection.message)
    except (MediaSinkError, MetadataStoreError):
        logger.exception("Error uploading video or saving it to the database")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to upload video")
    return VideoUploadResponse(
        public_id=result.public_id,
        url=result.url,
        video=VideoRead.model_validate(result.video),
    )
