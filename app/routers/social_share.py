import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..core.security import require_identity
from ..schemas.media import SocialFormatRead
from ..services.media_storage import MediaNotFoundError, MediaSink, MediaSinkError, get_media_sink
from ..services.social_formats import DEFAULT_FORMAT, SOCIAL_FORMATS, get_social_format

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/social-share", tags=["social-share"], dependencies=[Depends(require_identity)])


@router.get("/formats", response_model=list[SocialFormatRead])
def list_formats():
    return [SocialFormatRead.model_validate(fmt) for fmt in SOCIAL_FORMATS.values()]


@router.get("/download")
def download_formatted_image(
    public_id: str = Query(..., min_length=1),
    format_key: str = Query(DEFAULT_FORMAT, alias="format"),
    sink: MediaSink = Depends(get_media_sink),
):
    social_format = get_social_format(format_key)
    if not social_format:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown social format")
    try:
        content = sink.render(public_id, social_format)
    except MediaNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    except MediaSinkError:
        logger.exception("Error rendering %s as %s", public_id, format_key)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to render image")
    return Response(
        content=content,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="social-share-{social_format.key}.png"'},
    )
