import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..schemas.media import VideoRead
from ..services.video_store import VideoStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["videos"])


@router.get("/videos", response_model=list[VideoRead])
def list_videos(db: Session = Depends(get_db)):
    try:
        return VideoStore(db).list_all()
    except SQLAlchemyError:
        logger.exception("Error fetching videos")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch videos")
