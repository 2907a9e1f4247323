import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.video import Video

logger = logging.getLogger(__name__)


class VideoStore:
    """Insert-and-list access to the ``videos`` table; rows are never updated."""

    def __init__(self, db: Session):
        self.db = db

    def insert(
        self,
        *,
        title: str,
        description: str,
        public_id: str,
        duration: float,
        original_size: int,
        compressed_size: int,
    ) -> Video:
        video = Video(
            title=title,
            description=description,
            public_id=public_id,
            duration=duration,
            original_size=original_size,
            compressed_size=compressed_size,
        )
        self.db.add(video)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(video)
        logger.info("Saved video %s (%s)", video.id, video.public_id)
        return video

    def list_all(self) -> list[Video]:
        return self.db.query(Video).order_by(Video.created_at.desc()).all()
