import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, Float, String, Text

from ..core.database import Base


class Video(Base):
    __tablename__ = "videos"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    public_id = Column(String(512), nullable=False)
    duration = Column(Float, nullable=False)
    original_size = Column(BigInteger, nullable=False)
    compressed_size = Column(BigInteger, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
