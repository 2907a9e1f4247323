from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class VideoRead(CamelModel):
    id: str
    title: str
    description: str
    public_id: str
    duration: float
    original_size: int
    compressed_size: int
    created_at: datetime


class ImageUploadResponse(CamelModel):
    public_id: str
    url: str


class VideoUploadResponse(CamelModel):
    public_id: str
    url: str
    video: VideoRead


class SocialFormatRead(CamelModel):
    key: str
    label: str
    width: int
    height: int
    aspect_ratio: str
