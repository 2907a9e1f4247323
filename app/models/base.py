from ..core.database import Base  # noqa: F401
from .video import Video  # noqa: F401
