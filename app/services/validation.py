import math
from collections.abc import Mapping
from dataclasses import dataclass

MIB = 1024 * 1024

REQUIRED_VIDEO_FIELDS = ("title", "description", "duration", "originalSize")

_TYPE_NAMES = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/gif": "GIF",
    "image/webp": "WebP",
    "video/mp4": "MP4",
    "video/webm": "WebM",
    "video/ogg": "OGG",
}


@dataclass(frozen=True)
class AssetPolicy:
    allowed_types: tuple[str, ...]
    max_bytes: int

    @property
    def type_label(self) -> str:
        names = [_TYPE_NAMES.get(mime, mime.rpartition("/")[2].upper()) for mime in self.allowed_types]
        if len(names) <= 2:
            return " and ".join(names)
        return f"{', '.join(names[:-1])}, and {names[-1]}"

    @property
    def size_label(self) -> str:
        if self.max_bytes % MIB == 0:
            return f"{self.max_bytes // MIB}MB"
        return f"{self.max_bytes} bytes"


@dataclass(frozen=True)
class UploadPolicy:
    image: AssetPolicy
    video: AssetPolicy


@dataclass(frozen=True)
class Rejection:
    code: str
    message: str


@dataclass(frozen=True)
class VideoFields:
    title: str
    description: str
    duration: float
    original_size: int


MISSING_FILE = Rejection("missing_file", "No file provided")
MISSING_VIDEO_FIELDS = Rejection(
    "missing_fields", "Missing required fields: title, description, duration, or originalSize"
)
INVALID_VIDEO_NUMBERS = Rejection("invalid_number", "Invalid duration or originalSize format.")


def _check_asset(policy: AssetPolicy, content_type: str | None, size: int) -> Rejection | None:
    if content_type not in policy.allowed_types:
        return Rejection("unsupported_type", f"Invalid file type. Only {policy.type_label} are allowed.")
    if size > policy.max_bytes:
        return Rejection("too_large", f"File size exceeds {policy.size_label} limit.")
    return None


def _parse_duration(value: str) -> float | None:
    try:
        parsed = float(value)
    except ValueError:
        return None
    if not math.isfinite(parsed) or parsed < 0:
        return None
    return parsed


def _parse_size(value: str) -> int | None:
    try:
        parsed = int(value)
    except ValueError:
        # exponent notation such as "1.5e6", as long as it names a whole byte count
        as_float = _parse_duration(value)
        if as_float is None or not as_float.is_integer():
            return None
        parsed = int(as_float)
    return parsed if parsed >= 0 else None


def validate_image(policy: UploadPolicy, content_type: str | None, size: int) -> Rejection | None:
    return _check_asset(policy.image, content_type, size)


def validate_video(
    policy: UploadPolicy,
    content_type: str | None,
    size: int,
    fields: Mapping[str, str | None],
) -> VideoFields | Rejection:
    """Check a video upload and parse its accompanying form fields.

    Missing fields are reported first, then the type and size limits, and
    finally the numeric fields.
    """
    values = {name: (fields.get(name) or "").strip() for name in REQUIRED_VIDEO_FIELDS}
    if not all(values.values()):
        return MISSING_VIDEO_FIELDS

    rejection = _check_asset(policy.video, content_type, size)
    if rejection is not None:
        return rejection

    duration = _parse_duration(values["duration"])
    original_size = _parse_size(values["originalSize"])
    if duration is None or original_size is None:
        return INVALID_VIDEO_NUMBERS

    return VideoFields(
        title=values["title"],
        description=values["description"],
        duration=duration,
        original_size=original_size,
    )
