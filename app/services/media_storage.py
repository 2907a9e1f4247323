import glob
import io
import logging
import mimetypes
import uuid
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import cloudinary.utils
import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from ..core.config import get_settings
from .social_formats import SocialFormat

logger = logging.getLogger(__name__)


class MediaSinkError(Exception):
    """The media sink could not complete the request."""


class MediaNotFoundError(MediaSinkError):
    """No stored object matches the requested public id."""


@dataclass(frozen=True)
class StoreOptions:
    resource_type: str
    folder: str
    transformation: list[dict[str, Any]] = field(default_factory=list)
    filename: str | None = None
    content_type: str | None = None
    duration_hint: float | None = None


@dataclass(frozen=True)
class StoredMedia:
    public_id: str
    url: str
    resource_type: str
    bytes: int
    duration: float | None = None
    format: str | None = None


class MediaSink:
    def store(self, payload: bytes, options: StoreOptions) -> StoredMedia:
        raise NotImplementedError

    def discard(self, stored: StoredMedia) -> None:
        raise NotImplementedError

    def render(self, public_id: str, social_format: SocialFormat) -> bytes:
        """Crop and resize a stored image to a social format, returned as PNG."""
        raise NotImplementedError


class CloudinaryMediaSink(MediaSink):
    def __init__(self, cloud_name: str | None, api_key: str | None, api_secret: str | None):
        cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)

    def store(self, payload: bytes, options: StoreOptions) -> StoredMedia:
        upload_options: dict[str, Any] = {"resource_type": options.resource_type, "folder": options.folder}
        if options.transformation:
            upload_options["transformation"] = options.transformation
        if options.filename:
            upload_options["filename"] = options.filename
        try:
            result = cloudinary.uploader.upload(io.BytesIO(payload), **upload_options)
        except (cloudinary.exceptions.Error, ValueError) as exc:
            # the SDK raises ValueError for missing credentials or cloud name
            raise MediaSinkError(f"Cloudinary upload failed: {exc}") from exc
        if not result or "public_id" not in result:
            raise MediaSinkError("Cloudinary upload failed")

        duration = result.get("duration")
        return StoredMedia(
            public_id=result["public_id"],
            url=result.get("secure_url") or result.get("url", ""),
            resource_type=result.get("resource_type", options.resource_type),
            bytes=int(result.get("bytes", len(payload))),
            duration=float(duration) if duration is not None else None,
            format=result.get("format"),
        )

    def discard(self, stored: StoredMedia) -> None:
        try:
            cloudinary.uploader.destroy(stored.public_id, resource_type=stored.resource_type)
        except (cloudinary.exceptions.Error, ValueError) as exc:
            raise MediaSinkError(f"Cloudinary destroy failed: {exc}") from exc

    def transformed_url(self, public_id: str, social_format: SocialFormat) -> str:
        url, _ = cloudinary.utils.cloudinary_url(
            public_id,
            width=social_format.width,
            height=social_format.height,
            aspect_ratio=social_format.aspect_ratio,
            crop="fill",
            gravity="auto",
            format="png",
            secure=True,
        )
        return url

    def render(self, public_id: str, social_format: SocialFormat) -> bytes:
        try:
            url = self.transformed_url(public_id, social_format)
        except ValueError as exc:
            raise MediaSinkError(f"Building a URL for {public_id} failed: {exc}") from exc
        try:
            response = httpx.get(url, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise MediaSinkError(f"Fetching {url} failed: {exc}") from exc
        if response.status_code == 404:
            raise MediaNotFoundError(public_id)
        if response.is_error:
            raise MediaSinkError(f"Fetching {url} returned {response.status_code}")
        return response.content


class LocalMediaSink(MediaSink):
    """Filesystem-backed sink for development; stores bytes as-is without transcoding."""

    def __init__(self, base_path: Path, base_url: str = "/media"):
        self.base_path = base_path
        self.base_url = base_url.rstrip("/")
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _suffix(self, options: StoreOptions) -> str:
        suffix = PurePosixPath(options.filename or "").suffix
        if not suffix and options.content_type:
            suffix = mimetypes.guess_extension(options.content_type) or ""
        return suffix.lower()

    def _resolve(self, relative: str) -> Path:
        path = (self.base_path / relative).resolve()
        if not path.is_relative_to(self.base_path.resolve()):
            raise MediaNotFoundError(relative)
        return path

    def store(self, payload: bytes, options: StoreOptions) -> StoredMedia:
        public_id = f"{options.folder.strip('/')}/{uuid.uuid4()}"
        suffix = self._suffix(options)
        dest_path = self._resolve(f"{public_id}{suffix}")
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with dest_path.open("wb") as buffer:
                buffer.write(payload)
        except OSError as exc:
            raise MediaSinkError(f"Writing {dest_path} failed: {exc}") from exc

        return StoredMedia(
            public_id=public_id,
            url=f"{self.base_url}/{public_id}{suffix}",
            resource_type=options.resource_type,
            bytes=len(payload),
            duration=options.duration_hint,
            format=suffix.lstrip(".") or None,
        )

    def _find(self, public_id: str) -> Path:
        name = PurePosixPath(public_id).name
        if name in ("", ".", ".."):
            raise MediaNotFoundError(public_id)
        parent = self._resolve(public_id).parent
        pattern = glob.escape(name)
        candidates = sorted(parent.glob(f"{pattern}.*")) + sorted(parent.glob(pattern))
        matches = [path for path in candidates if path.is_file()]
        if not matches:
            raise MediaNotFoundError(public_id)
        return matches[0]

    def discard(self, stored: StoredMedia) -> None:
        try:
            self._find(stored.public_id).unlink()
        except MediaNotFoundError:
            return
        except OSError as exc:
            raise MediaSinkError(f"Removing {stored.public_id} failed: {exc}") from exc

    def render(self, public_id: str, social_format: SocialFormat) -> bytes:
        source = self._find(public_id)
        try:
            with Image.open(source) as image:
                image = ImageOps.exif_transpose(image)
                if image.mode not in ("RGB", "RGBA"):
                    image = image.convert("RGBA")
                fitted = ImageOps.fit(
                    image,
                    (social_format.width, social_format.height),
                    method=Image.Resampling.LANCZOS,
                    centering=(0.5, 0.5),
                )
                buffer = io.BytesIO()
                fitted.save(buffer, format="PNG")
        except (UnidentifiedImageError, OSError) as exc:
            raise MediaSinkError(f"Rendering {public_id} failed: {exc}") from exc
        return buffer.getvalue()


def get_media_sink() -> MediaSink:
    settings = get_settings()
    if settings.media_backend == "local":
        return LocalMediaSink(settings.resolved_media_root, settings.media_base_url)
    return CloudinaryMediaSink(
        settings.cloudinary_cloud_name,
        settings.cloudinary_api_key,
        settings.cloudinary_api_secret,
    )
