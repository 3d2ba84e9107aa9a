import io
import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from config import Settings
from errors import UploadError

logger = logging.getLogger(__name__)

ALLOWED_TYPES = {
    'image/jpeg': '.jpg',
    'image/jpg': '.jpg',
    'image/png': '.png',
}

JPEG_MAGIC = b'\xff\xd8\xff'
PNG_MAGIC = b'\x89PNG\r\n\x1a\n'


@dataclass
class PhotoUpload:
    """The single ``photo`` part of a member form."""
    filename: str
    content_type: Optional[str]
    data: bytes


def _format_size(n: int) -> str:
    if n % (1024 * 1024) == 0:
        return f"{n // (1024 * 1024)}MB"
    if n % 1024 == 0:
        return f"{n // 1024}KB"
    return f"{n} bytes"


class PhotoStorage:
    """Size and type checks shared by every photo backend."""

    def __init__(self, max_bytes: int = 1024 * 1024):
        self.max_bytes = max_bytes

    def prepare(self) -> None:
        pass

    def save(self, upload: PhotoUpload) -> str:
        raise NotImplementedError

    def release(self, reference: Optional[str]) -> bool:
        raise NotImplementedError

    def validate(self, upload: PhotoUpload) -> str:
        """Check size, declared type and file signature. Returns the file extension."""
        if len(upload.data) > self.max_bytes:
            raise UploadError(f"Image must be smaller than {_format_size(self.max_bytes)}")
        content_type = (upload.content_type or '').lower()
        ext = ALLOWED_TYPES.get(content_type)
        if ext is None:
            raise UploadError('Only JPG/PNG allowed')
        magic = PNG_MAGIC if ext == '.png' else JPEG_MAGIC
        if not upload.data.startswith(magic):
            raise UploadError('Only JPG/PNG allowed')
        return ext


class LocalPhotoStorage(PhotoStorage):
    """
    Stores member photos on local disk and hands back ``<url_prefix>/<filename>``
    references. Only references under ``url_prefix`` are ever released.
    """

    def __init__(self, directory, url_prefix: str = '/public', max_bytes: int = 1024 * 1024):
        super().__init__(max_bytes)
        self.directory = Path(directory)
        self.url_prefix = url_prefix.rstrip('/')

    def ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def prepare(self) -> None:
        self.ensure_directory()

    def save(self, upload: PhotoUpload) -> str:
        ext = self.validate(upload)
        name = f"{uuid.uuid4().hex}{ext}"
        try:
            self.ensure_directory()
            (self.directory / name).write_bytes(upload.data)
        except OSError as exc:
            logger.error("storing photo %s failed: %s", upload.filename, exc)
            raise UploadError(f"Upload error: {exc.strerror or exc}")
        logger.info("stored photo %s as %s", upload.filename, name)
        return f"{self.url_prefix}/{name}"

    def _path_for(self, reference: Optional[str]) -> Optional[Path]:
        if not reference or not reference.startswith(self.url_prefix + '/'):
            return None
        name = reference[len(self.url_prefix) + 1:]
        if not name or '/' in name or '\\' in name or name.startswith('.'):
            return None
        return self.directory / name

    def release(self, reference: Optional[str]) -> bool:
        """Best effort removal; failures are logged, never raised."""
        path = self._path_for(reference)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("could not release photo %s: %s", reference, exc)
            return False
        logger.info("released photo %s", reference)
        return True


# .../image/upload/v1712345678/gym_members/abc123.jpg -> gym_members/abc123
_PUBLIC_ID_RE = re.compile(r'/upload/(?:[^/]*,[^/]*/)*(?:v\d+/)?(?P<public_id>.+?)(?:\.[A-Za-z0-9]+)?$')


class CloudinaryPhotoStorage(PhotoStorage):
    """
    Uploads member photos to Cloudinary and hands back the ``secure_url``.
    Credentials are passed on every call instead of through the SDK's global config.
    """

    def __init__(
        self,
        cloud_name: Optional[str],
        api_key: Optional[str],
        api_secret: Optional[str],
        folder: str = 'gym_members',
        max_width: int = 1000,
        max_bytes: int = 1024 * 1024,
    ):
        super().__init__(max_bytes)
        self.folder = folder
        self.max_width = max_width
        self.credentials = {
            'cloud_name': cloud_name,
            'api_key': api_key,
            'api_secret': api_secret,
        }

    def prepare(self) -> None:
        missing = [k for k, v in self.credentials.items() if not v]
        if missing:
            logger.warning("cloudinary storage missing %s; uploads will fail", ', '.join(missing))

    def save(self, upload: PhotoUpload) -> str:
        self.validate(upload)
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(upload.data),
                folder=self.folder,
                allowed_formats=['jpg', 'jpeg', 'png'],
                transformation=[{'width': self.max_width, 'crop': 'limit'}],
                secure=True,
                **self.credentials,
            )
        except CloudinaryError as exc:
            logger.error("uploading photo %s failed: %s", upload.filename, exc)
            raise UploadError(f"Upload error: {exc}")
        url = result.get('secure_url') or result.get('url')
        if not url:
            raise UploadError('Upload error: no URL returned for the image')
        logger.info("uploaded photo %s as %s", upload.filename, result.get('public_id'))
        return url

    def public_id_for(self, reference: Optional[str]) -> Optional[str]:
        if not reference or '/upload/' not in reference:
            return None
        match = _PUBLIC_ID_RE.search(reference)
        if not match:
            return None
        public_id = match.group('public_id')
        if not public_id.startswith(self.folder + '/'):
            return None
        return public_id

    def release(self, reference: Optional[str]) -> bool:
        """Best effort destroy of an image in our folder; failures are logged, never raised."""
        public_id = self.public_id_for(reference)
        if public_id is None:
            return False
        try:
            result = cloudinary.uploader.destroy(public_id, invalidate=True, **self.credentials)
        except CloudinaryError as exc:
            logger.warning("could not release photo %s: %s", reference, exc)
            return False
        if result.get('result') != 'ok':
            logger.warning("could not release photo %s: %s", reference, result.get('result'))
            return False
        logger.info("released photo %s", public_id)
        return True


def build_photo_storage(settings: Settings) -> PhotoStorage:
    if settings.photo_storage == 'cloudinary':
        return CloudinaryPhotoStorage(
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
            folder=settings.cloudinary_folder,
            max_width=settings.cloudinary_max_width,
            max_bytes=settings.photo_max_bytes,
        )
    return LocalPhotoStorage(settings.photo_dir, settings.photo_url_prefix, settings.photo_max_bytes)
